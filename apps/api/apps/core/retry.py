"""
Bounded retry for transient persistence failures.

Only TransientInfrastructureError is retried. Django's OperationalError and
InterfaceError (lost connection, lock timeout, database restarting) are
converted into it; every other exception propagates on the first attempt.
"""
import logging
import random
import time
from functools import wraps

from django.conf import settings
from django.db import InterfaceError, OperationalError, connection

from .exceptions import TransientInfrastructureError
from .observability import metrics

logger = logging.getLogger(__name__)

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


def retry_on_transient(operation=None, attempts=None, base_ms=None, max_ms=None, jitter_ms=50):
    """
    Decorator: run the wrapped call up to `attempts` times with exponential
    backoff plus jitter while it fails with a transient infrastructure error.

    The wrapped function must own its transaction (call transaction.atomic()
    inside), so a retry starts from a clean transaction. When the call is
    already nested in an outer atomic block the error is converted but not
    retried, since the outer transaction is unusable.

    Args:
        operation: Name used in logs and metrics (defaults to function name)
        attempts: Total attempts (default settings.TRANSIENT_RETRY_ATTEMPTS)
        base_ms: First backoff delay (default settings.TRANSIENT_RETRY_BASE_DELAY_MS)
        max_ms: Backoff ceiling (default settings.TRANSIENT_RETRY_MAX_DELAY_MS)
        jitter_ms: Upper bound of random jitter added to each delay

    Raises:
        TransientInfrastructureError: When every attempt failed transiently
    """
    def decorator(func):
        op_name = operation or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            total = attempts or getattr(settings, 'TRANSIENT_RETRY_ATTEMPTS', 3)
            delay = base_ms if base_ms is not None else getattr(settings, 'TRANSIENT_RETRY_BASE_DELAY_MS', 50)
            ceiling = max_ms if max_ms is not None else getattr(settings, 'TRANSIENT_RETRY_MAX_DELAY_MS', 2000)

            for attempt in range(1, total + 1):
                try:
                    return func(*args, **kwargs)
                except TRANSIENT_DB_ERRORS as e:
                    error = TransientInfrastructureError(detail=[str(e)])
                    error.__cause__ = e
                except TransientInfrastructureError as e:
                    error = e

                if attempt == total or connection.in_atomic_block:
                    logger.error(
                        f'{op_name} failed after {attempt} attempt(s)',
                        extra={'event': 'transient_retry_exhausted', 'operation': op_name, 'attempts': attempt},
                    )
                    raise error

                metrics.transient_retries_total.labels(operation=op_name).inc()
                sleep_ms = min(delay + random.randint(0, jitter_ms), ceiling) if ceiling else 0
                logger.warning(
                    f'{op_name} hit a transient error, retrying',
                    extra={'event': 'transient_retry', 'operation': op_name,
                           'attempt': attempt, 'sleep_ms': sleep_ms},
                )
                time.sleep(sleep_ms / 1000.0)
                delay = min(delay * 2, ceiling)

        return wrapper
    return decorator
