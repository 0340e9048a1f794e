"""
Request correlation middleware.

Every request carries an X-Request-ID (propagated from the caller or
generated here) that is attached to each log line written while the request
is handled, together with the acting user and role. The context lives in a
thread-local and is cleared when the response leaves, so a worker thread
never logs a previous caller's identity.
"""
import logging
import time
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

_request_context = local()

logger = logging.getLogger(__name__)

CONTEXT_ATTRS = ('request_id', 'user_id', 'user_roles')


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def get_user_id():
    return getattr(_request_context, 'user_id', None)


def get_user_roles():
    return getattr(_request_context, 'user_roles', [])


def bind_actor(actor):
    """
    Record the resolved actor for the rest of the request.

    JWT authentication runs inside DRF, after this middleware has seen the
    request, so views bind the actor once it is known.
    """
    _request_context.user_id = str(actor.actor_id) if actor.actor_id else None
    _request_context.user_roles = [actor.actor_role] if actor.actor_role else []


def clear_request_context():
    for attr in CONTEXT_ATTRS:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


def _route(request):
    """URL pattern name, so ids and tokens in paths never become metric labels."""
    match = getattr(request, 'resolver_match', None)
    return match.url_name if match and match.url_name else 'unmatched'


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    - Propagates or generates X-Request-ID and echoes it on the response
    - Counts requests and their duration per route
    - Logs one line per completed request, and failures with traceback
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'

    def process_request(self, request):
        clear_request_context()
        request.request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.start_time = time.monotonic()
        _request_context.request_id = request.request_id

        # Session users (Django admin) are known here; API users are bound by the views
        if hasattr(request, 'user') and request.user.is_authenticated:
            _request_context.user_id = str(request.user.id)
            _request_context.user_roles = list(
                request.user.user_roles.values_list('role__name', flat=True)
            )

    def process_response(self, request, response):
        if not hasattr(request, 'request_id'):
            return response

        response['X-Request-ID'] = request.request_id
        duration = time.monotonic() - request.start_time
        route = _route(request)

        from .metrics import metrics
        metrics.http_requests_total.labels(
            method=request.method, route=route, status=str(response.status_code),
        ).inc()
        metrics.http_request_duration_seconds.labels(method=request.method, route=route).observe(duration)

        logger.info(
            'Request completed',
            extra={
                'event': 'http_request_completed',
                'route': route,
                'method': request.method,
                'status_code': response.status_code,
                'duration_ms': round(duration * 1000, 2),
            }
        )
        clear_request_context()
        return response

    def process_exception(self, request, exception):
        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'route': _route(request),
                'method': request.method,
                'exception_type': exception.__class__.__name__,
            }
        )
