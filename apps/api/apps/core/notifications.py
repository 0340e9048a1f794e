"""
Best-effort notification enqueueing.

Services emit domain signals inside their transaction; receivers call
enqueue_on_commit so the Celery task is only queued once the transaction
has committed. A broker failure is logged and counted, never raised: the
state change it reports has already been persisted.
"""
from django.db import transaction

from .observability import metrics
from .observability.events import log_notification_enqueue_failed


def enqueue_on_commit(task, kind, entity_type, entity_id, task_kwargs=None):
    """
    Queue `task.delay(**task_kwargs)` after the current transaction commits.

    Args:
        task: Celery task (shared_task)
        kind: Notification kind for logs/metrics ('approval_status', 'invite', ...)
        entity_type: 'Doctor' | 'Patient' | 'InviteToken' | 'VitalsRecord'
        entity_id: Primary key of the entity the notification is about
        task_kwargs: JSON-serialisable task arguments
    """
    def _send():
        try:
            task.delay(**(task_kwargs or {}))
        except Exception as e:  # broker down, serialisation error, ...
            metrics.notifications_total.labels(kind=kind, result='enqueue_failed').inc()
            log_notification_enqueue_failed(kind, entity_type, entity_id, e)
            return
        metrics.notifications_total.labels(kind=kind, result='enqueued').inc()

    transaction.on_commit(_send)
