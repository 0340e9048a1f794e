"""
Domain event log lines.

One line per business outcome (invite issued, registration bound, status
transition, vitals recorded, meal reported). Free-form fields pass through
the PHI filter before they reach the record.
"""
import logging
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)

# Outcome -> level. Anything unlisted (success, noop, created, updated) is INFO.
RESULT_LEVELS = {
    'failure': logging.ERROR,
    'error': logging.ERROR,
    'warning': logging.WARNING,
    'blocked': logging.WARNING,
    'denied': logging.WARNING,
}


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Emit a domain event.

    `entity_ids` holds related keys (doctor_id, patient_id) and is merged as is;
    `extra_fields` is sanitized, so callers may pass profile dicts without
    leaking contact details or clinical notes.

        log_domain_event(
            'vitals_recorded',
            entity_type='VitalsRecord',
            entity_id=str(record.id),
            entity_ids={'patient_id': str(record.patient_id)},
            context='doctor_visit',
        )
    """
    event_data = {'event': event_name, 'result': result}
    if entity_type:
        event_data['entity_type'] = entity_type
    if entity_id:
        event_data['entity_id'] = entity_id
    if entity_ids:
        event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    level = RESULT_LEVELS.get(result, logging.INFO)
    logger.log(level, f'Domain event: {event_name}', extra=event_data)


def log_approval_transition(entity_type, entity, from_status, to_status, action,
                            actor, result='success', **extra):
    """One line per approval state change, including no-op re-approvals."""
    log_domain_event(
        'approval_transition',
        entity_type=entity_type,
        entity_id=str(entity.id),
        result=result,
        action=action,
        from_status=from_status,
        to_status=to_status,
        actor_id=str(actor.actor_id) if actor.actor_id else None,
        actor_role=actor.actor_role,
        **extra
    )


def log_notification_enqueue_failed(kind, entity_type, entity_id, error):
    # The business write has committed; only the e-mail is lost.
    log_domain_event(
        'notification_enqueue_failed',
        entity_type=entity_type,
        entity_id=str(entity_id),
        result='warning',
        kind=kind,
        error=str(error),
    )
