"""
Tests for PHI redaction in structured logs.
"""
import json
import logging

from apps.core.observability.logging import SanitizedJSONFormatter, sanitize_dict


def make_record(**extra):
    record = logging.LogRecord('apps.clinical.services', logging.INFO, __file__, 1, 'Vitals recorded', None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_redacts_clinical_fields():
    record = make_record(event='vitals_recorded', diagnosis='Anemia', naadi='Vatham', entity_id='abc')

    payload = json.loads(SanitizedJSONFormatter().format(record))

    assert payload['message'] == 'Vitals recorded'
    assert payload['event'] == 'vitals_recorded'
    assert payload['entity_id'] == 'abc'
    assert payload['diagnosis'] == '[REDACTED]'
    assert payload['naadi'] == '[REDACTED]'
    assert payload['request_id'] == '-'


def test_nested_values_are_sanitized():
    data = {'metadata': {'Email': 'a@b.test', 'count': 2}, 'items': [{'token': 'x'}]}

    assert sanitize_dict(data) == {
        'metadata': {'Email': '[REDACTED]', 'count': 2},
        'items': [{'token': '[REDACTED]'}],
    }
