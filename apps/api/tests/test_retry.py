"""
Tests for the transient-failure retry decorator.

These run outside a test transaction: inside an outer atomic block the
decorator deliberately gives up after the first attempt.
"""
from unittest.mock import Mock

import pytest
from django.db import OperationalError

from apps.core.exceptions import AppValidationError, TransientInfrastructureError
from apps.core.retry import retry_on_transient


def flaky(*outcomes):
    """A callable that raises/returns the given outcomes in order."""
    return Mock(side_effect=list(outcomes))


class TestRetryOnTransient:

    def test_retries_until_success(self):
        call = flaky(TransientInfrastructureError(), OperationalError('lock timeout'), 'done')
        wrapped = retry_on_transient(operation='test_op', attempts=3, base_ms=0, max_ms=0)(call)

        assert wrapped() == 'done'
        assert call.call_count == 3

    def test_gives_up_after_attempts(self):
        call = flaky(*[OperationalError('server closed the connection')] * 3)
        wrapped = retry_on_transient(operation='test_op', attempts=3, base_ms=0, max_ms=0)(call)

        with pytest.raises(TransientInfrastructureError) as exc:
            wrapped()

        assert call.call_count == 3
        assert isinstance(exc.value.__cause__, OperationalError)
        assert exc.value.detail == ['server closed the connection']

    def test_business_errors_are_not_retried(self):
        call = flaky(AppValidationError(detail=['weight: must be a number']), 'unused')
        wrapped = retry_on_transient(operation='test_op', attempts=3, base_ms=0, max_ms=0)(call)

        with pytest.raises(AppValidationError):
            wrapped()
        assert call.call_count == 1

    def test_arguments_pass_through(self):
        call = Mock(return_value=42)
        call.__name__ = 'call'
        wrapped = retry_on_transient()(call)

        assert wrapped('a', b=2) == 42
        call.assert_called_once_with('a', b=2)

    @pytest.mark.django_db
    def test_no_retry_inside_outer_transaction(self):
        call = flaky(TransientInfrastructureError(), 'done')
        wrapped = retry_on_transient(operation='test_op', attempts=3, base_ms=0, max_ms=0)(call)

        with pytest.raises(TransientInfrastructureError):
            wrapped()
        assert call.call_count == 1
