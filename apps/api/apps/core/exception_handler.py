"""
Unified DRF exception handler.

Registered as REST_FRAMEWORK['EXCEPTION_HANDLER']. Every error response
has the shape {type, code, message, detail}.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .exceptions import BaseAppException
from .observability import metrics

logger = logging.getLogger(__name__)


def _flatten_detail(data, path=''):
    """Flatten DRF error payloads ({field: [msg]} / [msg] / msg) to 'field: msg' lines."""
    if isinstance(data, dict):
        lines = []
        for field, value in data.items():
            lines.extend(_flatten_detail(value, f"{path}.{field}" if path else str(field)))
        return lines
    if isinstance(data, list):
        lines = []
        for item in data:
            lines.extend(_flatten_detail(item, path))
        return lines
    return [f"{path}: {data}" if path else str(data)]


def unified_exception_handler(exc, context):
    """
    Translate exceptions into the unified error body.

    1. BaseAppException: rendered from the exception itself.
    2. DRF/Django exceptions DRF recognises (serializer validation,
       NotAuthenticated, PermissionDenied, Http404, throttling).
    3. Anything else: generic 500 without a stack trace.
    """
    view_name = context.get('view').__class__.__name__ if context.get('view') else '-'

    if isinstance(exc, BaseAppException):
        metrics.exceptions_total.labels(
            exception_type=exc.__class__.__name__, location=view_name
        ).inc()
        return Response(exc.to_dict(), status=exc.http_status)

    response = drf_exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, DRFValidationError):
            code, message = "VALIDATION_ERROR", "Input validation failed"
            detail = _flatten_detail(response.data)
        else:
            code = str(getattr(exc, 'default_code', 'error')).upper()
            message = str(getattr(exc, 'detail', '')) or "Request failed"
            detail = []
        return Response(
            {
                "type": "error",
                "code": code,
                "message": message,
                "detail": detail,
            },
            status=response.status_code,
            headers={k: v for k, v in response.items()},
        )

    metrics.exceptions_total.labels(
        exception_type=exc.__class__.__name__, location=view_name
    ).inc()
    logger.error(
        'Unhandled exception in view',
        exc_info=exc,
        extra={'event': 'unhandled_exception', 'view': view_name},
    )
    return Response(
        {
            "type": "error",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "detail": [],
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
