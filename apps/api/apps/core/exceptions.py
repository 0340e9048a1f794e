"""
Application exception taxonomy.

Every business error raised by the service layer derives from
BaseAppException. The DRF exception handler renders them uniformly as
{type, code, message, detail}; views never catch them.

Kinds:
- AppValidationError (400): malformed or missing input, caller resubmits.
- NotFoundError (404): token/entity/patient does not exist.
- ConflictError (409): someone else already acted, or the state forbids it.
- AuthorizationError (403): actor may not perform the operation.
- TransientInfrastructureError (503): persistence unavailable; the only
  kind apps.core.retry retries.
"""


# ============================================================
# Base
# ============================================================
class BaseAppException(Exception):
    """
    Base for all application exceptions.

    Rendered as:
    {
        "type": "error",
        "code": "TOKEN_EXPIRED",          # machine readable
        "message": "Invite token has expired",
        "detail": ["..."],
    }
    """
    type = "error"
    code = "UNKNOWN_ERROR"
    http_status = 500
    message = "An unexpected error occurred"

    def __init__(self, message=None, detail=None, code=None):
        if message:
            self.message = message
        if code:
            self.code = code

        # detail is always a list so clients can iterate it
        if detail is None:
            self.detail = []
        elif isinstance(detail, str):
            self.detail = [detail]
        else:
            self.detail = list(detail)

        super().__init__(self.message)

    def to_dict(self):
        return {
            "type": self.type,
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


# ============================================================
# Kinds
# ============================================================
class AppValidationError(BaseAppException):
    """
    Input validation failed.

    Named AppValidationError to avoid clashing with DRF's ValidationError.
    """
    code = "VALIDATION_ERROR"
    http_status = 400
    message = "Input validation failed"


class NotFoundError(BaseAppException):
    code = "NOT_FOUND"
    http_status = 404
    message = "Resource not found"


class ConflictError(BaseAppException):
    code = "CONFLICT"
    http_status = 409
    message = "Operation conflicts with the current state"


class AuthorizationError(BaseAppException):
    code = "FORBIDDEN"
    http_status = 403
    message = "You are not allowed to perform this action"


class TransientInfrastructureError(BaseAppException):
    code = "SERVICE_UNAVAILABLE"
    http_status = 503
    message = "Service temporarily unavailable, please retry"


# ============================================================
# Onboarding
# ============================================================
class InvalidIssuerError(AppValidationError):
    code = "INVALID_ISSUER"
    message = "Issuing doctor does not exist or is not approved"


class TokenNotFoundError(NotFoundError):
    code = "TOKEN_NOT_FOUND"
    message = "Invite token not found"


class TokenExpiredError(ConflictError):
    code = "TOKEN_EXPIRED"
    message = "Invite token has expired"


class TokenRoleMismatchError(AppValidationError):
    code = "TOKEN_ROLE_MISMATCH"
    message = "Invite token was issued for a different role"


class TokenAlreadyConsumedError(ConflictError):
    code = "TOKEN_ALREADY_CONSUMED"
    message = "Invite token has already been used"


class InvalidTransitionError(ConflictError):
    """Raised for any (status, operation) pair the approval table does not allow."""
    code = "INVALID_TRANSITION"
    message = "Transition not allowed"

    def __init__(self, current_status, requested, message=None):
        self.current_status = current_status
        self.requested = requested
        super().__init__(
            message=message or f"Cannot {requested} from status {current_status}",
            detail=[f"current_status: {current_status}", f"requested: {requested}"],
        )


# ============================================================
# Clinical
# ============================================================
class DoctorNotFoundError(NotFoundError):
    code = "DOCTOR_NOT_FOUND"
    message = "Doctor not found or not approved"


class PatientNotFoundError(NotFoundError):
    code = "PATIENT_NOT_FOUND"
    message = "Patient not found"


class VitalsNotFoundError(NotFoundError):
    code = "VITALS_NOT_FOUND"
    message = "Vitals record not found"


class DietPlanNotFoundError(NotFoundError):
    code = "DIET_PLAN_NOT_FOUND"
    message = "No diet plan available for this patient"


class PatientNotActiveError(ConflictError):
    code = "PATIENT_NOT_ACTIVE"
    message = "Patient must be approved and under treatment"


class MissingRequiredVitalError(AppValidationError):
    code = "MISSING_REQUIRED_VITAL"
    message = "Required vitals are missing"
