"""
Domain errors.

Every error carries the HTTP status the API answers with, so route handlers
can let them propagate and a single exception handler renders them.
"""


class ReportingError(Exception):
    """Base exception for the reporting core"""
    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(ReportingError):
    status_code = 404
    default_detail = "Not found"


class ReportNotFoundError(NotFoundError):
    default_detail = "Report not found"


class UserNotFoundError(NotFoundError):
    default_detail = "User not found"


class ForbiddenError(ReportingError):
    status_code = 403
    default_detail = "Access denied"


class ReportLockedError(ForbiddenError):
    """Raised when a non-admin edits a report that already left pending"""
    status_code = 400
    default_detail = "Can only update pending reports"


class AlreadyValidatedError(ReportingError):
    status_code = 400
    default_detail = "Report has already been validated"


class ValidationFailedError(ReportingError):
    status_code = 400
    default_detail = "Validation failed"


class ConflictError(ReportingError):
    status_code = 400
    default_detail = "User with this email or username already exists"


class AuthenticationError(ReportingError):
    status_code = 401
    default_detail = "Could not validate credentials"


class StoreUnavailableError(ReportingError):
    status_code = 503
    default_detail = "Storage is temporarily unavailable"
