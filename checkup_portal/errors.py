"""
Error taxonomy shared by the domain modules and the HTTP layer.

Every domain error carries a short machine-readable ``code`` and the HTTP
``status`` the API answers with. None of them are retried by the system.
"""


class PortalError(Exception):
    code = "error"
    status = 500
    default_message = "Request failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class Unauthenticated(PortalError):
    code = "unauthenticated"
    status = 401
    default_message = "Authentication token is missing or invalid"


class InvalidCredentials(PortalError):
    code = "invalid_credentials"
    status = 401
    default_message = "Invalid credentials"


class Forbidden(PortalError):
    code = "forbidden"
    status = 403
    default_message = "Operation not permitted for this role"


class NotOwner(PortalError):
    code = "not_owner"
    status = 403
    default_message = "Resource belongs to another account"


class NotFound(PortalError):
    code = "not_found"
    status = 404
    default_message = "Resource not found"


class UnknownDentist(NotFound):
    code = "unknown_dentist"
    default_message = "Dentist not found"


class DuplicateIdentity(PortalError):
    code = "duplicate_identity"
    status = 409
    default_message = "Username already registered for this role"


class AlreadyCompleted(PortalError):
    code = "already_completed"
    status = 409
    default_message = "Checkup request is already completed"


class ValidationError(PortalError):
    code = "validation_error"
    status = 400
    default_message = "Invalid input"


class PersistenceError(PortalError):
    """The backing store is unavailable. Distinct from any domain error."""
    code = "persistence_error"
    status = 503
    default_message = "Storage unavailable"
