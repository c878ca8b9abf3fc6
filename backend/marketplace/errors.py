"""
Domain error taxonomy.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API layer maps it to. Messages state the violated rule so callers can show
them verbatim (e.g. "cannot withdraw an accepted application").
"""


class MarketplaceError(Exception):
    """Base class for errors surfaced to callers."""

    code = "marketplace_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class BadRequestError(MarketplaceError):
    """Request is well-formed but its values cannot be applied."""

    code = "bad_request"
    status_code = 400


class NotFoundError(MarketplaceError):
    """Missing job, application or actor."""

    code = "not_found"
    status_code = 404


class ConflictError(MarketplaceError):
    """Duplicate application or job not accepting applications."""

    code = "conflict"
    status_code = 409


class ForbiddenError(MarketplaceError):
    """Actor is not allowed to perform the requested operation."""

    code = "forbidden"
    status_code = 403


class InvalidTransitionError(MarketplaceError):
    """Requested status change is not an edge of the status graph."""

    code = "invalid_transition"
    status_code = 422


class InternalError(MarketplaceError):
    """Storage or infrastructure failure."""

    code = "internal_error"
    status_code = 500
