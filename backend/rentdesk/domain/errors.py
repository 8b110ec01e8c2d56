"""Error hierarchy for rentdesk.

Services raise these; create_app() maps them to the JSON error envelope
``{"ok": false, "error": <code>, "message": <text>}``.
"""


class RentdeskError(Exception):
    """Base exception for all rentdesk errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RentdeskError):
    """Raised when input is malformed, missing, or out of range."""

    code = "validation_error"
    status_code = 400


class NotFoundError(RentdeskError):
    """Raised when a referenced entity does not exist in the tenant scope."""

    code = "not_found"
    status_code = 404


class InvalidStateError(RentdeskError):
    """Raised when an entity is in the wrong state for the operation."""

    code = "invalid_state"
    status_code = 409


class UpstreamUnavailableError(RentdeskError):
    """Raised when an external data source cannot be reached."""

    code = "upstream_unavailable"
    status_code = 503
