"""Domain error taxonomy surfaced to RPC callers as JSON."""


class ComplianceError(Exception):
    """Base class for rejected operations; never partially applied."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class NotFoundError(ComplianceError):
    """Entity missing or owned by another user."""

    status_code = 404


class ValidationError(ComplianceError):
    """Malformed input rejected before any mutation."""

    status_code = 400


class InvalidTransitionError(ComplianceError):
    """State machine rule violated (e.g. EDD completed twice)."""

    status_code = 409


class ExternalServiceFailure(ComplianceError):
    """Screening provider or mail transport failed."""

    status_code = 502
