from __future__ import annotations


class DisputeDeskError(Exception):
    """Base class for errors that cross a component boundary."""

    status_code = 500
    public_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(DisputeDeskError):
    """Caller sent something unusable. Reported as 400, nothing is persisted."""

    status_code = 400
    public_message = "Invalid request"


class StorageFailure(DisputeDeskError):
    """The session record could not be read or written; the turn must fail."""

    status_code = 500
    public_message = "Session storage unavailable"


class BackendUnavailable(DisputeDeskError):
    """The model backend raised, is not bound, or timed out. Absorbed by the gateway."""

    public_message = "Model backend unavailable"


class MalformedResponse(DisputeDeskError):
    """Unrecognized reply shape. Never crosses the gateway boundary; the raw reply is serialized instead."""

    public_message = "Model backend returned an unusable reply"
