"""Domain errors raised by the hackathon services; each maps to one HTTP status."""

from __future__ import annotations

from typing import Dict, Optional


class HackHubError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, object]:
        return {"message": self.message}


class NotFound(HackHubError):
    status_code = 404
    default_message = "Hackathon not found"


class Forbidden(HackHubError):
    status_code = 403
    default_message = "Access denied"


class RegistrationClosed(HackHubError):
    status_code = 403
    default_message = "Registration is closed for this hackathon"


class ValidationFailed(HackHubError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None):
        self.field_errors = dict(field_errors)
        if message is None and len(self.field_errors) == 1:
            message = next(iter(self.field_errors.values()))
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        return list(self.field_errors)

    def to_dict(self) -> Dict[str, object]:
        return {"message": self.message, "fieldErrors": self.field_errors}


class DuplicateMember(HackHubError):
    status_code = 409
    default_message = "A member is already registered for this hackathon"


class HackathonFull(HackHubError):
    status_code = 409
    default_message = "Hackathon is full"


class VersionConflict(HackHubError):
    """Stored record changed between read and write. Retried, never returned to clients."""

    status_code = 409
    default_message = "Hackathon was modified concurrently"


class Conflict(HackHubError):
    status_code = 409
    default_message = "Hackathon is busy, please retry"


class Unauthenticated(HackHubError):
    status_code = 401
    default_message = "Authentication required"
