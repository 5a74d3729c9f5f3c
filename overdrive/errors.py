"""
Errors raised by portal operations and their HTTP mapping.
"""

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base class for errors reported back to the client."""

    status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.status}


class BadRequest(PortalError):
    status = 400


class AuthenticationRequired(PortalError):
    status = 401


class PermissionDenied(PortalError):
    status = 403


class EventWindowClosed(PermissionDenied):
    """The current event phase does not allow the action."""


class NotFound(PortalError):
    status = 404


class Conflict(PortalError):
    status = 409


class TeamNameTaken(Conflict):
    pass


class AlreadyInTeam(Conflict):
    pass


class TeamFull(Conflict):
    pass


class AlreadySolved(Conflict):
    pass


class DuplicateRegistration(Conflict):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["fields"] = {self.field: self.message}
        return data


class ValidationFailed(PortalError):
    status = 422

    def __init__(self, fields: Dict[str, str], message: str = "Invalid input") -> None:
        super().__init__(message)
        self.fields = fields

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data
