from typing import Any, Dict, Optional


class PortalError(Exception):
    """
    Base exception for all portal errors.

    Each error carries a stable ``kind`` and the ids that failed a check. The
    API layer maps ``status_code`` to the HTTP response.
    """

    kind = "error"
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.kind, "context": self.context}


class NotFound(PortalError):
    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource.capitalize()} not found", {resource + "_id": resource_id})
        self.resource = resource


class AlreadyRegistered(PortalError):
    kind = "already_registered"
    status_code = 400

    def __init__(self, user_id: str, event_id: str):
        super().__init__("Already registered for this event", {"user_id": user_id, "event_id": event_id})


class EventFull(PortalError):
    kind = "event_full"
    status_code = 400

    def __init__(self, event_id: str, capacity: int):
        super().__init__("Event is full", {"event_id": event_id, "capacity": capacity})


class NotRegistered(PortalError):
    kind = "not_registered"
    status_code = 400

    def __init__(self, user_id: str, event_id: str):
        super().__init__("Not registered for this event", {"user_id": user_id, "event_id": event_id})


class WriteConflict(PortalError):
    """Lost a write race. The whole operation may be retried."""

    kind = "write_conflict"
    status_code = 409

    def __init__(self, message: str = "Concurrent update, please retry", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)


class DuplicateUser(PortalError):
    kind = "duplicate_user"
    status_code = 400

    def __init__(self, email: str, roll_number: str):
        super().__init__(
            "User with this email or roll number already exists",
            {"email": email, "roll_number": roll_number},
        )


class Unauthenticated(PortalError):
    kind = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class Unauthorized(PortalError):
    kind = "unauthorized"
    status_code = 403

    def __init__(self, message: str = "Access denied. Admin privileges required.", role: Optional[str] = None):
        super().__init__(message, {"role": role} if role else None)


class InvalidInput(PortalError):
    kind = "invalid_input"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
