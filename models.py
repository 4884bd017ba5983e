from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

ROLES = ("member", "admin")
EVENT_TYPES = ("workshop", "seminar", "competition", "networking", "other")
EVENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")
DEFAULT_CAPACITY = 100


@dataclass
class Event:
    id: str
    title: str
    description: str
    date: datetime
    time: str
    venue: str
    type: str = "other"
    max_participants: int = DEFAULT_CAPACITY
    status: str = "upcoming"
    image_url: Optional[str] = None
    created_by: Optional[str] = None  # user_id of the admin who created it
    created_at: Optional[datetime] = None
    registered_users: list[str] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.registered_users) >= self.max_participants

    def to_dict(self) -> dict:
        """Return the event as a JSON-ready dict."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date.isoformat(),
            "time": self.time,
            "venue": self.venue,
            "type": self.type,
            "max_participants": self.max_participants,
            "registered_users": list(self.registered_users),
            "status": self.status,
            "image_url": self.image_url,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class User:
    id: str
    name: str
    email: str
    password: str  # bcrypt hash, never serialized
    roll_number: str
    branch: str
    year: int
    phone: str
    role: str = "member"
    created_at: Optional[datetime] = None
    registered_events: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_public(self) -> dict:
        """Return the user without the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "roll_number": self.roll_number,
            "branch": self.branch,
            "year": self.year,
            "phone": self.phone,
            "role": self.role,
            "registered_events": list(self.registered_events),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
