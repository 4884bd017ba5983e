import sqlite3
import uuid
from datetime import datetime

from passlib.hash import bcrypt

from database import Database
from errors import DuplicateUser
from models import Event, User
from utils import parse_date


def new_id() -> str:
    return uuid.uuid4().hex


class EventStore:
    def __init__(self, db: Database):
        """Initialize EventStore with the shared database handle."""
        self.db = db

    def _to_event(self, data: dict) -> Event:
        return Event(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            date=parse_date(data["date"]),
            time=data["time"],
            venue=data["venue"],
            type=data["type"],
            max_participants=data["max_participants"],
            status=data["status"],
            image_url=data["image_url"],
            created_by=data["created_by"],
            created_at=parse_date(data["created_at"]),
            registered_users=self.db.get_roster(data["id"]),
        )

    def create(self, event: Event) -> bool:
        """Persist a new event."""
        if event.created_at is None:
            event.created_at = datetime.now()
        return self.db.add_event(event)

    def find_by_id(self, event_id: str) -> Event | None:
        """Retrieve an event by ID, roster included."""
        event_data = self.db.get_event(event_id)
        if event_data:
            return self._to_event(event_data)
        return None

    def list_upcoming(self, now: datetime, limit: int = 10) -> list[Event]:
        """Retrieve upcoming events on or after ``now``, soonest first."""
        return [self._to_event(e) for e in self.db.list_upcoming_events(now.isoformat(), limit)]

    def update(self, event_id: str, title=None, description=None, date=None, time=None, venue=None,
               type=None, max_participants=None, status=None, image_url=None) -> bool:
        """Update an event's fields. Fields left as None are not touched."""
        return self.db.update_event(
            event_id,
            title=title,
            description=description,
            date=date.isoformat() if date else None,
            time=time,
            venue=venue,
            type=type,
            max_participants=max_participants,
            status=status,
            image_url=image_url,
        )

    def delete(self, event_id: str) -> bool:
        """Delete an event and drop it from every user's joined events."""
        return self.db.delete_event(event_id)

    def append_to_roster(self, event_id: str, user_id: str) -> bool:
        """Conditionally append to the roster; False when capacity, duplicate or existence fails."""
        return self.db.add_roster_entry_if_open(event_id, user_id, datetime.now().isoformat())

    def remove_from_roster(self, event_id: str, user_id: str) -> bool:
        return self.db.remove_roster_entry(event_id, user_id)

    def roster_size(self, event_id: str) -> int:
        return self.db.get_roster_size(event_id)

    def list_registrants(self, event_id: str) -> list[dict]:
        return self.db.list_registrants_for_event(event_id)


class CredentialStore:
    def __init__(self, db: Database):
        """Initialize CredentialStore with the shared database handle."""
        self.db = db

    def _to_user(self, data: dict) -> User:
        return User(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            password=data["password"],
            roll_number=data["roll_number"],
            branch=data["branch"],
            year=data["year"],
            phone=data["phone"],
            role=data["role"],
            created_at=parse_date(data["created_at"]),
            registered_events=self.db.get_joined_events(data["id"]),
        )

    @staticmethod
    def hash_secret(plain: str) -> str:
        return bcrypt.hash(plain)

    def create(self, name: str, email: str, password: str, roll_number: str, branch: str,
               year: int, phone: str, role: str = "member") -> User:
        """Create a user, hashing the password. Raises DuplicateUser if email or roll number is taken."""
        email = email.strip().lower()
        roll_number = roll_number.strip()
        if self.find_by_email_or_roll_number(email, roll_number):
            raise DuplicateUser(email, roll_number)
        user = User(
            id=new_id(),
            name=name.strip(),
            email=email,
            password=self.hash_secret(password),
            roll_number=roll_number,
            branch=branch,
            year=year,
            phone=phone,
            role=role,
            created_at=datetime.now(),
        )
        try:
            self.db.add_user(user)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            # Lost a race with another registration using the same identity
            raise DuplicateUser(email, roll_number) from e
        return user

    def find_by_id(self, user_id: str) -> User | None:
        data = self.db.get_user(user_id)
        return self._to_user(data) if data else None

    def find_by_email(self, email: str) -> User | None:
        data = self.db.get_user_by_email(email.strip().lower())
        return self._to_user(data) if data else None

    def find_by_email_or_roll_number(self, email: str, roll_number: str) -> User | None:
        data = self.db.get_user_by_email_or_roll_number(email.strip().lower(), roll_number.strip())
        return self._to_user(data) if data else None

    def update_profile(self, user_id: str, name=None, phone=None, branch=None) -> bool:
        return self.db.update_user(user_id, name=name, phone=phone, branch=branch)

    def set_role(self, user_id: str, role: str) -> bool:
        return self.db.set_user_role(user_id, role)

    def append_to_joined_events(self, user_id: str, event_id: str) -> bool:
        return self.db.add_joined_event(user_id, event_id, datetime.now().isoformat())

    def remove_from_joined_events(self, user_id: str, event_id: str) -> bool:
        return self.db.remove_joined_event(user_id, event_id)

    def verify_secret(self, user_id: str, candidate: str) -> bool:
        """Check a candidate password against the stored bcrypt hash."""
        data = self.db.get_user(user_id)
        if data is None:
            return False
        return bcrypt.verify(candidate, data["password"])
