import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient

from database import Database
from main import create_app
from manager import CredentialStore, EventStore, new_id
from models import Event, User
from registration import RegistrationService


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "club-test.db"))
    yield database
    database.close()


@pytest.fixture
def events(db):
    return EventStore(db)


@pytest.fixture
def users(db):
    return CredentialStore(db)


@pytest.fixture
def service(db, events, users):
    return RegistrationService(db, events, users)


@pytest.fixture
def make_user(db):
    """Insert a user row directly, skipping bcrypt so bulk setup stays fast."""
    counter = {"n": 0}

    def _make(role="member"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            id=new_id(),
            name=f"Member {n}",
            email=f"member{n}@college.edu",
            password="not-a-real-hash",
            roll_number=f"21CS{n:03d}",
            branch="CSE",
            year=2,
            phone="9000000000",
            role=role,
            created_at=datetime.now(),
        )
        db.add_user(user)
        return user
    return _make


@pytest.fixture
def make_event(events):
    def _make(capacity=100, days_ahead=7, status="upcoming", title="Founders Meetup"):
        event = Event(
            id=new_id(),
            title=title,
            description="An evening with founders",
            date=datetime.now() + timedelta(days=days_ahead),
            time="6:00 PM - 8:00 PM",
            venue="Cafeteria",
            type="networking",
            max_participants=capacity,
            status=status,
        )
        events.create(event)
        return event
    return _make


@pytest.fixture
def client(tmp_path):
    app = create_app(str(tmp_path / "club-api.db"))
    with TestClient(app) as c:
        yield c
