import argparse
import logging
from datetime import datetime, timedelta

import config
from database import Database
from manager import CredentialStore, EventStore, new_id
from models import Event

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_EVENTS = [
    {
        "title": "Startup Pitch Competition",
        "description": "Present your innovative startup idea to industry experts and investors. Win prizes worth ₹50,000!",
        "days_ahead": 14,
        "time": "10:00 AM - 4:00 PM",
        "venue": "Auditorium, Block A",
        "type": "competition",
        "max_participants": 50,
    },
    {
        "title": "Entrepreneurship Workshop",
        "description": "Learn the fundamentals of starting and scaling your own business from successful entrepreneurs.",
        "days_ahead": 19,
        "time": "2:00 PM - 5:00 PM",
        "venue": "Seminar Hall, Block B",
        "type": "workshop",
        "max_participants": 100,
    },
    {
        "title": "Networking Meetup",
        "description": "Connect with fellow entrepreneurs, investors, and mentors in an informal setting.",
        "days_ahead": 24,
        "time": "6:00 PM - 8:00 PM",
        "venue": "Cafeteria",
        "type": "networking",
        "max_participants": 80,
    },
    {
        "title": "Innovation Summit",
        "description": "Annual summit featuring keynote speakers from top tech companies and startups.",
        "days_ahead": 40,
        "time": "9:00 AM - 6:00 PM",
        "venue": "Main Auditorium",
        "type": "seminar",
        "max_participants": 200,
    },
]


def seed_events(db: Database, today: datetime | None = None) -> list[Event]:
    """
    Replace all events with the sample set and return what was inserted.

    Registrations for the removed events go with them. New events are
    scheduled relative to ``today``.
    """
    today = (today or datetime.now()).replace(hour=0, minute=0, second=0, microsecond=0)
    store = EventStore(db)
    removed = db.delete_all_events()
    logger.info(f"Cleared {removed} existing events")

    inserted = []
    for sample in SAMPLE_EVENTS:
        event = Event(
            id=new_id(),
            title=sample["title"],
            description=sample["description"],
            date=today + timedelta(days=sample["days_ahead"]),
            time=sample["time"],
            venue=sample["venue"],
            type=sample["type"],
            max_participants=sample["max_participants"],
        )
        store.create(event)
        inserted.append(event)
        logger.info(f"Seeded {event.title} on {event.date.date()}")
    return inserted


def promote_admin(db: Database, email: str) -> bool:
    users = CredentialStore(db)
    user = users.find_by_email(email)
    if user is None:
        logger.error(f"No account registered with {email}")
        return False
    users.set_role(user.id, "admin")
    logger.info(f"{user.email} is now an admin")
    return True


def main(argv=None):
    """Run with: python seed_events.py [--db club.db] [--admin someone@college.edu]"""
    parser = argparse.ArgumentParser(description="Seed sample club events")
    parser.add_argument("--db", default=config.DATABASE_PATH, help="SQLite database path")
    parser.add_argument("--admin", help="email of an existing account to promote to admin")
    args = parser.parse_args(argv)

    db = Database(args.db)
    try:
        events = seed_events(db)
        logger.info(f"Successfully seeded {len(events)} events")
        if args.admin and not promote_admin(db, args.admin):
            return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
