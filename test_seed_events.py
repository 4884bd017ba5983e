from datetime import datetime

from seed_events import SAMPLE_EVENTS, main, promote_admin, seed_events


def test_seed_replaces_existing_events(db, events, service, make_user, make_event):
    old = make_event(title="Old event")
    member = make_user()
    service.register(member.id, old.id)

    inserted = seed_events(db, today=datetime(2026, 10, 19))

    assert len(inserted) == len(SAMPLE_EVENTS)
    assert events.find_by_id(old.id) is None
    upcoming = events.list_upcoming(datetime(2026, 10, 19))
    assert [e.title for e in upcoming] == [s["title"] for s in SAMPLE_EVENTS]
    assert all(e.status == "upcoming" and e.registered_users == [] for e in upcoming)

def test_promote_admin(db, users, make_user):
    member = make_user()
    assert promote_admin(db, member.email)
    assert users.find_by_id(member.id).role == "admin"
    assert not promote_admin(db, "nobody@college.edu")

def test_main_seeds_database_file(tmp_path):
    assert main(["--db", str(tmp_path / "seeded.db")]) == 0
