import sqlite3
import pytest

from database import Database
from errors import WriteConflict


@pytest.fixture
def locked_path(tmp_path):
    path = str(tmp_path / "locked.db")
    Database(path).close()
    return path

def test_busy_database_raises_write_conflict(locked_path):
    db = Database(locked_path, timeout=0.05)
    other = sqlite3.connect(locked_path, isolation_level=None)
    other.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(WriteConflict):
            with db.transaction() as cursor:
                cursor.execute("DELETE FROM events")
    finally:
        other.execute("ROLLBACK")
        other.close()

    # The handle is usable again once the other writer lets go
    with db.transaction() as cursor:
        cursor.execute("DELETE FROM events")
    db.close()

def test_failed_block_rolls_back(db, make_event, events):
    event = make_event()
    with pytest.raises(RuntimeError):
        with db.transaction() as cursor:
            cursor.execute("DELETE FROM events WHERE id = ?", (event.id,))
            raise RuntimeError("abort")
    assert events.find_by_id(event.id) is not None
