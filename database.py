import sqlite3
import threading
from contextlib import contextmanager

from errors import WriteConflict


class Database:
    def __init__(self, db_name="club.db", timeout=5.0):
        """
        Open the SQLite database and make sure the schema exists.

        One connection is shared by every request thread. Access is
        serialized with a re-entrant lock, and multi-statement writes go
        through ``transaction()`` which takes SQLite's write lock up front.
        """
        self.conn = sqlite3.connect(db_name, check_same_thread=False, isolation_level=None, timeout=timeout)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._in_transaction = False
        self.create_tables()

    def create_tables(self):
        """Create database tables with appropriate indexes."""
        with self.transaction() as cursor:
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    roll_number TEXT NOT NULL UNIQUE,
                    branch TEXT NOT NULL,
                    year INTEGER NOT NULL CHECK(year BETWEEN 1 AND 4),
                    phone TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'member' CHECK(role IN ('member', 'admin')),
                    created_at TEXT NOT NULL
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL,
                    venue TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'other'
                        CHECK(type IN ('workshop', 'seminar', 'competition', 'networking', 'other')),
                    max_participants INTEGER NOT NULL DEFAULT 100 CHECK(max_participants > 0),
                    status TEXT NOT NULL DEFAULT 'upcoming'
                        CHECK(status IN ('upcoming', 'ongoing', 'completed', 'cancelled')),
                    image_url TEXT,
                    created_by TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
                )
            ''')
            # The two sides of the join relation. They are only ever written
            # together inside one transaction.
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS event_roster (
                    event_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    joined_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                    PRIMARY KEY (event_id, user_id)
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS user_joined_events (
                    user_id TEXT NOT NULL,
                    event_id TEXT NOT NULL,
                    joined_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
                    PRIMARY KEY (user_id, event_id)
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_events_status_date ON events(status, date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_user_joined_events_event_id ON user_joined_events(event_id)')

    @contextmanager
    def transaction(self):
        """
        Run a block of statements atomically.

        Nested calls join the outer transaction. Any exception rolls the
        whole block back; SQLite lock contention surfaces as WriteConflict.
        """
        with self._lock:
            cursor = self.conn.cursor()
            if self._in_transaction:
                yield cursor
                return
            try:
                cursor.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                raise WriteConflict("Database is busy, please retry") from e
            self._in_transaction = True
            try:
                yield cursor
                cursor.execute("COMMIT")
            except sqlite3.OperationalError as e:
                self._rollback(cursor)
                if "locked" in str(e) or "busy" in str(e):
                    raise WriteConflict("Database is busy, please retry") from e
                raise
            except BaseException:
                self._rollback(cursor)
                raise
            finally:
                self._in_transaction = False

    def _rollback(self, cursor):
        if self.conn.in_transaction:
            cursor.execute("ROLLBACK")

    def _fetchone(self, query, params=()):
        with self._lock:
            row = self.conn.execute(query, params).fetchone()
            return dict(row) if row else None

    def _fetchall(self, query, params=()):
        with self._lock:
            return [dict(r) for r in self.conn.execute(query, params).fetchall()]

    # -------------------------------
    # Users
    # -------------------------------
    def add_user(self, user):
        """Add a user to the database. Raises sqlite3.IntegrityError on a taken email or roll number."""
        with self.transaction() as cursor:
            cursor.execute('''
                INSERT INTO users (id, name, email, password, roll_number, branch, year, phone, role, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (user.id, user.name, user.email, user.password, user.roll_number, user.branch,
                  user.year, user.phone, user.role, user.created_at.isoformat()))

    def get_user(self, user_id):
        """Retrieve a user by ID."""
        return self._fetchone('SELECT * FROM users WHERE id = ?', (user_id,))

    def get_user_by_email(self, email):
        """Retrieve a user by email."""
        return self._fetchone('SELECT * FROM users WHERE email = ?', (email,))

    def get_user_by_email_or_roll_number(self, email, roll_number):
        return self._fetchone(
            'SELECT * FROM users WHERE email = ? OR roll_number = ? LIMIT 1', (email, roll_number)
        )

    def update_user(self, user_id, name=None, phone=None, branch=None):
        """Update a user's editable profile fields."""
        updates = {}
        if name: updates["name"] = name
        if phone: updates["phone"] = phone
        if branch: updates["branch"] = branch
        if not updates:
            return False
        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        values = list(updates.values()) + [user_id]
        with self.transaction() as cursor:
            cursor.execute(f'UPDATE users SET {set_clause} WHERE id = ?', values)
            return cursor.rowcount > 0

    def set_user_role(self, user_id, role):
        with self.transaction() as cursor:
            cursor.execute('UPDATE users SET role = ? WHERE id = ?', (role, user_id))
            return cursor.rowcount > 0

    def get_joined_events(self, user_id):
        """Event ids a user has joined, in join order."""
        rows = self._fetchall(
            'SELECT event_id FROM user_joined_events WHERE user_id = ? ORDER BY rowid', (user_id,)
        )
        return [r["event_id"] for r in rows]

    def add_joined_event(self, user_id, event_id, joined_at):
        with self.transaction() as cursor:
            cursor.execute('''
                INSERT OR IGNORE INTO user_joined_events (user_id, event_id, joined_at)
                VALUES (?, ?, ?)
            ''', (user_id, event_id, joined_at))
            return cursor.rowcount > 0

    def remove_joined_event(self, user_id, event_id):
        with self.transaction() as cursor:
            cursor.execute(
                'DELETE FROM user_joined_events WHERE user_id = ? AND event_id = ?', (user_id, event_id)
            )
            return cursor.rowcount > 0

    # -------------------------------
    # Events
    # -------------------------------
    def add_event(self, event):
        """Add an event to the database."""
        with self.transaction() as cursor:
            cursor.execute('''
                INSERT OR IGNORE INTO events
                    (id, title, description, date, time, venue, type, max_participants, status,
                     image_url, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (event.id, event.title, event.description, event.date.isoformat(), event.time, event.venue,
                  event.type, event.max_participants, event.status, event.image_url, event.created_by,
                  event.created_at.isoformat()))
            return cursor.rowcount > 0

    def get_event(self, event_id):
        """Retrieve an event by ID."""
        return self._fetchone('SELECT * FROM events WHERE id = ?', (event_id,))

    def list_upcoming_events(self, now, limit):
        """Retrieve upcoming events scheduled at or after ``now``, soonest first."""
        return self._fetchall('''
            SELECT * FROM events
            WHERE status = 'upcoming' AND date >= ?
            ORDER BY date ASC
            LIMIT ?
        ''', (now, limit))

    def update_event(self, event_id, **fields):
        """Update an event's details. Unset or empty values are left untouched."""
        updates = {k: v for k, v in fields.items() if v}
        if not updates:
            return False
        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        values = list(updates.values()) + [event_id]
        with self.transaction() as cursor:
            cursor.execute(f'UPDATE events SET {set_clause} WHERE id = ?', values)
            return cursor.rowcount > 0

    def delete_event(self, event_id):
        """Delete an event together with both sides of its roster."""
        with self.transaction() as cursor:
            cursor.execute('DELETE FROM event_roster WHERE event_id = ?', (event_id,))
            cursor.execute('DELETE FROM user_joined_events WHERE event_id = ?', (event_id,))
            cursor.execute('DELETE FROM events WHERE id = ?', (event_id,))
            return cursor.rowcount > 0

    def delete_all_events(self):
        with self.transaction() as cursor:
            cursor.execute('DELETE FROM event_roster')
            cursor.execute('DELETE FROM user_joined_events')
            cursor.execute('DELETE FROM events')
            return cursor.rowcount

    # -------------------------------
    # Roster
    # -------------------------------
    def get_roster(self, event_id):
        """User ids registered for an event, in join order."""
        rows = self._fetchall(
            'SELECT user_id FROM event_roster WHERE event_id = ? ORDER BY rowid', (event_id,)
        )
        return [r["user_id"] for r in rows]

    def get_roster_size(self, event_id):
        """Get the number of registered users for an event."""
        row = self._fetchone('SELECT COUNT(*) AS n FROM event_roster WHERE event_id = ?', (event_id,))
        return row["n"] if row else 0

    def add_roster_entry_if_open(self, event_id, user_id, joined_at):
        """
        Conditionally append a user to an event roster.

        The event must exist, the user must not already be on the roster and
        the roster must be below capacity. All three are evaluated by SQLite
        in the same statement that inserts, so a concurrent writer cannot
        slip in between the check and the write.
        """
        with self.transaction() as cursor:
            cursor.execute('''
                INSERT INTO event_roster (event_id, user_id, joined_at)
                SELECT e.id, ?, ? FROM events e
                WHERE e.id = ?
                  AND NOT EXISTS (
                      SELECT 1 FROM event_roster r WHERE r.event_id = e.id AND r.user_id = ?
                  )
                  AND (SELECT COUNT(*) FROM event_roster r WHERE r.event_id = e.id) < e.max_participants
            ''', (user_id, joined_at, event_id, user_id))
            return cursor.rowcount > 0

    def remove_roster_entry(self, event_id, user_id):
        with self.transaction() as cursor:
            cursor.execute('DELETE FROM event_roster WHERE event_id = ? AND user_id = ?', (event_id, user_id))
            return cursor.rowcount > 0

    def list_registrants_for_event(self, event_id):
        """Retrieve all registered users for an event."""
        return self._fetchall('''
            SELECT u.id, u.name, u.email, u.roll_number FROM users u
            JOIN event_roster r ON u.id = r.user_id
            WHERE r.event_id = ?
            ORDER BY r.rowid
        ''', (event_id,))

    def close(self):
        """Close the database connection."""
        with self._lock:
            self.conn.close()
