from database import Database
from errors import AlreadyRegistered, EventFull, NotFound, NotRegistered, WriteConflict
from manager import CredentialStore, EventStore


class RegistrationService:
    """
    The only writer of the user/event join relation.

    An event's roster and a user's joined events are two views of one
    relation. Every change touches both inside a single database transaction,
    so a failure at any step leaves neither side modified.
    """

    def __init__(self, db: Database, events: EventStore, users: CredentialStore):
        self.db = db
        self.events = events
        self.users = users

    def register(self, user_id: str, event_id: str) -> None:
        """
        Join a user to an event.

        Checks run in order: event exists, user exists, not already on the
        roster, roster below capacity. The same checks are re-evaluated by
        the conditional insert, so concurrent callers cannot overshoot
        capacity or double-join.
        """
        event = self.events.find_by_id(event_id)
        if event is None:
            raise NotFound("event", event_id)
        if self.users.find_by_id(user_id) is None:
            raise NotFound("user", user_id)
        if user_id in event.registered_users:
            raise AlreadyRegistered(user_id, event_id)
        if event.is_full:
            raise EventFull(event_id, event.max_participants)

        with self.db.transaction():
            if not self.events.append_to_roster(event_id, user_id):
                raise self._explain_rejection(user_id, event_id)
            if not self.users.append_to_joined_events(user_id, event_id):
                # Joined side already had the event without a roster entry
                raise WriteConflict(
                    "Registration state changed, please retry",
                    {"user_id": user_id, "event_id": event_id},
                )

    def unregister(self, user_id: str, event_id: str) -> None:
        """Remove a user from an event, both sides at once."""
        with self.db.transaction():
            if self.events.find_by_id(event_id) is None:
                raise NotFound("event", event_id)
            if not self.events.remove_from_roster(event_id, user_id):
                raise NotRegistered(user_id, event_id)
            self.users.remove_from_joined_events(user_id, event_id)

    def _explain_rejection(self, user_id: str, event_id: str) -> Exception:
        # Runs inside the failed write's transaction, so it sees the state
        # that made the conditional insert match nothing.
        event = self.events.find_by_id(event_id)
        if event is None:
            return NotFound("event", event_id)
        if user_id in event.registered_users:
            return AlreadyRegistered(user_id, event_id)
        if event.is_full:
            return EventFull(event_id, event.max_participants)
        return WriteConflict(context={"user_id": user_id, "event_id": event_id})
