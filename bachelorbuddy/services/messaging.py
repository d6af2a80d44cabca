"""
Chat message sequencing.

Gives every message in a room a position 1, 2, 3, ... with no gaps and no
reuse, independent of the sender's clock:

- Appends to one room are serialized by a lock keyed by room id (plus a
  row lock on the room where the database supports it); rooms never wait
  on each other
- The room's ``last_sequence`` counter and the message insert commit
  together, so a failed append consumes nothing
- A retried append carrying the same idempotency token resolves to the
  original message for IDEMPOTENCY_RETENTION_HOURS
- Archived rooms are read-only
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError

from bachelorbuddy import db
from bachelorbuddy.errors import DuplicateSuppressed, NotFound, RoomArchived, ValidationError
from bachelorbuddy.models import ChatRoom, ChatMessage
from bachelorbuddy.models.chat import ROOM_ARCHIVED
from bachelorbuddy.store import entity_store


_room_locks = {}
_room_locks_guard = threading.Lock()


def room_lock(room_id: str) -> threading.Lock:
    """Serialization point for one room."""
    with _room_locks_guard:
        lock = _room_locks.get(room_id)
        if lock is None:
            lock = _room_locks[room_id] = threading.Lock()
        return lock


@dataclass
class AppendResult:
    """Outcome of an append: the stored message and whether it was a replay."""
    message: ChatMessage
    duplicate: bool = False


class MessagingSequencer:
    """Ordered, idempotent message appends per chat room."""

    def __init__(self, store=None):
        self.store = store or entity_store

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=current_app.config.get('IDEMPOTENCY_RETENTION_HOURS', 24))

    def append_message(self, room_id, sender_id, content, metadata=None,
                       idempotency_token=None, client_created_at=None) -> AppendResult:
        """
        Sequence and persist a message.

        Args:
            room_id: Target room
            sender_id: Author profile id
            content: Message text
            metadata: Free-form dict (attachments, etc.)
            idempotency_token: Client token; a retry with the same token
                returns the original message instead of a new one
            client_created_at: Sender's wall-clock timestamp (stored only)

        Returns:
            AppendResult with the committed message

        Raises:
            NotFound: Room does not exist
            RoomArchived: Room no longer accepts messages
        """
        if not isinstance(content, str):
            raise ValidationError("Message content must be a string")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Message metadata must be an object")

        with room_lock(room_id):
            try:
                return self._append_locked(room_id, sender_id, content, metadata,
                                           idempotency_token, client_created_at)
            except DuplicateSuppressed as e:
                current_app.logger.warning(
                    f"Duplicate append suppressed in room {room_id}: token={idempotency_token} "
                    f"-> seq {e.original.sequence}"
                )
                return AppendResult(e.original, duplicate=True)

    def _append_locked(self, room_id, sender_id, content, metadata, token, client_created_at):
        room = ChatRoom.query.filter_by(id=room_id).with_for_update().populate_existing().first()
        if room is None:
            db.session.rollback()
            raise NotFound('chat_room', room_id)

        if token:
            original = self._find_replay(room_id, token)
            if original is not None:
                db.session.rollback()
                raise DuplicateSuppressed(original)

        if room.status == ROOM_ARCHIVED:
            db.session.rollback()
            raise RoomArchived(f"Room {room_id} is archived")

        room.last_sequence = (room.last_sequence or 0) + 1
        message = ChatMessage(
            room_id=room_id,
            sender_id=sender_id,
            sequence=room.last_sequence,
            content=content,
            meta=dict(metadata or {}),
            idempotency_token=token or None,
            client_created_at=client_created_at,
        )
        db.session.add(message)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # Another process won the race for this token
            original = self._find_replay(room_id, token) if token else None
            if original is not None:
                raise DuplicateSuppressed(original)
            raise

        current_app.logger.info(f"Message {message.id} sequenced at {message.sequence} in room {room_id}")
        return AppendResult(message)

    def _find_replay(self, room_id, token):
        """Original message for a token still inside the retention window."""
        existing = ChatMessage.query.filter_by(room_id=room_id, idempotency_token=token).first()
        if existing is None:
            return None
        if existing.created_at >= datetime.utcnow() - self.retention:
            return existing

        # Expired: release the token so it can be used again
        existing.idempotency_token = None
        db.session.flush()
        return None

    def archive_room(self, room_id) -> ChatRoom:
        """Make a room read-only. Archiving twice is a no-op."""
        with room_lock(room_id):
            room = ChatRoom.query.filter_by(id=room_id).with_for_update().populate_existing().first()
            if room is None:
                db.session.rollback()
                raise NotFound('chat_room', room_id)
            if room.status != ROOM_ARCHIVED:
                room.status = ROOM_ARCHIVED
                room.archived_at = datetime.utcnow()
                db.session.commit()
                current_app.logger.info(f"Room {room_id} archived at sequence {room.last_sequence}")
            else:
                db.session.rollback()
            return room

    def read_messages(self, room_id, after: int = 0, limit: int = None):
        """
        Replay a room's messages in sequence order.

        Args:
            room_id: Room to read
            after: Return only positions greater than this
            limit: Page size (defaults to MESSAGE_PAGE_SIZE)
        """
        self.store.get('chat_room', room_id)
        if limit is None:
            limit = current_app.config.get('MESSAGE_PAGE_SIZE', 100)
        return ChatMessage.query.filter(
            ChatMessage.room_id == room_id,
            ChatMessage.sequence > after,
        ).order_by(ChatMessage.sequence.asc()).limit(limit).all()

    def purge_expired_tokens(self, now: datetime = None) -> int:
        """
        Release idempotency tokens older than the retention window.

        Call this periodically (e.g., via cron) to keep the token index small.
        """
        cutoff = (now or datetime.utcnow()) - self.retention
        released = ChatMessage.query.filter(
            ChatMessage.idempotency_token.isnot(None),
            ChatMessage.created_at < cutoff,
        ).update({ChatMessage.idempotency_token: None}, synchronize_session=False)
        db.session.commit()
        current_app.logger.info(f"Released {released} idempotency tokens older than {cutoff}")
        return released


messaging_sequencer = MessagingSequencer()
