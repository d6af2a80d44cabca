from datetime import datetime
from bachelorbuddy import db
from bachelorbuddy.models.mixins import new_id, isoformat


ROOM_ACCEPTING = 'accepting'
ROOM_ARCHIVED = 'archived'


class ChatRoom(db.Model):
    """Conversation container. Owns the per-room sequence counter."""
    __tablename__ = 'chat_rooms'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    type = db.Column(db.String(30), nullable=False, default='direct')
    meta = db.Column('metadata', db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(20), nullable=False, default=ROOM_ACCEPTING)  # accepting, archived
    last_sequence = db.Column(db.Integer, nullable=False, default=0)
    archived_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    messages = db.relationship('ChatMessage', backref='room', lazy='dynamic',
                               order_by='ChatMessage.sequence')

    @property
    def is_archived(self):
        return self.status == ROOM_ARCHIVED

    def to_dict(self):
        return {
            'id': self.id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'type': self.type,
            'metadata': self.meta or {},
            'status': self.status,
        }

    def __repr__(self):
        return f'<ChatRoom {self.id} {self.status}>'


class ChatMessage(db.Model):
    """Message in a room. Immutable once sequenced."""
    __tablename__ = 'chat_messages'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    room_id = db.Column(db.String(36), db.ForeignKey('chat_rooms.id'), nullable=False)
    sender_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    sequence = db.Column(db.Integer, nullable=False)
    content = db.Column(db.Text, nullable=False)
    meta = db.Column('metadata', db.JSON, nullable=False, default=dict)
    idempotency_token = db.Column(db.String(128), nullable=True)
    client_created_at = db.Column(db.DateTime, nullable=True)  # sender's clock, informational only
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # One position per room; one live token per room
    __table_args__ = (
        db.UniqueConstraint('room_id', 'sequence', name='unique_room_sequence'),
        db.UniqueConstraint('room_id', 'idempotency_token', name='unique_room_token'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'sender_id': self.sender_id,
            'created_at': isoformat(self.created_at),
            'content': self.content,
            'metadata': self.meta or {},
            'sequence': self.sequence,
        }

    def __repr__(self):
        return f'<ChatMessage room={self.room_id} seq={self.sequence}>'
