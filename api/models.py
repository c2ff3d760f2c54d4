import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class MessageType(str, Enum):
    TEXT = 'text'
    AUDIO = 'audio'

class MessageStatus(str, Enum):
    SENT = 'sent'
    DELIVERED = 'delivered'
    READ = 'read'

    @property
    def rank(self) -> int:
        return STATUS_ORDER.index(self)

STATUS_ORDER = [MessageStatus.SENT, MessageStatus.DELIVERED, MessageStatus.READ]

class User(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None

class Message(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_name: Optional[str] = None
    type: MessageType = MessageType.TEXT
    content: str
    status: MessageStatus = MessageStatus.SENT
    created_at: datetime = Field(default_factory=utcnow)
    duration: Optional[int] = None

    def can_advance(self, status: MessageStatus) -> bool:
        return MessageStatus(status).rank > self.status.rank

    def advance(self, status: MessageStatus) -> bool:
        """Move the status forward. Returns False when the move would not advance it."""
        status = MessageStatus(status)
        if not self.can_advance(status):
            if status != self.status:
                logger.warning(f"Refusing to move message {self.id} from {self.status.value} back to {status.value}")
            return False
        self.status = status
        return True

    def to_record(self) -> Dict[str, Any]:
        """Row for the messages table"""
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'sender_name': self.sender_name,
            'type': self.type.value,
            'content': self.content,
            'status': self.status.value,
            'duration': self.duration,
            'created_at': self.created_at.isoformat()
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Message':
        return cls(
            id=record['id'],
            conversation_id=record['conversation_id'],
            sender_id=record['sender_id'],
            sender_name=record.get('sender_name'),
            type=record.get('type') or MessageType.TEXT,
            content=record.get('content') or '',
            status=record.get('status') or MessageStatus.SENT,
            created_at=record['created_at'],
            duration=record.get('duration')
        )

class Conversation(BaseModel):
    id: str
    participants: List[User] = Field(min_length=1)
    last_message: Optional[Message] = None
    unread_count: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    def other_participant(self, user_id: str) -> User:
        for participant in self.participants:
            if participant.id != user_id:
                return participant
        return self.participants[0]

    def record_message(self, message: Message) -> None:
        self.last_message = message
        self.updated_at = message.created_at
