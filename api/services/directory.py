import logging
import re
from typing import Optional, List, Dict
from uuid import uuid4

from api.models import User, Conversation, utcnow
from lib.error_handler import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"

def default_avatar(seed: str) -> str:
    return AVATAR_URL.format(seed=seed)

def format_phone(phone: str) -> str:
    phone = phone.strip()
    return phone if phone.startswith('+') else f"+{phone}"

class Directory:
    """Contacts and conversations known to this process"""

    def __init__(self, current_user: Optional[User] = None):
        self.current_user = current_user or User(
            id='user-1',
            name='Me',
            email='me@example.com',
            avatar=default_avatar('me'),
            is_online=True
        )
        self.users: Dict[str, User] = {}
        self.conversations: Dict[str, Conversation] = {}

    def set_current_user(self, user: User) -> None:
        logger.info(f"Current user set to {user.id}")
        self.current_user = user

    def get_user(self, user_id: str) -> Optional[User]:
        if user_id == self.current_user.id:
            return self.current_user
        return self.users.get(user_id)

    def add_contact(self, name: str, phone: str) -> Conversation:
        """Save a contact and open a conversation with them"""
        name = (name or '').strip()
        phone = (phone or '').strip()
        if not name or not phone:
            raise ValidationError(
                "Contact name and phone are required",
                user_message="Please enter both name and phone number"
            )

        handle = re.sub(r'\s+', '', name.lower())
        contact = User(
            id=f"user-{uuid4().hex[:12]}",
            name=name,
            phone=format_phone(phone),
            email=f"{handle}@example.com",
            avatar=default_avatar(name),
            is_online=False,
            last_seen=utcnow()
        )
        self.users[contact.id] = contact
        logger.info(f"Added contact {contact.id} ({contact.name})")
        return self.create_conversation(contact)

    def create_conversation(self, other_user: User) -> Conversation:
        conversation = Conversation(
            id=f"conv-{uuid4().hex[:12]}",
            participants=[self.current_user, other_user]
        )
        self.conversations[conversation.id] = conversation
        logger.info(f"Created conversation {conversation.id} with {other_user.id}")
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    def list_conversations(self) -> List[Conversation]:
        """Most recently updated first"""
        return sorted(self.conversations.values(), key=lambda c: c.updated_at, reverse=True)

    def mark_read(self, conversation_id: str) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        conversation.unread_count = 0
        return conversation
