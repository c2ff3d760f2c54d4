import asyncio
import logging
from typing import Optional, List

from api.models import Message, MessageStatus, STATUS_ORDER
from lib.error_handler import PersistenceError

logger = logging.getLogger(__name__)

class MessageStore:
    """Contract shared by the in-memory and Supabase message stores"""

    async def append(self, message: Message) -> Message:
        raise NotImplementedError

    async def find_by_conversation(self, conversation_id: str) -> List[Message]:
        raise NotImplementedError

    async def update_status(self, message_id: str, status: MessageStatus) -> bool:
        raise NotImplementedError

    async def get(self, message_id: str) -> Optional[Message]:
        raise NotImplementedError

class LocalMessageStore(MessageStore):
    def __init__(self):
        self.messages: List[Message] = []
        logger.info("Local message store initialized")

    async def append(self, message: Message) -> Message:
        self.messages.append(message)
        logger.info(f"Stored message {message.id} in conversation {message.conversation_id}")
        return message

    async def find_by_conversation(self, conversation_id: str) -> List[Message]:
        found = [m for m in self.messages if m.conversation_id == conversation_id]
        return sorted(found, key=lambda m: m.created_at)

    async def update_status(self, message_id: str, status: MessageStatus) -> bool:
        message = await self.get(message_id)
        if message is None:
            logger.warning(f"Cannot update status: message {message_id} not found")
            return False
        return message.advance(status)

    async def get(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

class SupabaseMessageStore(MessageStore):
    def __init__(self, supabase_client, table: str = 'messages'):
        self.supabase = supabase_client
        self.messages_table = table
        logger.info(f"Supabase message store initialized with table: {table}")

    async def _execute(self, query):
        # supabase-py is synchronous, keep it off the event loop
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, query.execute)

    async def append(self, message: Message) -> Message:
        record = message.to_record()
        try:
            logger.info(f"Inserting message {message.id} into {self.messages_table}")
            result = await self._execute(self.supabase.table(self.messages_table).insert(record))
            if hasattr(result, 'error') and result.error:
                raise Exception(f"Supabase error: {result.error}")
            return message
        except Exception as e:
            logger.error(f"Failed to store message {message.id}: {str(e)}")
            raise PersistenceError(f"Failed to store message: {str(e)}")

    async def find_by_conversation(self, conversation_id: str) -> List[Message]:
        try:
            query = self.supabase.table(self.messages_table)\
                .select('*')\
                .eq('conversation_id', conversation_id)\
                .order('created_at')
            result = await self._execute(query)
            return [Message.from_record(row) for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Failed to load messages for {conversation_id}: {str(e)}")
            raise PersistenceError(f"Failed to load messages: {str(e)}")

    async def update_status(self, message_id: str, status: MessageStatus) -> bool:
        status = MessageStatus(status)
        # Only rows still behind the target status are touched
        earlier = [s.value for s in STATUS_ORDER[:status.rank]]
        if not earlier:
            return False
        try:
            query = self.supabase.table(self.messages_table)\
                .update({'status': status.value})\
                .eq('id', message_id)\
                .in_('status', earlier)
            result = await self._execute(query)
            if hasattr(result, 'error') and result.error:
                raise Exception(f"Supabase error: {result.error}")
            return bool(result.data)
        except Exception as e:
            logger.error(f"Failed to update status of {message_id}: {str(e)}")
            raise PersistenceError(f"Failed to update message status: {str(e)}")

    async def get(self, message_id: str) -> Optional[Message]:
        try:
            query = self.supabase.table(self.messages_table)\
                .select('*')\
                .eq('id', message_id)\
                .limit(1)
            result = await self._execute(query)
            if not result.data:
                return None
            return Message.from_record(result.data[0])
        except Exception as e:
            logger.error(f"Failed to load message {message_id}: {str(e)}")
            raise PersistenceError(f"Failed to load message: {str(e)}")
