"""Outbound message lifecycle.

A message is persisted, attached to its conversation, then walked through
``sent -> delivered -> read`` by two timers. The webhook notification runs
in the background after persistence and never affects the send.

Status timers are keyed by message id and outlive any open conversation
view. ``shutdown`` cancels whatever is still pending.
"""
import asyncio
import logging
from typing import Optional, Dict, Set
from uuid import uuid4

from api.models import Message, MessageStatus, MessageType, Conversation
from api.services.feed import MessageFeed, MessagesCallback, Subscription
from api.services.webhook import build_payload
from lib.error_handler import ErrorHandler, ValidationError, PersistenceError, AppError
from lib.scheduler import Scheduler

logger = logging.getLogger(__name__)

class MessagingService:
    def __init__(
        self,
        store,
        directory,
        scheduler: Scheduler,
        audio_service=None,
        notifier=None,
        feed: Optional[MessageFeed] = None,
        delivered_delay_ms: int = 1000,
        read_delay_ms: int = 3000
    ):
        self.store = store
        self.directory = directory
        self.scheduler = scheduler
        self.audio = audio_service
        self.notifier = notifier
        self.feed = feed
        self.delivered_delay_ms = delivered_delay_ms
        self.read_delay_ms = read_delay_ms
        self.error_handler = ErrorHandler()
        self._pending_ids: Set[str] = set()
        self._notifications: Set[asyncio.Future] = set()
        self._subscriptions: Dict[str, Subscription] = {}

    async def send_text(self, conversation: Conversation, text: str) -> Message:
        """Send a text message"""
        content = (text or '').strip()
        if not content:
            raise ValidationError("Message text is empty", user_message="Type a message before sending.")

        message = self._new_message(conversation, MessageType.TEXT, content)
        return await self._deliver(conversation, message)

    async def send_audio(
        self,
        conversation: Conversation,
        audio_data: bytes,
        duration: int,
        content_type: str = 'audio/webm'
    ) -> Message:
        """Send a voice note. A zero-length duration is accepted."""
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            raise ValidationError(f"Invalid audio duration: {duration!r}")
        if self.audio is None:
            raise AppError("Audio messages are not available")

        message_id = self._new_id()
        content = await self.audio.encode(audio_data, content_type, message_id)
        message = self._new_message(conversation, MessageType.AUDIO, content, duration, message_id)
        return await self._deliver(conversation, message)

    def _new_id(self) -> str:
        return f"msg-{uuid4().hex}"

    def _new_message(
        self,
        conversation: Conversation,
        message_type: MessageType,
        content: str,
        duration: Optional[int] = None,
        message_id: Optional[str] = None
    ) -> Message:
        sender = self.directory.current_user
        return Message(
            id=message_id or self._new_id(),
            conversation_id=conversation.id,
            sender_id=sender.id,
            sender_name=sender.name,
            type=message_type,
            content=content,
            status=MessageStatus.SENT,
            duration=duration
        )

    async def _deliver(self, conversation: Conversation, message: Message) -> Message:
        try:
            await self.store.append(message)
        except AppError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to store message: {str(e)}")

        conversation.record_message(message)
        logger.info(f"Message {message.id} sent to conversation {conversation.id}")

        self._schedule_status(message)
        self._notify(conversation, message)
        return message

    def _schedule_status(self, message: Message) -> None:
        self._pending_ids.add(message.id)
        self.scheduler.schedule(
            message.id,
            self.delivered_delay_ms,
            lambda: self._transition(message, MessageStatus.DELIVERED)
        )
        self.scheduler.schedule(
            message.id,
            self.read_delay_ms,
            lambda: self._transition(message, MessageStatus.READ)
        )

    async def _transition(self, message: Message, status: MessageStatus) -> None:
        try:
            await self.store.update_status(message.id, status)
            # Keep the caller's copy in step when the store holds its own
            message.advance(status)
            logger.info(f"Message {message.id} is now {message.status.value}")
        except Exception as e:
            self.error_handler.handle_status_error(e)
        finally:
            if status == MessageStatus.READ:
                self._pending_ids.discard(message.id)

    def _notify(self, conversation: Conversation, message: Message) -> None:
        if self.notifier is None or not self.notifier.configured:
            logger.debug(f"Webhook not configured, skipping notification for {message.id}")
            return
        sender = self.directory.current_user
        payload = build_payload(message, sender, conversation.other_participant(sender.id))
        task = asyncio.ensure_future(self._run_notification(payload))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _run_notification(self, payload) -> None:
        try:
            await self.notifier.notify(payload)
        except Exception as e:
            self.error_handler.handle_notification_error(e)

    async def wait_for_notifications(self) -> None:
        """Wait until every background webhook call has finished"""
        if self._notifications:
            await asyncio.gather(*list(self._notifications))

    async def messages_for(self, conversation_id: str, require_known: bool = True):
        """Stored messages of a conversation in creation order"""
        if require_known:
            self.directory.get_conversation(conversation_id)
        return await self.store.find_by_conversation(conversation_id)

    def open_conversation(self, conversation_id: str, callback: MessagesCallback) -> Subscription:
        """Start delivering the conversation's messages to callback on every poll tick"""
        if self.feed is None:
            raise AppError("No message feed configured")
        self.close_conversation(conversation_id)
        subscription = self.feed.on_messages_changed(conversation_id, callback)
        self._subscriptions[conversation_id] = subscription
        return subscription

    def close_conversation(self, conversation_id: str) -> None:
        subscription = self._subscriptions.pop(conversation_id, None)
        if subscription is not None:
            subscription.cancel()

    def cancel_pending(self, message_id: str) -> int:
        self._pending_ids.discard(message_id)
        return self.scheduler.cancel(message_id)

    def shutdown(self) -> None:
        """Cancel pending status transitions and stop every poll loop"""
        for conversation_id in list(self._subscriptions):
            self.close_conversation(conversation_id)
        cancelled = sum(self.scheduler.cancel(message_id) for message_id in list(self._pending_ids))
        self._pending_ids.clear()
        logger.info(f"Messaging service shut down, cancelled {cancelled} status updates")
