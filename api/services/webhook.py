import json
import logging
from typing import Optional, Dict, Any
from uuid import uuid4

import aiohttp
from pydantic import BaseModel

from api.models import Message, MessageStatus, MessageType, User

logger = logging.getLogger(__name__)

USER_AGENT = 'WhatsApp-Clone-Webhook/1.0'
REPLY_KEY = 'aiResponse'
AGENT_ID = 'ai-agent'
AGENT_NAME = 'AI Agent'

class WebhookResult(BaseModel):
    delivered: bool = False
    skipped: bool = False
    status: Optional[int] = None
    body: Optional[str] = None
    error: Optional[str] = None
    reply: Optional[Message] = None

def build_payload(message: Message, sender: User, recipient: User) -> Dict[str, Any]:
    """Webhook description of a just-sent message"""
    payload = {
        'messageId': message.id,
        'conversationId': message.conversation_id,
        'senderId': sender.id,
        'senderName': sender.name,
        'recipientId': recipient.id,
        'recipientName': recipient.name,
        'messageType': message.type.value,
        'content': message.content,
        'timestamp': message.created_at.isoformat(),
        'status': message.status.value,
    }
    if message.duration is not None:
        payload['duration'] = message.duration
    return payload

class WebhookNotifier:
    def __init__(self, webhook_url: str = '', method: str = 'GET', reply_store=None):
        self.webhook_url = webhook_url
        self.method = (method or 'GET').upper()
        if self.method not in ('GET', 'POST'):
            raise ValueError(f"Unsupported webhook method: {method}")
        self.reply_store = reply_store
        logger.info(f"Webhook notifier initialized ({self.method}, configured: {bool(webhook_url)})")

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    async def notify(self, payload: Dict[str, Any]) -> WebhookResult:
        """Send one notification. Never raises; failures are logged and reported in the result."""
        if not self.configured:
            logger.warning("WEBHOOK_URL not set, skipping webhook notification")
            return WebhookResult(skipped=True, error='Webhook URL not configured')

        try:
            status, body = await self._send(payload)
        except Exception as e:
            logger.error(f"Webhook request error: {str(e)}")
            return WebhookResult(error=str(e))

        if not 200 <= status < 300:
            logger.error(f"Webhook request failed: {status} {body}")
            return WebhookResult(status=status, body=body, error='Webhook request failed')

        logger.info(f"Webhook sent successfully: {body[:100] if body else ''}")
        result = WebhookResult(delivered=True, status=status, body=body)
        reply = self.parse_reply(body)
        if reply is not None:
            result.reply = await self._ingest_reply(reply, payload)
        return result

    async def _send(self, payload: Dict[str, Any]):
        async with aiohttp.ClientSession(headers={'User-Agent': USER_AGENT}) as session:
            if self.method == 'GET':
                params = {'event': 'message_sent'}
                params.update({k: str(v) for k, v in payload.items() if v is not None})
                request = session.get(self.webhook_url, params=params)
            else:
                request = session.post(self.webhook_url, json={'event': 'message_sent', **payload})
            async with request as response:
                return response.status, await response.text()

    @staticmethod
    def parse_reply(body: Optional[str]) -> Optional[Dict[str, Any]]:
        """Extract the embedded agent reply, if the body carries a usable one"""
        if not body:
            return None
        try:
            data = json.loads(body)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        reply = data.get(REPLY_KEY)
        if not isinstance(reply, dict):
            return None
        if reply.get('type') not in (MessageType.TEXT.value, MessageType.AUDIO.value):
            return None
        if not isinstance(reply.get('content'), str) or not reply['content']:
            return None
        duration = reply.get('duration')
        if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int) or duration < 0):
            return None
        return reply

    async def _ingest_reply(self, reply: Dict[str, Any], payload: Dict[str, Any]) -> Optional[Message]:
        # Agent replies go straight into the store: no validation pass, no status scheduling
        if self.reply_store is None:
            logger.warning("No store configured for agent replies, dropping reply")
            return None
        conversation_id = reply.get('conversationId') or payload.get('conversationId')
        if not conversation_id:
            logger.warning("Agent reply has no conversation id, dropping reply")
            return None
        try:
            message = Message(
                id=f"msg-{uuid4().hex}",
                conversation_id=conversation_id,
                sender_id=AGENT_ID,
                sender_name=AGENT_NAME,
                type=reply['type'],
                content=reply['content'],
                status=MessageStatus.DELIVERED,
                duration=reply.get('duration')
            )
            await self.reply_store.append(message)
            logger.info(f"Stored agent reply {message.id} for recipient {reply.get('recipientId') or payload.get('senderId')}")
            return message
        except Exception as e:
            logger.error(f"Failed to store agent reply: {str(e)}")
            return None
