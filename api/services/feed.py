import inspect
import logging
from typing import Callable, List, Dict
from uuid import uuid4

from api.models import Message
from lib.scheduler import Scheduler

logger = logging.getLogger(__name__)

MessagesCallback = Callable[[List[Message]], object]

class Subscription:
    def __init__(self, feed: 'MessageFeed', conversation_id: str, key: str):
        self.feed = feed
        self.conversation_id = conversation_id
        self.key = key
        self.active = True
        self.ticks = 0

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.feed.unsubscribe(self)

class MessageFeed:
    """Delivers the full, ordered message list of a conversation whenever it may have changed"""

    def on_messages_changed(self, conversation_id: str, callback: MessagesCallback) -> Subscription:
        raise NotImplementedError

    def unsubscribe(self, subscription: Subscription) -> None:
        raise NotImplementedError

class PollingFeed(MessageFeed):
    def __init__(self, store, scheduler: Scheduler, interval_ms: int = 2000):
        self.store = store
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.subscriptions: Dict[str, Subscription] = {}

    def on_messages_changed(self, conversation_id: str, callback: MessagesCallback) -> Subscription:
        key = f"poll:{conversation_id}:{uuid4().hex[:8]}"
        subscription = Subscription(self, conversation_id, key)
        self.subscriptions[key] = subscription
        logger.info(f"Polling conversation {conversation_id} every {self.interval_ms}ms")
        self.scheduler.schedule(key, 0, lambda: self._tick(subscription, callback))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        self.subscriptions.pop(subscription.key, None)
        self.scheduler.cancel(subscription.key)
        logger.info(f"Stopped polling conversation {subscription.conversation_id}")

    async def _tick(self, subscription: Subscription, callback: MessagesCallback) -> None:
        if not subscription.active:
            return
        try:
            messages = await self.store.find_by_conversation(subscription.conversation_id)
            subscription.ticks += 1
            if subscription.active:
                result = callback(messages)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.error(f"Poll of conversation {subscription.conversation_id} failed: {str(e)}")
        finally:
            if subscription.active:
                self.scheduler.schedule(
                    subscription.key,
                    self.interval_ms,
                    lambda: self._tick(subscription, callback)
                )
