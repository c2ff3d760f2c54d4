import pytest
from unittest.mock import AsyncMock

from api.models import Message
from api.services.feed import PollingFeed
from api.services.storage import LocalMessageStore
from lib.scheduler import VirtualScheduler

def make_message(message_id, conversation_id='conv-1'):
    return Message(id=message_id, conversation_id=conversation_id, sender_id='user-1', content='hi')

@pytest.mark.asyncio
async def test_poll_delivers_full_list_every_interval():
    scheduler = VirtualScheduler()
    store = LocalMessageStore()
    feed = PollingFeed(store, scheduler, interval_ms=2000)
    snapshots = []

    await store.append(make_message('m1'))
    subscription = feed.on_messages_changed('conv-1', lambda messages: snapshots.append([m.id for m in messages]))

    await scheduler.advance(0)
    assert snapshots == [['m1']]

    await store.append(make_message('m2'))
    await store.append(make_message('x', conversation_id='conv-2'))
    await scheduler.advance(1999)
    assert len(snapshots) == 1
    await scheduler.advance(1)
    assert snapshots[-1] == ['m1', 'm2']

    await scheduler.advance(4000)
    assert subscription.ticks == 4

@pytest.mark.asyncio
async def test_cancel_stops_polling():
    scheduler = VirtualScheduler()
    store = LocalMessageStore()
    store.find_by_conversation = AsyncMock(return_value=[])
    feed = PollingFeed(store, scheduler, interval_ms=2000)

    subscription = feed.on_messages_changed('conv-1', lambda messages: None)
    await scheduler.advance(2000)
    subscription.cancel()
    await scheduler.advance(10000)

    assert store.find_by_conversation.await_count == 2
    assert scheduler.pending() == 0
    assert feed.subscriptions == {}

@pytest.mark.asyncio
async def test_failed_poll_keeps_polling():
    scheduler = VirtualScheduler()
    store = LocalMessageStore()
    store.find_by_conversation = AsyncMock(side_effect=[Exception("network down"), []])
    feed = PollingFeed(store, scheduler, interval_ms=2000)
    received = []

    feed.on_messages_changed('conv-1', received.append)
    await scheduler.advance(2000)

    assert received == [[]]

@pytest.mark.asyncio
async def test_async_callbacks_are_awaited():
    scheduler = VirtualScheduler()
    store = LocalMessageStore()
    await store.append(make_message('m1'))
    feed = PollingFeed(store, scheduler)
    callback = AsyncMock()

    feed.on_messages_changed('conv-1', callback)
    await scheduler.advance(0)

    callback.assert_awaited_once()

@pytest.mark.asyncio
async def test_open_conversation_replaces_previous_loop(services, scheduler, conversation):
    first = services.messaging.open_conversation(conversation.id, lambda messages: None)
    second = services.messaging.open_conversation(conversation.id, lambda messages: None)

    assert not first.active
    assert second.active
    assert scheduler.pending() == 1

    services.messaging.close_conversation(conversation.id)
    assert scheduler.pending() == 0
