import asyncio

import pytest

from constants import Collections, NotificationKinds, RealtimeEvents
from errors import StorageFailure
from models.notification import MessageRefs
from services.sweeper import ChangeFeedListener, ExpirySweeper

pytestmark = pytest.mark.asyncio


async def seed(notifier, recipient: str, related_id: str):
    refs = MessageRefs(kind=NotificationKinds.NEW_MESSAGE, message_id="m1", sender_id=related_id)
    return await notifier.upsert(recipient, NotificationKinds.NEW_MESSAGE, related_id, lambda n: f"{n} from {related_id}", refs)


async def test_sweep_removes_only_expired_and_broadcasts(services, transport, clock, store):
    stale = await seed(services.notifier, "u1", "u2")
    viewed = await seed(services.notifier, "u1", "u3")
    await services.notifier.mark_viewed("u1", viewed.id)
    clock.advance(days=4)
    fresh = await seed(services.notifier, "u1", "u4")
    clock.advance(days=3, seconds=1)

    deleted = await services.sweeper.sweep()

    # stale: 7d+1s unviewed; viewed: 7d+1s viewed; fresh: 3d+1s unviewed
    assert deleted == 2
    remaining = await store.find_many(Collections.NOTIFICATIONS, {})
    assert [doc["id"] for doc in remaining] == [fresh.id]
    assert sorted(payload["notificationId"] for _, payload in transport.broadcasts) == sorted([stale.id, viewed.id])
    assert all(event == RealtimeEvents.NOTIFICATION_DELETED for event, _ in transport.broadcasts)


async def test_sweep_with_nothing_expired(services, transport):
    await seed(services.notifier, "u1", "u2")
    assert await services.sweeper.sweep() == 0
    assert transport.broadcasts == []


class FlakyStore:
    """Delegates to a real store but fails deletion of selected ids."""

    def __init__(self, store, failing_ids):
        self._store = store
        self._failing_ids = set(failing_ids)

    async def find_many(self, *args, **kwargs):
        return await self._store.find_many(*args, **kwargs)

    async def delete_by_id(self, collection, doc_id):
        if doc_id in self._failing_ids:
            raise StorageFailure()
        return await self._store.delete_by_id(collection, doc_id)


async def test_one_failed_deletion_does_not_stop_the_sweep(services, transport, clock, store):
    broken = await seed(services.notifier, "u1", "u2")
    fine = await seed(services.notifier, "u1", "u3")
    clock.advance(days=8)

    sweeper = ExpirySweeper(FlakyStore(store, [broken.id]), transport, clock=clock)
    assert await sweeper.sweep() == 1

    assert await store.find_by_id(Collections.NOTIFICATIONS, broken.id) is not None
    assert await store.find_by_id(Collections.NOTIFICATIONS, fine.id) is None
    assert transport.broadcasts == [(RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": fine.id})]


async def test_sweeper_loop_waits_one_interval_then_stops_cleanly(transport, store, clock):
    sweeper = ExpirySweeper(store, transport, interval_seconds=3600, clock=clock)
    sweeper.start()
    await asyncio.sleep(0)
    await sweeper.stop()
    assert transport.broadcasts == []


class ChangeStreamStore:
    def __init__(self, changes=None, fail=False):
        self._changes = changes or []
        self._fail = fail

    async def watch(self, collection, operation_types=None):
        if self._fail:
            raise StorageFailure()
        for change in self._changes:
            yield change


async def test_change_feed_broadcasts_external_deletions(transport):
    changes = [
        {"operation_type": "delete", "document_key": {"_id": "n1"}},
        {"operation_type": "delete", "document_key": {}},
        {"operation_type": "insert", "document_key": {"_id": "n2"}},
        {"operation_type": "delete", "document_key": {"_id": "n3"}},
    ]
    listener = ChangeFeedListener(ChangeStreamStore(changes), transport)

    await listener.run()

    assert transport.broadcasts == [
        (RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": "n1"}),
        (RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": "n3"}),
    ]


async def test_change_feed_unavailable_stops_quietly(transport):
    listener = ChangeFeedListener(ChangeStreamStore(fail=True), transport)
    await listener.run()
    assert transport.broadcasts == []


async def test_malformed_notifications_are_skipped(services, transport, clock, store):
    expired = await seed(services.notifier, "u1", "u2")
    await store.insert(Collections.NOTIFICATIONS, {"id": "no-date", "recipient": "u1", "kind": "like"})
    await store.insert(Collections.NOTIFICATIONS, {"id": "bad-date", "recipient": "u1", "created_at": "last week"})
    clock.advance(days=30)

    assert await services.sweeper.sweep() == 1

    remaining = sorted(doc["id"] for doc in await store.find_many(Collections.NOTIFICATIONS, {}))
    assert remaining == ["bad-date", "no-date"]
    assert transport.broadcasts == [(RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": expired.id})]


class ExplodingOnceStore(FlakyStore):
    """The first scan raises an unexpected error; later scans work."""

    def __init__(self, store):
        super().__init__(store, [])
        self.scans = 0

    async def find_many(self, *args, **kwargs):
        self.scans += 1
        if self.scans == 1:
            raise RuntimeError("boom")
        return await super().find_many(*args, **kwargs)


async def test_sweeper_loop_survives_an_unexpected_error(services, transport, clock, store):
    expired = await seed(services.notifier, "u1", "u2")
    clock.advance(days=30)
    flaky = ExplodingOnceStore(store)
    sweeper = ExpirySweeper(flaky, transport, interval_seconds=0, clock=clock)

    sweeper.start()
    try:
        for _ in range(200):
            if transport.broadcasts:
                break
            await asyncio.sleep(0.01)
        assert not sweeper._task.done()
    finally:
        await sweeper.stop()

    assert flaky.scans >= 2
    assert await store.find_by_id(Collections.NOTIFICATIONS, expired.id) is None
    assert transport.broadcasts[0] == (RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": expired.id})
