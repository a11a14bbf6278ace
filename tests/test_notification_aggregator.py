import pytest

from constants import Collections, NotificationKinds, RealtimeEvents
from errors import Forbidden, NotFound, TransportFailure
from models.notification import MessageRefs, PostReactionRefs

pytestmark = pytest.mark.asyncio


def message_refs(sender_id: str, message_id: str = "m1") -> MessageRefs:
    return MessageRefs(kind=NotificationKinds.NEW_MESSAGE, message_id=message_id, sender_id=sender_id)


def render_messages(count: int) -> str:
    return "New message from Ravi" if count == 1 else f"You received {count} messages from Ravi"


async def test_repeated_events_collapse_into_one_notification(services, transport, clock, store):
    notifier = services.notifier
    first = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2", "m1"))
    clock.advance(minutes=1)
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2", "m2"))
    clock.advance(minutes=1)
    third = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2", "m3"))

    assert third.id == first.id
    assert third.count == 3
    assert third.text == "You received 3 messages from Ravi"
    assert third.created_at == clock.now
    assert third.refs.message_id == "m3"

    assert await store.count(Collections.NOTIFICATIONS, {}) == 1
    pushed = transport.events("u1", RealtimeEvents.NEW_NOTIFICATION)
    assert [p["count"] for p in pushed] == [1, 2, 3]
    assert all(p["id"] == first.id for p in pushed)


async def test_different_related_ids_stay_separate(services, store):
    notifier = services.notifier
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u3", render_messages, message_refs("u3"))

    assert await store.count(Collections.NOTIFICATIONS, {"recipient": "u1"}) == 2


async def test_aggregation_keeps_the_read_flag(services):
    notifier = services.notifier
    first = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    await notifier.mark_read("u1", first.id)
    again = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))

    assert again.count == 2
    assert again.read is True


async def test_consume_deletes_and_notifies_owner(services, transport, store):
    notifier = services.notifier
    refs = PostReactionRefs(kind=NotificationKinds.LIKE, post_id="p1", sender_id="u2")
    created = await notifier.upsert("u1", NotificationKinds.LIKE, "p1", lambda n: "liked", refs)

    consumed = await notifier.consume("u1", NotificationKinds.LIKE, "p1")

    assert consumed == created.id
    assert await store.find_by_id(Collections.NOTIFICATIONS, created.id) is None
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_DELETED) == [{"notificationId": created.id}]


async def test_consume_without_match_is_a_no_op(services, transport):
    assert await services.notifier.consume("u1", NotificationKinds.FRIEND_REQUEST, "u2") is None
    assert transport.emitted == []


async def test_unviewed_notification_expires_after_seven_days(services, clock):
    notifier = services.notifier
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))

    clock.advance(days=7)
    assert len(await notifier.list_for("u1")) == 1

    clock.advance(seconds=1)
    assert await notifier.list_for("u1") == []


async def test_viewed_notification_expires_after_three_days(services, clock):
    notifier = services.notifier
    created = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    await notifier.mark_viewed("u1", created.id)

    clock.advance(days=3)
    assert len(await notifier.list_for("u1")) == 1

    clock.advance(seconds=1)
    assert await notifier.list_for("u1") == []
    with pytest.raises(NotFound):
        await notifier.mark_read("u1", created.id)


async def test_new_event_restarts_the_expiry_clock(services, clock):
    notifier = services.notifier
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    clock.advance(days=6)
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    clock.advance(days=6)

    listed = await notifier.list_for("u1")
    assert len(listed) == 1
    assert listed[0].count == 2


async def test_list_is_newest_first_and_unread_filter(services, clock):
    notifier = services.notifier
    older = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    clock.advance(minutes=5)
    newer = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u3", render_messages, message_refs("u3"))
    await notifier.mark_read("u1", older.id)

    assert [n.id for n in await notifier.list_for("u1")] == [newer.id, older.id]
    assert [n.id for n in await notifier.list_for("u1", unread_only=True)] == [newer.id]
    assert await notifier.unread_count("u1") == 1


async def test_mutations_are_owner_only(services):
    notifier = services.notifier
    created = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))

    with pytest.raises(Forbidden):
        await notifier.mark_read("intruder", created.id)
    with pytest.raises(Forbidden):
        await notifier.delete("intruder", created.id)
    with pytest.raises(NotFound):
        await notifier.mark_viewed("u1", "missing")


async def test_read_viewed_and_delete_emit_to_owner(services, transport):
    notifier = services.notifier
    created = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))

    await notifier.mark_read("u1", created.id)
    await notifier.mark_viewed("u1", created.id)
    await notifier.delete("u1", created.id)

    payload = {"notificationId": created.id}
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_READ) == [payload]
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_VIEWED) == [payload]
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_DELETED) == [payload]


async def test_mark_all_viewed_emits_per_changed_notification(services, transport):
    notifier = services.notifier
    a = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    b = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u3", render_messages, message_refs("u3"))
    await notifier.mark_viewed("u1", a.id)
    transport.emitted.clear()

    assert await notifier.mark_all_viewed("u1") == 1
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_VIEWED) == [{"notificationId": b.id}]
    assert await notifier.mark_all_viewed("u1") == 0


async def test_mark_all_read_skips_expired_notifications(services, transport, clock):
    notifier = services.notifier
    await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))
    clock.advance(days=6)
    fresh = await notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u3", render_messages, message_refs("u3"))
    clock.advance(days=2)
    transport.emitted.clear()

    assert await notifier.mark_all_read("u1") == 1
    assert transport.events("u1", RealtimeEvents.NOTIFICATION_READ) == [{"notificationId": fresh.id}]
    assert await notifier.mark_all_read("u1") == 0


async def test_transport_failure_keeps_the_stored_record(services, transport, store):
    transport.failing_channels.add("u1")

    with pytest.raises(TransportFailure):
        await services.notifier.upsert("u1", NotificationKinds.NEW_MESSAGE, "u2", render_messages, message_refs("u2"))

    assert await store.count(Collections.NOTIFICATIONS, {"recipient": "u1"}) == 1
