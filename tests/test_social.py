import pytest

from conftest import create_user
from constants import Collections, NotificationKinds, RealtimeEvents
from errors import Conflict, Forbidden, InvalidInput, NotFound

pytestmark = pytest.mark.asyncio


async def test_likes_aggregate_per_post(services, store, student, other_student, faculty):
    post = await services.social.create_post(student["id"], "Hackathon this weekend")

    await services.social.like(post["id"], other_student["id"])
    await services.social.like(post["id"], faculty["id"])

    notes = await services.notifier.list_for(student["id"])
    assert len(notes) == 1
    assert notes[0].kind == NotificationKinds.LIKE
    assert notes[0].related_id == post["id"]
    assert notes[0].count == 2
    assert notes[0].text == "Your post received 2 likes, latest from Meera"


async def test_like_toggles_and_replaces_dislike(services, student, other_student):
    post = await services.social.create_post(student["id"], "Hot take")

    disliked = await services.social.dislike(post["id"], other_student["id"])
    assert disliked["dislikes"] == [other_student["id"]]

    liked = await services.social.like(post["id"], other_student["id"])
    assert liked["likes"] == [other_student["id"]]
    assert liked["dislikes"] == []

    unliked = await services.social.like(post["id"], other_student["id"])
    assert unliked["likes"] == []


async def test_reacting_to_own_post_does_not_notify(services, transport, student):
    post = await services.social.create_post(student["id"], "Me, myself")
    await services.social.like(post["id"], student["id"])
    await services.social.comment(post["id"], student["id"], "bump")

    assert transport.events(student["id"], RealtimeEvents.NEW_NOTIFICATION) == []


async def test_comment_notifies_author(services, student, other_student):
    post = await services.social.create_post(student["id"], "Notes for DBMS")
    updated = await services.social.comment(post["id"], other_student["id"], "Thanks!")

    assert updated["comments"][0]["text"] == "Thanks!"
    notes = await services.notifier.list_for(student["id"])
    assert notes[0].kind == NotificationKinds.COMMENT
    assert notes[0].refs.comment_id == updated["comments"][0]["id"]

    with pytest.raises(InvalidInput):
        await services.social.comment(post["id"], other_student["id"], "  ")


async def test_banned_users_cannot_react(services, store, student):
    post = await services.social.create_post(student["id"], "Be nice")
    banned = await create_user(store, "Troll", banned=True)

    with pytest.raises(Forbidden):
        await services.social.like(post["id"], banned["id"])
    with pytest.raises(Forbidden):
        await services.social.comment(post["id"], banned["id"], "boo")
    with pytest.raises(Forbidden):
        await services.social.create_post(banned["id"], "spam")


async def test_friend_request_accept_consumes_and_notifies(services, transport, store, student, other_student):
    request = await services.social.send_request(student["id"], other_student["id"])

    pending = await services.notifier.list_for(other_student["id"])
    assert [n.kind for n in pending] == [NotificationKinds.FRIEND_REQUEST]
    friend_note_id = pending[0].id

    profile = await services.social.accept_request(request["id"], other_student["id"])
    assert [a["id"] for a in profile["acquaintances"]] == [student["id"]]

    requester = await store.find_by_id(Collections.USERS, student["id"])
    assert requester["acquaintances"] == [other_student["id"]]

    # Friend-request notification is gone and its deletion was pushed
    assert await services.notifier.list_for(other_student["id"]) == []
    assert {"notificationId": friend_note_id} in transport.events(other_student["id"], RealtimeEvents.NOTIFICATION_DELETED)

    accepted = await services.notifier.list_for(student["id"])
    assert len(accepted) == 1
    assert accepted[0].kind == NotificationKinds.FRIEND_REQUEST_ACCEPTED
    assert accepted[0].related_id == other_student["id"]

    assert await store.find_by_id(Collections.FRIEND_REQUESTS, request["id"]) is None


async def test_friend_request_decline(services, store, student, other_student):
    request = await services.social.send_request(student["id"], other_student["id"])

    with pytest.raises(Forbidden):
        await services.social.decline_request(request["id"], student["id"])

    await services.social.decline_request(request["id"], other_student["id"])

    requester = await store.find_by_id(Collections.USERS, student["id"])
    assert requester["acquaintances"] == []
    notes = await services.notifier.list_for(student["id"])
    assert [n.kind for n in notes] == [NotificationKinds.FRIEND_REQUEST_DECLINED]
    assert await services.notifier.list_for(other_student["id"]) == []


async def test_friend_request_rules(services, student, other_student):
    with pytest.raises(InvalidInput):
        await services.social.send_request(student["id"], student["id"])
    with pytest.raises(NotFound):
        await services.social.send_request(student["id"], "ghost")

    await services.social.send_request(student["id"], other_student["id"])
    with pytest.raises(Conflict):
        await services.social.send_request(student["id"], other_student["id"])

    sent = await services.social.sent_requests(student["id"])
    assert [r["to"]["id"] for r in sent] == [other_student["id"]]


async def test_remove_acquaintance_is_symmetric(services, store, student, other_student):
    request = await services.social.send_request(student["id"], other_student["id"])
    await services.social.accept_request(request["id"], other_student["id"])

    await services.social.remove_acquaintance(other_student["id"], student["id"])

    for user in (student, other_student):
        stored = await store.find_by_id(Collections.USERS, user["id"])
        assert stored["acquaintances"] == []
    with pytest.raises(InvalidInput):
        await services.social.remove_acquaintance(student["id"], other_student["id"])
