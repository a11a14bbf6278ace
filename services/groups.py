from typing import List

from constants import Collections, Roles
from database import Store
from errors import Conflict, Forbidden, InvalidInput, NotFound
from logging_config import get_logger
from models.group import GroupModel
from models.user import public_user

logger = get_logger("groups")


class GroupService:
    """Group membership; ``unread_counts`` always has exactly one entry per member."""

    def __init__(self, store: Store):
        self._store = store

    async def _faculty(self, user_id: str, action: str) -> dict:
        user = await self._store.find_by_id(Collections.USERS, user_id)
        if not user:
            raise NotFound("User not found")
        if user.get("role") != Roles.FACULTY:
            raise Forbidden(f"Only faculty can {action}")
        return user

    async def _group(self, group_id: str) -> dict:
        group = await self._store.find_by_id(Collections.GROUPS, group_id)
        if not group:
            raise NotFound("Group not found")
        return group

    async def populate(self, group: dict) -> dict:
        ids = list(set(group.get("members", [])) | {group["creator"]})
        users = await self._store.find_many(Collections.USERS, {"id": {"$in": ids}})
        people = {u["id"]: public_user(u) for u in users}
        populated = {k: v for k, v in group.items() if k != "_id"}
        populated["creator"] = people.get(group["creator"])
        populated["members"] = [people[m] for m in group.get("members", []) if m in people]
        return populated

    async def create(self, creator_id: str, name: str, member_ids: List[str]) -> dict:
        await self._faculty(creator_id, "create groups")
        if not name or not name.strip():
            raise InvalidInput("Group name is required")

        requested = list(dict.fromkeys(member_ids))
        found = await self._store.count(Collections.USERS, {"id": {"$in": requested}}) if requested else 0
        if found != len(requested):
            raise InvalidInput("One or more member IDs are invalid")

        members = list(dict.fromkeys(requested + [creator_id]))
        group = GroupModel(
            name=name.strip(),
            creator=creator_id,
            members=members,
            unread_counts={member: 0 for member in members},
        )
        doc = await self._store.insert(Collections.GROUPS, group.model_dump())
        logger.info("Group created", extra={"data": {"group_id": group.id, "members": len(members)}})
        return await self.populate(doc)

    async def list_for(self, user_id: str) -> List[dict]:
        groups = await self._store.find_many(
            Collections.GROUPS,
            {"$or": [{"creator": user_id}, {"members": user_id}]},
            sort=[("created_at", -1)],
        )
        return [await self.populate(g) for g in groups]

    async def get(self, group_id: str, user_id: str) -> dict:
        group = await self._group(group_id)
        if user_id not in group.get("members", []):
            raise Forbidden("You are not a member of this group")
        return await self.populate(group)

    async def add_member(self, group_id: str, user_id: str, member_id: str) -> dict:
        await self._faculty(user_id, "add members to groups")
        group = await self._group(group_id)
        if group["creator"] != user_id:
            raise Forbidden("Only the group creator can add members")
        if not await self._store.exists(Collections.USERS, {"id": member_id}):
            raise NotFound("Member not found")
        if member_id in group.get("members", []):
            raise Conflict("User is already a member of this group")

        await self._store.update_one(
            Collections.GROUPS,
            {"id": group_id},
            {"$addToSet": {"members": member_id}, "$set": {f"unread_counts.{member_id}": 0}},
        )
        logger.info("Group member added", extra={"data": {"group_id": group_id, "member_id": member_id}})
        return await self.populate(await self._group(group_id))

    async def remove_member(self, group_id: str, user_id: str, member_id: str) -> dict:
        await self._faculty(user_id, "remove members from groups")
        group = await self._group(group_id)
        if group["creator"] != user_id:
            raise Forbidden("Only the group creator can remove members")
        if member_id == group["creator"]:
            raise InvalidInput("Cannot remove the group creator")
        if member_id not in group.get("members", []):
            raise InvalidInput("User is not a member of this group")

        await self._store.update_one(
            Collections.GROUPS,
            {"id": group_id},
            {"$pull": {"members": member_id}, "$unset": {f"unread_counts.{member_id}": ""}},
        )
        logger.info("Group member removed", extra={"data": {"group_id": group_id, "member_id": member_id}})
        return await self.populate(await self._group(group_id))

    async def reset_unread(self, group_id: str, user_id: str) -> dict:
        group = await self._group(group_id)
        if user_id not in group.get("members", []):
            raise Forbidden("You are not a member of this group")
        await self._store.update_one(Collections.GROUPS, {"id": group_id}, {"$set": {f"unread_counts.{user_id}": 0}})
        return await self.populate(await self._group(group_id))
