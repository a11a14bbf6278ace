import sys
import os
import asyncio
from pymongo import ASCENDING, DESCENDING

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    notifications_collection,
    users_collection,
    messages_collection,
    groups_collection,
    posts_collection,
    friend_requests_collection,
    ban_requests_collection,
)
from logging_config import get_logger, setup_logging

logger = get_logger("setup_indexes")

async def create_indexes():
    print("🚀 Starting Index Creation...")

    # --- Notifications ---
    print("\n📦 Notifications Collection:")
    # One aggregated notification per (recipient, kind, related_id); concurrent creates lose with DuplicateKeyError
    await notifications_collection.create_index(
        [("recipient", ASCENDING), ("kind", ASCENDING), ("related_id", ASCENDING)],
        unique=True,
    )
    print("✅ Created index: (recipient, kind, related_id UNIQUE)")

    # For List Notifications: find({recipient: X}).sort(created_at: -1)
    await notifications_collection.create_index([("recipient", ASCENDING), ("created_at", DESCENDING)])
    print("✅ Created index: (recipient, created_at DESC)")

    # --- Users ---
    print("\n📦 Users Collection:")
    await users_collection.create_index([("id", ASCENDING)], unique=True)
    await users_collection.create_index([("email", ASCENDING)], unique=True)
    print("✅ Created index: (id UNIQUE), (email UNIQUE)")

    # Admin fan-out: find({role: "Admin"})
    await users_collection.create_index([("role", ASCENDING)])
    print("✅ Created index: (role)")

    # --- Messages ---
    print("\n📦 Messages Collection:")
    # Direct history in both directions
    await messages_collection.create_index([("sender", ASCENDING), ("receiver", ASCENDING), ("created_at", ASCENDING)])
    await messages_collection.create_index([("receiver", ASCENDING), ("sender", ASCENDING), ("created_at", ASCENDING)])
    print("✅ Created index: (sender, receiver, created_at), (receiver, sender, created_at)")

    await messages_collection.create_index([("group", ASCENDING), ("created_at", ASCENDING)])
    print("✅ Created index: (group, created_at)")

    # --- Groups ---
    print("\n📦 Groups Collection:")
    await groups_collection.create_index([("members", ASCENDING)])
    print("✅ Created index: (members)")

    # --- Posts ---
    print("\n📦 Posts Collection:")
    await posts_collection.create_index([("created_at", DESCENDING)])
    print("✅ Created index: (created_at DESC)")

    # --- Friend / Ban Requests ---
    print("\n📦 Request Collections:")
    await friend_requests_collection.create_index([("to_user", ASCENDING), ("status", ASCENDING)])
    await friend_requests_collection.create_index([("from_user", ASCENDING), ("status", ASCENDING)])
    await ban_requests_collection.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    print("✅ Created index: friend_requests (to_user, status), (from_user, status); ban_requests (status, created_at DESC)")

    print("\n✨ All indexes created successfully!")
    logger.info("Indexes created")

if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_indexes())
