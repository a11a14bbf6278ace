"""
One-off notification expiry sweep.

Runs outside the API process, so no sessions are connected here; the API's
change-feed listener broadcasts the deletions to connected clients.

Usage: python scripts/sweep_notifications.py
"""
import sys
import os
import asyncio

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Store, db
from logging_config import setup_logging
from services.sweeper import ExpirySweeper
from utils.realtime import SessionRegistry

async def main():
    deleted = await ExpirySweeper(Store(db), SessionRegistry()).sweep()
    print(f"🧹 Removed {deleted} expired notifications")

if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
