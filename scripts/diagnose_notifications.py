#!/usr/bin/env python3
"""One-off: print why a user does or does not receive SMS reminders right now.
Usage: DATABASE_URL=postgresql+asyncpg://... python scripts/diagnose_notifications.py USER_ID"""
import asyncio
import json
import sys

from waste_reminder.db.session import async_session_maker, engine
from waste_reminder.services.diagnostics import diagnose_user


async def main():
    if len(sys.argv) < 2 or not sys.argv[1].isdigit():
        print("Usage: python scripts/diagnose_notifications.py USER_ID")
        return 1
    user_id = int(sys.argv[1])
    try:
        async with async_session_maker() as session:
            diagnosis = await diagnose_user(session, user_id)
    finally:
        await engine.dispose()
    if diagnosis is None:
        print("User {} not found".format(user_id))
        return 1
    print(json.dumps(diagnosis.model_dump(), indent=2, ensure_ascii=False, default=str))
    print()
    if diagnosis.would_receive_notification:
        print("OK: user would receive a notification in the current slot")
    else:
        print("Blocked by:")
        for issue in diagnosis.issues:
            print("  -", issue)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
