#!/usr/bin/env python3
"""One-off: send a single SMS through SerwerSMS and print the result.
Usage: SERWERSMS_API_TOKEN=your_token python scripts/send_test_sms.py 600123456 ["message text"]"""
import asyncio
import sys

import httpx

from waste_reminder.config import settings
from waste_reminder.core.phone import PhoneValidationError, compact_phone, normalize_phone
from waste_reminder.schemas.serwersms import SmsSent
from waste_reminder.services.serwersms_client import send_sms

DEFAULT_TEXT = "Test SMS z systemu przypomnień o wywozie śmieci."


async def main():
    if not settings.serwersms_api_token:
        print("Set SERWERSMS_API_TOKEN in environment")
        return 1
    if len(sys.argv) < 2:
        print("Usage: python scripts/send_test_sms.py PHONE [TEXT]")
        return 1
    try:
        phone = compact_phone(normalize_phone(sys.argv[1]))
    except PhoneValidationError as e:
        print("Invalid phone:", e)
        return 1
    text = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_TEXT

    print("=== POST send_sms.json to {} (sender {}) ===".format(phone, settings.serwersms_sender_name))
    async with httpx.AsyncClient(timeout=settings.serwersms_timeout_seconds) as client:
        result = await send_sms(
            settings.serwersms_api_token,
            phone,
            text,
            settings.serwersms_sender_name,
            client=client,
            base_url=settings.serwersms_base_url,
        )
    if isinstance(result, SmsSent):
        print("Sent: message_id={} parts={} status={}".format(result.message_id, result.parts, result.status))
        return 0
    print("Failed:", result.error)
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
