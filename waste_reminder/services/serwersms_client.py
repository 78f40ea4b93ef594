"""
SerwerSMS API client: send one SMS via POST /messages/send_sms.json.
Auth: Bearer API token. send_sms never raises; every failure becomes SmsFailed.
"""
import logging

import httpx
from pydantic import ValidationError

from waste_reminder.config import settings
from waste_reminder.schemas.serwersms import (
    QUEUED_RESULT,
    SerwerSmsResponse,
    SmsFailed,
    SmsSendResult,
    SmsSent,
)
from waste_reminder.services.http_client import get_http_client

logger = logging.getLogger(__name__)

SEND_SMS_PATH = "/messages/send_sms.json"
DEFAULT_SENDER_NAME = "2waySMS"
UNEXPECTED_FORMAT = "Unexpected response format"


def _log_response_error(url: str, response: httpx.Response) -> None:
    """Log HTTP error without the token or message body."""
    body = (response.text or "")[:500]
    logger.warning("SerwerSMS POST %s -> %s body=%s", url, response.status_code, body)


def parse_send_response(data: object) -> SmsSendResult:
    """
    Map a decoded send_sms.json body to SmsSent / SmsFailed.
    Order matters: gateway error, then queued accept, then the first immediate item.
    """
    try:
        parsed = SerwerSmsResponse.model_validate(data)
    except ValidationError as e:
        return SmsFailed(f"Invalid response: {e.error_count()} validation error(s)")

    if parsed.error is not None:
        return SmsFailed(f"SerwerSMS error {parsed.error.code}: {parsed.error.message}")

    # Queued accept carries only a count; no item detail to report
    if parsed.success and parsed.queued and parsed.queued > 0:
        return QUEUED_RESULT

    if parsed.items:
        item = parsed.items[0]
        if item.error_code:
            return SmsFailed(f"SerwerSMS error code: {item.error_code}")
        return SmsSent(message_id=item.id, parts=item.parts, status=item.status)

    return SmsFailed(UNEXPECTED_FORMAT)


async def send_sms(
    api_token: str,
    phone_number: str,
    message: str,
    sender_name: str = DEFAULT_SENDER_NAME,
    *,
    client: httpx.AsyncClient | None = None,
    base_url: str | None = None,
) -> SmsSendResult:
    """Send one SMS. Sender name is required for FULL SMS (without it the gateway sends ECO)."""
    url = f"{(base_url or settings.serwersms_base_url).rstrip('/')}{SEND_SMS_PATH}"
    try:
        http = client or get_http_client()
        r = await http.post(
            url,
            json={"phone": phone_number, "text": message, "sender": sender_name},
            headers={"Authorization": f"Bearer {api_token}"},
        )
        if not r.is_success:
            _log_response_error(url, r)
            return SmsFailed(f"HTTP {r.status_code}: {r.reason_phrase}")
        data = r.json()
    except Exception as e:
        # Transport errors, malformed JSON, missing shared client
        logger.warning("SerwerSMS send failed: %s", e)
        return SmsFailed(str(e) or type(e).__name__)
    return parse_send_response(data)
