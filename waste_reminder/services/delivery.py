"""
Delivery worker: drains the notification queue and sends one SMS per job.

Messages of a batch are processed one after another; each is acked or retried on its own,
so a bad message never blocks the rest of the batch. Retry timing belongs to the queue.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from waste_reminder.config import settings
from waste_reminder.core.metrics import DELIVERY_OUTCOMES
from waste_reminder.core.phone import is_valid_phone
from waste_reminder.models.notification_log import EFFECTIVE_STATUSES, NotificationStatus
from waste_reminder.schemas.serwersms import SmsFailed, SmsSendResult
from waste_reminder.services.notification_log import (
    LogAlreadyClaimed,
    create_pending_log,
    get_log_by_key,
    update_log_status,
)
from waste_reminder.services.notification_queue import NotificationQueue, QueueMessage
from waste_reminder.services.serwersms_client import send_sms
from waste_reminder.services.sms_content import format_notification, templates_for_language

logger = logging.getLogger(__name__)

SendFn = Callable[[str, str, str, str], Awaitable[SmsSendResult]]


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    ALREADY_SENT = "already_sent"
    INVALID_PHONE = "invalid_phone"
    IN_FLIGHT = "in_flight"
    STORE_ERROR = "store_error"
    GATEWAY_FAILED = "gateway_failed"
    ERROR = "error"


# Outcomes that finish the message; everything else goes back to the queue
ACK_OUTCOMES = frozenset({DeliveryOutcome.SENT, DeliveryOutcome.ALREADY_SENT, DeliveryOutcome.INVALID_PHONE})


async def _release_log(session, log_id: int, error: Exception) -> None:
    """Mark the log failed after an unexpected error so the retry can reclaim it at once."""
    try:
        await session.rollback()
        await update_log_status(
            session, log_id, NotificationStatus.FAILED, error_message=str(error) or type(error).__name__
        )
    except Exception as e:
        logger.error("Could not mark notification log %s failed: %s", log_id, e)


async def handle_message(
    message: QueueMessage,
    session_maker: async_sessionmaker,
    *,
    api_token: str,
    sender_name: str,
    pacing_seconds: float,
    send: SendFn = send_sms,
) -> DeliveryOutcome:
    job = message.job

    # Bad upstream data; retrying cannot fix it
    if not is_valid_phone(job.phone):
        logger.error("Invalid phone format for user %s: %s", job.user_id, job.phone)
        return DeliveryOutcome.INVALID_PHONE

    async with session_maker() as session:
        existing = await get_log_by_key(
            session, job.user_id, job.address_id, job.scheduled_date, job.notification_preference_id
        )
        if existing is not None and existing.status in EFFECTIVE_STATUSES:
            logger.info("Notification already sent for user %s (log %s)", job.user_id, existing.id)
            return DeliveryOutcome.ALREADY_SENT

        sms_content = format_notification(
            [wt.waste_type_name for wt in job.waste_types],
            job.city_name,
            job.street_name,
            job.scheduled_date,
            job.notification_type,
            templates_for_language(job.language),
        )

        try:
            log = await create_pending_log(
                session,
                user_id=job.user_id,
                address_id=job.address_id,
                notification_preference_id=job.notification_preference_id,
                waste_type_ids=[wt.waste_type_id for wt in job.waste_types],
                scheduled_date=job.scheduled_date,
                phone_number=job.phone,
                sms_content=sms_content,
            )
        except LogAlreadyClaimed as e:
            if e.status in EFFECTIVE_STATUSES:
                logger.info("Notification already sent for user %s (log %s)", job.user_id, e.log_id)
                return DeliveryOutcome.ALREADY_SENT
            logger.info("Notification log %s for user %s is being delivered elsewhere", e.log_id, job.user_id)
            return DeliveryOutcome.IN_FLIGHT
        except SQLAlchemyError as e:
            logger.error("Failed to create notification log for user %s: %s", job.user_id, e)
            return DeliveryOutcome.STORE_ERROR
        log_id = log.id

        try:
            await asyncio.sleep(pacing_seconds)
            result = await send(api_token, job.phone, sms_content, sender_name)

            if isinstance(result, SmsFailed):
                await update_log_status(session, log_id, NotificationStatus.FAILED, error_message=result.error)
                logger.warning(
                    "SMS to user %s failed (log %s, attempt %s): %s",
                    job.user_id,
                    log_id,
                    message.attempts,
                    result.error,
                )
                return DeliveryOutcome.GATEWAY_FAILED

            await update_log_status(
                session,
                log_id,
                NotificationStatus.SENT,
                serwersms_status=result.status,
                serwersms_message_id=result.message_id,
                message_parts=result.parts,
            )
        except Exception as e:
            # A pending row would block redeliveries until it goes stale
            await _release_log(session, log_id, e)
            raise
        logger.info(
            "SMS sent to user %s (log %s, id=%s, parts=%s, status=%s)",
            job.user_id,
            log_id,
            result.message_id,
            result.parts,
            result.status,
        )
        return DeliveryOutcome.SENT


async def process_batch(
    messages: Sequence[QueueMessage],
    queue: NotificationQueue,
    session_maker: async_sessionmaker,
    *,
    api_token: str | None = None,
    sender_name: str | None = None,
    pacing_seconds: float | None = None,
    send: SendFn = send_sms,
) -> list[DeliveryOutcome]:
    """Handle messages sequentially, acking or retrying each. Never raises."""
    api_token = settings.serwersms_api_token if api_token is None else api_token
    sender_name = sender_name or settings.serwersms_sender_name
    pacing_seconds = settings.sms_pacing_seconds if pacing_seconds is None else pacing_seconds

    outcomes: list[DeliveryOutcome] = []
    for message in messages:
        try:
            outcome = await handle_message(
                message,
                session_maker,
                api_token=api_token,
                sender_name=sender_name,
                pacing_seconds=pacing_seconds,
                send=send,
            )
        except Exception as e:
            logger.exception("Queue processing error for message %s: %s", message.id, e)
            outcome = DeliveryOutcome.ERROR
        try:
            if outcome in ACK_OUTCOMES:
                await queue.ack(message)
            else:
                await queue.retry(message)
        except Exception as e:
            # Unacked messages reappear after the visibility timeout
            logger.exception("Queue ack/retry failed for message %s: %s", message.id, e)
        DELIVERY_OUTCOMES.labels(outcome=outcome.value).inc()
        outcomes.append(outcome)
    return outcomes


async def drain_queue_once(
    queue: NotificationQueue,
    session_maker: async_sessionmaker,
    batch_size: int | None = None,
    **kwargs,
) -> list[DeliveryOutcome]:
    """Receive one batch and process it. Returns the outcomes (empty when the queue is idle)."""
    messages = await queue.receive(batch_size or settings.queue_batch_size)
    if not messages:
        return []
    logger.debug("Delivery: received %s messages", len(messages))
    return await process_batch(messages, queue, session_maker, **kwargs)


async def run_consumer_job() -> None:
    """Scheduled job: drain one batch. Receive failures are logged; messages stay queued."""
    from waste_reminder.db.session import async_session_maker
    from waste_reminder.services.notification_queue import get_notification_queue

    try:
        await drain_queue_once(get_notification_queue(), async_session_maker)
    except Exception as e:
        logger.exception("Delivery: consumer run failed: %s", e)
