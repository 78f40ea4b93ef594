"""
Notification queue: at-least-once delivery of NotificationJob with per-message ack/retry.

Redis layout (prefix = settings.queue_name):
  <prefix>:ready               list of envelopes waiting for a consumer
  <prefix>:inflight            hash id -> envelope for received, unacknowledged messages
  <prefix>:inflight_deadlines  zset id -> visibility deadline; expired ids go back to ready
  <prefix>:delayed             zset envelope -> time it becomes ready (retry backoff)
  <prefix>:dead                list of envelopes that exhausted queue_max_attempts
Envelope: {"id": str, "attempts": int (failed deliveries so far), "body": job in wire format}.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from waste_reminder.config import settings
from waste_reminder.schemas.notification_job import NotificationJob

logger = logging.getLogger(__name__)


@dataclass
class QueueMessage:
    id: str
    job: NotificationJob
    attempts: int = 1  # this delivery's attempt number


class NotificationQueue(Protocol):
    async def enqueue_batch(self, jobs: Sequence[NotificationJob]) -> int: ...

    async def receive(self, max_messages: int) -> list[QueueMessage]: ...

    async def ack(self, message: QueueMessage) -> None: ...

    async def retry(self, message: QueueMessage) -> None: ...


def retry_delay_seconds(attempts: int, base: float | None = None, maximum: float | None = None) -> float:
    """Exponential backoff after the given number of failed attempts."""
    base = settings.queue_retry_base_seconds if base is None else base
    maximum = settings.queue_retry_max_seconds if maximum is None else maximum
    return min(base * (2 ** max(attempts - 1, 0)), maximum)


def _envelope(message_id: str, attempts: int, job: NotificationJob) -> str:
    return json.dumps(
        {"id": message_id, "attempts": attempts, "body": job.to_wire()},
        ensure_ascii=False,
        sort_keys=True,
    )


def _decode_envelope(payload: str) -> tuple[str, int, NotificationJob]:
    data = json.loads(payload)
    return str(data["id"]), int(data.get("attempts", 0)), NotificationJob.from_wire(data["body"])


class RedisNotificationQueue:
    def __init__(
        self,
        redis,
        name: str | None = None,
        *,
        visibility_timeout: float | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis
        prefix = name or settings.queue_name
        self.ready_key = f"{prefix}:ready"
        self.inflight_key = f"{prefix}:inflight"
        self.deadlines_key = f"{prefix}:inflight_deadlines"
        self.delayed_key = f"{prefix}:delayed"
        self.dead_key = f"{prefix}:dead"
        self._visibility_timeout = (
            settings.queue_visibility_timeout_seconds if visibility_timeout is None else visibility_timeout
        )
        self._max_attempts = settings.queue_max_attempts if max_attempts is None else max_attempts
        self._clock = clock

    async def enqueue_batch(self, jobs: Sequence[NotificationJob]) -> int:
        """Push all jobs in one RPUSH so the batch lands atomically."""
        if not jobs:
            return 0
        payloads = [_envelope(uuid.uuid4().hex, 0, job) for job in jobs]
        await self._redis.rpush(self.ready_key, *payloads)
        return len(payloads)

    async def _promote_due(self, now: float) -> None:
        due = await self._redis.zrangebyscore(self.delayed_key, "-inf", now)
        for payload in due:
            # zrem result decides which worker owns the promotion
            if await self._redis.zrem(self.delayed_key, payload):
                await self._redis.rpush(self.ready_key, payload)

    async def _requeue_expired(self, now: float) -> None:
        expired = await self._redis.zrangebyscore(self.deadlines_key, "-inf", now)
        for message_id in expired:
            if not await self._redis.zrem(self.deadlines_key, message_id):
                continue
            payload = await self._redis.hget(self.inflight_key, message_id)
            await self._redis.hdel(self.inflight_key, message_id)
            if payload:
                logger.info("Queue: visibility timeout expired, redelivering message %s", message_id)
                await self._redis.rpush(self.ready_key, payload)

    async def receive(self, max_messages: int) -> list[QueueMessage]:
        now = self._clock()
        await self._promote_due(now)
        await self._requeue_expired(now)
        raw = await self._redis.lpop(self.ready_key, max_messages)
        if not raw:
            return []
        if isinstance(raw, str):
            raw = [raw]
        out: list[QueueMessage] = []
        for payload in raw:
            try:
                message_id, attempts, job = _decode_envelope(payload)
            except (ValueError, KeyError, TypeError, ValidationError) as e:
                logger.error("Queue: dropping undecodable message to dead letter: %s", e)
                await self._redis.rpush(self.dead_key, payload)
                continue
            await self._redis.hset(self.inflight_key, message_id, payload)
            await self._redis.zadd(self.deadlines_key, {message_id: now + self._visibility_timeout})
            out.append(QueueMessage(id=message_id, job=job, attempts=attempts + 1))
        return out

    async def _release(self, message: QueueMessage) -> None:
        await self._redis.hdel(self.inflight_key, message.id)
        await self._redis.zrem(self.deadlines_key, message.id)

    async def ack(self, message: QueueMessage) -> None:
        await self._release(message)

    async def retry(self, message: QueueMessage) -> None:
        await self._release(message)
        payload = _envelope(message.id, message.attempts, message.job)
        if message.attempts >= self._max_attempts:
            logger.warning(
                "Queue: message %s exhausted %s attempts, moving to dead letter", message.id, message.attempts
            )
            await self._redis.rpush(self.dead_key, payload)
            return
        ready_at = self._clock() + retry_delay_seconds(message.attempts)
        await self._redis.zadd(self.delayed_key, {payload: ready_at})


class InMemoryNotificationQueue:
    """Single-process queue with the same ack/retry/backoff semantics (development and tests)."""

    def __init__(
        self,
        *,
        visibility_timeout: float | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._ready: deque[str] = deque()
        self._delayed: list[tuple[float, str]] = []
        self._inflight: dict[str, tuple[float, str]] = {}
        self.dead_letter: list[str] = []
        self._visibility_timeout = (
            settings.queue_visibility_timeout_seconds if visibility_timeout is None else visibility_timeout
        )
        self._max_attempts = settings.queue_max_attempts if max_attempts is None else max_attempts
        self._clock = clock

    def __len__(self) -> int:
        return len(self._ready) + len(self._delayed) + len(self._inflight)

    async def enqueue_batch(self, jobs: Sequence[NotificationJob]) -> int:
        self._ready.extend(_envelope(uuid.uuid4().hex, 0, job) for job in jobs)
        return len(jobs)

    async def receive(self, max_messages: int) -> list[QueueMessage]:
        now = self._clock()
        still_delayed = []
        for ready_at, payload in sorted(self._delayed):
            if ready_at <= now:
                self._ready.append(payload)
            else:
                still_delayed.append((ready_at, payload))
        self._delayed = still_delayed
        for message_id, (deadline, payload) in list(self._inflight.items()):
            if deadline <= now:
                del self._inflight[message_id]
                self._ready.append(payload)

        out: list[QueueMessage] = []
        while self._ready and len(out) < max_messages:
            payload = self._ready.popleft()
            message_id, attempts, job = _decode_envelope(payload)
            self._inflight[message_id] = (now + self._visibility_timeout, payload)
            out.append(QueueMessage(id=message_id, job=job, attempts=attempts + 1))
        return out

    async def ack(self, message: QueueMessage) -> None:
        self._inflight.pop(message.id, None)

    async def retry(self, message: QueueMessage) -> None:
        self._inflight.pop(message.id, None)
        payload = _envelope(message.id, message.attempts, message.job)
        if message.attempts >= self._max_attempts:
            self.dead_letter.append(payload)
            return
        self._delayed.append((self._clock() + retry_delay_seconds(message.attempts), payload))


_queue: NotificationQueue | None = None
_redis_client = None


def get_notification_queue() -> NotificationQueue:
    """Return the configured queue (lazy). Redis backend shares one client per process."""
    global _queue, _redis_client
    if _queue is not None:
        return _queue
    if settings.queue_backend == "memory":
        _queue = InMemoryNotificationQueue()
        return _queue
    if settings.queue_backend != "redis":
        raise RuntimeError(f"Unknown QUEUE_BACKEND: {settings.queue_backend!r}")
    from redis.asyncio import from_url

    _redis_client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    _queue = RedisNotificationQueue(_redis_client)
    return _queue


async def close_notification_queue() -> None:
    """Close the Redis connection (e.g. on app shutdown)."""
    global _queue, _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.warning("Queue: error closing Redis: %s", e)
        _redis_client = None
    _queue = None
