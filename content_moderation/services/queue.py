"""Moderation queue adapter storing verdicts for human review."""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from redis.asyncio import Redis

from ..core.config import get_settings
from ..core.errors import QueueItemNotFoundError
from ..models import (
    ContentType,
    ModerationPriority,
    ModerationResult,
    ModerationSeverity,
    ModerationStatus,
)
from ..schemas.moderation import ModerationResultSchema, QueueItemSchema

logger = logging.getLogger(__name__)


def determine_priority(result: ModerationResult, report_count: int = 0) -> ModerationPriority:
    if result.severity == ModerationSeverity.CRITICAL or report_count >= 5:
        return ModerationPriority.CRITICAL
    if result.severity == ModerationSeverity.HIGH or report_count >= 3:
        return ModerationPriority.HIGH
    if result.severity == ModerationSeverity.MEDIUM or report_count >= 1:
        return ModerationPriority.MEDIUM
    return ModerationPriority.LOW


def needs_review(result: ModerationResult) -> bool:
    return result.requires_human_review or result.status in (
        ModerationStatus.FLAGGED,
        ModerationStatus.REJECTED,
    )


@dataclass(slots=True)
class QueueStatistics:
    total_processed: int = 0
    approved: int = 0
    rejected: int = 0
    flagged: int = 0
    pending: int = 0
    pii_detected: int = 0
    awaiting_review: int = 0

    @property
    def auto_approval_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.approved / self.total_processed

    @property
    def human_review_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return (self.flagged + self.pending) / self.total_processed


class QueueStore(Protocol):
    async def save(self, content_id: str, payload: str) -> None: ...

    async def load(self, content_id: str) -> str | None: ...

    async def load_all(self) -> list[str]: ...

    async def enqueue(self, content_id: str, priority: ModerationPriority, enqueued_at: datetime) -> None: ...

    async def dequeue(self, content_id: str) -> None: ...

    async def queued_ids(self) -> list[str]: ...

    async def close(self) -> None: ...


class InMemoryQueueStore:
    """Queue store that mimics the Redis layout for tests and single-process use."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._queue: dict[str, tuple[int, datetime, int]] = {}
        self._counter = itertools.count()

    async def save(self, content_id: str, payload: str) -> None:
        self._records[content_id] = payload

    async def load(self, content_id: str) -> str | None:
        return self._records.get(content_id)

    async def load_all(self) -> list[str]:
        return list(self._records.values())

    async def enqueue(self, content_id: str, priority: ModerationPriority, enqueued_at: datetime) -> None:
        self._queue[content_id] = (priority.sort_order, enqueued_at, next(self._counter))

    async def dequeue(self, content_id: str) -> None:
        self._queue.pop(content_id, None)

    async def queued_ids(self) -> list[str]:
        return [content_id for content_id, _ in sorted(self._queue.items(), key=lambda item: item[1])]

    async def close(self) -> None:
        return None


class RedisQueueStore:
    """Records in a hash, review order in a sorted set scored by priority then age."""

    _PRIORITY_SPAN = 10**12

    def __init__(self, client: Any, *, key_prefix: str) -> None:
        self._client = client
        self._records_key = f"{key_prefix}:results"
        self._queue_key = f"{key_prefix}:queue"

    async def save(self, content_id: str, payload: str) -> None:
        await self._client.hset(self._records_key, content_id, payload)

    async def load(self, content_id: str) -> str | None:
        raw = await self._client.hget(self._records_key, content_id)
        if isinstance(raw, bytes):
            raw = raw.decode()
        return raw

    async def load_all(self) -> list[str]:
        raw = await self._client.hvals(self._records_key)
        return [item.decode() if isinstance(item, bytes) else item for item in raw]

    async def enqueue(self, content_id: str, priority: ModerationPriority, enqueued_at: datetime) -> None:
        score = priority.sort_order * self._PRIORITY_SPAN + enqueued_at.timestamp()
        await self._client.zadd(self._queue_key, {content_id: score})

    async def dequeue(self, content_id: str) -> None:
        await self._client.zrem(self._queue_key, content_id)

    async def queued_ids(self) -> list[str]:
        raw = await self._client.zrange(self._queue_key, 0, -1)
        return [item.decode() if isinstance(item, bytes) else item for item in raw]

    async def close(self) -> None:
        await self._client.aclose()


class ModerationQueue:
    """Persists every verdict and keeps those needing a moderator in priority order."""

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        key_prefix: str | None = None,
        store: QueueStore | None = None,
    ) -> None:
        settings = get_settings()
        redis_url = redis_url or settings.redis_url
        if store is not None:
            self._store = store
        elif redis_url:
            client = Redis.from_url(redis_url, decode_responses=True)
            self._store = RedisQueueStore(client, key_prefix=key_prefix or settings.queue_key_prefix)
        else:
            self._store = InMemoryQueueStore()

    async def aclose(self) -> None:
        await self._store.close()

    async def submit(
        self,
        result: ModerationResult,
        *,
        author_id: str | None = None,
        report_count: int = 0,
    ) -> QueueItemSchema:
        enqueued_at = datetime.now(timezone.utc)
        item = QueueItemSchema(
            content_id=result.content_id,
            priority=determine_priority(result, report_count),
            report_count=report_count,
            author_id=author_id,
            queued=needs_review(result),
            enqueued_at=enqueued_at,
            result=ModerationResultSchema.model_validate(result),
        )
        await self._store.save(item.content_id, item.model_dump_json())
        if item.queued:
            await self._store.enqueue(item.content_id, item.priority, enqueued_at)
            logger.info(
                "queued %s for review (priority=%s, status=%s)",
                item.content_id,
                item.priority,
                result.status,
            )
        return item

    async def get(self, content_id: str) -> QueueItemSchema:
        raw = await self._store.load(content_id)
        if raw is None:
            raise QueueItemNotFoundError(content_id)
        return QueueItemSchema.model_validate_json(raw)

    async def list_items(
        self,
        *,
        priority: ModerationPriority | None = None,
        content_type: ContentType | None = None,
        status: ModerationStatus | None = None,
        limit: int = 50,
    ) -> list[QueueItemSchema]:
        """Items awaiting review, highest priority first, then oldest first."""
        items: list[QueueItemSchema] = []
        for content_id in await self._store.queued_ids():
            raw = await self._store.load(content_id)
            if raw is None:  # pragma: no cover - record removed out of band
                continue
            item = QueueItemSchema.model_validate_json(raw)
            if priority is not None and item.priority != priority:
                continue
            if content_type is not None and item.result.content_type != content_type:
                continue
            if status is not None and item.result.status != status:
                continue
            items.append(item)
            if len(items) >= limit:
                break
        return items

    async def record_review(
        self,
        content_id: str,
        *,
        reviewed_by: str,
        notes: str | None = None,
    ) -> ModerationResult:
        """Write the moderator's review back onto the stored verdict."""
        item = await self.get(content_id)
        reviewed = item.result.to_domain().with_review(reviewed_by=reviewed_by, notes=notes)
        updated = item.model_copy(
            update={"result": ModerationResultSchema.model_validate(reviewed), "queued": False}
        )
        await self._store.save(content_id, updated.model_dump_json())
        await self._store.dequeue(content_id)
        logger.info("review recorded for %s by %s", content_id, reviewed_by)
        return reviewed

    async def statistics(self) -> QueueStatistics:
        stats = QueueStatistics()
        for raw in await self._store.load_all():
            item = QueueItemSchema.model_validate_json(raw)
            stats.total_processed += 1
            if item.result.status == ModerationStatus.APPROVED:
                stats.approved += 1
            elif item.result.status == ModerationStatus.REJECTED:
                stats.rejected += 1
            elif item.result.status == ModerationStatus.FLAGGED:
                stats.flagged += 1
            else:
                stats.pending += 1
            if item.result.detected_pii:
                stats.pii_detected += 1
            if item.queued:
                stats.awaiting_review += 1
        return stats


_queue_instance: ModerationQueue | None = None


def get_moderation_queue() -> ModerationQueue:
    global _queue_instance  # noqa: PLW0603
    if _queue_instance is None:
        _queue_instance = ModerationQueue()
    return _queue_instance
