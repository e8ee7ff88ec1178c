"""
Scan record stores.

The store is the authoritative copy of every scan. Each update is an atomic
read-modify-write on a single record, so the API can read while a pipeline
writes without ever observing a half-applied change.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from redis.asyncio import Redis

from app.features.scan.schemas.scan import (
    IssueRecord,
    ScanOptions,
    ScanRecord,
    ScanStatus,
    utcnow,
)
from app.platform.db.base import new_id
from app.platform.exceptions import ScanNotFoundError

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = {"id", "site_url"}


class ScanRecordStore(ABC):
    name: str = "store"

    @abstractmethod
    async def _load(self, scan_id: str) -> Optional[ScanRecord]:
        ...

    @abstractmethod
    async def _save(self, record: ScanRecord) -> None:
        ...

    @abstractmethod
    def _lock(self, scan_id: str):
        """Async context manager serialising writers of one record."""

    async def ping(self) -> bool:
        return True

    async def create(self, site_url: str, options: Optional[ScanOptions] = None) -> ScanRecord:
        options = options or ScanOptions()
        record = ScanRecord(
            id=new_id(),
            site_url=site_url,
            status=ScanStatus.pending,
            started_at=utcnow(),
            max_pages=options.max_pages,
            jurisdiction_code=options.jurisdiction_code,
            business_category=options.business_category,
        )
        await self._save(record)
        return record.model_copy(deep=True)

    async def get(self, scan_id: str) -> Optional[ScanRecord]:
        record = await self._load(scan_id)
        return record.model_copy(deep=True) if record else None

    async def update(self, scan_id: str, **changes) -> ScanRecord:
        blocked = IMMUTABLE_FIELDS.intersection(changes)
        if blocked:
            raise ValueError(f"Cannot update immutable fields: {', '.join(sorted(blocked))}")

        async with self._lock(scan_id):
            current = await self._load(scan_id)
            if current is None:
                raise ScanNotFoundError(scan_id)
            updated = ScanRecord.model_validate({**dict(current), **changes})
            await self._save(updated)
        return updated.model_copy(deep=True)

    async def set_status(
        self,
        scan_id: str,
        status: ScanStatus,
        error_message: Optional[str] = None,
    ) -> ScanRecord:
        changes = {"status": status}
        if status.is_terminal:
            changes["completed_at"] = utcnow()
        if error_message is not None:
            changes["error_message"] = error_message
        return await self.update(scan_id, **changes)

    async def save_issues(self, scan_id: str, issues: List[IssueRecord]) -> ScanRecord:
        async with self._lock(scan_id):
            current = await self._load(scan_id)
            if current is None:
                raise ScanNotFoundError(scan_id)
            pages_with_issues = len({issue.page_url for issue in issues})
            updated = current.model_copy(
                update={
                    "issues": [issue.model_copy(deep=True) for issue in issues],
                    "page_count": max(current.page_count, pages_with_issues),
                },
                deep=True,
            )
            await self._save(updated)
        return updated.model_copy(deep=True)


class InMemoryScanRecordStore(ScanRecordStore):
    """Process-local store; scans are lost on restart."""

    name = "memory"

    def __init__(self):
        self._records: Dict[str, ScanRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _load(self, scan_id: str) -> Optional[ScanRecord]:
        return self._records.get(scan_id)

    async def _save(self, record: ScanRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    def _lock(self, scan_id: str):
        return self._locks[scan_id]


class RedisScanRecordStore(ScanRecordStore):
    """
    JSON documents under `scan:<id>`, shared between the API process and
    Celery workers. Records are kept without expiry.
    """

    name = "redis"
    KEY_PREFIX = "scan:"
    LOCK_PREFIX = "scan-lock:"
    LOCK_TIMEOUT_SECONDS = 10
    LOCK_WAIT_SECONDS = 5

    def __init__(self, redis: Redis):
        self.redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RedisScanRecordStore":
        return cls(Redis.from_url(url, encoding="utf-8", decode_responses=True))

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def _load(self, scan_id: str) -> Optional[ScanRecord]:
        raw = await self.redis.get(f"{self.KEY_PREFIX}{scan_id}")
        if raw is None:
            return None
        return ScanRecord.model_validate_json(raw)

    async def _save(self, record: ScanRecord) -> None:
        await self.redis.set(f"{self.KEY_PREFIX}{record.id}", record.model_dump_json())

    @asynccontextmanager
    async def _lock(self, scan_id: str):
        lock = self.redis.lock(
            f"{self.LOCK_PREFIX}{scan_id}",
            timeout=self.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=self.LOCK_WAIT_SECONDS,
        )
        async with lock:
            yield


def build_scan_store(settings) -> ScanRecordStore:
    if settings.REDIS_URL:
        return RedisScanRecordStore.from_url(settings.REDIS_URL)
    return InMemoryScanRecordStore()
