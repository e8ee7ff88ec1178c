import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

from celery import Celery
from fastapi.concurrency import run_in_threadpool

from app.features.scan.schemas.scan import ScanOptions
from app.features.scan.services.orchestration.scan_runner import ScanRunner
from app.platform.celery_app import RUN_SCAN_TASK, SCAN_QUEUE
from app.platform.celery_app import celery_app as default_celery_app

logger = logging.getLogger(__name__)


class Dispatcher(ABC):
    """Hands a created scan over for asynchronous execution."""

    mode: str = "dispatcher"

    @abstractmethod
    async def enqueue(self, scan_id: str, site_url: str, options: ScanOptions) -> None:
        ...

    async def drain(self) -> None:
        """Wait for locally running scans; no-op when execution is remote."""


class InlineDispatcher(Dispatcher):
    """Runs scans as asyncio tasks inside the API process."""

    mode = "inline"

    def __init__(self, runner: ScanRunner):
        self.runner = runner
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def enqueue(self, scan_id: str, site_url: str, options: ScanOptions) -> None:
        task = asyncio.create_task(self._run(scan_id, site_url, options), name=f"scan-{scan_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"[{scan_id}] Scan scheduled inline")

    async def drain(self) -> None:
        if self.in_flight:
            logger.info(f"Waiting for {self.in_flight} in-flight inline scans")
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, scan_id: str, site_url: str, options: ScanOptions) -> None:
        try:
            await self.runner.execute(scan_id, site_url, options)
        except Exception as e:
            logger.exception(f"[{scan_id}] Inline scan crashed outside the pipeline: {e}")


class QueueDispatcher(Dispatcher):
    """
    Publishes `run_scan_job` to Celery. If the broker rejects the publish
    after its retries, the scan runs inline instead of being lost.
    """

    mode = "queue"

    def __init__(
        self,
        celery_app: Celery,
        fallback: InlineDispatcher,
        publish_retries: int = 2,
        retry_delay: float = 5.0,
    ):
        self.celery_app = celery_app
        self.fallback = fallback
        self.retry_policy = {
            "max_retries": publish_retries,
            "interval_start": retry_delay,
            "interval_step": 0,
            "interval_max": retry_delay,
        }

    async def enqueue(self, scan_id: str, site_url: str, options: ScanOptions) -> None:
        try:
            await run_in_threadpool(
                self.celery_app.send_task,
                RUN_SCAN_TASK,
                kwargs={
                    "scan_id": scan_id,
                    "site_url": site_url,
                    "options": options.model_dump(mode="json"),
                },
                queue=SCAN_QUEUE,
                retry=True,
                retry_policy=self.retry_policy,
            )
            logger.info(f"[{scan_id}] Scan queued on {SCAN_QUEUE}")
        except Exception as e:
            logger.error(f"[{scan_id}] Queue publish failed, executing scan inline: {e}")
            await self.fallback.enqueue(scan_id, site_url, options)

    async def drain(self) -> None:
        await self.fallback.drain()


def broker_reachable(celery_app: Celery, timeout: float = 3.0) -> bool:
    try:
        with celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1, timeout=timeout)
        return True
    except Exception as e:
        logger.warning(f"Celery broker unreachable: {e}")
        return False


def build_dispatcher(
    settings,
    runner: ScanRunner,
    celery_app: Optional[Celery] = None,
) -> Dispatcher:
    inline = InlineDispatcher(runner)
    if not settings.CELERY_BROKER_URL:
        logger.info("No Celery broker configured, scans run inline")
        return inline
    if not settings.REDIS_URL:
        logger.warning("Celery broker set without REDIS_URL; workers could not share scan state, scans run inline")
        return inline

    celery_app = celery_app or default_celery_app
    if not broker_reachable(celery_app):
        logger.warning("Celery broker unreachable at startup, scans run inline")
        return inline

    return QueueDispatcher(
        celery_app,
        fallback=inline,
        publish_retries=settings.QUEUE_PUBLISH_RETRIES,
        retry_delay=settings.QUEUE_RETRY_DELAY_SECONDS,
    )
