import asyncio
import logging
from typing import Any, Dict, Optional

from app.features.scan.schemas.scan import ScanOptions, ScanStatus
from app.platform.celery_app import RUN_SCAN_TASK, celery_app
from app.platform.config import settings

logger = logging.getLogger(__name__)


async def _execute_scan(scan_id: str, site_url: str, options: ScanOptions) -> Dict[str, Any]:
    from app.context import build_context

    context = build_context(settings, with_dispatcher=False)
    try:
        record = await context.runner.execute(scan_id, site_url, options)
    finally:
        await context.aclose()

    if record is None:
        return {"scan_id": scan_id, "status": None}
    return {
        "scan_id": scan_id,
        "status": record.status.value,
        "page_count": record.page_count,
        "risk_score": record.risk_score,
    }


async def _mark_failed(scan_id: str, message: str) -> None:
    from app.features.scan.services.store.scan_store import build_scan_store

    store = build_scan_store(settings)
    try:
        await store.set_status(scan_id, ScanStatus.failed, error_message=message)
    finally:
        redis = getattr(store, "redis", None)
        if redis is not None:
            await redis.aclose()


def mark_scan_failed(scan_id: str, message: str) -> None:
    """Record a final task failure on the scan; never raises."""
    try:
        asyncio.run(_mark_failed(scan_id, message))
        logger.info(f"[{scan_id}] Marked scan failed after task retries were exhausted")
    except Exception as e:
        logger.error(f"[{scan_id}] Could not mark scan failed: {e}", exc_info=True)


@celery_app.task(
    bind=True,
    name=RUN_SCAN_TASK,
    max_retries=1,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=False,
)
def run_scan_job(
    self,
    scan_id: str,
    site_url: str,
    options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Run the full scan pipeline for one scan.

    Args:
        scan_id: The scan record ID
        site_url: Start URL of the crawl
        options: Serialised ScanOptions (max pages, jurisdiction, category)

    Returns:
        Dict with the final status, page count and risk score
    """
    scan_options = ScanOptions.model_validate(options or {})
    logger.info(
        f"[{scan_id}] Worker picked up scan for {site_url} "
        f"(attempt {self.request.retries + 1}/{self.max_retries + 1})"
    )

    try:
        return asyncio.run(_execute_scan(scan_id, site_url, scan_options))
    except Exception as e:
        logger.error(f"[{scan_id}] Scan task failed: {e}")
        if self.request.retries >= self.max_retries:
            mark_scan_failed(scan_id, f"Scan failed: {e}")
        raise
