import logging
import time
from typing import Optional

from app.features.regions.schemas.region import BusinessCategory
from app.features.regions.services.region_service import RegionService
from app.features.scan.schemas.scan import (
    RiskCategory,
    ScanOptions,
    ScanRecord,
    ScanStatus,
    utcnow,
)
from app.features.scan.services.crawler.site_crawler import CrawlOptions, SiteCrawler
from app.features.scan.services.interpretation.interpreter import InterpretationService
from app.features.scan.services.persistence.persistence_sync import PersistenceSync
from app.features.scan.services.rules.rule_runner import RuleEngineRunner
from app.features.scan.services.scoring.risk_scorer import score
from app.features.scan.services.storage.evidence_store import EvidenceStore
from app.features.scan.services.store.scan_store import ScanRecordStore
from app.platform.exceptions import CrawlError

logger = logging.getLogger(__name__)


def describe_error(exc: Exception) -> str:
    if isinstance(exc, CrawlError):
        return str(exc)
    message = str(exc) or exc.__class__.__name__
    return f"Scan failed: {message}"


class ScanRunner:
    """
    Executes one scan end to end:
    crawl -> evidence -> rule checks -> interpretation -> score ->
    jurisdiction overlay -> completed record -> durable mirror.

    This is the only place that moves a scan to `failed`.
    """

    def __init__(
        self,
        store: ScanRecordStore,
        crawler: SiteCrawler,
        evidence_store: EvidenceStore,
        rule_runner: RuleEngineRunner,
        interpreter: InterpretationService,
        region_service: RegionService,
        persistence: Optional[PersistenceSync] = None,
        crawl_defaults: Optional[CrawlOptions] = None,
        scan_timeout: float = 45.0,
    ):
        self.store = store
        self.crawler = crawler
        self.evidence_store = evidence_store
        self.rule_runner = rule_runner
        self.interpreter = interpreter
        self.region_service = region_service
        self.persistence = persistence
        self.crawl_defaults = crawl_defaults or CrawlOptions()
        self.scan_timeout = scan_timeout

    async def execute(
        self,
        scan_id: str,
        site_url: str,
        options: Optional[ScanOptions] = None,
    ) -> Optional[ScanRecord]:
        options = options or ScanOptions()

        current = await self.store.get(scan_id)
        if current is None:
            logger.error(f"[{scan_id}] No scan record found, nothing to execute")
            return None
        if current.status.is_terminal:
            logger.info(f"[{scan_id}] Scan already {current.status.value}, skipping re-run")
            return current

        started = time.monotonic()
        await self.store.set_status(scan_id, ScanStatus.running)
        logger.info(f"[{scan_id}] Scan started for {site_url} (max {options.max_pages} pages)")

        try:
            record = await self._run_pipeline(scan_id, site_url, options)
            logger.info(
                f"[{scan_id}] Scan completed: {record.page_count} pages, "
                f"{len(record.issues)} issues, risk score {record.risk_score}"
            )
        except Exception as e:
            logger.exception(f"[{scan_id}] Scan execution failed: {e}")
            record = await self.store.set_status(
                scan_id, ScanStatus.failed, error_message=describe_error(e)
            )

        elapsed = time.monotonic() - started
        if elapsed > self.scan_timeout:
            logger.warning(
                f"[{scan_id}] Scan exceeded timeout budget: {elapsed:.1f}s > {self.scan_timeout}s"
            )

        if self.persistence is not None:
            await self.persistence.mirror(record)
        return record

    async def _run_pipeline(self, scan_id: str, site_url: str, options: ScanOptions) -> ScanRecord:
        crawl_options = self.crawl_defaults.model_copy(update={"max_pages": options.max_pages})
        snapshots = await self.crawler.crawl(site_url, crawl_options, scan_id=scan_id)

        evidence = await self.evidence_store.store_snapshots(snapshots, scan_id)
        findings = await self.rule_runner.run_checks(snapshots, scan_id=scan_id)
        issues = await self.interpreter.interpret_all(findings, evidence, scan_id=scan_id)
        risk_score = score(issues)

        assessment = None
        if options.jurisdiction_code:
            legal_issue_count = sum(1 for i in issues if i.risk_category == RiskCategory.LEGAL)
            assessment = self.region_service.assess(
                options.jurisdiction_code,
                options.business_category or BusinessCategory.other,
                total_issues=len(issues),
                legal_issue_count=legal_issue_count,
            )
            if assessment is None:
                logger.warning(
                    f"[{scan_id}] No region profile for {options.jurisdiction_code}, "
                    f"skipping jurisdiction assessment"
                )

        return await self.store.update(
            scan_id,
            issues=issues,
            page_count=len(snapshots),
            risk_score=risk_score,
            jurisdiction_assessment=assessment,
            status=ScanStatus.completed,
            completed_at=utcnow(),
        )
