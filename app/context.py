"""
Application context: every collaborator built once from settings and passed
explicitly to the components that use it. Held on `app.state.context` in the
API process; built per task in Celery workers.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.features.regions.services.region_service import RegionService
from app.features.scan.services.crawler.page_loader import SeleniumPageLoader
from app.features.scan.services.crawler.site_crawler import CrawlOptions, SiteCrawler
from app.features.scan.services.interpretation.interpreter import InterpretationService
from app.features.scan.services.interpretation.provider import build_interpretation_provider
from app.features.scan.services.orchestration.dispatcher import Dispatcher, build_dispatcher
from app.features.scan.services.orchestration.scan_runner import ScanRunner
from app.features.scan.services.persistence.persistence_sync import (
    PersistenceSync,
    build_persistence_sync,
)
from app.features.scan.services.rules.rule_runner import RuleEngineRunner, build_checkers
from app.features.scan.services.storage.evidence_store import EvidenceStore, build_object_store
from app.features.scan.services.store.scan_store import ScanRecordStore, build_scan_store

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: object
    store: ScanRecordStore
    runner: ScanRunner
    region_service: RegionService
    persistence: PersistenceSync
    evidence_store: EvidenceStore
    interpreter: InterpretationService
    dispatcher: Optional[Dispatcher] = None

    def modes(self) -> dict:
        return {
            "queue": self.dispatcher.mode if self.dispatcher else "worker",
            "store": self.store.name,
            "evidence": (
                self.evidence_store.object_store.name
                if self.evidence_store.object_store
                else "disabled"
            ),
            "ai": self.interpreter.provider.name if self.interpreter.provider else "heuristic",
            "durable_store": self.persistence.health(),
        }

    async def aclose(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.drain()
        await self.persistence.close()
        redis = getattr(self.store, "redis", None)
        if redis is not None:
            await redis.aclose()


def build_runner(settings, store: ScanRecordStore) -> tuple:
    provider = build_interpretation_provider(settings)
    object_store = build_object_store(settings)

    evidence_store = EvidenceStore(object_store)
    interpreter = InterpretationService(
        provider=provider,
        concurrency=settings.AI_CONCURRENCY,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
    persistence = build_persistence_sync(settings)
    region_service = RegionService()

    crawler = SiteCrawler(
        loader_factory=lambda: SeleniumPageLoader(chromedriver_path=settings.CHROMEDRIVER_PATH)
    )
    runner = ScanRunner(
        store=store,
        crawler=crawler,
        evidence_store=evidence_store,
        rule_runner=RuleEngineRunner(build_checkers(settings)),
        interpreter=interpreter,
        region_service=region_service,
        persistence=persistence,
        crawl_defaults=CrawlOptions(
            max_pages=settings.SCAN_MAX_PAGES,
            same_origin_only=True,
            page_timeout=settings.PAGE_LOAD_TIMEOUT_SECONDS,
            retry_count=settings.PAGE_RETRY_COUNT,
            retry_base_delay=settings.PAGE_RETRY_BASE_DELAY_SECONDS,
        ),
        scan_timeout=settings.SCAN_TIMEOUT_SECONDS,
    )
    return runner, evidence_store, interpreter, persistence, region_service


def build_context(settings, with_dispatcher: bool = True) -> AppContext:
    store = build_scan_store(settings)
    runner, evidence_store, interpreter, persistence, region_service = build_runner(
        settings, store
    )
    dispatcher = build_dispatcher(settings, runner) if with_dispatcher else None

    context = AppContext(
        settings=settings,
        store=store,
        runner=runner,
        region_service=region_service,
        persistence=persistence,
        evidence_store=evidence_store,
        interpreter=interpreter,
        dispatcher=dispatcher,
    )
    _log_degraded_dependencies(context)
    return context


def _log_degraded_dependencies(context: AppContext) -> None:
    if context.interpreter.provider is None:
        logger.warning("OPENROUTER_API_KEY not set, issues use heuristic interpretation only")
    if context.evidence_store.object_store is None:
        logger.warning("No evidence storage configured, screenshots and HTML are not kept")
    if not context.persistence.enabled:
        logger.warning("DATABASE_URL not set, scans are not mirrored to a durable store")
    if context.store.name == "memory":
        logger.info("Scan records are held in process memory")


def get_app_context(request: Request) -> AppContext:
    return request.app.state.context
