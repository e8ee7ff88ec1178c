"""
In-test stand-ins for the browser, rule engines, AI provider and blob store,
plus a builder for a fully wired AppContext around them.
"""
from typing import Callable, Dict, List, Optional, Tuple, Union

from app.context import AppContext
from app.features.regions.services.region_service import RegionService
from app.features.scan.schemas.scan import AutomatedFinding, PageSnapshot
from app.features.scan.services.crawler.page_loader import LoadedPage, PageLoader
from app.features.scan.services.crawler.site_crawler import CrawlOptions, SiteCrawler
from app.features.scan.services.interpretation.interpreter import InterpretationService
from app.features.scan.services.interpretation.provider import InterpretationProvider
from app.features.scan.services.orchestration.dispatcher import InlineDispatcher
from app.features.scan.services.orchestration.scan_runner import ScanRunner
from app.features.scan.services.persistence.persistence_sync import PersistenceSync
from app.features.scan.services.rules.checkers import MarkupChecker, RuleChecker
from app.features.scan.services.rules.rule_runner import RuleEngineRunner
from app.features.scan.services.storage.evidence_store import EvidenceStore, ObjectStore
from app.features.scan.services.store.scan_store import InMemoryScanRecordStore
from app.platform.config import Settings

FAKE_PNG = b"\x89PNG\r\n\x1a\nfake"

ACCESSIBLE_PAGE = """<!doctype html>
<html lang="en"><head><title>Home</title></head>
<body><h1>Welcome</h1><p>Nothing to report.</p></body></html>"""

MISSING_ALT_PAGE = """<!doctype html>
<html lang="en"><head><title>Home</title></head>
<body><h1>Welcome</h1><img src="/hero.png"></body></html>"""


def page(html: str = ACCESSIBLE_PAGE, links: Optional[List[str]] = None) -> Tuple[str, List[str]]:
    return html, links or []


async def no_sleep(_seconds: float) -> None:
    return None


class FakePageLoader(PageLoader):
    """Serves canned pages; `failures` maps url -> number of loads that fail first."""

    def __init__(self, pages: Dict[str, Tuple[str, List[str]]], failures: Optional[Dict[str, int]] = None):
        self.pages = pages
        self.failures = dict(failures or {})
        self.loaded: List[str] = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def load_page(self, url: str, timeout: float) -> LoadedPage:
        self.loaded.append(url)
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise RuntimeError(f"net::ERR_CONNECTION_RESET at {url}")
        if url not in self.pages:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        html, links = self.pages[url]
        return LoadedPage(html=html, screenshot=FAKE_PNG, links=links)

    def close(self) -> None:
        self.closed = True


class StaticChecker(RuleChecker):
    """Returns the same findings for every page, or raises."""

    def __init__(self, name: str, findings: List[AutomatedFinding] = None, error: Exception = None):
        self.name = name
        self.findings = findings or []
        self.error = error
        self.calls: List[str] = []

    def run_checks(self, snapshot: PageSnapshot) -> List[AutomatedFinding]:
        self.calls.append(snapshot.url)
        if self.error is not None:
            raise self.error
        return list(self.findings)


class FakeProvider(InterpretationProvider):
    """Replies with a fixed string, a per-call function result, or raises."""

    name = "fake"

    def __init__(self, reply: Union[str, Callable[[str], str], Exception] = ""):
        self.reply = reply
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class MemoryObjectStore(ObjectStore):
    name = "memory"

    def __init__(self, fail_on: Tuple[str, ...] = ()):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.fail_on = fail_on

    def put(self, key, body, content_type):
        if any(key.endswith(suffix) for suffix in self.fail_on):
            raise ConnectionError("bucket unavailable")
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.objects[key] = (body, content_type)


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "FORCE_IN_MEMORY_RATE_LIMITER": True,
        "OPENROUTER_API_KEY": None,
        "DATABASE_URL": None,
        "REDIS_URL": None,
        "CELERY_BROKER_URL": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def build_test_context(
    pages: Optional[Dict[str, Tuple[str, List[str]]]] = None,
    failures: Optional[Dict[str, int]] = None,
    checkers: Optional[List[RuleChecker]] = None,
    provider: Optional[InterpretationProvider] = None,
    object_store: Optional[ObjectStore] = None,
    persistence: Optional[PersistenceSync] = None,
    settings: Optional[Settings] = None,
) -> AppContext:
    settings = settings or make_settings()
    store = InMemoryScanRecordStore()
    loaders: List[FakePageLoader] = []

    def loader_factory() -> FakePageLoader:
        loader = FakePageLoader(pages or {}, failures)
        loaders.append(loader)
        return loader

    evidence_store = EvidenceStore(object_store)
    interpreter = InterpretationService(provider=provider, concurrency=4, timeout=5.0)
    persistence = persistence or PersistenceSync(database_url=None)
    region_service = RegionService()

    runner = ScanRunner(
        store=store,
        crawler=SiteCrawler(loader_factory, sleep=no_sleep),
        evidence_store=evidence_store,
        rule_runner=RuleEngineRunner(checkers if checkers is not None else [MarkupChecker()]),
        interpreter=interpreter,
        region_service=region_service,
        persistence=persistence,
        crawl_defaults=CrawlOptions(page_timeout=5.0, retry_count=2, retry_base_delay=0.0),
        scan_timeout=settings.SCAN_TIMEOUT_SECONDS,
    )
    context = AppContext(
        settings=settings,
        store=store,
        runner=runner,
        region_service=region_service,
        persistence=persistence,
        evidence_store=evidence_store,
        interpreter=interpreter,
        dispatcher=InlineDispatcher(runner),
    )
    context.loaders = loaders
    return context
