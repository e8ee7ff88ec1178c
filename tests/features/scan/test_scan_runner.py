import asyncio
import json

import pytest

from app.features.regions.schemas.region import BusinessCategory
from app.features.scan.schemas.scan import RiskCategory, ScanOptions, ScanStatus
from app.features.scan.services.crawler.site_crawler import SiteCrawler
from app.features.scan.services.orchestration.scan_runner import describe_error
from app.features.scan.services.storage.evidence_store import evidence_base_key
from app.platform.exceptions import CrawlError
from tests.fakes import (
    MISSING_ALT_PAGE,
    FakePageLoader,
    FakeProvider,
    MemoryObjectStore,
    StaticChecker,
    build_test_context,
    page,
)

SITE = "https://example.org/"


async def run_scan(context, site_url=SITE, options=None):
    options = options or ScanOptions(max_pages=5)
    record = await context.store.create(site_url, options)
    return await context.runner.execute(record.id, site_url, options)


@pytest.mark.asyncio
async def test_single_accessible_page_completes():
    context = build_test_context(pages={SITE: page()})

    record = await run_scan(context)

    assert record.status == ScanStatus.completed
    assert record.page_count == 1
    assert record.issues == []
    assert record.risk_score == 0
    assert record.completed_at is not None
    assert record.error_message is None
    assert (await context.store.get(record.id)) == record


@pytest.mark.asyncio
async def test_missing_alt_reported_as_legal_issue():
    context = build_test_context(pages={SITE: page(MISSING_ALT_PAGE)})

    record = await run_scan(context)

    assert record.status == ScanStatus.completed
    [issue] = record.issues
    assert issue.criterion_id == "1.1.1"
    assert issue.risk_category == RiskCategory.LEGAL
    assert issue.needs_human_review is True
    assert issue.page_url == SITE
    assert record.risk_score == 100


@pytest.mark.asyncio
async def test_ai_interpretation_used_when_valid():
    reply = json.dumps(
        {
            "title": "Hero image has no description",
            "explanation": "Blind visitors hear only the file name.",
            "recommendation": "Describe the hero image in its alt attribute.",
            "riskCategory": "USABILITY",
            "confidence": 0.85,
            "needsHumanReview": False,
        }
    )
    context = build_test_context(pages={SITE: page(MISSING_ALT_PAGE)}, provider=FakeProvider(reply))

    record = await run_scan(context)

    [issue] = record.issues
    assert issue.title == "Hero image has no description"
    assert issue.risk_category == RiskCategory.USABILITY
    assert record.risk_score == 67


@pytest.mark.asyncio
async def test_multi_page_crawl_counts_pages():
    pages = {
        SITE: page(links=["/about", "/contact"]),
        SITE + "about": page(MISSING_ALT_PAGE),
        SITE + "contact": page(),
    }
    context = build_test_context(pages=pages)

    record = await run_scan(context, options=ScanOptions(max_pages=2))

    assert record.page_count == 2
    assert [i.page_url for i in record.issues] == [SITE + "about"]


@pytest.mark.asyncio
async def test_unreachable_site_completes_with_no_pages():
    context = build_test_context(pages={})

    record = await run_scan(context)

    assert record.status == ScanStatus.completed
    assert record.page_count == 0
    assert record.risk_score == 0


@pytest.mark.asyncio
async def test_browser_startup_failure_marks_scan_failed():
    context = build_test_context(pages={SITE: page()})

    class BrokenLoader(FakePageLoader):
        def open(self):
            raise CrawlError("Could not start browser session: chrome not found")

    context.runner.crawler = SiteCrawler(lambda: BrokenLoader({}))

    record = await run_scan(context)

    assert record.status == ScanStatus.failed
    assert record.error_message == "Could not start browser session: chrome not found"
    assert record.completed_at is not None
    assert record.issues == []


@pytest.mark.asyncio
async def test_unexpected_error_marks_scan_failed():
    context = build_test_context(pages={SITE: page()})

    async def explode(*args, **kwargs):
        raise RuntimeError("disk full")

    context.runner.evidence_store.store_snapshots = explode

    record = await run_scan(context)

    assert record.status == ScanStatus.failed
    assert record.error_message == "Scan failed: disk full"
    assert (await context.store.get(record.id)).status == ScanStatus.failed


@pytest.mark.asyncio
async def test_failing_checker_does_not_fail_scan():
    context = build_test_context(
        pages={SITE: page()},
        checkers=[StaticChecker("axe", error=RuntimeError("axe crashed"))],
    )

    record = await run_scan(context)

    assert record.status == ScanStatus.completed
    assert record.issues == []


@pytest.mark.asyncio
async def test_concurrent_scans_do_not_interfere():
    pages = {
        SITE: page(MISSING_ALT_PAGE),
        "https://example.com/": page(),
    }
    context = build_test_context(pages=pages)

    first, second = await asyncio.gather(
        run_scan(context, SITE),
        run_scan(context, "https://example.com/"),
    )

    assert len(first.issues) == 1
    assert second.issues == []
    assert first.id != second.id


@pytest.mark.asyncio
async def test_jurisdiction_assessment_attached():
    context = build_test_context(pages={SITE: page(MISSING_ALT_PAGE)})
    options = ScanOptions(
        max_pages=1, jurisdiction_code="CA", business_category=BusinessCategory.publicAccommodation
    )

    record = await run_scan(context, options=options)

    assessment = record.jurisdiction_assessment
    assert assessment.region_code == "CA"
    assert assessment.risk_level == "critical"
    assert assessment.demand_letter_likelihood == "high"
    assert assessment.estimated_exposure.startswith("$4,000 - $8,000")


@pytest.mark.asyncio
async def test_unknown_jurisdiction_skips_assessment():
    context = build_test_context(pages={SITE: page()})

    record = await run_scan(context, options=ScanOptions(jurisdiction_code="ZZ"))

    assert record.status == ScanStatus.completed
    assert record.jurisdiction_assessment is None


@pytest.mark.asyncio
async def test_evidence_keys_attached_to_issues():
    objects = MemoryObjectStore()
    context = build_test_context(pages={SITE: page(MISSING_ALT_PAGE)}, object_store=objects)

    record = await run_scan(context)

    [issue] = record.issues
    assert issue.screenshot_key == evidence_base_key(record.id, SITE) + ".png"
    assert issue.html_key in objects.objects


@pytest.mark.asyncio
async def test_unavailable_blob_storage_keeps_every_issue():
    objects = MemoryObjectStore(fail_on=(".png", ".html"))
    pages = {
        SITE: page(MISSING_ALT_PAGE, links=["/about"]),
        SITE + "about": page(MISSING_ALT_PAGE),
    }
    context = build_test_context(pages=pages, object_store=objects)

    record = await run_scan(context)

    assert record.status == ScanStatus.completed
    assert [i.page_url for i in record.issues] == [SITE, SITE + "about"]
    for issue in record.issues:
        assert issue.screenshot_key is None
        assert issue.html_key is None
    assert objects.objects == {}


@pytest.mark.asyncio
async def test_rescanning_same_site_gives_same_issue_order():
    busy_page = """<!doctype html>
<html><head></head>
<body><h3>Deep heading</h3><img src="/a.png"><img src="/b.png">
<input type="text" name="email"><a href="/x"></a><button></button></body></html>"""
    pages = {
        SITE: page(busy_page, links=["/about", "/contact"]),
        SITE + "about": page(MISSING_ALT_PAGE),
        SITE + "contact": page(busy_page),
    }
    context = build_test_context(pages=pages)

    first = await run_scan(context)
    second = await run_scan(context)

    assert len(first.issues) > 5
    assert [i.id for i in first.issues] == [i.id for i in second.issues]
    assert [i.page_url for i in first.issues] == [i.page_url for i in second.issues]


@pytest.mark.asyncio
async def test_terminal_scan_is_not_rerun():
    context = build_test_context(pages={SITE: page()})
    record = await run_scan(context)

    again = await context.runner.execute(record.id, SITE, ScanOptions())

    assert again == record
    assert len(context.loaders) == 1


@pytest.mark.asyncio
async def test_unknown_scan_id_is_ignored():
    context = build_test_context(pages={SITE: page()})

    assert await context.runner.execute("missing", SITE) is None
    assert context.loaders == []


@pytest.mark.asyncio
async def test_terminal_record_mirrored():
    mirrored = []

    class RecordingSync:
        async def mirror(self, record):
            mirrored.append(record)
            return True

    context = build_test_context(pages={SITE: page()})
    context.runner.persistence = RecordingSync()

    record = await run_scan(context)

    assert [r.status for r in mirrored] == [ScanStatus.completed]
    assert mirrored[0].id == record.id


def test_describe_error():
    assert describe_error(CrawlError("Could not start browser session")) == (
        "Could not start browser session"
    )
    assert describe_error(RuntimeError("boom")) == "Scan failed: boom"
    assert describe_error(TimeoutError()) == "Scan failed: TimeoutError"
