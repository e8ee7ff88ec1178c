import pytest
from sqlalchemy import select

from app.features.regions.schemas.region import BusinessCategory
from app.features.scan.models.scan_record import ScanRecordRow
from app.features.scan.schemas.scan import IssueRecord, RiskCategory, ScanRecord, ScanStatus, utcnow
from app.features.scan.services.persistence.persistence_sync import (
    PersistenceSync,
    build_persistence_sync,
)
from app.platform.circuit_breaker import CircuitBreaker, CircuitState
from tests.fakes import make_settings


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def completed_record(scan_id="scan-1") -> ScanRecord:
    return ScanRecord(
        id=scan_id,
        site_url="https://example.org/",
        status=ScanStatus.completed,
        completed_at=utcnow(),
        page_count=1,
        risk_score=100,
        jurisdiction_code="CA",
        business_category=BusinessCategory.publicAccommodation,
        issues=[
            IssueRecord(
                id="abc123",
                page_url="https://example.org/",
                source="markup",
                criterion_id="1.1.1",
                title="Image missing alt text",
                explanation="Images must have alternate text",
                recommendation="Add alt text",
                risk_category=RiskCategory.LEGAL,
                confidence=0.4,
                needs_human_review=True,
            )
        ],
    )


async def fetch_row(sync: PersistenceSync, scan_id: str):
    async with sync._session_factory() as session:
        result = await session.execute(select(ScanRecordRow).where(ScanRecordRow.id == scan_id))
        return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_disabled_without_database_url():
    sync = PersistenceSync(database_url=None)

    assert sync.enabled is False
    assert sync.health() == "disabled"
    assert await sync.mirror(completed_record()) is False


@pytest.mark.asyncio
async def test_mirror_inserts_then_updates(tmp_path):
    sync = PersistenceSync(database_url=f"sqlite+aiosqlite:///{tmp_path / 'scans.db'}")
    try:
        record = completed_record()
        assert await sync.mirror(record) is True

        row = await fetch_row(sync, record.id)
        assert row.status == "completed"
        assert row.risk_score == 100
        assert row.business_category == "publicAccommodation"
        assert row.issues[0]["criterionId"] == "1.1.1"
        assert row.issues[0]["riskCategory"] == "LEGAL"

        failed = record.model_copy(update={"status": ScanStatus.failed, "error_message": "boom"})
        assert await sync.mirror(failed) is True

        row = await fetch_row(sync, record.id)
        assert row.status == "failed"
        assert row.error_message == "boom"
        assert sync.health() == "healthy"
    finally:
        await sync.close()


@pytest.mark.asyncio
async def test_unreachable_database_opens_circuit(tmp_path):
    clock = FakeClock()
    breaker = CircuitBreaker("durable-store", cooldown_seconds=30, clock=clock)
    sync = PersistenceSync(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'scans.db'}",
        breaker=breaker,
    )
    try:
        assert await sync.mirror(completed_record()) is False
        assert sync.health() == "open"

        # Skipped without touching the database while open
        assert await sync.mirror(completed_record("scan-2")) is False
        assert breaker.state == CircuitState.open

        clock.now += 31
        assert sync.health() == "half_open"

        (tmp_path / "missing").mkdir()
        assert await sync.mirror(completed_record("scan-3")) is True
        assert sync.health() == "healthy"
    finally:
        await sync.close()


def test_built_from_settings():
    sync = build_persistence_sync(
        make_settings(DATABASE_URL="sqlite+aiosqlite:///./scans.db", DB_CIRCUIT_COOLDOWN_SECONDS=5)
    )

    assert sync.enabled is True
    assert sync.breaker.cooldown_seconds == 5
