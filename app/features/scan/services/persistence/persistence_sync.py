import logging
from typing import Optional

from sqlalchemy import select

from app.features.scan.models.scan_record import ScanRecordRow
from app.features.scan.schemas.scan import ScanRecord
from app.platform.circuit_breaker import CircuitBreaker, CircuitState
from app.platform.db.base import Base
from app.platform.db.session import create_engine_for, create_session_factory

logger = logging.getLogger(__name__)


class PersistenceSync:
    """
    Best-effort mirror of scan records into the relational store.

    Never raises into the pipeline. Connection or write failures open the
    circuit; after the cooldown a single probe decides whether to resume.
    """

    def __init__(
        self,
        database_url: Optional[str],
        cooldown_seconds: float = 30.0,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.database_url = database_url
        self.breaker = breaker or CircuitBreaker("durable-store", cooldown_seconds)
        self._engine = None
        self._session_factory = None
        self._schema_ready = False

    @property
    def enabled(self) -> bool:
        return bool(self.database_url)

    def health(self) -> str:
        if not self.enabled:
            return "disabled"
        state = self.breaker.state
        return "healthy" if state == CircuitState.closed else state.value

    async def mirror(self, record: ScanRecord) -> bool:
        """Upsert one record by id. Returns True when the write landed."""
        if not self.enabled:
            return False
        if not self.breaker.allow_request():
            logger.debug(f"[{record.id}] Durable store unavailable, mirror skipped")
            return False

        try:
            await self._ensure_schema()
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ScanRecordRow).where(ScanRecordRow.id == record.id)
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = ScanRecordRow(id=record.id)
                    session.add(row)
                self._apply(row, record)
                await session.commit()
        except Exception as e:
            logger.error(f"[{record.id}] Failed to mirror scan to durable store: {e}")
            self.breaker.record_failure()
            return False

        self.breaker.record_success()
        logger.info(f"[{record.id}] Mirrored scan ({record.status.value}) to durable store")
        return True

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._schema_ready = False

    async def _ensure_schema(self) -> None:
        if self._engine is None:
            self._engine = create_engine_for(self.database_url)
            self._session_factory = create_session_factory(self._engine)
        if not self._schema_ready:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=[ScanRecordRow.__table__])
            self._schema_ready = True

    @staticmethod
    def _apply(row: ScanRecordRow, record: ScanRecord) -> None:
        row.site_url = record.site_url
        row.status = record.status.value
        row.started_at = record.started_at
        row.completed_at = record.completed_at
        row.page_count = record.page_count
        row.risk_score = record.risk_score
        row.error_message = record.error_message
        row.jurisdiction_code = record.jurisdiction_code
        row.business_category = (
            record.business_category.value if record.business_category else None
        )
        row.jurisdiction_assessment = (
            record.jurisdiction_assessment.model_dump(mode="json", by_alias=True)
            if record.jurisdiction_assessment
            else None
        )
        row.issues = [issue.model_dump(mode="json", by_alias=True) for issue in record.issues]


def build_persistence_sync(settings) -> PersistenceSync:
    return PersistenceSync(
        database_url=settings.DATABASE_URL,
        cooldown_seconds=settings.DB_CIRCUIT_COOLDOWN_SECONDS,
    )
