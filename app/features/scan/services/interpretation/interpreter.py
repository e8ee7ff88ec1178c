import asyncio
import logging
from typing import Dict, List, Optional

from app.features.scan.schemas.scan import (
    AutomatedFinding,
    EvidenceRefs,
    Interpretation,
    IssueRecord,
)
from app.features.scan.services.interpretation.fallback import fallback_interpretation
from app.features.scan.services.interpretation.provider import InterpretationProvider

logger = logging.getLogger(__name__)


class InterpretationService:
    """
    Enriches findings into issue records.

    The provider is optional. Without one, or whenever it raises, times out
    or returns an invalid reply, the heuristic fallback is used for that
    finding alone.
    """

    def __init__(
        self,
        provider: Optional[InterpretationProvider] = None,
        concurrency: int = 4,
        timeout: Optional[float] = 30.0,
    ):
        self.provider = provider
        self.concurrency = max(1, concurrency)
        self.timeout = timeout

    async def interpret(
        self,
        finding: AutomatedFinding,
        page_url: str,
        evidence: Optional[EvidenceRefs] = None,
        scan_id: Optional[str] = None,
    ) -> IssueRecord:
        interpretation = await self._classify(finding, page_url, scan_id)
        return IssueRecord(
            id=finding.id,
            page_url=page_url,
            source=finding.source,
            description=finding.description,
            criterion_id=finding.criterion_id,
            impact_level=finding.impact_level,
            help_text=finding.help_text,
            selector=finding.selector,
            snippet=finding.snippet,
            tags=list(finding.tags),
            title=interpretation.title,
            explanation=interpretation.explanation,
            recommendation=interpretation.recommendation,
            risk_category=interpretation.risk_category,
            confidence=interpretation.confidence,
            needs_human_review=interpretation.needs_human_review,
            screenshot_key=evidence.screenshot_key if evidence else None,
            html_key=evidence.html_key if evidence else None,
        )

    async def interpret_all(
        self,
        findings_by_url: Dict[str, List[AutomatedFinding]],
        evidence_by_url: Optional[Dict[str, EvidenceRefs]] = None,
        scan_id: Optional[str] = None,
    ) -> List[IssueRecord]:
        """Issue records in page order, then per-page finding order."""
        evidence_by_url = evidence_by_url or {}
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(finding: AutomatedFinding, page_url: str) -> IssueRecord:
            async with semaphore:
                return await self.interpret(
                    finding, page_url, evidence_by_url.get(page_url), scan_id
                )

        tasks = [
            bounded(finding, page_url)
            for page_url, findings in findings_by_url.items()
            for finding in findings
        ]
        return list(await asyncio.gather(*tasks))

    async def _classify(
        self,
        finding: AutomatedFinding,
        page_url: str,
        scan_id: Optional[str],
    ) -> Interpretation:
        if self.provider is None:
            return fallback_interpretation(finding)

        tag = f"[{scan_id}] " if scan_id else ""
        try:
            result = await asyncio.wait_for(
                self.provider.classify(finding, page_url), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{tag}AI interpretation timed out for finding {finding.id} on {page_url}")
            result = None
        except Exception as e:
            logger.warning(
                f"{tag}AI interpretation failed for finding {finding.id} on {page_url}: {e}"
            )
            result = None

        if result is None:
            return fallback_interpretation(finding)
        return result
