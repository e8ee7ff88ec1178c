import logging
from typing import Dict, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from app.features.scan.schemas.scan import AutomatedFinding, PageSnapshot
from app.features.scan.services.rules.checkers import AxeChecker, MarkupChecker, RuleChecker

logger = logging.getLogger(__name__)

IMPACT_RANK = {"critical": 0, "serious": 1, "moderate": 2, "minor": 3}
UNKNOWN_IMPACT_RANK = 4

# Pa11y-style levels onto the axe scale
IMPACT_ALIASES = {"error": "serious", "warning": "moderate", "notice": "minor"}


def normalize_impact(level: Optional[str]) -> Optional[str]:
    if not level:
        return None
    level = level.strip().lower()
    return IMPACT_ALIASES.get(level, level)


def impact_rank(level: Optional[str]) -> int:
    return IMPACT_RANK.get(normalize_impact(level), UNKNOWN_IMPACT_RANK)


def dedupe_findings(findings: Iterable[AutomatedFinding]) -> List[AutomatedFinding]:
    """Drop repeats of (criterion, selector, description); first one wins."""
    seen = set()
    unique = []
    for finding in findings:
        if finding.dedup_key in seen:
            continue
        seen.add(finding.dedup_key)
        unique.append(finding)
    return unique


def sort_findings(findings: Iterable[AutomatedFinding]) -> List[AutomatedFinding]:
    return sorted(
        findings,
        key=lambda f: (impact_rank(f.impact_level), f.criterion_id or "", f.selector or ""),
    )


class RuleEngineRunner:
    """Runs every configured checker over each captured page."""

    def __init__(self, checkers: List[RuleChecker]):
        self.checkers = checkers

    async def run_checks(
        self,
        snapshots: List[PageSnapshot],
        scan_id: Optional[str] = None,
    ) -> Dict[str, List[AutomatedFinding]]:
        tag = f"[{scan_id}] " if scan_id else ""
        results: Dict[str, List[AutomatedFinding]] = {}
        if not snapshots:
            return results

        active = []
        for checker in self.checkers:
            try:
                await run_in_threadpool(checker.start)
                active.append(checker)
            except Exception as e:
                logger.error(f"{tag}Checker {checker.name} failed to start, skipping it: {e}")

        try:
            for snapshot in snapshots:
                raw: List[AutomatedFinding] = []
                for checker in active:
                    try:
                        raw.extend(await run_in_threadpool(checker.run_checks, snapshot))
                    except Exception as e:
                        logger.error(
                            f"{tag}Checker {checker.name} failed on {snapshot.url}: {e}"
                        )
                findings = sort_findings(dedupe_findings(raw))
                results[snapshot.url] = findings
                logger.info(f"{tag}{len(findings)} findings on {snapshot.url}")
        finally:
            for checker in active:
                try:
                    await run_in_threadpool(checker.stop)
                except Exception as e:
                    logger.warning(f"{tag}Checker {checker.name} did not shut down cleanly: {e}")

        return results


CHECKER_FACTORIES = {
    "axe": lambda settings: AxeChecker(
        page_timeout=settings.PAGE_LOAD_TIMEOUT_SECONDS,
        chromedriver_path=settings.CHROMEDRIVER_PATH,
    ),
    "markup": lambda settings: MarkupChecker(),
}


def build_checkers(settings) -> List[RuleChecker]:
    checkers = []
    for name in settings.rule_checker_names:
        factory = CHECKER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown rule checker '{name}' ignored")
            continue
        checkers.append(factory(settings))
    return checkers
