import math
from typing import Iterable

from app.features.scan.schemas.scan import IssueRecord, RiskCategory

RISK_WEIGHTS = {
    RiskCategory.LEGAL: 3,
    RiskCategory.USABILITY: 2,
    RiskCategory.BEST_PRACTICE: 1,
}
MAX_WEIGHT = max(RISK_WEIGHTS.values())


def score(issues: Iterable[IssueRecord]) -> int:
    """
    Overall site risk, 0-100: weighted issue mix relative to an all-LEGAL
    result. Half-up rounding, so an all-BEST_PRACTICE scan scores 33.
    """
    weights = [RISK_WEIGHTS[issue.risk_category] for issue in issues]
    if not weights:
        return 0
    raw = 100 * sum(weights) / (len(weights) * MAX_WEIGHT)
    return max(0, min(100, math.floor(raw + 0.5)))
