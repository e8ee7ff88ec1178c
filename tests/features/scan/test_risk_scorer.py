import pytest

from app.features.scan.schemas.scan import IssueRecord, RiskCategory
from app.features.scan.services.scoring.risk_scorer import score


def issue(category: RiskCategory, index: int = 0) -> IssueRecord:
    return IssueRecord(
        id=f"issue-{index}",
        page_url="https://example.org/",
        source="markup",
        title="Issue",
        explanation="",
        recommendation="Fix it",
        risk_category=category,
        confidence=0.4,
        needs_human_review=True,
    )


def test_no_issues_scores_zero():
    assert score([]) == 0


def test_all_legal_scores_maximum():
    assert score([issue(RiskCategory.LEGAL, i) for i in range(5)]) == 100


def test_all_best_practice_rounds_half_up():
    assert score([issue(RiskCategory.BEST_PRACTICE)]) == 33


def test_all_usability():
    # 2/3 = 66.67
    assert score([issue(RiskCategory.USABILITY, i) for i in range(3)]) == 67


def test_mixed_issues():
    issues = [
        issue(RiskCategory.LEGAL, 0),
        issue(RiskCategory.USABILITY, 1),
        issue(RiskCategory.BEST_PRACTICE, 2),
        issue(RiskCategory.BEST_PRACTICE, 3),
    ]
    # 100 * 7 / 12 = 58.33
    assert score(issues) == 58


@pytest.mark.parametrize("legal,best_practice", [(1, 0), (0, 1), (1, 7), (13, 2), (0, 40)])
def test_score_always_in_range(legal, best_practice):
    issues = [issue(RiskCategory.LEGAL, i) for i in range(legal)]
    issues += [issue(RiskCategory.BEST_PRACTICE, legal + i) for i in range(best_practice)]

    assert 0 <= score(issues) <= 100


def test_score_accepts_any_iterable():
    assert score(issue(RiskCategory.LEGAL, i) for i in range(2)) == 100
