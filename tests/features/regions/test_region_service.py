import pytest

from app.features.regions.schemas.region import BusinessCategory
from app.features.regions.services.region_service import (
    BASE_REMEDIATIONS,
    GOVERNMENT_REMEDIATIONS,
    RegionService,
    load_dataset,
)


@pytest.fixture(scope="module")
def service():
    return RegionService()


def test_dataset_loads_all_regions():
    dataset = load_dataset()

    assert dataset.last_verified == "2025-01-11"
    assert {r.code for r in dataset.regions} == {"MD", "CA", "NY", "FL", "TX", "IL"}
    assert "not constitute legal advice" in dataset.disclaimer


def test_profile_lookup_is_case_insensitive(service):
    assert service.get_profile("ny").name == "New York"
    assert service.get_profile(" CA ").code == "CA"
    assert service.get_profile("ZZ") is None
    assert service.get_profile("") is None


def test_high_risk_filter(service):
    assert len(service.list_profiles()) == 6
    assert {p.code for p in service.list_profiles(high_risk_only=True)} == {"CA", "NY", "FL"}


def test_summary_lists_laws(service):
    summary = service.summarize(service.get_profile("CA"))

    assert summary.requirement_count == 2
    assert [law.code for law in summary.applicable_laws] == ["CA-UNRUH", "CA-GOV"]
    assert summary.applicable_laws[0].has_private_right_of_action is True
    assert "statutory damages" in summary.applicable_laws[0].penalty_description


def test_unknown_region_has_no_assessment(service):
    assert service.assess("ZZ", BusinessCategory.other, total_issues=3, legal_issue_count=1) is None


def test_california_legal_issues(service):
    assessment = service.assess(
        "CA", BusinessCategory.publicAccommodation, total_issues=5, legal_issue_count=2
    )

    assert assessment.region_code == "CA"
    assert assessment.region_name == "California"
    assert assessment.risk_level == "critical"
    assert assessment.demand_letter_likelihood == "high"
    assert assessment.estimated_exposure == "$8,000 - $28,000 (Unruh statutory damages)"
    # CA-GOV applies to government only
    assert [law.code for law in assessment.applicable_laws] == ["CA-UNRUH"]
    assert assessment.priority_remediations == BASE_REMEDIATIONS
    assert assessment.last_verified == "2025-01-11"


def test_new_york_legal_issue(service):
    assessment = service.assess("ny", BusinessCategory.other, total_issues=1, legal_issue_count=1)

    # 2 * 1.8
    assert assessment.risk_level == "critical"
    assert assessment.demand_letter_likelihood == "high"


def test_many_non_legal_issues_in_low_multiplier_region(service):
    assessment = service.assess("TX", BusinessCategory.other, total_issues=12, legal_issue_count=0)

    assert assessment.risk_level == "medium"
    assert assessment.demand_letter_likelihood == "low"
    assert assessment.applicable_laws == []
    assert assessment.estimated_exposure == "Limited (primarily remediation costs)"


def test_few_non_legal_issues_are_low_risk(service):
    assessment = service.assess("IL", BusinessCategory.other, total_issues=6, legal_issue_count=0)

    assert assessment.risk_level == "low"
    assert assessment.demand_letter_likelihood == "medium"


def test_maryland_single_legal_issue_is_high(service):
    # 2 * 1.2 = 2.4
    assessment = service.assess("MD", BusinessCategory.education, total_issues=1, legal_issue_count=1)

    assert assessment.risk_level == "high"
    assert assessment.demand_letter_likelihood == "low"


def test_government_gets_extra_remediations(service):
    assessment = service.assess("TX", BusinessCategory.government, total_issues=0, legal_issue_count=0)

    assert assessment.risk_level == "low"
    assert [law.code for law in assessment.applicable_laws] == ["TX-GOV"]
    assert assessment.priority_remediations == BASE_REMEDIATIONS + GOVERNMENT_REMEDIATIONS


def test_category_accepts_plain_strings(service):
    by_enum = service.assess("CA", BusinessCategory.government, total_issues=1, legal_issue_count=0)
    by_string = service.assess("CA", "government", total_issues=1, legal_issue_count=0)

    assert by_enum == by_string
