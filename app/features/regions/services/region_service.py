import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from app.features.regions.schemas.region import (
    ApplicableLaw,
    BusinessCategory,
    JurisdictionAssessment,
    RegionDataset,
    RegionProfile,
    RegionRequirement,
    RegionSummary,
)

logger = logging.getLogger(__name__)

DATASET_PATH = Path(__file__).resolve().parent.parent / "data" / "regions.json"

HIGH_RISK_MULTIPLIER = 1.5

BASE_REMEDIATIONS = [
    "Fix all critical accessibility issues immediately",
    "Add alt text to all images",
    "Ensure keyboard navigation works for all interactive elements",
    "Add proper form labels and ARIA attributes",
    "Fix color contrast issues",
]

GOVERNMENT_REMEDIATIONS = [
    "Designate an accessibility coordinator",
    "Implement user feedback mechanism",
]

# Per-violation statutory minimum used for the numeric exposure range
STATUTORY_MINIMUMS = {"CA": (4000, "Unruh statutory damages")}


@lru_cache
def load_dataset(path: Path = DATASET_PATH) -> RegionDataset:
    dataset = RegionDataset.model_validate_json(path.read_text(encoding="utf-8"))
    logger.info(f"Loaded {len(dataset.regions)} region profiles (verified {dataset.last_verified})")
    return dataset


class RegionService:
    """
    Read-only lookups over the region dataset plus the jurisdiction
    risk overlay. The formulas are heuristic, not legal advice.
    """

    def __init__(self, dataset: Optional[RegionDataset] = None):
        self.dataset = dataset or load_dataset()
        self._profiles = {region.code.upper(): region for region in self.dataset.regions}

    def get_profile(self, region_code: str) -> Optional[RegionProfile]:
        if not region_code:
            return None
        return self._profiles.get(region_code.strip().upper())

    def list_profiles(self, high_risk_only: bool = False) -> List[RegionProfile]:
        profiles = list(self._profiles.values())
        if high_risk_only:
            profiles = [p for p in profiles if p.risk_multiplier >= HIGH_RISK_MULTIPLIER]
        return profiles

    def summarize(self, profile: RegionProfile) -> RegionSummary:
        return RegionSummary(
            code=profile.code,
            name=profile.name,
            risk_multiplier=profile.risk_multiplier,
            litigation_trend=profile.litigation_trend,
            notes=profile.notes,
            requirement_count=len(profile.requirements),
            applicable_laws=[self._to_law(req) for req in profile.requirements],
        )

    def assess(
        self,
        region_code: str,
        business_category,
        total_issues: int,
        legal_issue_count: int,
    ) -> Optional[JurisdictionAssessment]:
        profile = self.get_profile(region_code)
        if profile is None:
            return None

        category = (
            business_category.value
            if isinstance(business_category, BusinessCategory)
            else str(business_category or BusinessCategory.other.value)
        )
        applicable = [req for req in profile.requirements if req.applies(category)]

        base_risk = 2 if legal_issue_count > 0 else 1 if total_issues > 10 else 0
        adjusted_risk = base_risk * profile.risk_multiplier

        if adjusted_risk >= 3:
            risk_level = "critical"
        elif adjusted_risk >= 2:
            risk_level = "high"
        elif adjusted_risk >= 1:
            risk_level = "medium"
        else:
            risk_level = "low"

        if profile.risk_multiplier >= 1.8 and legal_issue_count > 0:
            demand_letter_likelihood = "high"
        elif profile.risk_multiplier >= 1.3 and total_issues > 5:
            demand_letter_likelihood = "medium"
        else:
            demand_letter_likelihood = "low"

        remediations = list(BASE_REMEDIATIONS)
        if category == BusinessCategory.government.value:
            remediations.extend(GOVERNMENT_REMEDIATIONS)

        return JurisdictionAssessment(
            region_code=profile.code,
            region_name=profile.name,
            risk_level=risk_level,
            estimated_exposure=self._estimate_exposure(
                profile.code, applicable, total_issues, legal_issue_count
            ),
            demand_letter_likelihood=demand_letter_likelihood,
            applicable_laws=[self._to_law(req) for req in applicable],
            priority_remediations=remediations,
            disclaimer=self.dataset.disclaimer,
            last_verified=self.dataset.last_verified,
        )

    @staticmethod
    def _estimate_exposure(
        region_code: str,
        applicable: List[RegionRequirement],
        total_issues: int,
        legal_issue_count: int,
    ) -> str:
        statutory = STATUTORY_MINIMUMS.get(region_code.upper())
        if statutory:
            per_violation, label = statutory
            low = legal_issue_count * per_violation
            high = (legal_issue_count + total_issues) * per_violation
            return f"${low:,} - ${high:,} ({label})"

        has_statutory_damages = any(req.penalties.statutory_damages for req in applicable)
        has_private_right = any(req.private_right_of_action for req in applicable)

        if has_statutory_damages and has_private_right:
            return "$10,000 - $100,000+ (statutory damages plus attorney fees)"
        if has_private_right:
            return "$5,000 - $50,000 (litigation defense costs)"
        return "Limited (primarily remediation costs)"

    @staticmethod
    def _to_law(requirement: RegionRequirement) -> ApplicableLaw:
        penalties = requirement.penalties
        penalty = f"{penalties.first_violation}; subsequent: {penalties.subsequent_violation}"
        if penalties.statutory_damages:
            penalty += f"; statutory damages: {penalties.statutory_damages}"
        return ApplicableLaw(
            code=requirement.code,
            name=requirement.name,
            description=requirement.description,
            has_private_right_of_action=requirement.private_right_of_action,
            penalty_description=penalty,
        )
