"""
Region Schemas

Reference-data models for the per-region accessibility requirement dataset
and the jurisdiction assessment computed from it.
"""
import enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BusinessCategory(str, enum.Enum):
    government = "government"
    publicAccommodation = "publicAccommodation"
    education = "education"
    healthcare = "healthcare"
    financial = "financial"
    other = "other"


RiskLevel = Literal["low", "medium", "high", "critical"]
Likelihood = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Reference dataset
# ============================================================================

class Penalties(CamelModel):
    first_violation: str
    subsequent_violation: str
    statutory_damages: Optional[str] = None
    attorney_fees: bool = False


class RegionRequirement(CamelModel):
    code: str
    name: str
    description: str
    effective_date: str
    applies_to: List[str]
    wcag_level: Literal["A", "AA", "AAA"] = "AA"
    penalties: Penalties
    private_right_of_action: bool = False
    demand_letter_common: bool = False
    key_provisions: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)

    def applies(self, business_category: str) -> bool:
        return "all" in self.applies_to or business_category in self.applies_to


class RegionProfile(CamelModel):
    code: str
    name: str
    risk_multiplier: float = 1.0
    litigation_trend: Literal["increasing", "stable", "decreasing"] = "stable"
    notes: str = ""
    requirements: List[RegionRequirement] = Field(default_factory=list)


class RegionDataset(CamelModel):
    last_verified: str
    disclaimer: str
    regions: List[RegionProfile]


# ============================================================================
# API / assessment output
# ============================================================================

class ApplicableLaw(CamelModel):
    code: str
    name: str
    description: str
    has_private_right_of_action: bool
    penalty_description: str


class JurisdictionAssessment(CamelModel):
    region_code: str
    region_name: str
    risk_level: RiskLevel
    estimated_exposure: str
    demand_letter_likelihood: Likelihood
    applicable_laws: List[ApplicableLaw]
    priority_remediations: List[str]
    disclaimer: Optional[str] = None
    last_verified: Optional[str] = None


class RegionSummary(CamelModel):
    code: str
    name: str
    risk_multiplier: float
    litigation_trend: str
    notes: str
    requirement_count: int
    applicable_laws: List[ApplicableLaw]
