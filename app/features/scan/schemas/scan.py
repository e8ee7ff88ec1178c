"""
Scan Schemas

Pipeline types (snapshots, findings, interpretations, issues, scan records)
and the request/response models for the scan API endpoints.
"""
import enum
import hashlib
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.features.regions.schemas.region import BusinessCategory, JurisdictionAssessment
from app.platform.utils.url_validator import validate_url


class ScanStatus(str, enum.Enum):
    """Scan state machine: pending -> running -> completed | failed"""
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.completed, ScanStatus.failed)


class RiskCategory(str, enum.Enum):
    LEGAL = "LEGAL"
    USABILITY = "USABILITY"
    BEST_PRACTICE = "BEST_PRACTICE"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Pipeline artifacts
# ============================================================================

class PageSnapshot(FrozenCamelModel):
    """One crawled page, transient."""
    url: str
    html: str
    screenshot: Optional[bytes] = None


def finding_id(
    source: str,
    criterion_id: Optional[str],
    selector: Optional[str],
    description: str,
) -> str:
    """Stable id: identical findings across runs collide."""
    key = "|".join([source, criterion_id or "", selector or "", description])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


class AutomatedFinding(FrozenCamelModel):
    id: str
    source: str
    description: str
    criterion_id: Optional[str] = None
    impact_level: Optional[str] = None
    help_text: Optional[str] = None
    selector: Optional[str] = None
    snippet: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        source: str,
        description: str,
        criterion_id: Optional[str] = None,
        impact_level: Optional[str] = None,
        help_text: Optional[str] = None,
        selector: Optional[str] = None,
        snippet: Optional[str] = None,
        tags=(),
    ) -> "AutomatedFinding":
        return cls(
            id=finding_id(source, criterion_id, selector, description),
            source=source,
            description=description,
            criterion_id=criterion_id,
            impact_level=impact_level,
            help_text=help_text,
            selector=selector,
            snippet=snippet,
            tags=tuple(tags or ()),
        )

    @property
    def dedup_key(self) -> Tuple[str, str, str]:
        return (self.criterion_id or "", self.selector or "", self.description)


class Interpretation(FrozenCamelModel):
    """
    Verdict on one finding. Also the schema an AI reply must satisfy:
    every field is required, nothing extra is trusted.
    """
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    title: str = Field(min_length=1)
    explanation: str
    recommendation: str = Field(min_length=1)
    risk_category: RiskCategory
    confidence: float = Field(ge=0.0, le=1.0)
    needs_human_review: bool


class EvidenceRefs(FrozenCamelModel):
    screenshot_key: Optional[str] = None
    html_key: Optional[str] = None


class IssueRecord(CamelModel):
    """Finding + interpretation + evidence: the externally reported unit."""
    id: str
    page_url: str
    source: str
    description: str = ""
    criterion_id: Optional[str] = None
    impact_level: Optional[str] = None
    help_text: Optional[str] = None
    selector: Optional[str] = None
    snippet: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    title: str
    explanation: str
    recommendation: str
    risk_category: RiskCategory
    confidence: float = Field(ge=0.0, le=1.0)
    needs_human_review: bool
    screenshot_key: Optional[str] = None
    html_key: Optional[str] = None


# ============================================================================
# Scan aggregate
# ============================================================================

class ScanOptions(CamelModel):
    max_pages: int = 5
    jurisdiction_code: Optional[str] = None
    business_category: Optional[BusinessCategory] = None


class ScanRecord(CamelModel):
    id: str
    site_url: str
    status: ScanStatus = ScanStatus.pending
    issues: List[IssueRecord] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    page_count: int = Field(default=0, ge=0)
    max_pages: int = 5
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    error_message: Optional[str] = None
    jurisdiction_code: Optional[str] = None
    business_category: Optional[BusinessCategory] = None
    jurisdiction_assessment: Optional[JurisdictionAssessment] = None


# ============================================================================
# API
# ============================================================================

class ScanCreateRequest(CamelModel):
    """Request to start a scan."""
    site_url: str
    max_pages: Optional[int] = Field(default=None, ge=1)
    jurisdiction_code: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{2}$")
    business_category: Optional[BusinessCategory] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "siteUrl": "https://example.org",
                "maxPages": 3,
                "jurisdictionCode": "CA",
                "businessCategory": "publicAccommodation",
            }
        },
    )

    @field_validator("site_url")
    @classmethod
    def check_site_url(cls, value: str) -> str:
        is_valid, url, error = validate_url(value)
        if not is_valid:
            raise ValueError(error)
        return url

    @model_validator(mode="after")
    def default_category(self):
        if self.jurisdiction_code:
            self.jurisdiction_code = self.jurisdiction_code.upper()
            if self.business_category is None:
                self.business_category = BusinessCategory.other
        return self

    def to_options(self, max_pages_limit: int) -> ScanOptions:
        return ScanOptions(
            max_pages=min(self.max_pages or max_pages_limit, max_pages_limit),
            jurisdiction_code=self.jurisdiction_code,
            business_category=self.business_category,
        )


class ScanCreateResponse(CamelModel):
    id: str
    status: ScanStatus


class ScanExport(CamelModel):
    """Canonical JSON projection of a scan record."""
    id: str
    site_url: str
    status: ScanStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    page_count: int
    risk_score: Optional[int] = None
    jurisdiction_code: Optional[str] = None
    business_category: Optional[BusinessCategory] = None
    jurisdiction_assessment: Optional[JurisdictionAssessment] = None
    issues: List[IssueRecord]
