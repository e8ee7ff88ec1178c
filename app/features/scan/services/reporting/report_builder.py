"""
Report Builder

JSON export and PDF rendering of a scan record.
"""
import io
from datetime import datetime
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from app.features.scan.schemas.scan import ScanExport, ScanRecord

REPORT_TITLE = "WCAG Compliance Report"
DISCLAIMER = "Disclaimer: Automated + AI-assisted, not legal advice."
METHODOLOGY = (
    "Methodology: Automated rules (axe-core and static HTML checks) + AI interpretation. "
    "Human review required for subjective WCAG checks."
)


def build_json_export(record: ScanRecord) -> Dict[str, Any]:
    export = ScanExport(
        id=record.id,
        site_url=record.site_url,
        status=record.status,
        started_at=record.started_at,
        completed_at=record.completed_at,
        page_count=record.page_count,
        risk_score=record.risk_score,
        jurisdiction_code=record.jurisdiction_code,
        business_category=record.business_category,
        jurisdiction_assessment=record.jurisdiction_assessment,
        issues=record.issues,
    )
    return export.model_dump(mode="json", by_alias=True)


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else "n/a"


def generate_pdf_report(record: ScanRecord) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=LETTER,
        title=f"{REPORT_TITLE} - {record.site_url}",
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )
    styles = getSampleStyleSheet()
    body = styles["BodyText"]
    small = styles["BodyText"].clone("Small", fontSize=9, leading=11)

    def line(text: str, style=body):
        story.append(Paragraph(escape(text), style))

    story = [Paragraph(REPORT_TITLE, styles["Title"]), Spacer(1, 12)]

    line(f"Site: {record.site_url}")
    line(f"Scan ID: {record.id}")
    line(f"Started: {_iso(record.started_at)}")
    line(f"Completed: {_iso(record.completed_at)}")
    line(f"Pages scanned: {record.page_count}")
    if record.risk_score is not None:
        line(f"Risk score: {record.risk_score}/100")
    story.append(Spacer(1, 12))
    line(DISCLAIMER)
    line(METHODOLOGY)
    story.append(Spacer(1, 12))

    assessment = record.jurisdiction_assessment
    if assessment is not None:
        story.append(Paragraph("Jurisdiction", styles["Heading2"]))
        line(f"Region: {assessment.region_name} ({assessment.region_code})")
        line(f"Risk level: {assessment.risk_level}")
        line(f"Estimated exposure: {assessment.estimated_exposure}")
        line(f"Demand letter likelihood: {assessment.demand_letter_likelihood}")
        for law in assessment.applicable_laws:
            line(f"- {law.name}: {law.penalty_description}", small)
        line(assessment.disclaimer, small)
        story.append(Spacer(1, 12))

    story.append(Paragraph("Findings", styles["Heading2"]))
    if not record.issues:
        line("No automated findings.")

    for idx, issue in enumerate(record.issues, start=1):
        story.append(Paragraph(escape(f"{idx}. {issue.title}"), styles["Heading4"]))
        line(f"Page: {issue.page_url}", small)
        if issue.criterion_id:
            line(f"WCAG: {issue.criterion_id}", small)
        if issue.description and issue.description != issue.title:
            line(f"Detected: {issue.description}", small)
        line(f"Severity: {issue.risk_category.value}", small)
        line(f"Confidence: {issue.confidence * 100:.0f}%", small)
        line(f"Needs review: {'Yes' if issue.needs_human_review else 'No'}", small)
        if issue.screenshot_key:
            line(f"Screenshot: {issue.screenshot_key}", small)
        if issue.html_key:
            line(f"HTML snapshot: {issue.html_key}", small)
        line(f"Why: {issue.explanation}", small)
        line(f"Fix: {issue.recommendation}", small)
        story.append(Spacer(1, 8))

    doc.build(story)
    return buffer.getvalue()
