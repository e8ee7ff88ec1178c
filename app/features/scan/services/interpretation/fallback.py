"""
Heuristic interpretation used whenever the AI path yields nothing usable.
Always low-confidence and always flagged for human review.
"""
from app.features.scan.schemas.scan import AutomatedFinding, Interpretation, RiskCategory
from app.features.scan.services.rules.rule_runner import IMPACT_RANK, normalize_impact

FALLBACK_CONFIDENCE = 0.4

# Criteria most often cited in accessibility litigation
LEGAL_CRITERIA = {
    "1.1.1", "1.4.3", "2.1.1", "2.1.2", "1.3.1",
    "3.3.1", "3.3.2", "4.1.2", "2.4.2", "3.1.1",
}

LEGAL_KEYWORDS = (
    "alt text", "contrast", "keyboard", "form label", "aria-label", "accessible name",
)

WCAG_LEVEL_TAGS = {"wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "wcag22aa"}

GENERIC_RECOMMENDATION = (
    "Review this element for WCAG compliance. Provide meaningful text, ensure "
    "sufficient contrast, and verify keyboard/screen reader behavior."
)

RECOMMENDATIONS = {
    "alt_text": (
        "Add descriptive alt text to every meaningful image, and use an empty "
        "alt attribute (alt=\"\") for purely decorative images."
    ),
    "contrast": (
        "Increase the contrast between text and its background to at least "
        "4.5:1 (3:1 for large text)."
    ),
    "keyboard": (
        "Make the element reachable and operable with the keyboard alone, with "
        "a visible focus indicator and no keyboard trap."
    ),
    "form_label": (
        "Associate a visible <label> with each form control, or give it an "
        "aria-label when a visible label is not possible."
    ),
    "heading": (
        "Give every heading meaningful text and keep heading levels in order "
        "without skipping levels."
    ),
    "link_text": (
        "Give every link text that describes its destination; avoid empty "
        "links and generic text such as \"click here\"."
    ),
    "accessible_name": (
        "Give the control an accessible name and a valid ARIA role so screen "
        "readers can announce it."
    ),
    "language": "Declare the page language with a lang attribute on the <html> element.",
}

CRITERION_TOPICS = {
    "1.1.1": "alt_text",
    "1.4.3": "contrast",
    "2.1.1": "keyboard",
    "2.1.2": "keyboard",
    "3.3.2": "form_label",
    "2.4.4": "link_text",
    "4.1.2": "accessible_name",
    "3.1.1": "language",
}

# Checked in order, first match wins
KEYWORD_TOPICS = (
    (("alt text", "alternate text", "alt attribute"), "alt_text"),
    (("contrast",), "contrast"),
    (("keyboard", "focus"), "keyboard"),
    (("label",), "form_label"),
    (("heading",), "heading"),
    (("link",), "link_text"),
    (("aria", "accessible name", "button"), "accessible_name"),
    (("lang", "language"), "language"),
)


def _finding_text(finding: AutomatedFinding, with_help: bool = False) -> str:
    parts = [finding.description, " ".join(finding.tags)]
    if with_help:
        parts.append(finding.help_text or "")
    return " ".join(parts).lower()


def classify_risk(finding: AutomatedFinding) -> RiskCategory:
    impact = normalize_impact(finding.impact_level)
    text = _finding_text(finding)

    if finding.criterion_id in LEGAL_CRITERIA:
        return RiskCategory.LEGAL
    if any(keyword in text for keyword in LEGAL_KEYWORDS):
        return RiskCategory.LEGAL
    if impact in ("critical", "serious"):
        return RiskCategory.LEGAL

    if impact == "moderate":
        return RiskCategory.USABILITY
    at_least_moderate = impact in IMPACT_RANK and IMPACT_RANK[impact] <= IMPACT_RANK["moderate"]
    if at_least_moderate and WCAG_LEVEL_TAGS.intersection(t.lower() for t in finding.tags):
        return RiskCategory.USABILITY

    return RiskCategory.BEST_PRACTICE


def recommend(finding: AutomatedFinding) -> str:
    topic = CRITERION_TOPICS.get(finding.criterion_id or "")
    if topic is None:
        text = _finding_text(finding, with_help=True)
        for keywords, candidate in KEYWORD_TOPICS:
            if any(keyword in text for keyword in keywords):
                topic = candidate
                break
    return RECOMMENDATIONS.get(topic, GENERIC_RECOMMENDATION)


def fallback_interpretation(finding: AutomatedFinding) -> Interpretation:
    return Interpretation(
        title=finding.help_text or finding.description or "Accessibility issue",
        explanation=finding.description,
        recommendation=recommend(finding),
        risk_category=classify_risk(finding),
        confidence=FALLBACK_CONFIDENCE,
        needs_human_review=True,
    )
