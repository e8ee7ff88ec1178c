from app.features.scan.schemas.scan import AutomatedFinding

SYSTEM_PROMPT = (
    "You are a web accessibility auditor. You classify automated WCAG findings "
    "by legal risk and rewrite them in plain language for site owners. "
    "Always respond with valid JSON only."
)


def build_prompt(finding: AutomatedFinding, page_url: str) -> str:
    return f"""Classify this automated accessibility finding and explain it plainly.

Page: {page_url}
Description: {finding.description}
WCAG criterion: {finding.criterion_id or "unknown"}
Impact: {finding.impact_level or "unknown"}
Selector: {finding.selector or "n/a"}
Snippet: {finding.snippet or "n/a"}
Help: {finding.help_text or "n/a"}

Risk categories:
- LEGAL: failures commonly cited in ADA demand letters and lawsuits
- USABILITY: real barriers for users that are less often litigated
- BEST_PRACTICE: improvements beyond the WCAG A/AA baseline

You MUST respond with ONLY valid JSON matching this exact structure:
{{
  "title": "string (short, plain-language issue name)",
  "explanation": "string (who is affected and how)",
  "recommendation": "string (concrete fix)",
  "riskCategory": "LEGAL|USABILITY|BEST_PRACTICE",
  "confidence": number (0-1),
  "needsHumanReview": true|false
}}

Do not include any text before or after the JSON."""
