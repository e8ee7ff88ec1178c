"""
Automated accessibility checkers.

axe    - axe-core injected into the live page through Selenium
markup - static rules over the captured HTML (BeautifulSoup), in the
         spirit of Pa11y's HTML_CodeSniffer checks
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

from axe_selenium_python import Axe
from bs4 import BeautifulSoup, Tag

from app.features.scan.schemas.scan import AutomatedFinding, PageSnapshot
from app.features.scan.services.browser.driver_factory import build_driver

logger = logging.getLogger(__name__)

SNIPPET_MAX_LENGTH = 250
WCAG_TAG_PATTERN = re.compile(r"^wcag(\d)(\d)(\d+)$")


class RuleChecker(ABC):
    """One pluggable rule engine."""

    name: str = "checker"

    def start(self) -> None:
        """Acquire resources before a batch of pages."""

    def stop(self) -> None:
        """Release resources after a batch of pages."""

    @abstractmethod
    def run_checks(self, snapshot: PageSnapshot) -> List[AutomatedFinding]:
        """Return the violations found on one page."""


def criterion_from_tags(tags) -> Optional[str]:
    """`wcag143` -> `1.4.3`"""
    for tag in tags or ():
        match = WCAG_TAG_PATTERN.match(tag)
        if match:
            return ".".join(match.groups())
    return None


class AxeChecker(RuleChecker):
    name = "axe"

    def __init__(self, page_timeout: float = 15.0, chromedriver_path: Optional[str] = None):
        self.page_timeout = page_timeout
        self.chromedriver_path = chromedriver_path
        self.driver = None

    def start(self) -> None:
        self.driver = build_driver(
            page_load_strategy="normal", chromedriver_path=self.chromedriver_path
        )
        self.driver.set_page_load_timeout(self.page_timeout)

    def stop(self) -> None:
        if self.driver is not None:
            self.driver.quit()
            self.driver = None

    def run_checks(self, snapshot: PageSnapshot) -> List[AutomatedFinding]:
        if self.driver is None:
            self.start()

        self.driver.get(snapshot.url)
        axe = Axe(self.driver)
        axe.inject()
        results = axe.run()
        violations = results.get("violations", [])
        logger.debug(f"axe reported {len(violations)} violations on {snapshot.url}")

        findings = []
        for violation in violations:
            tags = violation.get("tags") or []
            nodes = violation.get("nodes") or [{}]
            node = nodes[0]
            target = node.get("target") or []
            findings.append(
                AutomatedFinding.create(
                    source=self.name,
                    description=violation.get("description") or violation.get("id", ""),
                    criterion_id=criterion_from_tags(tags),
                    impact_level=violation.get("impact") or node.get("impact"),
                    help_text=violation.get("help"),
                    selector=str(target[0]) if target else None,
                    snippet=(node.get("html") or "")[:SNIPPET_MAX_LENGTH] or None,
                    tags=tags,
                )
            )
        return findings


class MarkupChecker(RuleChecker):
    """
    Static HTML rules over the captured markup: labels, alt text, names,
    headings and document metadata. No browser needed.
    """

    name = "markup"

    UNLABELLED_INPUT_TYPES_SKIPPED = {"hidden", "submit", "button", "reset", "image"}

    def run_checks(self, snapshot: PageSnapshot) -> List[AutomatedFinding]:
        soup = BeautifulSoup(snapshot.html or "", "html.parser")
        findings: List[AutomatedFinding] = []
        findings.extend(self._check_document_language(soup))
        findings.extend(self._check_document_title(soup))
        findings.extend(self._check_viewport_zoom(soup))
        findings.extend(self._check_images(soup))
        findings.extend(self._check_form_labels(soup))
        findings.extend(self._check_buttons(soup))
        findings.extend(self._check_links(soup))
        findings.extend(self._check_headings(soup))
        return findings

    # ── Document level ───────────────────────────

    def _check_document_language(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        html = soup.find("html")
        if isinstance(html, Tag) and (html.get("lang") or "").strip():
            return []
        return [
            self._finding(
                "<html> element must have a lang attribute",
                criterion="3.1.1",
                impact="serious",
                help_text="Set the primary language of the page, e.g. <html lang=\"en\">",
                selector="html",
                tags=("wcag2a", "wcag311"),
            )
        ]

    def _check_document_title(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        title = soup.find("title")
        if isinstance(title, Tag) and title.get_text(strip=True):
            return []
        return [
            self._finding(
                "Documents must have a non-empty <title> element",
                criterion="2.4.2",
                impact="serious",
                help_text="Give the page a title that describes its topic or purpose",
                selector="head > title" if title else "head",
                tags=("wcag2a", "wcag242"),
            )
        ]

    def _check_viewport_zoom(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        meta = soup.find("meta", attrs={"name": re.compile("^viewport$", re.I)})
        if not isinstance(meta, Tag):
            return []
        content = (meta.get("content") or "").replace(" ", "").lower()
        disabled = "user-scalable=no" in content or "user-scalable=0" in content
        match = re.search(r"maximum-scale=([\d.]+)", content)
        if match:
            try:
                disabled = disabled or float(match.group(1)) < 2
            except ValueError:
                pass
        if not disabled:
            return []
        return [
            self._finding(
                "Zooming and scaling must not be disabled",
                criterion="1.4.4",
                impact="moderate",
                help_text="Remove user-scalable=no and keep maximum-scale at 2 or higher",
                selector='meta[name="viewport"]',
                snippet=str(meta),
                tags=("wcag2aa", "wcag144"),
            )
        ]

    # ── Elements ─────────────────────────────────

    def _check_images(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        findings = []
        for img in soup.find_all("img"):
            if img.has_attr("alt") or img.get("role") in ("presentation", "none"):
                continue
            if self._has_aria_name(soup, img):
                continue
            findings.append(
                self._finding(
                    "Images must have alternate text",
                    criterion="1.1.1",
                    impact="critical",
                    help_text="Add an alt attribute describing the image, or alt=\"\" if decorative",
                    element=img,
                    tags=("wcag2a", "wcag111"),
                )
            )
        return findings

    def _check_form_labels(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        findings = []
        for control in soup.find_all(["input", "select", "textarea"]):
            if control.name == "input":
                input_type = (control.get("type") or "text").lower()
                if input_type in self.UNLABELLED_INPUT_TYPES_SKIPPED:
                    continue
            if self._has_aria_name(soup, control) or (control.get("title") or "").strip():
                continue
            control_id = control.get("id")
            if control_id and soup.find("label", attrs={"for": control_id}):
                continue
            if control.find_parent("label"):
                continue
            findings.append(
                self._finding(
                    "Form elements must have labels",
                    criterion="1.3.1",
                    impact="serious",
                    help_text="Associate a <label> with the form control or give it an aria-label",
                    element=control,
                    tags=("wcag2a", "wcag131", "wcag412"),
                )
            )
        return findings

    def _check_buttons(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        findings = []
        buttons = soup.find_all("button") + soup.find_all(
            "input", attrs={"type": re.compile("^(button|submit|reset)$", re.I)}
        )
        for button in buttons:
            if button.name == "button" and self._text_or_alt(button):
                continue
            if (button.get("value") or "").strip() or (button.get("title") or "").strip():
                continue
            if self._has_aria_name(soup, button):
                continue
            findings.append(
                self._finding(
                    "Buttons must have discernible text",
                    criterion="4.1.2",
                    impact="critical",
                    help_text="Give the button visible text, a value, or an aria-label",
                    element=button,
                    tags=("wcag2a", "wcag412"),
                )
            )
        return findings

    def _check_links(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        findings = []
        for link in soup.find_all("a", href=True):
            if self._text_or_alt(link) or (link.get("title") or "").strip():
                continue
            if self._has_aria_name(soup, link):
                continue
            findings.append(
                self._finding(
                    "Links must have discernible text",
                    criterion="2.4.4",
                    impact="serious",
                    help_text="Describe the link destination with text or an aria-label",
                    element=link,
                    tags=("wcag2a", "wcag244", "wcag412"),
                )
            )
        return findings

    def _check_headings(self, soup: BeautifulSoup) -> List[AutomatedFinding]:
        findings = []
        previous_level = 0
        for heading in soup.find_all(re.compile(r"^h[1-6]$")):
            level = int(heading.name[1])
            if not self._text_or_alt(heading):
                findings.append(
                    self._finding(
                        "Headings should not be empty",
                        criterion="1.3.1",
                        impact="minor",
                        help_text="Remove the empty heading or give it text",
                        element=heading,
                        tags=("best-practice", "wcag131"),
                    )
                )
            if previous_level and level > previous_level + 1:
                findings.append(
                    self._finding(
                        "Heading levels should only increase by one",
                        criterion="1.3.1",
                        impact="moderate",
                        help_text=f"Use an <h{previous_level + 1}> instead of skipping to <h{level}>",
                        element=heading,
                        tags=("best-practice", "wcag131"),
                    )
                )
            previous_level = level
        return findings

    # ── Helpers ──────────────────────────────────

    def _finding(
        self,
        description: str,
        criterion: str,
        impact: str,
        help_text: str,
        element: Optional[Tag] = None,
        selector: Optional[str] = None,
        snippet: Optional[str] = None,
        tags=(),
    ) -> AutomatedFinding:
        if element is not None:
            selector = selector or css_selector(element)
            snippet = snippet or str(element)
        return AutomatedFinding.create(
            source=self.name,
            description=description,
            criterion_id=criterion,
            impact_level=impact,
            help_text=help_text,
            selector=selector,
            snippet=snippet[:SNIPPET_MAX_LENGTH] if snippet else None,
            tags=tags,
        )

    @staticmethod
    def _text_or_alt(element: Tag) -> bool:
        if element.get_text(strip=True):
            return True
        return any((img.get("alt") or "").strip() for img in element.find_all("img"))

    @staticmethod
    def _has_aria_name(soup: BeautifulSoup, element: Tag) -> bool:
        if (element.get("aria-label") or "").strip():
            return True
        labelled_by = (element.get("aria-labelledby") or "").split()
        return any(
            (ref := soup.find(id=ref_id)) is not None and ref.get_text(strip=True)
            for ref_id in labelled_by
        )


def css_selector(element: Tag) -> str:
    """Deterministic CSS path; stops at the nearest ancestor with an id."""
    parts = []
    node = element
    while isinstance(node, Tag) and node.name not in ("[document]",):
        node_id = node.get("id")
        if node_id and re.match(r"^[A-Za-z][\w-]*$", node_id):
            parts.append(f"{node.name}#{node_id}")
            break
        parent = node.parent
        if isinstance(parent, Tag):
            same_tag = [s for s in parent.find_all(node.name, recursive=False)]
            if len(same_tag) > 1:
                index = next(i for i, s in enumerate(same_tag, start=1) if s is node)
                parts.append(f"{node.name}:nth-of-type({index})")
            else:
                parts.append(node.name)
        else:
            parts.append(node.name)
        node = parent
    return " > ".join(reversed(parts))
