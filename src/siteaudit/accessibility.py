# src/siteaudit/accessibility.py
# Form labelling, landmark, skip-link and tabindex checks.

from typing import List, Tuple

from bs4 import BeautifulSoup

from siteaudit.constants import SKIP_LINK_SCAN_LIMIT
from siteaudit.models import AccessibilitySignals, Issue, Severity

# Input types that never need a visible label
UNLABELED_INPUT_TYPES = {"hidden", "submit", "button", "reset", "image"}

# HTML5 sectioning elements and the landmark role they imply
SEMANTIC_LANDMARKS = {
    "header": "banner",
    "nav": "navigation",
    "main": "main",
    "footer": "contentinfo",
    "aside": "complementary",
}

LANDMARK_ROLES = {
    "banner",
    "navigation",
    "main",
    "contentinfo",
    "complementary",
    "search",
    "form",
    "region",
}

MAX_UNLABELED_ELEMENTS = 20


def _describe(element) -> str:
    """Short selector-like description of a form control."""
    description = element.name
    if element.get("id"):
        description += f"#{element['id']}"
    elif element.get("name"):
        description += f"[name={element['name']}]"
    if element.name == "input":
        description += f"[type={(element.get('type') or 'text').lower()}]"
    return description


def _has_label(element, label_targets: set) -> bool:
    element_id = element.get("id")
    if element_id and element_id in label_targets:
        return True
    if element.find_parent("label") is not None:
        return True
    for attr in ("aria-label", "aria-labelledby", "title"):
        value = element.get(attr)
        if value and value.strip():
            return True
    return False


def _form_controls(soup: BeautifulSoup):
    for element in soup.find_all(["input", "select", "textarea"]):
        if element.name == "input":
            input_type = (element.get("type") or "text").strip().lower()
            if input_type in UNLABELED_INPUT_TYPES:
                continue
        yield element


def _collect_landmarks(soup: BeautifulSoup) -> List[str]:
    landmarks: List[str] = []

    for element in soup.find_all(attrs={"role": True}):
        for role in element.get("role", "").lower().split():
            if role in LANDMARK_ROLES and role not in landmarks:
                landmarks.append(role)

    for tag, role in SEMANTIC_LANDMARKS.items():
        if soup.find(tag) is not None and role not in landmarks:
            landmarks.append(role)

    return landmarks


def _has_skip_link(soup: BeautifulSoup) -> bool:
    for anchor in soup.find_all("a", limit=SKIP_LINK_SCAN_LIMIT):
        href = (anchor.get("href") or "").strip()
        if not href.startswith("#"):
            continue
        text = anchor.get_text(" ", strip=True).lower()
        if "skip" in text or "main content" in text:
            return True
    return False


def _count_tabindex(soup: BeautifulSoup) -> Tuple[int, int]:
    total = 0
    negative = 0
    for element in soup.find_all(attrs={"tabindex": True}):
        total += 1
        try:
            if int(str(element["tabindex"]).strip()) < 0:
                negative += 1
        except ValueError:
            continue
    return total, negative


def check_accessibility(soup: BeautifulSoup) -> Tuple[AccessibilitySignals, List[Issue]]:
    """
    Performs accessibility checks on the given BeautifulSoup object.

    Returns:
        Tuple of (signals, issues). Issues are a warning for unlabeled form
        controls and an info when no main landmark exists.
    """
    issues: List[Issue] = []

    label_targets = {label["for"] for label in soup.find_all("label", attrs={"for": True}) if label["for"]}

    labeled = 0
    unlabeled: List[str] = []
    for element in _form_controls(soup):
        if _has_label(element, label_targets):
            labeled += 1
        else:
            unlabeled.append(_describe(element))

    if unlabeled:
        issues.append(Issue(
            Severity.WARNING,
            f"{len(unlabeled)} form inputs missing labels",
            element=unlabeled[0],
        ))

    landmarks = _collect_landmarks(soup)
    if "main" not in landmarks:
        issues.append(Issue(Severity.INFO, "No main landmark found"))

    tabindex_count, negative_tabindex = _count_tabindex(soup)

    signals = AccessibilitySignals(
        labeled_inputs=labeled,
        unlabeled_inputs=len(unlabeled),
        unlabeled_elements=unlabeled[:MAX_UNLABELED_ELEMENTS],
        landmarks=landmarks,
        has_skip_link=_has_skip_link(soup),
        tabindex_count=tabindex_count,
        negative_tabindex_count=negative_tabindex,
    )

    return signals, issues
