"""
Structured Data Extraction

Collects schema.org types declared on a page via:
- JSON-LD (including @graph containers and array-valued @type)
- Microdata (itemtype attributes, reported as ``microdata:<Type>``)
"""

import json
import logging
from typing import Any, List

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MICRODATA_PREFIX = "microdata:"


def _add_type(types: List[str], value: Any) -> None:
    if isinstance(value, str):
        value = value.strip()
        if value and value not in types:
            types.append(value)
    elif isinstance(value, list):
        for item in value:
            _add_type(types, item)


def _extract_types_from_jsonld(data: Any, types: List[str]) -> None:
    """Collect @type values from a JSON-LD document.

    Top-level objects, arrays of objects and @graph members are visited;
    nested property values are not, so ``author: {"@type": "Person"}`` does
    not count as a page-level type.
    """
    if isinstance(data, list):
        for item in data:
            _extract_types_from_jsonld(item, types)
        return

    if not isinstance(data, dict):
        return

    if "@type" in data:
        _add_type(types, data["@type"])

    graph = data.get("@graph")
    if isinstance(graph, list):
        for item in graph:
            _extract_types_from_jsonld(item, types)
    elif isinstance(graph, dict):
        _extract_types_from_jsonld(graph, types)


def extract_jsonld_types(soup: BeautifulSoup) -> List[str]:
    """Extract @type values from every application/ld+json block."""
    types: List[str] = []

    for script in soup.find_all("script", type="application/ld+json"):
        text = script.string or script.get_text()
        if not text or not text.strip():
            continue

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"Invalid JSON-LD syntax: {str(e)[:100]}")
            continue

        _extract_types_from_jsonld(data, types)

    return types


def extract_microdata_types(soup: BeautifulSoup) -> List[str]:
    """Extract microdata itemtype values as ``microdata:<Type>``."""
    types: List[str] = []

    for item in soup.find_all(attrs={"itemtype": True}):
        # itemtype may list several space-separated type URLs
        for itemtype in item.get("itemtype", "").split():
            schema_type = itemtype.rstrip("/").split("/")[-1]
            if schema_type:
                _add_type(types, f"{MICRODATA_PREFIX}{schema_type}")

    return types


def extract_schema_types(soup: BeautifulSoup) -> List[str]:
    """
    Extract all structured data types on a page.

    Args:
        soup: Parsed page HTML

    Returns:
        Deduplicated type names, JSON-LD first, in document order
    """
    types = extract_jsonld_types(soup)
    for schema_type in extract_microdata_types(soup):
        if schema_type not in types:
            types.append(schema_type)
    return types
