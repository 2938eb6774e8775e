"""Structured-content facts: FAQ entries, blockquotes, structured-markup flags.

FAQ entries come from ``<details>`` elements with a ``<summary>`` child,
skipping any that sit inside a cookie-consent banner. When the page also
carries a JSON-LD ``FAQPage`` with at least one question/answer pair, that
list replaces the heuristic one outright (the two are never merged).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .audit_config import CONSENT_TOOL_PATTERN
from .audit_utils import class_string
from .extract_entities import has_ld_json_script, ld_items, ld_json_scripts, type_names
from .html_normalize import html_to_text

_RE_CONSENT = re.compile(CONSENT_TOOL_PATTERN, re.I)
FAQ_PAGE_TYPE = "FAQPage"


@dataclass(frozen=True)
class FaqEntry:
    question: str
    answer: str
    from_structured_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "fromStructuredData": self.from_structured_data,
        }


@dataclass(frozen=True)
class QuoteEntry:
    text: str
    cite: str = ""
    author: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "cite": self.cite, "author": self.author}


@dataclass
class ContentStats:
    faq_details: List[FaqEntry] = field(default_factory=list)
    has_faq_structured_data: bool = False
    blockquotes: int = 0
    quotes_details: List[QuoteEntry] = field(default_factory=list)
    citation_markers: int = 0
    has_any_structured_markup: bool = False
    has_structured_linking_data: bool = False

    @property
    def faq(self) -> int:
        return len(self.faq_details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "faq": self.faq,
            "faqDetails": [f.to_dict() for f in self.faq_details],
            "hasFAQStructuredData": self.has_faq_structured_data,
            "blockquotes": self.blockquotes,
            "quotesDetails": [q.to_dict() for q in self.quotes_details],
            "citationMarkers": self.citation_markers,
            "hasAnyStructuredMarkup": self.has_any_structured_markup,
            "hasStructuredLinkingData": self.has_structured_linking_data,
        }


def in_consent_banner(element: Tag) -> bool:
    """True when the element or any ancestor looks like a cookie-consent widget."""

    node: Optional[Tag] = element
    while node is not None:
        if isinstance(node, Tag):
            marker = f"{class_string(node.get('class'))} {node.get('id') or ''}"
            if _RE_CONSENT.search(marker):
                return True
        node = node.parent
    return False


def _element_text(tag: Tag) -> str:
    return tag.get_text(" ", strip=True)


def heuristic_faq(soup: BeautifulSoup) -> List[FaqEntry]:
    entries: List[FaqEntry] = []
    for details in soup.find_all("details"):
        summary = details.find("summary", recursive=False)
        if summary is None or in_consent_banner(details):
            continue
        question = _element_text(summary)
        if not question:
            continue
        answer = " ".join(
            _element_text(child)
            for child in details.children
            if isinstance(child, Tag) and child.name != "summary"
        )
        entries.append(FaqEntry(question=question, answer=answer.strip()))
    return entries


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _answer_text(question: Mapping[str, Any]) -> str:
    for answer in _as_list(question.get("acceptedAnswer")) + _as_list(question.get("suggestedAnswer")):
        if isinstance(answer, Mapping):
            text = html_to_text(str(answer.get("text") or ""))
            if text:
                return text
    return ""


def _faq_pages(payloads: List[Any]) -> Iterator[Mapping[str, Any]]:
    for payload in payloads:
        for item in ld_items(payload):
            if FAQ_PAGE_TYPE in type_names(item):
                yield item


def structured_faq(payloads: List[Any]) -> Tuple[bool, List[FaqEntry]]:
    """Return (FAQPage present, question/answer pairs found in it)."""

    found = False
    entries: List[FaqEntry] = []
    for page in _faq_pages(payloads):
        found = True
        for question in _as_list(page.get("mainEntity")):
            if not isinstance(question, Mapping):
                continue
            name = html_to_text(str(question.get("name") or ""))
            answer = _answer_text(question)
            if name and answer:
                entries.append(FaqEntry(question=name, answer=answer, from_structured_data=True))
    return found, entries


def _quotes(soup: BeautifulSoup) -> Tuple[int, List[QuoteEntry]]:
    quotes = soup.find_all("blockquote")
    details: List[QuoteEntry] = []
    for quote in quotes:
        text = _element_text(quote)
        if not text:
            continue
        cite_el = quote.find("cite")
        details.append(
            QuoteEntry(
                text=text,
                cite=str(quote.get("cite") or ""),
                author=_element_text(cite_el) if cite_el is not None else "",
            )
        )
    return len(quotes), details


def has_microdata(soup: BeautifulSoup) -> bool:
    return soup.find(lambda tag: tag.has_attr("itemscope") or tag.has_attr("itemtype")) is not None


def extract_content(soup: BeautifulSoup, payloads: Optional[List[Any]] = None) -> ContentStats:
    payloads = ld_json_scripts(soup) if payloads is None else payloads
    stats = ContentStats()

    stats.faq_details = heuristic_faq(soup)
    stats.has_faq_structured_data, structured = structured_faq(payloads)
    if structured:
        stats.faq_details = structured

    stats.blockquotes, stats.quotes_details = _quotes(soup)
    stats.citation_markers = len(soup.find_all("cite"))

    stats.has_structured_linking_data = has_ld_json_script(soup)
    stats.has_any_structured_markup = stats.has_structured_linking_data or has_microdata(soup)
    return stats


__all__ = [
    "ContentStats",
    "FaqEntry",
    "QuoteEntry",
    "extract_content",
    "has_microdata",
    "heuristic_faq",
    "in_consent_banner",
    "structured_faq",
]
