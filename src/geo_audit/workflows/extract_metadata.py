"""Document metadata (title, description, social preview) and platform sniffing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from .audit_config import PLATFORM_FINGERPRINTS, PLATFORM_MIN_MATCHES


@dataclass(frozen=True)
class MetadataStats:
    has_title: bool = False
    title: str = ""
    has_description: bool = False
    description: str = ""
    has_social_preview: bool = False
    social_title: str = ""

    @property
    def title_length(self) -> int:
        return len(self.title)

    @property
    def description_length(self) -> int:
        return len(self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasTitle": self.has_title,
            "title": self.title,
            "titleLength": self.title_length,
            "hasDescription": self.has_description,
            "description": self.description,
            "descriptionLength": self.description_length,
            "hasSocialPreview": self.has_social_preview,
            "socialTitle": self.social_title,
        }


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    """Content of the first ``<meta attr=value content=...>``, None when absent."""

    for tag in soup.find_all("meta"):
        if str(tag.get(attr) or "").strip().lower() == value and tag.has_attr("content"):
            return str(tag.get("content") or "").strip()
    return None


def extract_metadata(soup: BeautifulSoup) -> MetadataStats:
    head = soup.head or soup
    title_el = head.find("title") or soup.find("title")
    description = _meta_content(soup, "name", "description")
    social_title = _meta_content(soup, "property", "og:title")
    social_image = _meta_content(soup, "property", "og:image")
    return MetadataStats(
        has_title=title_el is not None,
        title=title_el.get_text(" ", strip=True) if title_el is not None else "",
        has_description=description is not None,
        description=description or "",
        has_social_preview=social_title is not None and social_image is not None,
        social_title=social_title or "",
    )


def count_platform_fingerprints(html: str) -> int:
    lowered = (html or "").lower()
    return sum(1 for marker in PLATFORM_FINGERPRINTS if marker in lowered)


def detect_common_platform(html: str) -> bool:
    """Likely WordPress when at least two fingerprints appear in the raw markup."""

    return count_platform_fingerprints(html) >= PLATFORM_MIN_MATCHES


__all__ = ["MetadataStats", "extract_metadata", "count_platform_fingerprints", "detect_common_platform"]
