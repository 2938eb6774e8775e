"""Media facts: image alt coverage, video/audio presence, optimized-media markers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from .audit_config import (
    MAX_IMAGES_DETAILS,
    MAX_IMAGES_WITHOUT_ALT_DETAILS,
    OPTIMIZED_MEDIA_CLASSES,
    VIDEO_HOST_MARKERS,
)
from .audit_utils import class_string


@dataclass
class MediaStats:
    images: int = 0
    images_with_alt: int = 0
    images_without_alt_details: List[Dict[str, Any]] = field(default_factory=list)
    images_details: List[Dict[str, Any]] = field(default_factory=list)
    videos: int = 0
    audios: int = 0
    optimized: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in OPTIMIZED_MEDIA_CLASSES})

    @property
    def images_without_alt(self) -> int:
        return self.images - self.images_with_alt

    def to_dict(self) -> Dict[str, Any]:
        return {
            "images": self.images,
            "imagesWithAlt": self.images_with_alt,
            "imagesWithoutAlt": self.images_without_alt,
            "imagesWithoutAltDetails": list(self.images_without_alt_details),
            "imagesDetails": list(self.images_details),
            "videos": self.videos,
            "audios": self.audios,
            "optimized": dict(self.optimized),
        }


def _is_video_embed(tag) -> bool:
    if tag.name not in {"iframe", "embed"}:
        return False
    src = str(tag.get("src") or "").lower()
    return any(marker in src for marker in VIDEO_HOST_MARKERS)


def extract_media(soup: BeautifulSoup) -> MediaStats:
    stats = MediaStats()

    for img in soup.find_all("img"):
        src = str(img.get("src") or img.get("data-src") or "")
        alt = str(img.get("alt") or "").strip()
        has_alt = bool(alt)
        stats.images += 1
        if has_alt:
            stats.images_with_alt += 1
        elif len(stats.images_without_alt_details) < MAX_IMAGES_WITHOUT_ALT_DETAILS:
            stats.images_without_alt_details.append({"src": src, "alt": alt})
        if len(stats.images_details) < MAX_IMAGES_DETAILS:
            stats.images_details.append({"src": src, "alt": alt, "hasAlt": has_alt})

    stats.videos = len(soup.find_all("video")) + len(soup.find_all(_is_video_embed))
    stats.audios = len(soup.find_all("audio"))

    for element in soup.find_all(class_=True):
        classes = class_string(element.get("class"))
        for key, marker in OPTIMIZED_MEDIA_CLASSES.items():
            if marker in classes:
                stats.optimized[key] += 1
    return stats


__all__ = ["MediaStats", "extract_media"]
