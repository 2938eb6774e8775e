"""Markup → AuditReport: extraction, scoring and recommendations in one pass."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.keys import (
    K_BREAKDOWN,
    K_CONTENT,
    K_ENTITIES,
    K_IS_LIKELY_COMMON_PLATFORM,
    K_MEDIA,
    K_METADATA,
    K_PAGE_TYPE,
    K_RECOMMENDATIONS,
    K_SCORE,
    K_STRUCTURED_BLOCKS,
    K_TIMESTAMP,
    K_URL,
)
from .audit_config import DEFAULT_PAGE_TYPE
from .extract_content import ContentStats, extract_content
from .extract_entities import EntityStats, describe_block, extract_entities, ld_json_scripts
from .extract_media import MediaStats, extract_media
from .extract_metadata import MetadataStats, detect_common_platform, extract_metadata
from .html_normalize import parse_markup
from .recommendations import AuditFacts, Recommendation, generate_recommendations
from .scoring import ScoreBreakdown, compute_breakdown

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class AuditReport:
    url: str
    page_type: str
    timestamp: str
    is_likely_common_platform: bool
    entities: EntityStats
    media: MediaStats
    content: ContentStats
    metadata: MetadataStats
    structured_blocks: List[Dict[str, Any]]
    breakdown: ScoreBreakdown
    recommendations: List[Recommendation] = field(default_factory=list)

    @property
    def score(self) -> float:
        return self.breakdown.score

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_URL: self.url,
            K_PAGE_TYPE: self.page_type,
            K_TIMESTAMP: self.timestamp,
            K_SCORE: self.score,
            K_IS_LIKELY_COMMON_PLATFORM: self.is_likely_common_platform,
            K_ENTITIES: self.entities.to_dict(),
            K_MEDIA: self.media.to_dict(),
            K_CONTENT: self.content.to_dict(),
            K_METADATA: self.metadata.to_dict(),
            K_STRUCTURED_BLOCKS: list(self.structured_blocks),
            K_BREAKDOWN: self.breakdown.to_dict(),
            K_RECOMMENDATIONS: [r.to_dict() for r in self.recommendations],
        }

    def to_json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


def analyze_markup(
    html: str,
    url: str,
    page_type: str = DEFAULT_PAGE_TYPE,
    *,
    timestamp: Optional[str] = None,
) -> AuditReport:
    """Audit accepted markup. Deterministic apart from the timestamp."""

    soup = parse_markup(html)
    payloads = ld_json_scripts(soup)

    entities = extract_entities(soup, payloads)
    media = extract_media(soup)
    content = extract_content(soup, payloads)
    metadata = extract_metadata(soup)
    breakdown = compute_breakdown(entities, media, content, metadata)
    recommendations = generate_recommendations(
        AuditFacts(entities=entities, media=media, content=content, metadata=metadata, score=breakdown.score)
    )
    logger.debug("Audited %s: score=%s breakdown=%s", url, breakdown.score, breakdown.to_dict())

    return AuditReport(
        url=url,
        page_type=page_type,
        timestamp=timestamp or _utc_now(),
        is_likely_common_platform=detect_common_platform(html),
        entities=entities,
        media=media,
        content=content,
        metadata=metadata,
        structured_blocks=[describe_block(p) for p in payloads],
        breakdown=breakdown,
        recommendations=recommendations,
    )


__all__ = ["AuditReport", "analyze_markup"]
