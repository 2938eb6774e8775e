"""Four-category score breakdown under fixed caps.

Every component is clamped to its cap and truncated (never rounded) to two
decimals; the score is the exact sum of the truncated components, truncated
again. ``score == sum(breakdown)`` therefore holds for every report.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from ..core.keys import K_BD_ENTITIES, K_BD_MEDIA, K_BD_METADATA, K_BD_STRUCTURE
from .audit_config import ENTITIES_CAP, MEDIA_CAP, METADATA_CAP, STRUCTURE_CAP
from .audit_utils import sum_trunc2, trunc2
from .extract_content import ContentStats
from .extract_entities import EntityStats
from .extract_media import MediaStats
from .extract_metadata import MetadataStats


@dataclass(frozen=True)
class ScoreBreakdown:
    entities: float = 0.0
    media: float = 0.0
    structure: float = 0.0
    metadata: float = 0.0

    @property
    def score(self) -> float:
        return sum_trunc2((self.entities, self.media, self.structure, self.metadata))

    def to_dict(self) -> Dict[str, float]:
        return {
            K_BD_ENTITIES: self.entities,
            K_BD_MEDIA: self.media,
            K_BD_STRUCTURE: self.structure,
            K_BD_METADATA: self.metadata,
        }


def _component(points: float, cap: int) -> float:
    return trunc2(min(cap, points))


def score_entities(entities: EntityStats) -> float:
    points = 0
    if entities.organization > 0:
        points += 10
    points += 5 * min(entities.person, 2)
    if entities.scored_total >= 3:
        points += 10
    return _component(points, ENTITIES_CAP)


def score_media(media: MediaStats) -> float:
    points = 0.0
    if media.images > 0:
        points += 10 * (media.images_with_alt / media.images)
    if media.videos > 0:
        points += 10
    if media.audios > 0:
        points += 5
    return _component(points, MEDIA_CAP)


def score_structure(content: ContentStats) -> float:
    points = 0
    if content.faq >= 2:
        points += 10
    if content.has_faq_structured_data:
        points += 5
    if content.blockquotes > 0:
        points += 5
    if content.has_any_structured_markup:
        points += 5
    return _component(points, STRUCTURE_CAP)


def score_metadata(metadata: MetadataStats, content: ContentStats) -> float:
    points = 5 * sum(
        (
            metadata.has_title,
            metadata.has_description,
            metadata.has_social_preview,
            content.has_any_structured_markup,
        )
    )
    return _component(points, METADATA_CAP)


def compute_breakdown(
    entities: EntityStats,
    media: MediaStats,
    content: ContentStats,
    metadata: MetadataStats,
) -> ScoreBreakdown:
    return ScoreBreakdown(
        entities=score_entities(entities),
        media=score_media(media),
        structure=score_structure(content),
        metadata=score_metadata(metadata, content),
    )


__all__ = [
    "ScoreBreakdown",
    "compute_breakdown",
    "score_entities",
    "score_media",
    "score_structure",
    "score_metadata",
]
