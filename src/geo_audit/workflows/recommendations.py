"""Ordered remediation rules over the extracted facts and the final score.

Each rule is evaluated on its own; none suppresses another, and the output
order is the rule order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional

from .audit_config import VIDEO_RECOMMENDATION_SCORE_CEILING
from .extract_content import ContentStats
from .extract_entities import EntityStats
from .extract_media import MediaStats
from .extract_metadata import MetadataStats


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Recommendation:
    priority: Priority
    category: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"priority": self.priority.value, "category": self.category, "message": self.message}


class AuditFacts(NamedTuple):
    entities: EntityStats
    media: MediaStats
    content: ContentStats
    metadata: MetadataStats
    score: float


Rule = Callable[[AuditFacts], Optional[Recommendation]]


def _no_entities(f: AuditFacts) -> Optional[Recommendation]:
    if f.entities.organization + f.entities.person == 0:
        return Recommendation(
            Priority.HIGH, "Entities", "Add schema.org entities (Organization, Person) as JSON-LD"
        )
    return None


def _no_organization(f: AuditFacts) -> Optional[Recommendation]:
    if f.entities.organization == 0:
        return Recommendation(Priority.HIGH, "Entities", "Create an Organization entity for your business")
    return None


def _no_faq(f: AuditFacts) -> Optional[Recommendation]:
    if f.content.faq == 0:
        return Recommendation(Priority.HIGH, "Content", "Add an FAQ section marked up with schema.org FAQPage")
    return None


def _no_quotes(f: AuditFacts) -> Optional[Recommendation]:
    if f.content.blockquotes == 0:
        return Recommendation(Priority.MEDIUM, "Content", "Add quotations with attributed sources to build credibility")
    return None


def _missing_alt(f: AuditFacts) -> Optional[Recommendation]:
    missing = f.media.images_without_alt
    if missing > 0:
        return Recommendation(Priority.HIGH, "Media", f"Add an alt attribute to {missing} image(s)")
    return None


def _no_structured_markup(f: AuditFacts) -> Optional[Recommendation]:
    if not f.content.has_any_structured_markup:
        return Recommendation(
            Priority.HIGH, "Technical", "Implement schema.org JSON-LD structured data (preferred over microdata)"
        )
    return None


def _no_video(f: AuditFacts) -> Optional[Recommendation]:
    if f.media.videos == 0 and f.score < VIDEO_RECOMMENDATION_SCORE_CEILING:
        return Recommendation(Priority.MEDIUM, "Media", "Add videos to enrich the content")
    return None


def _no_social_preview(f: AuditFacts) -> Optional[Recommendation]:
    if not f.metadata.has_social_preview:
        return Recommendation(Priority.MEDIUM, "Metadata", "Add Open Graph tags (og:title, og:image)")
    return None


RULES: List[Rule] = [
    _no_entities,
    _no_organization,
    _no_faq,
    _no_quotes,
    _missing_alt,
    _no_structured_markup,
    _no_video,
    _no_social_preview,
]


def generate_recommendations(facts: AuditFacts) -> List[Recommendation]:
    out: List[Recommendation] = []
    for rule in RULES:
        rec = rule(facts)
        if rec is not None:
            out.append(rec)
    return out


__all__ = ["Priority", "Recommendation", "AuditFacts", "RULES", "generate_recommendations"]
