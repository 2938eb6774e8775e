"""Usable-page vs. soft-block/challenge classifier for fetched bodies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .audit_config import CHALLENGE_SIGNATURES, MIN_BODY_CHARS, STRUCTURAL_TAGS


class RejectionReason(str, Enum):
    OK = "ok"
    TOO_SHORT = "too-short"
    CHALLENGE_PATTERN_MATCHED = "challenge-pattern-matched"
    NO_STRUCTURAL_MARKUP = "no-structural-markup"


@dataclass(frozen=True)
class ValidationVerdict:
    accepted: bool
    reason: RejectionReason
    matched: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"accepted": self.accepted, "reason": self.reason.value}
        if self.matched:
            payload["matched"] = self.matched
        return payload


_RE_STRUCTURAL = re.compile(
    r"<\s*(?:%s)(?:[\s>/])" % "|".join(re.escape(tag) for tag in STRUCTURAL_TAGS),
    re.I,
)


def _first_signature(lowered: str, signatures: Sequence[str]) -> Optional[str]:
    for signature in signatures:
        if signature in lowered:
            return signature
    return None


def validate_response(
    body: Optional[str],
    *,
    min_length: int = MIN_BODY_CHARS,
    signatures: Sequence[str] = CHALLENGE_SIGNATURES,
) -> ValidationVerdict:
    """Classify a candidate body as usable markup or a block/challenge page.

    Checks run in a fixed order (length, challenge signatures, structural
    tags) so the reported reason is deterministic for a given body.
    """

    text = body or ""
    if len(text) < min_length:
        return ValidationVerdict(False, RejectionReason.TOO_SHORT)
    lowered = text.lower()
    hit = _first_signature(lowered, signatures)
    if hit:
        return ValidationVerdict(False, RejectionReason.CHALLENGE_PATTERN_MATCHED, hit)
    if not _RE_STRUCTURAL.search(text):
        return ValidationVerdict(False, RejectionReason.NO_STRUCTURAL_MARKUP)
    return ValidationVerdict(True, RejectionReason.OK)


__all__ = ["RejectionReason", "ValidationVerdict", "validate_response"]
