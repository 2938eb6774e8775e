"""HTML normalization helpers for tolerant extraction.

This module is deterministic and provider-agnostic. It exists to make
extraction reliable across brittle pages: malformed markup degrades to a
best-effort tree instead of raising.
"""

from __future__ import annotations

import re
import unicodedata
import warnings
from typing import Mapping, Optional

import ftfy
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from charset_normalizer import from_bytes

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

__all__ = [
    "decode_bytes_auto",
    "minimal_text_fix",
    "parse_markup",
    "html_to_text",
]

_ZERO_WIDTH = {0x200B, 0x200C, 0x200D, 0x2060, 0xFEFF}
_REMOVE = {0x00, 0x0B, 0x0C}
_C1_TO_SPACE = {cp: " " for cp in range(0x80, 0xA0)}
_TRANSLATE = {**{cp: None for cp in _ZERO_WIDTH | _REMOVE}, **_C1_TO_SPACE}
_PARSERS = ("lxml", "html5lib", "html.parser")


def decode_bytes_auto(body: bytes, headers: Optional[Mapping[str, str]] = None) -> str:
    """Decode HTTP bytes using charset header hints with charset-normalizer fallback."""

    if not body:
        return ""
    enc = None
    if headers:
        ct = headers.get("content-type", "") or headers.get("Content-Type", "")
        match = re.search(r"charset=([^\s;]+)", ct, re.I)
        if match:
            enc = match.group(1).strip(' "\'').lower()
    if enc:
        try:
            return body.decode(enc, errors="replace")
        except (LookupError, UnicodeError):
            pass
    result = from_bytes(body).best()
    if result is None:
        return body.decode("utf-8", errors="replace")
    return str(result)


def minimal_text_fix(text: str) -> str:
    """Fix mojibake and strip zero-width/control noise without collapsing structure."""

    if not text:
        return ""
    normalized = unicodedata.normalize("NFC", text)
    fixed = ftfy.fix_text(normalized, normalization="NFC", uncurl_quotes=False)
    return fixed.translate(_TRANSLATE)


def parse_markup(html: str) -> BeautifulSoup:
    """Parse markup with tolerant parsers, falling back until one succeeds."""

    payload = (html or "").replace("\x00", "")
    for parser in _PARSERS:
        try:
            return BeautifulSoup(payload, parser)
        except Exception:
            continue
    return BeautifulSoup("", "html.parser")


def html_to_text(fragment: str) -> str:
    """Collapse an HTML fragment (e.g. a JSON-LD answer) to plain text."""

    if not fragment:
        return ""
    if "<" not in fragment:
        return minimal_text_fix(fragment).strip()
    soup = parse_markup(fragment)
    return minimal_text_fix(soup.get_text(" ", strip=True))
