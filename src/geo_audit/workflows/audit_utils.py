"""Shared helper functions used by the audit workflow."""

from __future__ import annotations

import os
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Optional, Union
from urllib.parse import urlparse

Number = Union[int, float, Decimal]

_TWO_PLACES = Decimal("0.01")


def trunc2_decimal(value: Number) -> Decimal:
    """Truncate toward negative infinity at two decimal places."""

    dec = value if isinstance(value, Decimal) else Decimal(repr(float(value)))
    return dec.quantize(_TWO_PLACES, rounding=ROUND_FLOOR)


def trunc2(value: Number) -> float:
    """Round *down* to two decimals (``floor(x * 100) / 100`` without float drift)."""

    return float(trunc2_decimal(value))


def sum_trunc2(values: Iterable[Number]) -> float:
    """Sum already-truncated components exactly, then truncate the total."""

    total = sum((Decimal(repr(float(v))) for v in values), Decimal("0"))
    return float(trunc2_decimal(total))


def idna_normalize(host: str) -> str:
    """Return a lowercase, IDNA-normalized host name."""

    h = (host or "").strip().rstrip(".").lower()
    if not h:
        return ""
    try:
        h = h.encode("idna").decode("ascii")
    except UnicodeError:
        pass
    return h


def is_http_url(url: Optional[str]) -> bool:
    """Return True for absolute http(s) URLs with a host."""

    raw = (url or "").strip()
    if not raw or any(ch.isspace() for ch in raw):
        return False
    try:
        parsed = urlparse(raw)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(idna_normalize(parsed.hostname or ""))


def env_float(name: str, default: float) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def env_bool(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def class_string(value: object) -> str:
    """Flatten a BeautifulSoup ``class`` attribute (list or str) to one string."""

    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def sanity_check() -> None:
    assert trunc2(2.5) == 2.5
    assert trunc2(0.29) == 0.29
    assert trunc2(10 / 3) == 3.33
    assert trunc2(trunc2(7.129)) == trunc2(7.129) == 7.12
    assert sum_trunc2([3.33, 5, 5, 5]) == 18.33
    assert idna_normalize("ExAmple.COM.") == "example.com"
    assert is_http_url("https://example.com/page")
    assert not is_http_url("ftp://example.com")
    assert not is_http_url("not a url")


sanity_check()

__all__ = [
    "trunc2",
    "trunc2_decimal",
    "sum_trunc2",
    "idna_normalize",
    "is_http_url",
    "env_float",
    "env_bool",
    "class_string",
    "sanity_check",
]
