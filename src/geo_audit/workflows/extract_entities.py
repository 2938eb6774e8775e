"""Entity extraction from JSON-LD blocks and schema.org microdata.

JSON-LD blocks are located with the HTML parser and decoded with ``json``;
each block contributes either its ``@graph`` members or itself as items.
Items are dispatched on ``@type`` into a closed set of entity kinds, anything
else is dropped. Microdata ``itemscope`` elements only bump the Organization
and Person counters (no detail records), and are summed with the JSON-LD
counts without de-duplication.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from bs4 import BeautifulSoup

from .audit_config import LD_JSON_TYPE, MICRODATA_ORGANIZATION, MICRODATA_PERSON, UNNAMED_ENTITY
from .audit_utils import class_string

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JSON-LD blocks
# ---------------------------------------------------------------------------


def _is_ld_script(tag) -> bool:
    if tag.name != "script":
        return False
    return str(tag.get("type") or "").strip().lower() == LD_JSON_TYPE


def ld_json_scripts(soup: BeautifulSoup) -> List[Any]:
    """Return the decoded payload of every parseable JSON-LD script, in document order."""

    payloads: List[Any] = []
    for script in soup.find_all(_is_ld_script):
        raw = script.string if script.string is not None else script.get_text()
        raw = (raw or "").strip()
        if raw.startswith("<!--") and raw.endswith("-->"):
            raw = raw[4:-3].strip()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.debug("Skipping unparseable JSON-LD block: %s", exc)
            continue
        if data:
            payloads.append(data)
    return payloads


def has_ld_json_script(soup: BeautifulSoup) -> bool:
    return soup.find(_is_ld_script) is not None


def ld_items(payload: Any) -> Iterator[Mapping[str, Any]]:
    """Yield the items of one JSON-LD payload (``@graph`` members or the payload itself)."""

    if isinstance(payload, list):
        for entry in payload:
            yield from ld_items(entry)
        return
    if not isinstance(payload, Mapping):
        return
    graph = payload.get("@graph")
    if isinstance(graph, list):
        for item in graph:
            if isinstance(item, Mapping):
                yield item
        return
    yield payload


def type_names(item: Mapping[str, Any]) -> List[str]:
    raw = item.get("@type")
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list):
        return [str(t) for t in raw if isinstance(t, str)]
    return []


def _type_label(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def describe_block(payload: Any) -> Dict[str, Any]:
    """Label one JSON-LD payload as ``{"type", "data"}`` for the report."""

    label = "Unknown"
    if isinstance(payload, Mapping) and payload.get("@type"):
        label = _type_label(payload["@type"])
    elif isinstance(payload, Mapping) and isinstance(payload.get("@graph"), list) and payload["@graph"]:
        seen: List[str] = []
        for item in payload["@graph"]:
            name = _type_label(item.get("@type")) if isinstance(item, Mapping) and item.get("@type") else "Unknown"
            if name not in seen:
                seen.append(name)
        label = ", ".join(seen)
    return {"type": label, "data": payload}


def structured_blocks(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    return [describe_block(payload) for payload in ld_json_scripts(soup)]


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------

_ADDRESS_PARTS = ("streetAddress", "postalCode", "addressLocality", "addressRegion", "addressCountry")


def _text(value: Any, keys: Tuple[str, ...] = ("name",)) -> str:
    """Display string for a field that may be a string, an object or a list."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, Mapping):
        for key in keys:
            text = _text(value.get(key), keys)
            if text:
                return text
        return ""
    if isinstance(value, list):
        for entry in value:
            text = _text(entry, keys)
            if text:
                return text
    return ""


def _address(value: Any) -> str:
    if isinstance(value, list):
        return next((a for a in (_address(v) for v in value) if a), "")
    if not isinstance(value, Mapping):
        return _text(value)
    parts = [_text(value.get(key)) for key in _ADDRESS_PARTS]
    return ", ".join(p for p in parts if p)


def _schema_term(value: Any) -> str:
    text = _text(value)
    return text.rstrip("/").rsplit("/", 1)[-1] if "schema.org" in text else text


def _offers(value: Any) -> List[str]:
    if isinstance(value, Mapping):
        value = [value]
    if not isinstance(value, list):
        return []
    formatted: List[str] = []
    for offer in value:
        if not isinstance(offer, Mapping):
            continue
        price = " ".join(p for p in (_text(offer.get("price")), _text(offer.get("priceCurrency"))) if p)
        availability = _schema_term(offer.get("availability"))
        formatted.append(" - ".join(p for p in (price, availability) if p))
    return formatted


def _name(item: Mapping[str, Any]) -> str:
    return _text(item.get("name")) or UNNAMED_ENTITY


# ---------------------------------------------------------------------------
# Entity variants
# ---------------------------------------------------------------------------


class EntityKind(str, Enum):
    ORGANIZATION = "Organization"
    PERSON = "Person"
    SERVICE = "Service"
    PRODUCT = "Product"
    LOCAL_BUSINESS = "LocalBusiness"


@dataclass(frozen=True)
class Organization:
    kind: ClassVar[EntityKind] = EntityKind.ORGANIZATION
    name: str
    url: str = ""
    logo: str = ""
    address: str = ""

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "Organization":
        return cls(
            name=_name(item),
            url=_text(item.get("url")),
            logo=_text(item.get("logo"), ("url", "contentUrl")),
            address=_address(item.get("address")),
        )

    def fields(self) -> Dict[str, Any]:
        return {"url": self.url, "logo": self.logo, "address": self.address}


@dataclass(frozen=True)
class Person:
    kind: ClassVar[EntityKind] = EntityKind.PERSON
    name: str
    job_title: str = ""
    works_for: str = ""

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "Person":
        return cls(
            name=_name(item),
            job_title=_text(item.get("jobTitle")),
            works_for=_text(item.get("worksFor")),
        )

    def fields(self) -> Dict[str, Any]:
        return {"jobTitle": self.job_title, "worksFor": self.works_for}


@dataclass(frozen=True)
class Service:
    kind: ClassVar[EntityKind] = EntityKind.SERVICE
    name: str
    provider: str = ""
    area_served: str = ""

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "Service":
        return cls(
            name=_name(item),
            provider=_text(item.get("provider")),
            area_served=_text(item.get("areaServed")),
        )

    def fields(self) -> Dict[str, Any]:
        return {"provider": self.provider, "areaServed": self.area_served}


@dataclass(frozen=True)
class Product:
    kind: ClassVar[EntityKind] = EntityKind.PRODUCT
    name: str
    brand: str = ""
    offers: Tuple[str, ...] = ()

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "Product":
        return cls(
            name=_name(item),
            brand=_text(item.get("brand")),
            offers=tuple(_offers(item.get("offers"))),
        )

    def fields(self) -> Dict[str, Any]:
        return {"brand": self.brand, "offers": list(self.offers)}


@dataclass(frozen=True)
class LocalBusiness:
    kind: ClassVar[EntityKind] = EntityKind.LOCAL_BUSINESS
    name: str
    address: str = ""
    telephone: str = ""
    price_range: str = ""

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "LocalBusiness":
        return cls(
            name=_name(item),
            address=_address(item.get("address")),
            telephone=_text(item.get("telephone")),
            price_range=_text(item.get("priceRange")),
        )

    def fields(self) -> Dict[str, Any]:
        return {"address": self.address, "telephone": self.telephone, "priceRange": self.price_range}


ExtractedEntity = Union[Organization, Person, Service, Product, LocalBusiness]

ENTITY_BUILDERS: Dict[EntityKind, Callable[[Mapping[str, Any]], ExtractedEntity]] = {
    EntityKind.ORGANIZATION: Organization.from_item,
    EntityKind.PERSON: Person.from_item,
    EntityKind.SERVICE: Service.from_item,
    EntityKind.PRODUCT: Product.from_item,
    EntityKind.LOCAL_BUSINESS: LocalBusiness.from_item,
}


def entity_to_dict(entity: ExtractedEntity) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": entity.kind.value, "name": entity.name}
    payload.update(entity.fields())
    payload["hasStructuredSource"] = True
    return payload


def classify_item(item: Mapping[str, Any]) -> Optional[EntityKind]:
    """First known entity kind among the item's ``@type`` values, else None."""

    for name in type_names(item):
        try:
            return EntityKind(name)
        except ValueError:
            continue
    return None


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass
class EntityStats:
    organization: int = 0
    person: int = 0
    service: int = 0
    product: int = 0
    local_business: int = 0
    details: List[ExtractedEntity] = field(default_factory=list)

    _COUNTERS: ClassVar[Dict[EntityKind, str]] = {
        EntityKind.ORGANIZATION: "organization",
        EntityKind.PERSON: "person",
        EntityKind.SERVICE: "service",
        EntityKind.PRODUCT: "product",
        EntityKind.LOCAL_BUSINESS: "local_business",
    }

    def bump(self, kind: EntityKind) -> None:
        attr = self._COUNTERS[kind]
        setattr(self, attr, getattr(self, attr) + 1)

    def add(self, entity: ExtractedEntity) -> None:
        self.bump(entity.kind)
        self.details.append(entity)

    @property
    def scored_total(self) -> int:
        """Organization + Person + Service + Product (LocalBusiness is not scored)."""
        return self.organization + self.person + self.service + self.product

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organization": self.organization,
            "person": self.person,
            "service": self.service,
            "product": self.product,
            "localBusiness": self.local_business,
            "details": [entity_to_dict(e) for e in self.details],
        }


def _count_microdata(soup: BeautifulSoup, stats: EntityStats) -> None:
    for element in soup.find_all(attrs={"itemscope": True}):
        itemtype = class_string(element.get("itemtype"))
        if MICRODATA_ORGANIZATION in itemtype:
            stats.bump(EntityKind.ORGANIZATION)
        elif MICRODATA_PERSON in itemtype:
            stats.bump(EntityKind.PERSON)


def extract_entities(soup: BeautifulSoup, payloads: Optional[List[Any]] = None) -> EntityStats:
    """Collect entity counts and detail records from a parsed document."""

    stats = EntityStats()
    for payload in ld_json_scripts(soup) if payloads is None else payloads:
        for item in ld_items(payload):
            kind = classify_item(item)
            if kind is None:
                continue
            stats.add(ENTITY_BUILDERS[kind](item))
    _count_microdata(soup, stats)
    return stats


__all__ = [
    "EntityKind",
    "EntityStats",
    "ExtractedEntity",
    "Organization",
    "Person",
    "Service",
    "Product",
    "LocalBusiness",
    "ENTITY_BUILDERS",
    "classify_item",
    "describe_block",
    "entity_to_dict",
    "extract_entities",
    "has_ld_json_script",
    "ld_items",
    "ld_json_scripts",
    "structured_blocks",
    "type_names",
]
