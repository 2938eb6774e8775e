"""Acquisition orchestrator: walk the strategy cascade until a body validates.

The cascade order is fixed (cheapest and least intrusive first, paid provider
rendering last unless explicitly requested):

1. bot-identified fetch (``identify_as_bot``)
2. scraping provider (``use_scraping_provider`` and a provider is configured)
3. advanced-bypass group in sub-order (``use_proxy_strategy``)
4. realistic-browser fetch
5. basic fetch
6. local fallback
7. scraping provider as last resort (configured but not tried in step 2)

Strategies run strictly one after another; the first validated body wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..core.keys import (
    K_REQ_IDENTIFY_AS_BOT,
    K_REQ_MARKUP,
    K_REQ_MODE,
    K_REQ_PAGE_TYPE,
    K_REQ_URL,
    K_REQ_USE_PROXY_STRATEGY,
    K_REQ_USE_SCRAPING_PROVIDER,
)
from .audit_config import DEFAULT_PAGE_TYPE, MARKUP_URL_LABEL, MIN_MARKUP_CHARS
from .audit_utils import is_http_url
from .providers import DISABLED_PROVIDER, ProviderConfig, fetch_via_provider, provider_strategy_name
from .response_validator import ValidationVerdict, validate_response
from .strategies import FetchOutcome, Strategy, StrategySet, build_strategy_set

logger = logging.getLogger(__name__)


class InputError(ValueError):
    """Invalid request input; surfaced before any acquisition is attempted."""


class AcquisitionError(RuntimeError):
    """Every strategy (and the provider, when configured) failed validation."""

    def __init__(self, url: str, provider_configured: bool, attempts: Sequence[Mapping[str, Any]]) -> None:
        hint = (
            "the configured scraping provider was tried as well"
            if provider_configured
            else "no scraping provider is configured"
        )
        super().__init__(
            f"Unable to retrieve {url}: the page did not respond, is unreachable, or blocks "
            f"automated requests ({hint}). Try again by pasting the page markup (markup mode)."
        )
        self.url = url
        self.provider_configured = provider_configured
        self.attempts = [dict(a) for a in attempts]


class AcquisitionMode(str, Enum):
    URL = "url"
    MARKUP = "markup"


_MODE_ALIASES = {"url": AcquisitionMode.URL, "markup": AcquisitionMode.MARKUP, "html": AcquisitionMode.MARKUP}


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class AcquisitionRequest:
    mode: AcquisitionMode
    url: str
    markup: str = ""
    page_type: str = DEFAULT_PAGE_TYPE
    use_proxy_strategy: bool = False
    use_scraping_provider: bool = False
    identify_as_bot: bool = False

    @classmethod
    def for_url(cls, url: str, **flags: Any) -> "AcquisitionRequest":
        return cls.from_payload({K_REQ_MODE: AcquisitionMode.URL.value, K_REQ_URL: url, **flags})

    @classmethod
    def for_markup(cls, markup: str, url: Optional[str] = None, page_type: str = DEFAULT_PAGE_TYPE) -> "AcquisitionRequest":
        return cls.from_payload(
            {K_REQ_MODE: AcquisitionMode.MARKUP.value, K_REQ_MARKUP: markup, K_REQ_URL: url, K_REQ_PAGE_TYPE: page_type}
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AcquisitionRequest":
        """Validate a request record; raises :class:`InputError` on bad input."""

        if not isinstance(payload, Mapping):
            raise InputError("Request body must be a JSON object")
        raw_mode = str(payload.get(K_REQ_MODE) or AcquisitionMode.URL.value).strip().lower()
        mode = _MODE_ALIASES.get(raw_mode)
        if mode is None:
            raise InputError(f"Unknown mode: {raw_mode}")
        page_type = str(payload.get(K_REQ_PAGE_TYPE) or DEFAULT_PAGE_TYPE).strip() or DEFAULT_PAGE_TYPE
        flags = {
            "use_proxy_strategy": _as_flag(payload.get(K_REQ_USE_PROXY_STRATEGY, payload.get("useProxy", False))),
            "use_scraping_provider": _as_flag(payload.get(K_REQ_USE_SCRAPING_PROVIDER, False)),
            "identify_as_bot": _as_flag(payload.get(K_REQ_IDENTIFY_AS_BOT, False)),
        }
        if mode is AcquisitionMode.MARKUP:
            markup = payload.get(K_REQ_MARKUP, payload.get("html")) or ""
            if not isinstance(markup, str) or len(markup) < MIN_MARKUP_CHARS:
                raise InputError(f"Markup is missing or shorter than {MIN_MARKUP_CHARS} characters")
            label = str(payload.get(K_REQ_URL) or "").strip() or MARKUP_URL_LABEL
            return cls(mode=mode, url=label, markup=markup, page_type=page_type, **flags)
        url = str(payload.get(K_REQ_URL) or "").strip()
        if not is_http_url(url):
            raise InputError("URL is missing or invalid")
        return cls(mode=mode, url=url, page_type=page_type, **flags)


@dataclass(frozen=True)
class ProviderStrategy:
    """Adapter presenting the provider call as one more cascade member."""

    name: str
    priority: int
    config: ProviderConfig
    fetch: Callable[[str, ProviderConfig], FetchOutcome] = fetch_via_provider

    def attempt(self, url: str) -> FetchOutcome:
        try:
            return self.fetch(url, self.config)
        except Exception as exc:
            logger.exception("Provider %s crashed for %s", self.name, url)
            return FetchOutcome.failure(self.name, f"crashed: {exc}")


CascadeMember = Union[Strategy, ProviderStrategy]


@dataclass(frozen=True)
class AcquisitionResult:
    markup: str
    strategy: str
    status_code: int
    final_url: Optional[str] = None
    attempts: List[Dict[str, Any]] = field(default_factory=list)


def _attempt_record(outcome: FetchOutcome, verdict: Optional[ValidationVerdict]) -> Dict[str, Any]:
    record = outcome.to_dict()
    if verdict is not None:
        record["verdict"] = verdict.reason.value
    return record


class AcquisitionOrchestrator:
    """Run the strategy cascade for one request, short-circuiting on success."""

    def __init__(
        self,
        provider_config: ProviderConfig = DISABLED_PROVIDER,
        strategies: Optional[StrategySet] = None,
        *,
        provider_fetch: Callable[[str, ProviderConfig], FetchOutcome] = fetch_via_provider,
        validator: Callable[[str], ValidationVerdict] = validate_response,
    ) -> None:
        self.provider_config = provider_config
        self.strategies = strategies or build_strategy_set()
        self._provider_fetch = provider_fetch
        self._validator = validator

    @property
    def provider_configured(self) -> bool:
        return self.provider_config.enabled

    def _provider_member(self, priority: int) -> ProviderStrategy:
        return ProviderStrategy(
            name=provider_strategy_name(self.provider_config),
            priority=priority,
            config=self.provider_config,
            fetch=self._provider_fetch,
        )

    def plan(self, request: AcquisitionRequest) -> List[CascadeMember]:
        """Return the ordered cascade for ``request``."""

        cascade: List[CascadeMember] = []
        provider_early = request.use_scraping_provider and self.provider_configured
        if request.identify_as_bot:
            cascade.append(self.strategies.bot)
        if provider_early:
            cascade.append(self._provider_member(priority=5))
        if request.use_proxy_strategy:
            cascade.extend(sorted(self.strategies.bypass, key=lambda s: s.priority))
        cascade.append(self.strategies.browser)
        cascade.append(self.strategies.basic)
        cascade.append(self.strategies.local)
        if self.provider_configured and not provider_early:
            cascade.append(self._provider_member(priority=50))
        return cascade

    def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        """Return validated markup for ``request`` or raise :class:`AcquisitionError`."""

        if request.mode is AcquisitionMode.MARKUP:
            return AcquisitionResult(markup=request.markup, strategy="inline", status_code=200)

        attempts: List[Dict[str, Any]] = []
        for member in self.plan(request):
            outcome = member.attempt(request.url)
            if not outcome.ok:
                attempts.append(_attempt_record(outcome, None))
                continue
            verdict = self._validator(outcome.body)
            attempts.append(_attempt_record(outcome, verdict))
            if verdict.accepted:
                logger.info("Acquired %s via %s", request.url, member.name)
                return AcquisitionResult(
                    markup=outcome.body,
                    strategy=member.name,
                    status_code=outcome.status_code,
                    final_url=outcome.final_url,
                    attempts=attempts,
                )
            logger.info("Strategy %s rejected for %s: %s", member.name, request.url, verdict.reason.value)

        logger.warning("All %d strategies failed for %s", len(attempts), request.url)
        raise AcquisitionError(request.url, self.provider_configured, attempts)


__all__ = [
    "InputError",
    "AcquisitionError",
    "AcquisitionMode",
    "AcquisitionRequest",
    "AcquisitionResult",
    "AcquisitionOrchestrator",
    "ProviderStrategy",
]
