"""Third-party rendering / anti-bot providers behind one ``fetch_via_provider`` call.

Provider selection is an enum-keyed registry validated when the configuration
is loaded; at call time an unknown or disabled provider is simply a failed
``FetchOutcome``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import requests

from .audit_config import (
    BRIGHTDATA_ENDPOINT,
    ENV_PROVIDER_CONFIG,
    PROVIDER_CONFIG_PATH,
    PROVIDER_DEFAULT_COUNTRY,
    PROVIDER_JSON_TIMEOUTS,
    PROVIDER_MIN_BODY_CHARS,
    PROVIDER_TIMEOUTS,
    SCRAPERAPI_ENDPOINT,
    SCRAPINGBEE_ENDPOINT,
    ZENROWS_ENDPOINT,
)
from .html_normalize import decode_bytes_auto
from .strategies import FetchOutcome

logger = logging.getLogger(__name__)


class ProviderService(str, Enum):
    SCRAPINGBEE = "scrapingbee"
    SCRAPERAPI = "scraperapi"
    ZENROWS = "zenrows"
    BRIGHTDATA = "brightdata"


class ProviderError(RuntimeError):
    """A single provider call failed; never fatal for the acquisition cascade."""

    def __init__(self, service: str, message: str, status_code: int = 0) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


@dataclass(frozen=True)
class ProviderConfig:
    service: Optional[ProviderService] = None
    api_key: str = field(default="", repr=False)
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def enabled(self) -> bool:
        return self.service is not None and bool(self.api_key)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProviderConfig":
        raw_service = str(data.get("service") or "").strip().lower()
        service: Optional[ProviderService] = None
        if raw_service:
            try:
                service = ProviderService(raw_service)
            except ValueError:
                logger.warning("Unknown scraping provider %r; provider fallback disabled", raw_service)
        options = data.get("options")
        if not isinstance(options, Mapping):
            options = {}
        return cls(
            service=service,
            api_key=str(data.get("api_key") or "").strip(),
            options=MappingProxyType(dict(options)),
        )


DISABLED_PROVIDER = ProviderConfig()


def resolve_provider_config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv(ENV_PROVIDER_CONFIG)
    return Path(env_path) if env_path else PROVIDER_CONFIG_PATH


def load_provider_config(path: Optional[Path] = None) -> ProviderConfig:
    """Load ``{service, api_key, options}``; any problem yields the disabled config."""

    cfg_path = resolve_provider_config_path(path)
    if not cfg_path.exists():
        return DISABLED_PROVIDER
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Provider config %s unreadable: %s", cfg_path, exc)
        return DISABLED_PROVIDER
    if not isinstance(data, dict):
        logger.warning("Provider config %s is not a JSON object", cfg_path)
        return DISABLED_PROVIDER
    return ProviderConfig.from_mapping(data)


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderRequest:
    method: str
    endpoint: str
    timeouts: Tuple[float, float]
    params: Optional[Dict[str, str]] = None
    json_body: Optional[Dict[str, Any]] = None
    headers: Optional[Dict[str, str]] = None


def _flag(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    return "true" if value else "false"


def _opt(config: ProviderConfig, key: str, default: Any) -> Any:
    return config.options.get(key, default)


def _build_scrapingbee(url: str, config: ProviderConfig) -> ProviderRequest:
    params = {
        "api_key": config.api_key,
        "url": url,
        "render_js": _flag(_opt(config, "render_js", True)),
        "premium_proxy": _flag(_opt(config, "premium_proxy", True)),
        "country_code": str(_opt(config, "country_code", PROVIDER_DEFAULT_COUNTRY)),
        "block_ads": _flag(_opt(config, "block_ads", True)),
        "wait": str(_opt(config, "wait", 5000)),
    }
    if _opt(config, "stealth_proxy", False):
        params["stealth_proxy"] = "true"
    return ProviderRequest("GET", SCRAPINGBEE_ENDPOINT, PROVIDER_TIMEOUTS, params=params)


def _build_scraperapi(url: str, config: ProviderConfig) -> ProviderRequest:
    params = {
        "api_key": config.api_key,
        "url": url,
        "render": _flag(_opt(config, "render", True)),
        "country_code": str(_opt(config, "country_code", PROVIDER_DEFAULT_COUNTRY)),
        "premium": _flag(_opt(config, "premium", True)),
    }
    if _opt(config, "ultra_premium", False):
        params["ultra_premium"] = "true"
    return ProviderRequest("GET", SCRAPERAPI_ENDPOINT, PROVIDER_TIMEOUTS, params=params)


def _build_zenrows(url: str, config: ProviderConfig) -> ProviderRequest:
    params = {
        "apikey": config.api_key,
        "url": url,
        "js_render": _flag(_opt(config, "js_render", True)),
        "antibot": _flag(_opt(config, "antibot", True)),
        "premium_proxy": _flag(_opt(config, "premium_proxy", True)),
        "proxy_country": str(_opt(config, "proxy_country", PROVIDER_DEFAULT_COUNTRY)),
        "wait": str(_opt(config, "wait", 5000)),
    }
    return ProviderRequest("GET", ZENROWS_ENDPOINT, PROVIDER_TIMEOUTS, params=params)


def _build_brightdata(url: str, config: ProviderConfig) -> ProviderRequest:
    body = {
        "zone": str(_opt(config, "zone", "web_unlocker1")),
        "url": url,
        "format": "raw",
        "country": str(_opt(config, "country", PROVIDER_DEFAULT_COUNTRY)),
    }
    headers = {
        "Authorization": f"Bearer {config.api_key}",
        "Content-Type": "application/json",
    }
    return ProviderRequest("POST", BRIGHTDATA_ENDPOINT, PROVIDER_JSON_TIMEOUTS, json_body=body, headers=headers)


PROVIDER_BUILDERS: Mapping[ProviderService, Callable[[str, ProviderConfig], ProviderRequest]] = MappingProxyType(
    {
        ProviderService.SCRAPINGBEE: _build_scrapingbee,
        ProviderService.SCRAPERAPI: _build_scraperapi,
        ProviderService.ZENROWS: _build_zenrows,
        ProviderService.BRIGHTDATA: _build_brightdata,
    }
)


def build_provider_request(url: str, config: ProviderConfig) -> ProviderRequest:
    if config.service is None:
        raise ProviderError("none", "no provider configured")
    builder = PROVIDER_BUILDERS.get(config.service)
    if builder is None:
        raise ProviderError(str(config.service), "unsupported provider")
    if not config.api_key:
        raise ProviderError(config.service.value, "missing api_key")
    return builder(url, config)


def _call_provider(url: str, config: ProviderConfig) -> str:
    request = build_provider_request(url, config)
    service = config.service.value if config.service else "none"
    with requests.Session() as session:
        try:
            resp = session.request(
                request.method,
                request.endpoint,
                params=request.params,
                json=request.json_body,
                headers=request.headers,
                timeout=request.timeouts,
            )
        except requests.RequestException as exc:
            # requests echoes the full query string, api_key included
            detail = str(exc).replace(config.api_key, "***")
            raise ProviderError(service, f"transport error: {detail}") from exc
    if resp.status_code != 200:
        raise ProviderError(service, f"HTTP {resp.status_code}", resp.status_code)
    body = decode_bytes_auto(resp.content or b"", resp.headers)
    if len(body) <= PROVIDER_MIN_BODY_CHARS:
        raise ProviderError(service, f"body too short ({len(body)} chars)", resp.status_code)
    return body


def provider_strategy_name(config: ProviderConfig) -> str:
    return f"provider:{config.service.value}" if config.service else "provider"


def fetch_via_provider(url: str, config: ProviderConfig) -> FetchOutcome:
    """Fetch ``url`` through the configured provider. Never raises."""

    name = provider_strategy_name(config)
    try:
        body = _call_provider(url, config)
    except ProviderError as exc:
        logger.warning("Provider fetch failed for %s: %s", url, exc)
        return FetchOutcome.failure(name, str(exc), exc.status_code)
    return FetchOutcome(body=body, status_code=200, succeeded_at=name, final_url=url)


__all__ = [
    "ProviderService",
    "ProviderError",
    "ProviderConfig",
    "ProviderRequest",
    "DISABLED_PROVIDER",
    "PROVIDER_BUILDERS",
    "load_provider_config",
    "resolve_provider_config_path",
    "build_provider_request",
    "fetch_via_provider",
    "provider_strategy_name",
]
