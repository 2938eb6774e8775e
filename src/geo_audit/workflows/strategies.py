"""Retrieval strategies: one blocking request per attempt, distinct identities.

Every strategy is a plain ``(url, TransportConfig) -> FetchOutcome`` function
wrapped in a frozen :class:`Strategy`. Strategies never raise and never share
mutable state; the only session state (cookies for the CDN-challenge retry)
lives inside a single call and is discarded before it returns.
"""

from __future__ import annotations

import logging
import os
import random
import subprocess
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import requests

from .audit_config import (
    BASIC_HEADERS,
    BASIC_TIMEOUTS,
    BASIC_USER_AGENT,
    BOT_HEADERS,
    BOT_TIMEOUTS,
    BOT_USER_AGENT,
    BROWSER_HEADERS,
    BROWSER_TIMEOUTS,
    BROWSER_USER_AGENT,
    BYPASS_TIMEOUTS,
    CHALLENGE_DELAY_SECONDS,
    CHALLENGE_MARKERS,
    CHALLENGE_STATUS_CODES,
    CRAWLER_USER_AGENTS,
    DELAYED_RETRY_ATTEMPTS,
    DELAYED_RETRY_STEP_SECONDS,
    ENV_CHALLENGE_DELAY,
    ENV_PROXY_URL,
    ENV_VERIFY_TLS,
    LOCAL_TIMEOUTS,
    MAX_REDIRECTS,
    MOBILE_USER_AGENTS,
    ROTATION_USER_AGENTS,
    WAYBACK_AVAILABILITY_ENDPOINT,
    WEB_CACHE_ENDPOINT,
)
from .audit_utils import env_bool, env_float
from .html_normalize import decode_bytes_auto
from .response_validator import validate_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one strategy attempt. ``body`` is empty unless the status was accepted."""

    body: str
    status_code: int
    succeeded_at: str
    transport_error: Optional[str] = None
    final_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.body) and self.transport_error is None

    @classmethod
    def failure(cls, name: str, error: str, status_code: int = 0) -> "FetchOutcome":
        return cls(body="", status_code=status_code, succeeded_at=name, transport_error=error)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "strategy": self.succeeded_at,
            "status": self.status_code,
            "body_length": len(self.body),
        }
        if self.transport_error:
            payload["error"] = self.transport_error
        if self.final_url:
            payload["final_url"] = self.final_url
        return payload


@dataclass(frozen=True)
class TransportConfig:
    """Transport identity and limits for one strategy."""

    user_agent: str
    headers: Mapping[str, str] = field(default_factory=dict)
    connect_timeout: float = 10.0
    timeout: float = 30.0
    max_redirects: int = MAX_REDIRECTS
    accepted_statuses: Tuple[int, int] = (200, 200)
    proxy: Optional[str] = None
    verify_tls: bool = True
    retry_delay: float = 0.0

    @property
    def timeouts(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.timeout)

    @property
    def proxies(self) -> Optional[Dict[str, str]]:
        if not self.proxy:
            return None
        return {"http": self.proxy, "https": self.proxy}

    def accepts(self, status: int) -> bool:
        low, high = self.accepted_statuses
        return low <= status <= high

    def request_headers(self, user_agent: Optional[str] = None) -> Dict[str, str]:
        headers = dict(self.headers)
        headers["User-Agent"] = user_agent or self.user_agent
        return headers


FetchFn = Callable[[str, TransportConfig], FetchOutcome]


@dataclass(frozen=True)
class Strategy:
    name: str
    priority: int
    fetch: FetchFn
    config: TransportConfig

    def attempt(self, url: str) -> FetchOutcome:
        try:
            return self.fetch(url, self.config)
        except Exception as exc:
            logger.exception("Strategy %s crashed for %s", self.name, url)
            return FetchOutcome.failure(self.name, f"crashed: {exc}")


# ---------------------------------------------------------------------------
# Transport helpers
# ---------------------------------------------------------------------------


def _request(
    session: requests.Session,
    url: str,
    config: TransportConfig,
    *,
    user_agent: Optional[str] = None,
    params: Optional[Mapping[str, str]] = None,
) -> requests.Response:
    session.max_redirects = config.max_redirects
    return session.get(
        url,
        params=params,
        headers=config.request_headers(user_agent),
        timeout=config.timeouts,
        allow_redirects=config.max_redirects > 0,
        proxies=config.proxies,
        verify=config.verify_tls,
    )


def _to_outcome(resp: requests.Response, config: TransportConfig, name: str) -> FetchOutcome:
    status = int(resp.status_code)
    if not config.accepts(status):
        logger.info("Strategy %s got HTTP %s for %s", name, status, resp.url)
        return FetchOutcome.failure(name, f"http_{status}", status_code=status)
    body = decode_bytes_auto(resp.content or b"", resp.headers)
    return FetchOutcome(body=body, status_code=status, succeeded_at=name, final_url=str(resp.url or ""))


def _single_get(
    url: str,
    config: TransportConfig,
    name: str,
    *,
    user_agent: Optional[str] = None,
) -> FetchOutcome:
    with requests.Session() as session:
        try:
            resp = _request(session, url, config, user_agent=user_agent)
        except requests.RequestException as exc:
            logger.info("Strategy %s transport error for %s: %s", name, url, exc)
            return FetchOutcome.failure(name, str(exc))
        return _to_outcome(resp, config, name)


def _usable(outcome: FetchOutcome) -> bool:
    return outcome.ok and validate_response(outcome.body).accepted


# ---------------------------------------------------------------------------
# Primary strategies
# ---------------------------------------------------------------------------


def fetch_bot_identified(url: str, config: TransportConfig) -> FetchOutcome:
    return _single_get(url, config, "bot_identified")


def fetch_realistic_browser(url: str, config: TransportConfig) -> FetchOutcome:
    return _single_get(url, config, "realistic_browser")


def fetch_basic(url: str, config: TransportConfig) -> FetchOutcome:
    return _single_get(url, config, "basic")


def fetch_local_fallback(url: str, config: TransportConfig) -> FetchOutcome:
    """Last local resort: shell out to wget, which has its own redirect/TLS stack."""

    name = "local_fallback"
    cmd = [
        "wget",
        "-q",
        "-O",
        "-",
        f"--timeout={int(config.timeout)}",
        f"--connect-timeout={int(config.connect_timeout)}",
        f"--max-redirect={config.max_redirects}",
        f"--user-agent={config.user_agent}",
    ]
    if not config.verify_tls:
        cmd.append("--no-check-certificate")
    cmd.append(url)
    env = None
    if config.proxy:
        env = {**os.environ, "http_proxy": config.proxy, "https_proxy": config.proxy}
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            timeout=config.connect_timeout + config.timeout,
            check=False,
            env=env,
        )
    except FileNotFoundError:
        return FetchOutcome.failure(name, "wget_missing")
    except subprocess.TimeoutExpired:
        return FetchOutcome.failure(name, "timeout")
    if proc.returncode != 0 or not proc.stdout:
        stderr = (proc.stderr or b"").decode("utf-8", "ignore")[:200]
        logger.info("wget exited %s for %s %s", proc.returncode, url, stderr)
        return FetchOutcome.failure(name, f"wget_exit_{proc.returncode}")
    return FetchOutcome(body=decode_bytes_auto(proc.stdout), status_code=200, succeeded_at=name, final_url=url)


# ---------------------------------------------------------------------------
# Advanced-bypass group
# ---------------------------------------------------------------------------


def fetch_web_cache(url: str, config: TransportConfig) -> FetchOutcome:
    cache_url = WEB_CACHE_ENDPOINT + quote(url, safe="")
    return _single_get(cache_url, config, "web_cache")


def _select_snapshot_url(payload: Any) -> Optional[str]:
    """Extract the closest available snapshot URL from an availability payload."""

    if not isinstance(payload, dict):
        return None
    snapshots = payload.get("archived_snapshots")
    if not isinstance(snapshots, dict):
        return None
    closest = snapshots.get("closest")
    if not isinstance(closest, dict) or not closest.get("available", True):
        return None
    snapshot_url = str(closest.get("url") or "").strip()
    if not snapshot_url.startswith("http"):
        return None
    if snapshot_url.startswith("http://"):
        snapshot_url = "https://" + snapshot_url[len("http://"):]
    return snapshot_url


def fetch_archived_snapshot(url: str, config: TransportConfig) -> FetchOutcome:
    name = "archived_snapshot"
    with requests.Session() as session:
        try:
            lookup = _request(session, WAYBACK_AVAILABILITY_ENDPOINT, config, params={"url": url})
            if lookup.status_code != 200:
                return FetchOutcome.failure(name, f"lookup_http_{lookup.status_code}", lookup.status_code)
            snapshot_url = _select_snapshot_url(lookup.json())
        except requests.RequestException as exc:
            return FetchOutcome.failure(name, str(exc))
        except ValueError:
            return FetchOutcome.failure(name, "lookup_malformed")
        if not snapshot_url:
            return FetchOutcome.failure(name, "no_snapshot")
        try:
            resp = _request(session, snapshot_url, config)
        except requests.RequestException as exc:
            return FetchOutcome.failure(name, str(exc))
        return _to_outcome(resp, config, name)


def fetch_crawler_impersonation(url: str, config: TransportConfig) -> FetchOutcome:
    name = "crawler_impersonation"
    last = FetchOutcome.failure(name, "no_crawler_agents")
    for agent in CRAWLER_USER_AGENTS:
        last = _single_get(url, config, name, user_agent=agent)
        if _usable(last):
            return last
    return last


def _looks_like_challenge(status: int, text: str) -> bool:
    if status in CHALLENGE_STATUS_CODES:
        return True
    lowered = (text or "").lower()
    return any(marker in lowered for marker in CHALLENGE_MARKERS)


def fetch_challenge_aware(url: str, config: TransportConfig) -> FetchOutcome:
    """One request; on a CDN challenge wait, then retry once with the same cookies."""

    name = "challenge_aware"
    session = requests.Session()
    try:
        try:
            resp = _request(session, url, config)
            first_text = decode_bytes_auto(resp.content or b"", resp.headers)
            if _looks_like_challenge(int(resp.status_code), first_text):
                logger.info("Challenge detected for %s (HTTP %s); retrying in %.1fs", url, resp.status_code, config.retry_delay)
                time.sleep(config.retry_delay)
                resp = _request(session, url, config)
        except requests.RequestException as exc:
            return FetchOutcome.failure(name, str(exc))
        return _to_outcome(resp, config, name)
    finally:
        session.cookies.clear()
        session.close()


def fetch_user_agent_rotation(url: str, config: TransportConfig) -> FetchOutcome:
    return _single_get(url, config, "user_agent_rotation", user_agent=random.choice(ROTATION_USER_AGENTS))


def fetch_delayed_retry(url: str, config: TransportConfig) -> FetchOutcome:
    name = "delayed_retry"
    last = FetchOutcome.failure(name, "no_attempts")
    for attempt in range(1, DELAYED_RETRY_ATTEMPTS + 1):
        last = _single_get(url, config, name)
        if _usable(last):
            return last
        if attempt < DELAYED_RETRY_ATTEMPTS:
            time.sleep(attempt * config.retry_delay)
    return last


def fetch_mobile_user_agent(url: str, config: TransportConfig) -> FetchOutcome:
    return _single_get(url, config, "mobile_user_agent", user_agent=random.choice(MOBILE_USER_AGENTS))


# ---------------------------------------------------------------------------
# Strategy set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StrategySet:
    """The ordered members the orchestrator walks; ``bypass`` keeps its sub-order."""

    bot: Strategy
    browser: Strategy
    basic: Strategy
    local: Strategy
    bypass: Tuple[Strategy, ...] = ()


def build_strategy_set(
    *,
    proxy: Optional[str] = None,
    verify_tls: Optional[bool] = None,
    challenge_delay: Optional[float] = None,
) -> StrategySet:
    """Build the default strategy set, reading unset knobs from the environment."""

    proxy = proxy if proxy is not None else (os.getenv(ENV_PROXY_URL, "").strip() or None)
    verify = verify_tls if verify_tls is not None else env_bool(ENV_VERIFY_TLS, "1")
    delay = challenge_delay if challenge_delay is not None else env_float(ENV_CHALLENGE_DELAY, CHALLENGE_DELAY_SECONDS)

    browser_cfg = TransportConfig(
        user_agent=BROWSER_USER_AGENT,
        headers=BROWSER_HEADERS,
        connect_timeout=BROWSER_TIMEOUTS[0],
        timeout=BROWSER_TIMEOUTS[1],
        accepted_statuses=(200, 399),
        proxy=proxy,
        verify_tls=verify,
    )
    bypass_cfg = replace(
        browser_cfg,
        connect_timeout=BYPASS_TIMEOUTS[0],
        timeout=BYPASS_TIMEOUTS[1],
        accepted_statuses=(200, 299),
    )
    bot_cfg = TransportConfig(
        user_agent=BOT_USER_AGENT,
        headers=BOT_HEADERS,
        connect_timeout=BOT_TIMEOUTS[0],
        timeout=BOT_TIMEOUTS[1],
        accepted_statuses=(200, 399),
        verify_tls=verify,
    )
    basic_cfg = TransportConfig(
        user_agent=BASIC_USER_AGENT,
        headers=BASIC_HEADERS,
        connect_timeout=BASIC_TIMEOUTS[0],
        timeout=BASIC_TIMEOUTS[1],
        accepted_statuses=(200, 200),
        proxy=proxy,
        verify_tls=verify,
    )
    local_cfg = replace(basic_cfg, connect_timeout=LOCAL_TIMEOUTS[0], timeout=LOCAL_TIMEOUTS[1])

    bypass = (
        Strategy("web_cache", 40, fetch_web_cache, bypass_cfg),
        Strategy("archived_snapshot", 41, fetch_archived_snapshot, bypass_cfg),
        Strategy("crawler_impersonation", 42, fetch_crawler_impersonation, bypass_cfg),
        Strategy("challenge_aware", 43, fetch_challenge_aware, replace(bypass_cfg, retry_delay=delay)),
        Strategy("user_agent_rotation", 44, fetch_user_agent_rotation, bypass_cfg),
        Strategy(
            "delayed_retry",
            45,
            fetch_delayed_retry,
            replace(bypass_cfg, retry_delay=DELAYED_RETRY_STEP_SECONDS),
        ),
        Strategy("mobile_user_agent", 46, fetch_mobile_user_agent, bypass_cfg),
    )
    return StrategySet(
        bot=Strategy("bot_identified", 0, fetch_bot_identified, bot_cfg),
        browser=Strategy("realistic_browser", 10, fetch_realistic_browser, browser_cfg),
        basic=Strategy("basic", 20, fetch_basic, basic_cfg),
        local=Strategy("local_fallback", 30, fetch_local_fallback, local_cfg),
        bypass=bypass,
    )


__all__ = [
    "FetchOutcome",
    "TransportConfig",
    "Strategy",
    "StrategySet",
    "build_strategy_set",
    "fetch_bot_identified",
    "fetch_realistic_browser",
    "fetch_basic",
    "fetch_local_fallback",
    "fetch_web_cache",
    "fetch_archived_snapshot",
    "fetch_crawler_impersonation",
    "fetch_challenge_aware",
    "fetch_user_agent_rotation",
    "fetch_delayed_retry",
    "fetch_mobile_user_agent",
]
