import subprocess
from typing import Any, Callable, Dict, List

import pytest
import requests

from geo_audit.workflows import strategies
from geo_audit.workflows.audit_config import (
    BOT_USER_AGENT,
    CRAWLER_USER_AGENTS,
    MOBILE_USER_AGENTS,
    ROTATION_USER_AGENTS,
)
from geo_audit.workflows.strategies import (
    Strategy,
    TransportConfig,
    build_strategy_set,
    fetch_archived_snapshot,
    fetch_basic,
    fetch_bot_identified,
    fetch_challenge_aware,
    fetch_crawler_impersonation,
    fetch_delayed_retry,
    fetch_local_fallback,
    fetch_mobile_user_agent,
    fetch_realistic_browser,
    fetch_user_agent_rotation,
    fetch_web_cache,
)

from conftest import make_page

GOOD = make_page("<article>Real content</article>")
CHALLENGE = make_page("<div>Just a moment...</div>")


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = GOOD, url: str = "https://example.com/", payload: Any = None):
        self.status_code = status_code
        self.content = text.encode("utf-8")
        self.headers = {"content-type": "text/html; charset=utf-8"}
        self.url = url
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeCookies:
    def __init__(self):
        self.cleared = False

    def clear(self):
        self.cleared = True


class FakeSession:
    """Stand-in for ``requests.Session`` replaying scripted responses."""

    instances: List["FakeSession"] = []

    def __init__(self, script: List[Any]):
        self.script = script
        self.calls: List[Dict[str, Any]] = []
        self.cookies = FakeCookies()
        self.closed = False
        self.max_redirects = 30
        FakeSession.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        self.closed = True

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def install_sessions(monkeypatch, script: List[Any]) -> Callable[[], List[Dict[str, Any]]]:
    """Every new session shares one script; returns an accessor for all calls made."""

    FakeSession.instances = []
    monkeypatch.setattr(strategies.requests, "Session", lambda: FakeSession(script))

    def calls() -> List[Dict[str, Any]]:
        return [c for s in FakeSession.instances for c in s.calls]

    return calls


def _cfg(**overrides) -> TransportConfig:
    base = dict(user_agent="UA/1.0", headers={"Accept": "text/html"}, accepted_statuses=(200, 200))
    base.update(overrides)
    return TransportConfig(**base)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps: List[float] = []
    monkeypatch.setattr(strategies.time, "sleep", lambda s: sleeps.append(s))
    return sleeps


def test_basic_returns_decoded_body(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse(200, GOOD)])
    outcome = fetch_basic("https://example.com/", _cfg())
    assert outcome.ok
    assert outcome.body == GOOD
    assert outcome.succeeded_at == "basic"
    sent = calls()[0]
    assert sent["headers"]["User-Agent"] == "UA/1.0"
    assert sent["timeout"] == (10.0, 30.0)


def test_rejected_status_yields_empty_body(monkeypatch):
    install_sessions(monkeypatch, [FakeResponse(403, GOOD)])
    outcome = fetch_basic("https://example.com/", _cfg())
    assert not outcome.ok
    assert outcome.body == ""
    assert outcome.status_code == 403
    assert outcome.transport_error == "http_403"


def test_browser_accepts_redirect_range(monkeypatch):
    install_sessions(monkeypatch, [FakeResponse(302, GOOD)])
    outcome = fetch_realistic_browser("https://example.com/", _cfg(accepted_statuses=(200, 399)))
    assert outcome.ok
    assert outcome.status_code == 302


def test_transport_error_never_raises(monkeypatch):
    install_sessions(monkeypatch, [requests.ConnectionError("refused")])
    outcome = fetch_bot_identified("https://example.com/", _cfg(user_agent=BOT_USER_AGENT))
    assert not outcome.ok
    assert "refused" in outcome.transport_error


def test_proxy_and_tls_flags_are_forwarded(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse()])
    fetch_basic("https://example.com/", _cfg(proxy="http://proxy:8080", verify_tls=False))
    sent = calls()[0]
    assert sent["proxies"] == {"http": "http://proxy:8080", "https": "http://proxy:8080"}
    assert sent["verify"] is False


def test_web_cache_quotes_target(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse()])
    fetch_web_cache("https://example.com/a?b=1", _cfg())
    assert calls()[0]["url"].endswith("cache:https%3A%2F%2Fexample.com%2Fa%3Fb%3D1")


def test_archived_snapshot_follows_closest_snapshot(monkeypatch):
    payload = {
        "archived_snapshots": {
            "closest": {"available": True, "url": "http://web.archive.org/web/2024/https://example.com/"}
        }
    }
    calls = install_sessions(monkeypatch, [FakeResponse(200, "{}", payload=payload), FakeResponse(200, GOOD)])
    outcome = fetch_archived_snapshot("https://example.com/", _cfg())
    assert outcome.ok
    urls = [c["url"] for c in calls()]
    assert urls[0] == "https://archive.org/wayback/available"
    assert calls()[0]["params"] == {"url": "https://example.com/"}
    assert urls[1] == "https://web.archive.org/web/2024/https://example.com/"


def test_archived_snapshot_without_snapshot(monkeypatch):
    install_sessions(monkeypatch, [FakeResponse(200, "{}", payload={"archived_snapshots": {}})])
    outcome = fetch_archived_snapshot("https://example.com/", _cfg())
    assert outcome.transport_error == "no_snapshot"


def test_archived_snapshot_malformed_lookup(monkeypatch):
    install_sessions(monkeypatch, [FakeResponse(200, "not json")])
    outcome = fetch_archived_snapshot("https://example.com/", _cfg())
    assert outcome.transport_error == "lookup_malformed"


def test_crawler_impersonation_stops_on_first_usable(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse(200, CHALLENGE), FakeResponse(200, GOOD), FakeResponse()])
    outcome = fetch_crawler_impersonation("https://example.com/", _cfg())
    assert outcome.ok
    agents = [c["headers"]["User-Agent"] for c in calls()]
    assert agents == list(CRAWLER_USER_AGENTS[:2])


def test_challenge_aware_waits_and_retries_once(monkeypatch, no_sleep):
    install_sessions(monkeypatch, [FakeResponse(503, CHALLENGE), FakeResponse(200, GOOD)])
    outcome = fetch_challenge_aware("https://example.com/", _cfg(accepted_statuses=(200, 299), retry_delay=5.0))
    assert outcome.ok
    assert no_sleep == [5.0]
    session = FakeSession.instances[0]
    assert len(session.calls) == 2
    assert session.cookies.cleared
    assert session.closed


def test_challenge_aware_no_retry_without_challenge(monkeypatch, no_sleep):
    install_sessions(monkeypatch, [FakeResponse(200, GOOD)])
    outcome = fetch_challenge_aware("https://example.com/", _cfg(retry_delay=5.0))
    assert outcome.ok
    assert no_sleep == []


def test_challenge_aware_clears_cookies_on_error(monkeypatch, no_sleep):
    install_sessions(monkeypatch, [FakeResponse(503, CHALLENGE), requests.ConnectionError("reset")])
    outcome = fetch_challenge_aware("https://example.com/", _cfg(retry_delay=5.0))
    assert not outcome.ok
    assert "reset" in outcome.transport_error
    session = FakeSession.instances[0]
    assert len(session.calls) == 2
    assert session.cookies.cleared
    assert session.closed


def test_user_agent_rotation_uses_pool(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse()])
    monkeypatch.setattr(strategies.random, "choice", lambda seq: seq[0])
    outcome = fetch_user_agent_rotation("https://example.com/", _cfg())
    assert outcome.succeeded_at == "user_agent_rotation"
    assert calls()[0]["headers"]["User-Agent"] == ROTATION_USER_AGENTS[0]


def test_delayed_retry_backs_off_between_attempts(monkeypatch, no_sleep):
    install_sessions(monkeypatch, [FakeResponse(429), FakeResponse(429), FakeResponse(429)])
    outcome = fetch_delayed_retry("https://example.com/", _cfg(retry_delay=2.0))
    assert not outcome.ok
    assert no_sleep == [2.0, 4.0]


def test_mobile_user_agent_uses_pool(monkeypatch):
    calls = install_sessions(monkeypatch, [FakeResponse()])
    monkeypatch.setattr(strategies.random, "choice", lambda seq: seq[-1])
    fetch_mobile_user_agent("https://example.com/", _cfg())
    assert calls()[0]["headers"]["User-Agent"] == MOBILE_USER_AGENTS[-1]


def test_local_fallback_reads_wget_stdout(monkeypatch):
    seen: Dict[str, Any] = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        return subprocess.CompletedProcess(cmd, 0, stdout=GOOD.encode("utf-8"), stderr=b"")

    monkeypatch.setattr(strategies.subprocess, "run", fake_run)
    outcome = fetch_local_fallback("https://example.com/", _cfg(verify_tls=False))
    assert outcome.ok
    assert seen["cmd"][0] == "wget"
    assert "--no-check-certificate" in seen["cmd"]
    assert seen["cmd"][-1] == "https://example.com/"


def test_local_fallback_without_wget(monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError("wget")

    monkeypatch.setattr(strategies.subprocess, "run", missing)
    assert fetch_local_fallback("https://example.com/", _cfg()).transport_error == "wget_missing"


def test_local_fallback_nonzero_exit(monkeypatch):
    monkeypatch.setattr(
        strategies.subprocess,
        "run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 8, stdout=b"", stderr=b"ERROR 404"),
    )
    assert fetch_local_fallback("https://example.com/", _cfg()).transport_error == "wget_exit_8"


def test_strategy_attempt_contains_crashes():
    def boom(url, config):
        raise RuntimeError("bad parser")

    outcome = Strategy("boom", 99, boom, _cfg()).attempt("https://example.com/")
    assert not outcome.ok
    assert outcome.succeeded_at == "boom"
    assert "bad parser" in outcome.transport_error


def test_build_strategy_set_order_and_env(monkeypatch):
    monkeypatch.setenv("GEO_AUDIT_PROXY_URL", "http://proxy:3128")
    monkeypatch.setenv("GEO_AUDIT_CHALLENGE_DELAY", "1.5")
    monkeypatch.setenv("GEO_AUDIT_VERIFY_TLS", "0")
    sset = build_strategy_set()
    assert [s.name for s in sset.bypass] == [
        "web_cache",
        "archived_snapshot",
        "crawler_impersonation",
        "challenge_aware",
        "user_agent_rotation",
        "delayed_retry",
        "mobile_user_agent",
    ]
    assert sset.browser.config.proxy == "http://proxy:3128"
    assert sset.bot.config.proxy is None
    assert sset.browser.config.verify_tls is False
    assert sset.bypass[3].config.retry_delay == 1.5
    assert sset.basic.config.accepts(200) and not sset.basic.config.accepts(301)
    assert sset.browser.config.accepts(301)


def test_outcome_to_dict_shape():
    outcome = strategies.FetchOutcome.failure("basic", "http_500", 500)
    assert outcome.to_dict() == {"strategy": "basic", "status": 500, "body_length": 0, "error": "http_500"}
