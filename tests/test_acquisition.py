from typing import List

import pytest

from geo_audit.workflows.acquisition import (
    AcquisitionError,
    AcquisitionMode,
    AcquisitionOrchestrator,
    AcquisitionRequest,
    InputError,
)
from geo_audit.workflows.providers import DISABLED_PROVIDER, ProviderConfig
from geo_audit.workflows.strategies import FetchOutcome, Strategy, StrategySet, TransportConfig

from conftest import make_page

GOOD = make_page("<article>Usable</article>")
BLOCKED = make_page("<div>Checking your browser before accessing</div>")
PROVIDER = ProviderConfig.from_mapping({"service": "scrapingbee", "api_key": "k"})


class Recorder:
    def __init__(self):
        self.calls: List[str] = []


def _strategy(name: str, recorder: Recorder, body: str = "", status: int = 0, priority: int = 0) -> Strategy:
    def fetch(url, config):
        recorder.calls.append(name)
        if body:
            return FetchOutcome(body=body, status_code=status or 200, succeeded_at=name, final_url=url)
        return FetchOutcome.failure(name, "http_403", 403)

    return Strategy(name, priority, fetch, TransportConfig(user_agent="test"))


def _set(recorder: Recorder, bodies=None) -> StrategySet:
    bodies = bodies or {}
    bypass_names = ["web_cache", "archived_snapshot", "crawler_impersonation"]
    return StrategySet(
        bot=_strategy("bot", recorder, bodies.get("bot", "")),
        browser=_strategy("browser", recorder, bodies.get("browser", "")),
        basic=_strategy("basic", recorder, bodies.get("basic", "")),
        local=_strategy("local", recorder, bodies.get("local", "")),
        bypass=tuple(
            _strategy(n, recorder, bodies.get(n, ""), priority=40 + i) for i, n in enumerate(bypass_names)
        ),
    )


def _provider_fetch(recorder: Recorder, body: str = ""):
    def fetch(url, config):
        recorder.calls.append("provider")
        if body:
            return FetchOutcome(body=body, status_code=200, succeeded_at="provider:scrapingbee")
        return FetchOutcome.failure("provider:scrapingbee", "HTTP 500", 500)

    return fetch


def _url_request(**flags) -> AcquisitionRequest:
    return AcquisitionRequest.for_url("https://example.com/page", **flags)


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("url", ["", "example.com", "ftp://example.com/x", "https://", "https://exa mple.com"])
def test_invalid_urls_rejected(url):
    with pytest.raises(InputError):
        AcquisitionRequest.from_payload({"mode": "url", "url": url})


def test_short_markup_rejected():
    with pytest.raises(InputError):
        AcquisitionRequest.from_payload({"mode": "markup", "markup": "<p>short</p>"})


def test_unknown_mode_rejected():
    with pytest.raises(InputError):
        AcquisitionRequest.from_payload({"mode": "pdf", "url": "https://example.com"})


def test_markup_defaults_and_aliases():
    req = AcquisitionRequest.from_payload({"mode": "html", "html": GOOD, "useProxy": True})
    assert req.mode is AcquisitionMode.MARKUP
    assert req.markup == GOOD
    assert req.url == "pasted-markup"
    assert req.page_type == "article"
    assert req.use_proxy_strategy is True


def test_url_request_flags():
    req = AcquisitionRequest.from_payload(
        {
            "url": " https://example.com/a ",
            "pageType": "product",
            "useScrapingProvider": "true",
            "identifyAsBot": 1,
        }
    )
    assert req.mode is AcquisitionMode.URL
    assert req.url == "https://example.com/a"
    assert req.page_type == "product"
    assert req.use_scraping_provider and req.identify_as_bot and not req.use_proxy_strategy


# ---------------------------------------------------------------------------
# Cascade ordering
# ---------------------------------------------------------------------------


def test_plan_default_order_without_provider():
    rec = Recorder()
    orch = AcquisitionOrchestrator(DISABLED_PROVIDER, _set(rec))
    names = [m.name for m in orch.plan(_url_request())]
    assert names == ["browser", "basic", "local"]


def test_plan_full_order_with_all_flags():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec))
    req = _url_request(identifyAsBot=True, useScrapingProvider=True, useProxyStrategy=True)
    names = [m.name for m in orch.plan(req)]
    assert names == [
        "bot",
        "provider:scrapingbee",
        "web_cache",
        "archived_snapshot",
        "crawler_impersonation",
        "browser",
        "basic",
        "local",
    ]


def test_plan_provider_last_resort_when_not_requested():
    orch = AcquisitionOrchestrator(PROVIDER, _set(Recorder()))
    names = [m.name for m in orch.plan(_url_request())]
    assert names[-1] == "provider:scrapingbee"
    assert names.count("provider:scrapingbee") == 1


def test_provider_flag_ignored_when_unconfigured():
    orch = AcquisitionOrchestrator(DISABLED_PROVIDER, _set(Recorder()))
    names = [m.name for m in orch.plan(_url_request(useScrapingProvider=True))]
    assert not any(n.startswith("provider") for n in names)


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------


def test_first_validated_success_short_circuits():
    rec = Recorder()
    orch = AcquisitionOrchestrator(
        PROVIDER, _set(rec, {"browser": GOOD, "basic": GOOD}), provider_fetch=_provider_fetch(rec, GOOD)
    )
    result = orch.acquire(_url_request())
    assert result.strategy == "browser"
    assert result.markup == GOOD
    assert rec.calls == ["browser"]


def test_challenge_page_is_skipped_by_validator():
    rec = Recorder()
    orch = AcquisitionOrchestrator(DISABLED_PROVIDER, _set(rec, {"browser": BLOCKED, "basic": GOOD}))
    result = orch.acquire(_url_request())
    assert result.strategy == "basic"
    assert rec.calls == ["browser", "basic"]
    assert result.attempts[0]["verdict"] == "challenge-pattern-matched"


def test_bot_success_skips_everything_else():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec, {"bot": GOOD}), provider_fetch=_provider_fetch(rec, GOOD))
    result = orch.acquire(_url_request(identifyAsBot=True, useScrapingProvider=True))
    assert result.strategy == "bot"
    assert rec.calls == ["bot"]


def test_provider_used_as_last_resort():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec), provider_fetch=_provider_fetch(rec, GOOD))
    result = orch.acquire(_url_request())
    assert result.strategy == "provider:scrapingbee"
    assert rec.calls == ["browser", "basic", "local", "provider"]


def test_provider_tried_once_when_requested_early():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec), provider_fetch=_provider_fetch(rec))
    with pytest.raises(AcquisitionError):
        orch.acquire(_url_request(useScrapingProvider=True))
    assert rec.calls == ["provider", "browser", "basic", "local"]


def test_total_failure_reports_every_attempt():
    rec = Recorder()
    orch = AcquisitionOrchestrator(DISABLED_PROVIDER, _set(rec))
    with pytest.raises(AcquisitionError) as info:
        orch.acquire(_url_request(useProxyStrategy=True))
    err = info.value
    assert err.url == "https://example.com/page"
    assert err.provider_configured is False
    assert [a["strategy"] for a in err.attempts] == [
        "web_cache",
        "archived_snapshot",
        "crawler_impersonation",
        "browser",
        "basic",
        "local",
    ]
    assert "markup" in str(err)


def test_total_failure_with_provider_flags_configuration():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec), provider_fetch=_provider_fetch(rec))
    with pytest.raises(AcquisitionError) as info:
        orch.acquire(_url_request())
    assert info.value.provider_configured is True
    assert len(info.value.attempts) == 4


def test_markup_mode_skips_network():
    rec = Recorder()
    orch = AcquisitionOrchestrator(PROVIDER, _set(rec), provider_fetch=_provider_fetch(rec, GOOD))
    result = orch.acquire(AcquisitionRequest.for_markup(GOOD))
    assert result.markup == GOOD
    assert result.strategy == "inline"
    assert rec.calls == []


def test_custom_validator_is_used():
    rec = Recorder()
    seen = []

    def validator(body):
        from geo_audit.workflows.response_validator import validate_response

        seen.append(body)
        return validate_response(body)

    orch = AcquisitionOrchestrator(DISABLED_PROVIDER, _set(rec, {"basic": GOOD}), validator=validator)
    orch.acquire(_url_request())
    # failed transport outcomes never reach the validator
    assert seen == [GOOD]


def test_crashing_provider_does_not_stop_cascade():
    rec = Recorder()

    def crashing(url, config):
        rec.calls.append("provider")
        raise UnicodeError("unsupported error handler")

    orch = AcquisitionOrchestrator(PROVIDER, _set(rec, {"browser": GOOD}), provider_fetch=crashing)
    result = orch.acquire(_url_request(useScrapingProvider=True))
    assert result.strategy == "browser"
    assert rec.calls == ["provider", "browser"]
    assert "crashed" in result.attempts[0]["error"]
