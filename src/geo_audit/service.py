"""Request/response boundary: audit payload in, ``(status, JSON body)`` out.

Mirrors an HTTP handler without binding to a web framework: 200 carries the
AuditReport, 400 an input error, 500 an acquisition or analysis failure.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from .core.keys import K_ATTEMPTS, K_DETAILS, K_ERROR, K_PROVIDER_CONFIGURED
from .workflows.acquisition import AcquisitionError, AcquisitionOrchestrator, AcquisitionRequest, InputError
from .workflows.audit import analyze_markup
from .workflows.providers import ProviderConfig, load_provider_config
from .workflows.strategies import StrategySet

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]


def _error(status: int, error: str, details: str, **extra: Any) -> Response:
    body: Dict[str, Any] = {K_ERROR: error, K_DETAILS: details}
    body.update(extra)
    return status, body


def run_audit(
    request: AcquisitionRequest,
    orchestrator: AcquisitionOrchestrator,
    *,
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """Acquire (URL mode) or take the pasted markup, then audit it."""

    result = orchestrator.acquire(request)
    report = analyze_markup(result.markup, request.url, request.page_type, timestamp=timestamp)
    return report.to_dict()


def handle_audit_request(
    payload: Mapping[str, Any],
    provider_config: Optional[ProviderConfig] = None,
    strategies: Optional[StrategySet] = None,
    *,
    orchestrator: Optional[AcquisitionOrchestrator] = None,
) -> Response:
    try:
        request = AcquisitionRequest.from_payload(payload)
    except InputError as exc:
        return _error(400, "Invalid request", str(exc))

    if orchestrator is None:
        config = provider_config if provider_config is not None else load_provider_config()
        orchestrator = AcquisitionOrchestrator(config, strategies)

    try:
        return 200, run_audit(request, orchestrator)
    except AcquisitionError as exc:
        return _error(
            500,
            "Unable to retrieve the page",
            str(exc),
            **{K_PROVIDER_CONFIGURED: exc.provider_configured, K_ATTEMPTS: exc.attempts},
        )
    except Exception as exc:
        logger.exception("Audit failed for %s", request.url)
        return _error(
            500,
            "Audit failed",
            str(exc),
            **{K_PROVIDER_CONFIGURED: orchestrator.provider_configured},
        )


__all__ = ["handle_audit_request", "run_audit"]
