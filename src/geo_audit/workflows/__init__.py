"""High-level exports for the audit workflows."""

from .acquisition import (
    AcquisitionError,
    AcquisitionOrchestrator,
    AcquisitionRequest,
    AcquisitionResult,
    InputError,
)
from .audit import AuditReport, analyze_markup
from .providers import DISABLED_PROVIDER, ProviderConfig, fetch_via_provider, load_provider_config
from .response_validator import ValidationVerdict, validate_response
from .strategies import FetchOutcome, StrategySet, build_strategy_set

__all__ = [
    "AcquisitionError",
    "AcquisitionOrchestrator",
    "AcquisitionRequest",
    "AcquisitionResult",
    "InputError",
    "AuditReport",
    "analyze_markup",
    "DISABLED_PROVIDER",
    "ProviderConfig",
    "fetch_via_provider",
    "load_provider_config",
    "ValidationVerdict",
    "validate_response",
    "FetchOutcome",
    "StrategySet",
    "build_strategy_set",
]
