"""
Core module - Scan engine and its building blocks.

Leaf modules (models, injection, dispatcher, pacing, config) are imported
before the orchestrator, which depends on the analyzers package.
"""

from .models import (
    EndpointDescriptor,
    InjectionVariant,
    ResponseCapture,
    Baseline,
    Confidence,
    Verdict,
    AnalysisResult,
    TestRecord,
    EndpointScanResult,
    ScanSummary,
    ScanReport,
)
from .injection import InjectLocation, inject_payload
from .config import (
    ConfigError,
    ScanOptions,
    DispatcherSettings,
    PacingSettings,
    ScannerSettings,
    load_settings,
)
from .endpoints import EndpointParseError, parse_endpoints, endpoint_from_url
from .dispatcher import RequestDispatcher, DispatchResult, BaselineCollector
from .rate_limiter import ProbePacer, PacerConfig
from .orchestrator import ScanOrchestrator
from .registry import ScanRegistry, ScanStatus, ScanNotFoundError
from .service import ScanService


__all__ = [
    # Models
    "EndpointDescriptor",
    "InjectionVariant",
    "ResponseCapture",
    "Baseline",
    "Confidence",
    "Verdict",
    "AnalysisResult",
    "TestRecord",
    "EndpointScanResult",
    "ScanSummary",
    "ScanReport",
    # Injection
    "InjectLocation",
    "inject_payload",
    # Configuration
    "ConfigError",
    "ScanOptions",
    "DispatcherSettings",
    "PacingSettings",
    "ScannerSettings",
    "load_settings",
    # Endpoint input
    "EndpointParseError",
    "parse_endpoints",
    "endpoint_from_url",
    # Dispatch
    "RequestDispatcher",
    "DispatchResult",
    "BaselineCollector",
    # Pacing
    "ProbePacer",
    "PacerConfig",
    # Orchestration
    "ScanOrchestrator",
    "ScanRegistry",
    "ScanStatus",
    "ScanNotFoundError",
    "ScanService",
]
