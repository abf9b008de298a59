"""
API Sentinel - Adversarial probe scanner for HTTP APIs

Sends injection, traversal, protocol and resource-exhaustion probes to API
endpoints and classifies every response as vulnerable, protected or
inconclusive.
"""

__version__ = "1.0.0"
__author__ = "API Sentinel Team"
__status__ = "Development"

from .core import (
    EndpointDescriptor,
    ScanOptions,
    ScanReport,
    ScanOrchestrator,
    ScanService,
    parse_endpoints,
)


__all__ = [
    "EndpointDescriptor",
    "ScanOptions",
    "ScanReport",
    "ScanOrchestrator",
    "ScanService",
    "parse_endpoints",
]
