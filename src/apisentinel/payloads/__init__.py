"""
Payloads module - Attack string catalog.

One immutable payload set per vulnerability type, plus the fixed
severity rating of each type.
"""

from .catalog import (
    VulnerabilityType,
    SeverityLevel,
    PAYLOAD_SIZES,
    get_payloads,
    get_severity,
)


__all__ = [
    "VulnerabilityType",
    "SeverityLevel",
    "PAYLOAD_SIZES",
    "get_payloads",
    "get_severity",
]
