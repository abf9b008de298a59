"""
Vulnerability analyzers.

This package contains one analyzer per vulnerability type. Each analyzer
inherits from BaseAnalyzer and implements the analyze() method.

Available analyzers (in scan order):
- SQLInjectionAnalyzer: Database error leakage, auth bypass, blind delays
- XSSAnalyzer: Reflected script content
- CommandInjectionAnalyzer: OS command output and delays
- PathTraversalAnalyzer: System/config file disclosure
- NoSQLInjectionAnalyzer: MongoDB operator injection
- HeaderInjectionAnalyzer: Header reflection and response splitting
- RateLimitingAnalyzer: Throttling signals (informational)
- MalformedPayloadAnalyzer: Error handling of broken input
- HTTPMethodAnalyzer: Dangerous HTTP methods
- PayloadSizeAnalyzer: Oversized input handling
"""

from typing import Dict, List, Union

from ..payloads import VulnerabilityType
from .base import (
    BaseAnalyzer,
    ScannerError,
    AnalyzerNotFoundError,
)
from .sql_injection import SQLInjectionAnalyzer
from .xss import XSSAnalyzer
from .command_injection import CommandInjectionAnalyzer
from .path_traversal import PathTraversalAnalyzer
from .nosql_injection import NoSQLInjectionAnalyzer
from .header_injection import HeaderInjectionAnalyzer
from .rate_limiting import RateLimitingAnalyzer
from .malformed_payload import MalformedPayloadAnalyzer
from .http_method import HTTPMethodAnalyzer
from .payload_size import PayloadSizeAnalyzer


ANALYZER_CLASSES = (
    SQLInjectionAnalyzer,
    XSSAnalyzer,
    CommandInjectionAnalyzer,
    PathTraversalAnalyzer,
    NoSQLInjectionAnalyzer,
    HeaderInjectionAnalyzer,
    RateLimitingAnalyzer,
    MalformedPayloadAnalyzer,
    HTTPMethodAnalyzer,
    PayloadSizeAnalyzer,
)

_BY_TYPE: Dict[VulnerabilityType, type] = {cls.vuln_type: cls for cls in ANALYZER_CLASSES}


def default_analyzers() -> List[BaseAnalyzer]:
    """Instantiate all analyzers in scan order"""
    return [cls() for cls in ANALYZER_CLASSES]


def get_analyzer(vuln_type: Union[VulnerabilityType, str]) -> BaseAnalyzer:
    """
    Get the analyzer for a vulnerability type.

    Args:
        vuln_type: Vulnerability type or any name accepted by from_name()

    Returns:
        Analyzer instance

    Raises:
        AnalyzerNotFoundError: If the name matches no analyzer
    """
    try:
        resolved = VulnerabilityType.from_name(vuln_type)
    except ValueError as e:
        raise AnalyzerNotFoundError(str(e)) from e
    return _BY_TYPE[resolved]()


__all__ = [
    # Base classes
    "BaseAnalyzer",
    # Exceptions
    "ScannerError",
    "AnalyzerNotFoundError",
    # Analyzers
    "SQLInjectionAnalyzer",
    "XSSAnalyzer",
    "CommandInjectionAnalyzer",
    "PathTraversalAnalyzer",
    "NoSQLInjectionAnalyzer",
    "HeaderInjectionAnalyzer",
    "RateLimitingAnalyzer",
    "MalformedPayloadAnalyzer",
    "HTTPMethodAnalyzer",
    "PayloadSizeAnalyzer",
    # Registry
    "ANALYZER_CLASSES",
    "default_analyzers",
    "get_analyzer",
]
