"""
Base Analyzer - Abstract base class for all vulnerability analyzers.

An analyzer knows the payloads of one vulnerability type, its fixed severity
and how to classify a response to one of those payloads. Analyzers are
stateless: ``analyze`` has no side effects and keeps nothing between calls.

Every analyzer follows the same evaluation order:
1. WAF short-circuit (blocked by a security layer -> protected)
2. Benign rejection (analyzer specific 4xx range -> input rejected)
3. Positive evidence (ordered signatures, first match wins)
4. Secondary checks (baseline deltas, timing, reflection, headers),
   only when no signature matched
5. Default "no signal" result

Design Pattern: Strategy Pattern
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple, Union

import structlog

from ..core.injection import InjectLocation, inject_payload
from ..core.models import (
    AnalysisResult,
    Confidence,
    EndpointDescriptor,
    InjectionVariant,
    ResponseCapture,
)
from ..payloads import SeverityLevel, VulnerabilityType, get_payloads, get_severity


# Phrases a security layer puts in its block pages
WAF_INDICATORS: Tuple[str, ...] = (
    "you have been blocked",
    "access denied",
    "forbidden",
    "request blocked",
    "security block",
    "firewall",
    "cloudflare",
    "akamai",
    "imperva",
    "incapsula",
    "sucuri",
    "mod_security",
    "web application firewall",
    "waf",
    "attack detected",
    "malicious request",
    "invalid request",
    "request rejected",
)

# Edge-proxy fingerprints that mark a block page regardless of status
EDGE_FINGERPRINTS: Tuple[str, ...] = (
    "cloudflare ray id",
    "cf-ray",
)

WAF_BLOCK_STATUSES = frozenset({403, 406, 429})

TIMING_THRESHOLD_MS = 4500

SignatureList = Sequence[Tuple[Pattern, str]]


def compile_signatures(patterns: Iterable[Union[str, Tuple[str, str]]], flags: int = re.IGNORECASE) -> List[Tuple[Pattern, str]]:
    """
    Compile signature patterns, each paired with a readable label.

    Args:
        patterns: Regex strings, or (regex, label) pairs
        flags: Regex flags

    Returns:
        List of (compiled pattern, label)
    """
    compiled = []
    for item in patterns:
        if isinstance(item, tuple):
            pattern, label = item
        else:
            pattern, label = item, item
        compiled.append((re.compile(pattern, flags), label))
    return compiled


def first_match(signatures: SignatureList, text: str) -> Optional[str]:
    """Return the label of the first signature found in text, or None"""
    for pattern, label in signatures:
        if pattern.search(text):
            return label
    return None


class BaseAnalyzer(ABC):
    """
    Abstract base class for all vulnerability analyzers.

    Subclasses set ``vuln_type`` and implement ``analyze()``. Type, severity
    and payloads come from the payload catalog, so adding a vulnerability
    class means adding a catalog entry and one analyzer; the orchestrator
    does not change.

    Example:
        >>> class MyAnalyzer(BaseAnalyzer):
        ...     vuln_type = VulnerabilityType.XSS
        ...     def analyze(self, response, payload, baseline_status=None, elapsed_ms=None):
        ...         return self.no_signal(response, "Nothing found", "SAFE: No XSS indicators")
    """

    vuln_type: VulnerabilityType
    waf_indicators: Tuple[str, ...] = WAF_INDICATORS
    waf_statuses = WAF_BLOCK_STATUSES
    protected_subject: str = "the attack"

    def __init__(self):
        self.logger = structlog.get_logger(__name__, analyzer=self.vuln_type.value)

    @property
    def type(self) -> VulnerabilityType:
        return self.vuln_type

    @property
    def severity(self) -> SeverityLevel:
        return get_severity(self.vuln_type)

    def payloads(self, limit: Optional[int] = None) -> Tuple[str, ...]:
        """
        Get this analyzer's payloads.

        Args:
            limit: Return only the first N payloads (None = all)

        Returns:
            Ordered tuple of payloads
        """
        return get_payloads(self.vuln_type, limit)

    def build_variants(
        self,
        endpoint: EndpointDescriptor,
        payload: str,
        location: Union[InjectLocation, str] = InjectLocation.ALL,
    ) -> List[InjectionVariant]:
        """
        Build the request variants that carry a payload.

        Defaults to the standard injection strategy; analyzers whose payload
        is not a parameter value (e.g. an HTTP method) override this.
        """
        return inject_payload(endpoint, payload, location)

    @abstractmethod
    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        """
        Classify the response to one probe.

        Args:
            response: Captured response of the injected request
            payload: Payload that was sent
            baseline_status: Status of the unmodified endpoint (None if unknown)
            elapsed_ms: Response time in milliseconds

        Returns:
            AnalysisResult
        """
        pass

    # ── shared checks ───────────────────────────────────────────

    def is_waf_blocked(self, response: ResponseCapture) -> bool:
        """
        Check if a security layer blocked the request.

        A block status combined with a block phrase, or an edge-proxy
        fingerprint anywhere in the body, counts as blocked.
        """
        body_lower = response.text.lower()

        if response.status in self.waf_statuses:
            if any(indicator in body_lower for indicator in self.waf_indicators):
                return True

        return any(fingerprint in body_lower for fingerprint in EDGE_FINGERPRINTS)

    def waf_result(self, response: ResponseCapture) -> AnalysisResult:
        return AnalysisResult(
            vulnerable=False,
            confidence=Confidence.HIGH,
            indicators=(
                "WAF/Firewall blocked the malicious request",
                f"Response status: {response.status}",
            ),
            notes=(
                f"PROTECTED: A web application firewall detected and blocked "
                f"{self.protected_subject}."
            ),
        )

    @staticmethod
    def rejected(response: ResponseCapture, notes: str, confidence: Confidence = Confidence.LOW) -> AnalysisResult:
        return AnalysisResult(
            vulnerable=False,
            confidence=confidence,
            indicators=(f"Request rejected with status {response.status}",),
            notes=notes,
        )

    @staticmethod
    def vulnerable(confidence: Confidence, indicators: Sequence[str], notes: str) -> AnalysisResult:
        return AnalysisResult(
            vulnerable=True,
            confidence=confidence,
            indicators=tuple(indicators),
            notes=notes,
        )

    @staticmethod
    def no_signal(response: ResponseCapture, indicator: str, notes: str, extra: Sequence[str] = ()) -> AnalysisResult:
        return AnalysisResult(
            vulnerable=False,
            confidence=Confidence.LOW,
            indicators=(indicator, *extra, f"Response status: {response.status}"),
            notes=notes,
        )

    @staticmethod
    def is_timing_payload(payload: str, keywords: Iterable[str]) -> bool:
        payload_lower = payload.lower()
        return any(keyword.lower() in payload_lower for keyword in keywords)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.vuln_type.value!r}, severity={self.severity.value!r})"


class ScannerError(Exception):
    """Base exception for scan errors"""
    pass


class AnalyzerNotFoundError(ScannerError):
    """Raised when no analyzer is registered for a vulnerability type"""
    pass
