"""
HTTP Method Analyzer - Checks which request methods the endpoint accepts.

Payloads are method names. Instead of injecting them into parameters, the
analyzer re-sends the unmodified endpoint with the payload as its method.
"""

from typing import List, Optional, Union

from ..core.injection import InjectLocation
from ..core.models import (
    AnalysisResult,
    Confidence,
    EndpointDescriptor,
    InjectionVariant,
    ResponseCapture,
)
from ..payloads import VulnerabilityType
from .base import BaseAnalyzer


WEBDAV_METHODS = ("PROPFIND", "PROPPATCH", "MKCOL", "COPY", "MOVE")
TRACE_METHODS = ("TRACE", "TRACK")
DANGEROUS_ALLOWED = ("TRACE", "TRACK", "DEBUG")


class HTTPMethodAnalyzer(BaseAnalyzer):
    """HTTP method exposure analyzer"""

    vuln_type = VulnerabilityType.HTTP_METHOD
    protected_subject = "the request"

    def build_variants(
        self,
        endpoint: EndpointDescriptor,
        payload: str,
        location: Union[InjectLocation, str] = InjectLocation.ALL,
    ) -> List[InjectionVariant]:
        modified = endpoint.clone()
        modified.method = payload.upper()
        return [InjectionVariant(modified, f"HTTP method: {modified.method}")]

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        method = payload.upper()
        allow = response.header("allow")

        if response.status in (405, 501):
            indicators = [f"Server properly rejects {method} with {response.status}"]
            if allow:
                indicators.append(f"Allowed methods: {allow}")
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.LOW,
                indicators=tuple(indicators),
                notes="GOOD: Server enforces allowed HTTP methods",
            )

        if method in TRACE_METHODS and response.status == 200:
            return self.vulnerable(
                Confidence.HIGH,
                (f"{method} method is enabled",),
                "VULNERABLE: TRACE enabled - Cross-Site Tracing (XST) possible",
            )

        if method in WEBDAV_METHODS and response.status in (200, 207):
            return self.vulnerable(
                Confidence.HIGH,
                (f"WebDAV method {method} is enabled",),
                "VULNERABLE: WebDAV methods should be disabled",
            )

        if method == "DEBUG" and response.status == 200:
            return self.vulnerable(
                Confidence.HIGH,
                ("DEBUG method is enabled",),
                "VULNERABLE: Debug endpoint exposed",
            )

        if method == "OPTIONS" and response.status in (200, 204):
            indicators = ["OPTIONS method is allowed"]
            if allow:
                indicators.append(f"Allowed: {allow}")
                dangerous = [m for m in DANGEROUS_ALLOWED if m in allow.upper()]
                if dangerous:
                    indicators.append(f"Dangerous methods allowed: {', '.join(dangerous)}")
                    return self.vulnerable(
                        Confidence.MEDIUM,
                        indicators,
                        "WARNING: Review allowed HTTP methods",
                    )
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.LOW,
                indicators=tuple(indicators),
                notes="INFO: OPTIONS reveals allowed methods",
            )

        return self.no_signal(
            response,
            f"{method} method returned {response.status}",
            "SAFE: Server handled HTTP method appropriately",
        )
