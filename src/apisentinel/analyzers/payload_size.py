"""
Payload Size Analyzer - Checks how the server copes with oversized input.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import BaseAnalyzer


VERY_SLOW_MS = 10000
SLOW_MS = 5000


class PayloadSizeAnalyzer(BaseAnalyzer):
    """Oversized payload / resource exhaustion analyzer"""

    vuln_type = VulnerabilityType.PAYLOAD_SIZE
    protected_subject = "the oversized request"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        size = len(payload)

        if response.status == 413:
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.HIGH,
                indicators=("Server returns 413 Payload Too Large",),
                notes="GOOD: Server enforces payload size limits",
            )

        if response.status in (400, 414, 431):
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.MEDIUM,
                indicators=(f"Server rejects oversized payload with {response.status}",),
                notes="GOOD: Server validates input size",
            )

        if response.status in (408, 504):
            return self.vulnerable(
                Confidence.MEDIUM,
                ("Request timed out with large payload",),
                "VULNERABLE: Large payloads may cause DoS",
            )

        if response.status in (500, 502, 503):
            return self.vulnerable(
                Confidence.HIGH,
                (f"Server error {response.status} with {size} character payload",),
                "VULNERABLE: Large payload causes server error - DoS vector",
            )

        if elapsed_ms is not None and elapsed_ms > VERY_SLOW_MS:
            return self.vulnerable(
                Confidence.MEDIUM,
                (f"Very slow response: {elapsed_ms}ms",),
                "VULNERABLE: Large payloads cause significant slowdown",
            )

        if elapsed_ms is not None and elapsed_ms > SLOW_MS:
            return self.no_signal(
                response,
                f"Slow response: {elapsed_ms}ms",
                "WARNING: Large payloads cause noticeable slowdown",
            )

        if response.status == 200:
            return self.no_signal(
                response,
                f"Server accepted {size} character payload",
                "SAFE: Server handled large payload",
            )

        return self.no_signal(
            response,
            f"No size handling issue for {size} character payload",
            f"SAFE: Server responded with {response.status}",
        )
