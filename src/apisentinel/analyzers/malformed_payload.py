"""
Malformed Payload Analyzer - Checks how the server handles broken input.

A 400 is the expected answer, although its body is still inspected for
leaked implementation details. A 500 means the input crashed a handler.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import BaseAnalyzer, compile_signatures, first_match


VERBOSE_ERROR_SIGNATURES = compile_signatures([
    (r"stack\s*trace", "stack trace"),
    (r"at\s+\w+\s+\(", "stack frame"),
    (r"exception", "exception"),
    (r"error.*line\s*\d+", "error with line number"),
    (r"syntax.*error", "syntax error"),
    (r"undefined.*property", "undefined property"),
    (r"cannot\s+read", "cannot read"),
    (r"type.*error", "type error"),
    (r"internal\s+server\s+error", "internal server error"),
    (r"\.js:\d+:\d+", "source location"),
    (r"\.py\", line \d+", "source location"),
    (r"node_modules", "node_modules path"),
    (r"Traceback \(most recent call last\)", "traceback"),
])


class MalformedPayloadAnalyzer(BaseAnalyzer):
    """Malformed input handling analyzer"""

    vuln_type = VulnerabilityType.MALFORMED_PAYLOAD
    protected_subject = "the malformed request"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        body = response.text
        leak = first_match(VERBOSE_ERROR_SIGNATURES, body)

        if response.status == 400:
            if leak:
                return AnalysisResult(
                    vulnerable=False,
                    confidence=Confidence.LOW,
                    indicators=(
                        "Server returns 400 Bad Request for malformed data",
                        f"Error response contains verbose debug information ({leak})",
                    ),
                    notes="WARNING: Error messages may leak implementation details",
                )
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.LOW,
                indicators=("Server returns 400 Bad Request for malformed data",),
                notes="GOOD: Server properly validates input",
            )

        if response.status == 500:
            if leak:
                return self.vulnerable(
                    Confidence.HIGH,
                    ("Server crashed with 500 error", f"Stack trace or debug info exposed ({leak})"),
                    "VULNERABLE: Server exposes internal error details",
                )
            return self.vulnerable(
                Confidence.MEDIUM,
                ("Server crashed with 500 error",),
                "VULNERABLE: Malformed input causes server error",
            )

        if leak:
            return self.vulnerable(
                Confidence.MEDIUM,
                (f"Verbose error information detected ({leak})",),
                "VULNERABLE: Server exposes implementation details",
            )

        return self.no_signal(
            response,
            "Server handled malformed payload gracefully",
            f"SAFE: Server responded with {response.status}",
        )
