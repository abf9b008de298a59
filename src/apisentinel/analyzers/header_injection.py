"""
Header Injection Analyzer - Detects unsafe handling of header values.

Covers reflected script content, response splitting (forged Set-Cookie or
Location headers after a CRLF payload) and host values echoed back.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import WAF_INDICATORS, BaseAnalyzer


SCRIPT_TOKENS = ("<script>", "onerror=")
LINE_BREAKS = ("\r\n", "%0d%0a", "%0D%0A")
FORGED_COOKIE_MARKERS = ("malicious", "evil")
FORGED_LOCATION_MARKER = "evil.com"
FORGED_HOST = "evil.com"
LOOPBACK_HOST = "127.0.0.1"


class HeaderInjectionAnalyzer(BaseAnalyzer):
    """Header injection / response splitting analyzer"""

    vuln_type = VulnerabilityType.HEADER_INJECTION
    waf_indicators = WAF_INDICATORS + ("malicious",)
    protected_subject = "the header manipulation"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        if response.status in (400, 431):
            return self.rejected(response, "SAFE: Server rejected the header value")

        body = response.text

        if any(token in payload for token in SCRIPT_TOKENS) and payload in body:
            return self.vulnerable(
                Confidence.HIGH,
                ("Header value reflected in response (XSS)",),
                "VULNERABLE: Header value reflected without sanitization",
            )

        if any(marker in payload for marker in LINE_BREAKS):
            set_cookie = response.header("set-cookie")
            if any(marker in set_cookie for marker in FORGED_COOKIE_MARKERS):
                return self.vulnerable(
                    Confidence.HIGH,
                    ("CRLF Injection - Response splitting successful", f"Set-Cookie: {set_cookie}"),
                    "VULNERABLE: Attacker can inject arbitrary headers",
                )
            location = response.header("location")
            if FORGED_LOCATION_MARKER in location:
                return self.vulnerable(
                    Confidence.HIGH,
                    ("CRLF Injection - Location header forged", f"Location: {location}"),
                    "VULNERABLE: Attacker can inject arbitrary headers",
                )

        if (payload == FORGED_HOST or LOOPBACK_HOST in payload) and payload in body:
            return self.vulnerable(
                Confidence.HIGH,
                ("Host header value reflected in response",),
                "VULNERABLE: Host header is used unsafely in response",
            )

        return self.no_signal(
            response,
            "Header injection payload rejected or not reflected",
            "SAFE: No header injection vulnerabilities detected",
        )
