"""
XSS Analyzer - Detects reflected cross-site scripting.

A payload counts as reflected when it, its URL-decoded form or its
HTML-entity-decoded form appears verbatim in the body. Reflection that
still carries a dangerous token (``<script>``, ``onerror=``, ...) is
exploitable; bare reflection needs a manual look at the output context.
"""

import html
from typing import List, Optional
from urllib.parse import unquote

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import WAF_INDICATORS, BaseAnalyzer


DANGEROUS_TOKENS = (
    "<script>",
    "</script>",
    "javascript:",
    "onerror=",
    "onload=",
    "onclick=",
    "onmouseover=",
    "onfocus=",
    "onblur=",
    "<img",
    "<svg",
    "<iframe",
)

REJECTION_WORDING = ("invalid", "error", "bad request", "not allowed", "rejected")

SECURITY_HEADERS = (
    "x-xss-protection",
    "content-security-policy",
    "x-content-type-options",
)


def reflected_forms(payload: str) -> List[str]:
    """Payload forms whose presence in a body counts as reflection"""
    forms = [payload]
    for decoded in (unquote(payload), html.unescape(payload)):
        if decoded not in forms:
            forms.append(decoded)
    return forms


def is_reflected(body: str, payload: str) -> bool:
    """Check if the payload (raw, URL-decoded or entity-decoded) is in body"""
    if not payload:
        return False
    return any(form in body for form in reflected_forms(payload))


def dangerous_tokens(body: str, payload: str) -> List[str]:
    """Dangerous tokens present in the payload that survive unescaped in body"""
    body_lower = body.lower()
    payload_forms = " ".join(reflected_forms(payload)).lower()
    return [
        token for token in DANGEROUS_TOKENS
        if token in payload_forms and token in body_lower
    ]


class XSSAnalyzer(BaseAnalyzer):
    """Reflected XSS analyzer"""

    vuln_type = VulnerabilityType.XSS
    waf_indicators = WAF_INDICATORS + ("sql injection", "cross-site scripting", "xss detected")
    protected_subject = "the XSS attempt"

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

        if 400 <= response.status < 600:
            body_lower = body.lower()
            if any(word in body_lower for word in REJECTION_WORDING):
                return self.rejected(
                    response,
                    "Request was rejected by the server - input validation may be in place",
                )

        if not is_reflected(body, payload):
            return self.no_signal(
                response,
                "Payload was not reflected in response",
                "SAFE: The XSS payload was not reflected in the server response",
            )

        missing = [name for name in SECURITY_HEADERS if not response.header(name)]
        missing_note = (f"Missing security headers: {', '.join(missing)}",) if missing else ()

        found = dangerous_tokens(body, payload)
        if found:
            return self.vulnerable(
                Confidence.HIGH,
                (
                    "Payload reflected without sanitization",
                    f"Dangerous content found: {', '.join(found)}",
                    *missing_note,
                ),
                "VULNERABLE: XSS payload was reflected in the response without proper "
                "encoding. This could allow script execution.",
            )

        return self.vulnerable(
            Confidence.MEDIUM,
            ("Payload reflected in response", *missing_note),
            "Payload found in response - verify if properly escaped in browser context",
        )
