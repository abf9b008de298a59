"""
NoSQL Injection Analyzer - Detects MongoDB style operator injection.
"""

import re
from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import WAF_INDICATORS, BaseAnalyzer, compile_signatures, first_match


NOSQL_ERROR_SIGNATURES = compile_signatures([
    r"mongodb",
    r"mongoose",
    r"bson",
    r"objectid",
    r"cannot read property",
    r"unexpected token",
    r"syntaxerror.*json",
    r"cast.*error",
    r"invalid.*operator",
    r"query.*failed",
])

DOCUMENT_PATTERNS = [
    re.compile(r'"_id"\s*:', re.IGNORECASE),
    re.compile(r'"password"\s*:', re.IGNORECASE),
    re.compile(r'"email"\s*:', re.IGNORECASE),
    re.compile(r'\[".*"\]'),
    re.compile(r'\{".*":.*\}'),
]

AUTH_SUCCESS_PATTERN = re.compile(r"token|session|jwt|success|authenticated", re.IGNORECASE)

# Bodies beyond this size returned to a $ne payload look like a collection dump
DUMP_THRESHOLD = 500


class NoSQLInjectionAnalyzer(BaseAnalyzer):
    """NoSQL operator injection analyzer"""

    vuln_type = VulnerabilityType.NOSQL_INJECTION
    waf_indicators = WAF_INDICATORS + ("malicious",)
    protected_subject = "the NoSQL injection attempt"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        if 400 <= response.status < 500:
            return self.rejected(response, "SAFE: Server rejected the malformed request")

        body = response.text

        signature = first_match(NOSQL_ERROR_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.HIGH,
                ("NoSQL/MongoDB error message detected", f"Matched signature: {signature}"),
                "VULNERABLE: Database error exposed in response",
            )

        if response.status != 200:
            return self.no_signal(
                response,
                "No NoSQL injection indicators found",
                "SAFE: No NoSQL injection vulnerabilities detected",
            )

        if ("$ne" in payload or "$gt" in payload) and AUTH_SUCCESS_PATTERN.search(body):
            return self.vulnerable(
                Confidence.HIGH,
                ("Potential authentication bypass",),
                "VULNERABLE: NoSQL injection may have bypassed authentication",
            )

        if (
            "$ne" in payload
            and len(body) > DUMP_THRESHOLD
            and any(pattern.search(body) for pattern in DOCUMENT_PATTERNS)
        ):
            return self.vulnerable(
                Confidence.MEDIUM,
                ("Potential data leakage with NoSQL operators", f"Response size: {len(body)} characters"),
                "SUSPICIOUS: Large response with injection payload",
            )

        return self.no_signal(
            response,
            "No NoSQL injection indicators found",
            "SAFE: No NoSQL injection vulnerabilities detected",
        )
