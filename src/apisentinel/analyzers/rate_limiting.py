"""
Rate Limiting Analyzer - Reports whether the endpoint shows throttling.

This check is informational: it never marks a probe vulnerable. A 429 or
a throttling page means protected, rate-limit headers are reported, and a
plain 200 without them produces a warning.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import WAF_BLOCK_STATUSES, WAF_INDICATORS, BaseAnalyzer


RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "retry-after",
    "x-rate-limit-limit",
    "ratelimit-limit",
)


class RateLimitingAnalyzer(BaseAnalyzer):
    """Rate limiting / anti-bot analyzer"""

    vuln_type = VulnerabilityType.RATE_LIMITING
    waf_indicators = WAF_INDICATORS + (
        "rate limit",
        "too many requests",
        "throttle",
        "slow down",
        "try again later",
    )
    waf_statuses = WAF_BLOCK_STATUSES | {503}
    protected_subject = "the burst of requests"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.HIGH,
                indicators=("Bot/DDoS protection is active", f"Response status: {response.status}"),
                notes="PROTECTED: Server has anti-bot/rate limiting measures",
            )

        if response.status == 429:
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.HIGH,
                indicators=("Rate limiting is active (429 Too Many Requests)",),
                notes="PROTECTED: Server properly implements rate limiting",
            )

        found = [name for name in RATE_LIMIT_HEADERS if response.header(name)]
        if found:
            indicators = [f"Rate limit headers present: {', '.join(found)}"]
            remaining = response.header("x-ratelimit-remaining") or response.header("x-rate-limit-remaining")
            if remaining:
                indicators.append(f"Remaining requests: {remaining}")
            return AnalysisResult(
                vulnerable=False,
                confidence=Confidence.MEDIUM,
                indicators=tuple(indicators),
                notes="INFO: Rate limiting headers detected - server may have protection",
            )

        if response.status == 200:
            return self.no_signal(
                response,
                "No rate limit headers in response",
                "WARNING: Consider implementing rate limiting for this endpoint",
            )

        return self.no_signal(
            response,
            "No rate limiting signal observed",
            "INFO: Response carried no rate limiting information",
        )
