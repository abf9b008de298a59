"""
Data models - Value types shared by every stage of the scan pipeline.

Endpoint descriptors flow from the input boundary through injection and
dispatch; analysis results, test records and reports flow back out to the
presentation layer. Report types serialize losslessly to a tree of
primitive values (``to_dict``/``from_dict``) and JSON.

Design Pattern: Value Object
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, List, Optional, Tuple, Union


Body = Union[None, str, Dict[str, Any], List[Any]]

PREVIEW_LIMIT = 200
TRUNCATION_MARKER = "... [truncated]"
EMPTY_BODY_MARKER = "[No response body]"
# Payloads longer than this are shortened for display
PAYLOAD_LABEL_LIMIT = 100


def _clone_value(value: Any) -> Any:
    """Copy nested dict/list containers; leaves are immutable primitives"""
    if isinstance(value, dict):
        return {key: _clone_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_clone_value(item) for item in value]
    return value


@dataclass
class EndpointDescriptor:
    """
    One API endpoint to probe.

    Descriptors are transformed by cloning, never mutated in place, so a
    single base endpoint can spawn many independent injection variants.
    """
    url: str
    method: str = "GET"
    name: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    query_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.method = (self.method or "GET").upper()
        if self.headers is None:
            self.headers = {}
        if self.query_params is None:
            self.query_params = {}

    @property
    def display_name(self) -> str:
        """Label used in reports and progress events"""
        return self.name or self.url

    def clone(self) -> "EndpointDescriptor":
        """
        Create an independent copy of this endpoint.

        Headers, query parameters and (nested) structured bodies are copied,
        so changes to the clone never reach the source or its siblings.

        Returns:
            New EndpointDescriptor
        """
        return EndpointDescriptor(
            url=self.url,
            method=self.method,
            name=self.name,
            headers=dict(self.headers),
            body=_clone_value(self.body),
            query_params=_clone_value(self.query_params),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "name": self.name,
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "body": _clone_value(self.body),
            "query_params": _clone_value(self.query_params),
        }


@dataclass
class InjectionVariant:
    """An endpoint carrying one payload, tagged with where it was placed"""
    endpoint: EndpointDescriptor
    injection_point: str


@dataclass
class ResponseCapture:
    """
    Captured response of one dispatched request.

    ``status`` is 0 when the request never produced an HTTP response; in
    that case ``error`` holds the classified transport error and ``body``
    the error message.
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = ""
    elapsed_ms: int = 0
    error: Optional[str] = None

    @property
    def text(self) -> str:
        """Body normalized to a string for pattern matching"""
        if self.body is None:
            return ""
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body, separators=(",", ":"), ensure_ascii=False)

    @property
    def size(self) -> int:
        return len(self.text)

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup"""
        return self.headers.get(name.lower(), default)


@dataclass(frozen=True)
class Baseline:
    """Reference response of the unmodified endpoint"""
    status: int
    elapsed_ms: int
    declared_length: int = 0


@total_ordering
class Confidence(Enum):
    """Ordered strength of a verdict: low < medium < high"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class Verdict(Enum):
    """Per-probe outcome"""
    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"


@dataclass(frozen=True)
class AnalysisResult:
    """Immutable verdict of one analyzer for one response"""
    vulnerable: bool
    confidence: Confidence = Confidence.LOW
    indicators: Tuple[str, ...] = ()
    notes: str = ""

    @property
    def verdict(self) -> Verdict:
        return Verdict.FAIL if self.vulnerable else Verdict.PASS


def truncate_preview(body: Any) -> str:
    """
    Build the response preview stored in a test record.

    Args:
        body: Response body (string or structured)

    Returns:
        At most 200 characters, followed by a truncation marker when cut
    """
    if body is None or body == "" or body == {} or body == []:
        return EMPTY_BODY_MARKER
    text = body if isinstance(body, str) else json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    if len(text) <= PREVIEW_LIMIT:
        return text
    return text[:PREVIEW_LIMIT] + TRUNCATION_MARKER


def payload_label(payload: str) -> str:
    """Readable form of a payload for console output and logs"""
    if len(payload) <= PAYLOAD_LABEL_LIMIT:
        return payload
    return f"{payload[:20]}... ({len(payload)} chars)"


@dataclass
class TestRecord:
    """
    Full record of a single probe.

    ``payload`` holds the payload exactly as sent. Use ``payload_label()``
    to display it.
    """
    __test__ = False  # not a pytest test class

    type: str
    severity: str
    payload: str
    injection_point: str
    request_method: str
    request_url: str
    result: Verdict
    response_code: int = 0
    response_time: int = 0
    response_size: int = 0
    response_preview: str = EMPTY_BODY_MARKER
    vulnerable: bool = False
    confidence: Optional[Confidence] = None
    indicators: List[str] = field(default_factory=list)
    notes: str = ""
    baseline_status: Optional[int] = None
    status_changed: Optional[bool] = None
    tested_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "type": self.type,
            "severity": self.severity,
            "payload": self.payload,
            "injection_point": self.injection_point,
            "request_method": self.request_method,
            "request_url": self.request_url,
            "result": self.result.value,
            "response_code": self.response_code,
            "response_time": self.response_time,
            "response_size": self.response_size,
            "response_preview": self.response_preview,
            "vulnerable": self.vulnerable,
            "confidence": self.confidence.value if self.confidence else None,
            "indicators": list(self.indicators),
            "notes": self.notes,
            "baseline_status": self.baseline_status,
            "status_changed": self.status_changed,
            "tested_at": self.tested_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestRecord":
        confidence = data.get("confidence")
        return cls(
            type=data["type"],
            severity=data["severity"],
            payload=data["payload"],
            injection_point=data["injection_point"],
            request_method=data["request_method"],
            request_url=data["request_url"],
            result=Verdict(data["result"]),
            response_code=data.get("response_code", 0),
            response_time=data.get("response_time", 0),
            response_size=data.get("response_size", 0),
            response_preview=data.get("response_preview", EMPTY_BODY_MARKER),
            vulnerable=data.get("vulnerable", False),
            confidence=Confidence(confidence) if confidence else None,
            indicators=list(data.get("indicators", [])),
            notes=data.get("notes", ""),
            baseline_status=data.get("baseline_status"),
            status_changed=data.get("status_changed"),
            tested_at=data["tested_at"],
        )


@dataclass
class EndpointSummary:
    """Running probe counts for one endpoint"""
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0

    def record(self, verdict: Verdict):
        self.total += 1
        if verdict is Verdict.FAIL:
            self.failed += 1
        elif verdict is Verdict.PASS:
            self.passed += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
        }


@dataclass
class EndpointScanResult:
    """All probe records of one endpoint plus counts"""
    api: str
    method: str
    url: str
    tests: List[TestRecord] = field(default_factory=list)
    summary: EndpointSummary = field(default_factory=EndpointSummary)
    error: Optional[str] = None

    def add(self, record: TestRecord):
        self.tests.append(record)
        self.summary.record(record.result)

    @property
    def vulnerabilities(self) -> List[TestRecord]:
        return [test for test in self.tests if test.result is Verdict.FAIL]

    @classmethod
    def failed_endpoint(cls, endpoint: EndpointDescriptor, error: str) -> "EndpointScanResult":
        """Zero-test ERROR result for an endpoint that could not be scanned"""
        return cls(
            api=endpoint.display_name,
            method=endpoint.method,
            url=endpoint.url,
            summary=EndpointSummary(errors=1),
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "api": self.api,
            "method": self.method,
            "url": self.url,
            "tests": [test.to_dict() for test in self.tests],
            "summary": self.summary.to_dict(),
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EndpointScanResult":
        return cls(
            api=data["api"],
            method=data["method"],
            url=data["url"],
            tests=[TestRecord.from_dict(test) for test in data.get("tests", [])],
            summary=EndpointSummary(**data.get("summary", {})),
            error=data.get("error"),
        )


@dataclass
class VulnerabilityFinding:
    """Flattened FAIL record for the scan-level rollup"""
    endpoint: str
    type: str
    severity: str
    payload: str
    confidence: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "type": self.type,
            "severity": self.severity,
            "payload": self.payload,
            "confidence": self.confidence,
        }


@dataclass
class ScanSummary:
    """Scan-wide rollup"""
    total_endpoints: int = 0
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    vulnerabilities: List[VulnerabilityFinding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_endpoints": self.total_endpoints,
            "total_tests": self.total_tests,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
            "vulnerabilities": [vuln.to_dict() for vuln in self.vulnerabilities],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanSummary":
        return cls(
            total_endpoints=data.get("total_endpoints", 0),
            total_tests=data.get("total_tests", 0),
            passed=data.get("passed", 0),
            failed=data.get("failed", 0),
            errors=data.get("errors", 0),
            vulnerabilities=[
                VulnerabilityFinding(**vuln) for vuln in data.get("vulnerabilities", [])
            ],
        )


@dataclass
class ScanReport:
    """
    Complete result of one scan run.

    Created at scan start, extended as each endpoint finishes and stamped
    with its duration at the end. Durable storage is up to the host.
    """
    scan_id: str
    timestamp: str
    options: Dict[str, Any] = field(default_factory=dict)
    endpoints: List[EndpointScanResult] = field(default_factory=list)
    summary: ScanSummary = field(default_factory=ScanSummary)
    duration_ms: Optional[int] = None
    cancelled: bool = False

    def add_endpoint_result(self, result: EndpointScanResult):
        """Append an endpoint result and fold it into the rollup"""
        self.endpoints.append(result)

        if result.error is not None and not result.tests:
            self.summary.errors += 1
            return

        self.summary.total_tests += result.summary.total
        self.summary.passed += result.summary.passed
        self.summary.failed += result.summary.failed
        self.summary.errors += result.summary.errors

        for test in result.vulnerabilities:
            self.summary.vulnerabilities.append(VulnerabilityFinding(
                endpoint=result.api,
                type=test.type,
                severity=test.severity,
                payload=test.payload,
                confidence=test.confidence.value if test.confidence else None,
            ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a tree of primitive values"""
        return {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "cancelled": self.cancelled,
            "options": _clone_value(self.options),
            "endpoints": [endpoint.to_dict() for endpoint in self.endpoints],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanReport":
        return cls(
            scan_id=data["scan_id"],
            timestamp=data["timestamp"],
            options=_clone_value(data.get("options", {})),
            endpoints=[EndpointScanResult.from_dict(item) for item in data.get("endpoints", [])],
            summary=ScanSummary.from_dict(data.get("summary", {})),
            duration_ms=data.get("duration_ms"),
            cancelled=data.get("cancelled", False),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "ScanReport":
        return cls.from_dict(json.loads(text))
