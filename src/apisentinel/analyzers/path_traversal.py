"""
Path Traversal Analyzer - Detects local file disclosure.

A traversal is confirmed when the body carries the content of a system or
configuration file. Binary downloads and a 404 baseline turning into 200
are reported with medium confidence.

Note: the 404 -> 200 heuristic misfires on endpoints whose status varies
on its own (e.g. catch-all routes). It is kept as a medium-confidence
signal rather than suppressed.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import WAF_INDICATORS, BaseAnalyzer, compile_signatures, first_match


FILE_CONTENT_SIGNATURES = compile_signatures([
    # Unix system files
    (r"root:.*:0:0:", "/etc/passwd"),
    (r"daemon:.*:1:1:", "/etc/passwd"),
    (r"nobody:.*:65534:", "/etc/passwd"),
    (r"shadow:.*:\*:", "/etc/shadow"),
    (r"bin/bash", "/etc/passwd shell entry"),
    (r"bin/sh", "/etc/passwd shell entry"),
    (r"127\.0\.0\.1\s+localhost", "/etc/hosts"),
    (r"nameserver\s+\S+", "/etc/resolv.conf"),
    (r"\[global\]", "smb.conf"),

    # Windows system files
    (r"\[boot loader\]", "boot.ini"),
    (r"\[operating systems\]", "boot.ini"),
    (r"\[fonts\]", "win.ini"),
    (r"\[extensions\]", "win.ini"),
    (r"\[Mail\]", "win.ini"),
    (r"; for 16-bit app support", "system.ini"),
    (r"\[drivers\]", "system.ini"),
    (r"\[386Enh\]", "system.ini"),
    (r"MSDOS\.SYS", "MSDOS.SYS"),
    (r"IO\.SYS", "IO.SYS"),

    # Configuration secrets
    (r"DB_PASSWORD", "DB_PASSWORD"),
    (r"DB_HOST", "DB_HOST"),
    (r"API_KEY", "API_KEY"),
    (r"SECRET_KEY", "SECRET_KEY"),
    (r"AWS_ACCESS", "AWS_ACCESS"),
    (r"MYSQL_PASSWORD", "MYSQL_PASSWORD"),
    (r"POSTGRES_PASSWORD", "POSTGRES_PASSWORD"),

    # Application sources
    (r"<\?php", "PHP source"),
    (r"<\?xml version", "XML file"),
    (r"\"devDependencies\"", "package.json"),
    (r"\"dependencies\"\s*:\s*\{", "package.json"),
])

PATH_ERROR_SIGNATURES = compile_signatures([
    r"No such file or directory",
    r"File not found",
    r"Cannot find the file",
    r"Permission denied",
    r"failed to open stream",
    r"include\(\): Failed opening",
    r"require\(\): Failed opening",
    r"fopen\(\): failed",
    r"file_get_contents\(\): failed",
    r"is not a valid path",
    r"Invalid file path",
])

BINARY_CONTENT_TYPES = ("octet-stream", "application/pdf", "image/")

REJECTION_STATUSES = frozenset({400, 403, 404})


class PathTraversalAnalyzer(BaseAnalyzer):
    """Path traversal / local file inclusion analyzer"""

    vuln_type = VulnerabilityType.PATH_TRAVERSAL
    waf_indicators = WAF_INDICATORS + ("path traversal", "directory traversal")
    protected_subject = "the path traversal attempt"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        if response.status in REJECTION_STATUSES:
            return self.rejected(response, "SAFE: Path traversal was blocked or file not found")

        body = response.text

        signature = first_match(FILE_CONTENT_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.HIGH,
                ("System/config file content detected", f"Matched signature: {signature}"),
                f"VULNERABLE: System file content found - {signature}",
            )

        content_type = response.header("content-type").lower()
        if response.status == 200 and any(t in content_type for t in BINARY_CONTENT_TYPES):
            return self.vulnerable(
                Confidence.MEDIUM,
                ("Binary file content returned", f"Content-Type: {content_type}"),
                "SUSPICIOUS: Binary content returned - possible file disclosure",
            )

        if baseline_status == 404 and response.status == 200:
            return self.vulnerable(
                Confidence.MEDIUM,
                ("File found after path traversal (404 -> 200)",),
                "VULNERABLE: Traversal payload changed 404 to 200",
            )

        if first_match(PATH_ERROR_SIGNATURES, body):
            return self.no_signal(
                response,
                "Path-related error message detected",
                "INFO: Error messages may indicate file system interaction",
            )

        return self.no_signal(
            response,
            "No path traversal indicators found",
            "SAFE: No system file content detected in response",
        )
