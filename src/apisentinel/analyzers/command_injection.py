"""
Command Injection Analyzer - Detects OS command execution.

Looks for command output (passwd lines, ``id``/``uname``/``ls`` output,
Windows ``dir``/ini content), then for injected delays and shell errors.
"""

from typing import Optional

from ..core.models import AnalysisResult, Confidence, ResponseCapture
from ..payloads import VulnerabilityType
from .base import (
    TIMING_THRESHOLD_MS,
    WAF_INDICATORS,
    BaseAnalyzer,
    compile_signatures,
    first_match,
)


COMMAND_OUTPUT_SIGNATURES = compile_signatures([
    # Unix
    (r"root:.*:0:0:", "/etc/passwd content"),
    (r"bin/bash", "bin/bash"),
    (r"bin/sh", "bin/sh"),
    (r"nobody:.*:65534", "/etc/passwd content"),
    (r"daemon:.*:1:1", "/etc/passwd content"),
    (r"uid=\d+.*gid=\d+", "id output"),
    (r"Linux.*\d+\.\d+\.\d+", "uname output"),
    (r"total \d+\s+drwx", "ls -la output"),
    (r"drwxr-xr-x", "directory listing"),
    (r"-rw-r--r--", "file listing"),
    (r"/home/\w+", "home directory path"),
    (r"/usr/bin", "/usr/bin path"),
    (r"/var/log", "/var/log path"),

    # Windows
    (r"Volume Serial Number", "dir output"),
    (r"Directory of", "dir output"),
    (r"Windows IP Configuration", "ipconfig output"),
    (r"Ethernet adapter", "ipconfig output"),
    (r"C:\\Windows", "Windows path"),
    (r"C:\\Users", "Windows path"),
    (r"Program Files", "Windows path"),
    (r"SYSTEM32", "Windows path"),
    (r"\[boot loader\]", "boot.ini content"),
    (r"\[operating systems\]", "boot.ini content"),
    (r"\[fonts\]", "win.ini content"),
    (r"\[extensions\]", "win.ini content"),
    (r"COMPUTERNAME=", "environment dump"),
    (r"USERNAME=", "environment dump"),
    (r"USERDOMAIN=", "environment dump"),

    # Errors that only appear once the shell ran
    (r"command not found", "command not found"),
    (r"not recognized as an internal or external command", "cmd.exe error"),
    (r"No such file or directory", "No such file or directory"),
    (r"Permission denied", "Permission denied"),
    (r"Access is denied", "Access is denied"),
    (r"cannot find the path", "cannot find the path"),
    (r"is not recognized as a cmdlet", "PowerShell error"),
])

SHELL_ERROR_SIGNATURES = compile_signatures([
    r"sh: .*: not found",
    r"bash: .*: command not found",
    r"cmd\.exe.*is not recognized",
    r"/bin/.*: No such file",
    r"cannot execute binary file",
    r"syntax error near unexpected token",
])

TIMING_KEYWORDS = ("sleep", "waitfor", "ping -c", "ping -n")


class CommandInjectionAnalyzer(BaseAnalyzer):
    """OS command injection analyzer"""

    vuln_type = VulnerabilityType.COMMAND_INJECTION
    waf_indicators = WAF_INDICATORS + ("command injection",)
    protected_subject = "the command injection attempt"

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
            return self.rejected(response, "Request was rejected - input validation may be in place")

        body = response.text

        signature = first_match(COMMAND_OUTPUT_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.HIGH,
                ("Command output detected in response", f"Matched signature: {signature}"),
                f"VULNERABLE: System command output found - {signature}",
            )

        if (
            elapsed_ms is not None
            and elapsed_ms > TIMING_THRESHOLD_MS
            and self.is_timing_payload(payload, TIMING_KEYWORDS)
        ):
            return self.vulnerable(
                Confidence.HIGH,
                ("Time-based command injection detected",),
                f"VULNERABLE: Response delayed by {elapsed_ms}ms - command executed",
            )

        signature = first_match(SHELL_ERROR_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.MEDIUM,
                ("Shell error message in response", f"Matched signature: {signature}"),
                "VULNERABLE: Shell error indicates command was processed",
            )

        return self.no_signal(
            response,
            "No command injection indicators found",
            "SAFE: No command execution indicators detected in response",
        )
