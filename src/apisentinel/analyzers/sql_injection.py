"""
SQL Injection Analyzer - Detects SQL injection through error leakage,
data leakage, authentication bypass, time delays and status flips.

Detection:
1. Database error messages in the response
2. Sensitive data patterns (passwd lines, credential dumps)
3. Auth bypass: tautology payload answered with a session/token body
4. Time-based blind: delay payload and a slow response
5. Baseline delta: error status turned into 200
"""

import re
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


SQL_ERROR_SIGNATURES = compile_signatures([
    r"sql syntax",
    r"mysql_fetch",
    r"mysql_num_rows",
    r"mysql_query",
    r"pg_query",
    r"pg_exec",
    r"sqlite_",
    r"ORA-\d{5}",
    r"Oracle error",
    r"ODBC SQL Server Driver",
    r"SQLServer JDBC Driver",
    r"Microsoft OLE DB Provider",
    r"Incorrect syntax near",
    r"Unclosed quotation mark",
    r"quoted string not properly terminated",
    r"syntax error at or near",
    r"unexpected end of SQL command",
    r"invalid column name",
    r"unknown column",
    r"no such column",
    r"column.*does not exist",
    r"table.*doesn't exist",
    r"no such table",
    r"division by zero",
    r"You have an error in your SQL syntax",
    r"Warning.*mysql_",
    r"valid MySQL result",
    r"PostgreSQL.*ERROR",
    r"Warning.*pg_",
    r"Warning.*sqlite_",
    r"SQLite/JDBCDriver",
    r"SQLite.Exception",
    r"System.Data.SQLite.SQLiteException",
    r"SQLITE_ERROR",
    r"SQL Server.*Driver",
    r"SQL Server.*Error",
    r"Access.*Driver",
    r"Jet Database Engine",
    r"Driver.*SQL[-_ ]*Server",
    r"SQLSTATE",
    r"psycopg2",
    r"mysqli",
    r"PDOException",
    r"db2_",
    r"ifx_",
    r"sybase",
])

DATA_LEAK_SIGNATURES = compile_signatures([
    (r"root:.*:0:0", "passwd entry"),
    (r"admin.*password", "admin credentials"),
    (r"user.*password", "user credentials"),
    (r"login.*success.*true", "login success flag"),
    (r"authentication.*bypass", "authentication bypass message"),
])

AUTH_SUCCESS_PATTERN = re.compile(r"success|authenticated|welcome|token|session|jwt|bearer", re.IGNORECASE)
VERBOSE_ERROR_PATTERN = re.compile(r"stack trace|exception|error.*line \d+", re.IGNORECASE)

TAUTOLOGIES = ("OR '1'='1", 'OR "1"="1')
DELAY_KEYWORDS = ("sleep", "waitfor", "benchmark", "pg_sleep")


class SQLInjectionAnalyzer(BaseAnalyzer):
    """SQL injection analyzer"""

    vuln_type = VulnerabilityType.SQL_INJECTION
    waf_indicators = WAF_INDICATORS + ("sql injection",)
    protected_subject = "the SQL injection attempt"

    def analyze(
        self,
        response: ResponseCapture,
        payload: str,
        baseline_status: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
    ) -> AnalysisResult:
        if self.is_waf_blocked(response):
            return self.waf_result(response)

        # 401 can be the tautology failing against real auth, keep inspecting
        if 400 <= response.status < 500 and response.status != 401:
            return self.rejected(response, "Request was rejected - server may have input validation")

        body = response.text
        verbose = ("Verbose error messages detected (info disclosure)",) if VERBOSE_ERROR_PATTERN.search(body) else ()

        signature = first_match(SQL_ERROR_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.HIGH,
                ("SQL error message detected in response", f"Matched signature: {signature}", *verbose),
                f"VULNERABLE: SQL error exposed - {signature[:50]}",
            )

        signature = first_match(DATA_LEAK_SIGNATURES, body)
        if signature:
            return self.vulnerable(
                Confidence.HIGH,
                ("Potential data leakage detected", f"Matched signature: {signature}", *verbose),
                "VULNERABLE: Sensitive data pattern found in response",
            )

        if response.status == 200 and any(t in payload for t in TAUTOLOGIES) and AUTH_SUCCESS_PATTERN.search(body):
            return self.vulnerable(
                Confidence.HIGH,
                ("Potential authentication bypass", *verbose),
                "VULNERABLE: SQL injection payload resulted in successful authentication (authentication bypass)",
            )

        if (
            elapsed_ms is not None
            and elapsed_ms > TIMING_THRESHOLD_MS
            and self.is_timing_payload(payload, DELAY_KEYWORDS)
        ):
            return self.vulnerable(
                Confidence.HIGH,
                (f"Response delayed {elapsed_ms}ms after time-based payload", *verbose),
                "VULNERABLE: Time-based blind SQL injection - the injected delay was executed",
            )

        if baseline_status is not None and baseline_status >= 400 and response.status == 200:
            return self.vulnerable(
                Confidence.MEDIUM,
                (f"Status code changed from error ({baseline_status}) to success", *verbose),
                "SUSPICIOUS: Injection changed response from error to success",
            )

        return self.no_signal(
            response,
            "No SQL injection indicators found",
            "SAFE: No SQL error messages or injection indicators detected in response",
            extra=verbose,
        )
