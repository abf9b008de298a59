"""
Unit tests for ScanOrchestrator.

Uses an in-memory dispatcher so no network traffic is involved.

Run with: pytest tests/unit/test_orchestrator.py -v
"""

import asyncio
from typing import Callable, List

import pytest

from apisentinel.analyzers import SQLInjectionAnalyzer, XSSAnalyzer
from apisentinel.core.config import PacingSettings, ScannerSettings, ScanOptions
from apisentinel.core.dispatcher import CONNECTION_REFUSED, DispatchResult
from apisentinel.core.models import (
    EndpointDescriptor,
    ResponseCapture,
    Verdict,
    payload_label,
)
from apisentinel.core.orchestrator import ScanOrchestrator
from apisentinel.payloads import VulnerabilityType, get_payloads


class FakeDispatcher:
    """Dispatcher double answering every request through a responder function"""

    def __init__(self, responder: Callable, delay: Callable = None):
        self.responder = responder
        self.delay = delay
        self.sent: List[EndpointDescriptor] = []
        self.closed = False

    async def send(self, endpoint: EndpointDescriptor) -> DispatchResult:
        self.sent.append(endpoint)
        if self.delay:
            await asyncio.sleep(self.delay(endpoint))
        outcome = self.responder(endpoint)
        if isinstance(outcome, DispatchResult):
            return outcome
        return DispatchResult(response=outcome, elapsed_ms=5)

    async def close(self):
        self.closed = True


def ok(endpoint) -> ResponseCapture:
    return ResponseCapture(status=200, headers={"content-type": "application/json"}, body=[])


def refused(endpoint) -> DispatchResult:
    return DispatchResult(
        response=ResponseCapture(status=0, body=CONNECTION_REFUSED, error=CONNECTION_REFUSED),
        elapsed_ms=1,
        error=CONNECTION_REFUSED,
    )


def sql_error(endpoint) -> ResponseCapture:
    return ResponseCapture(status=500, body="You have an error in your SQL syntax")


def make_endpoint(name: str = "Create") -> EndpointDescriptor:
    return EndpointDescriptor(
        name=name,
        method="POST",
        url="https://api.example.com/items",
        body={"b": 2},
        query_params={"a": 1},
    )


def make_orchestrator(responder=ok, analyzers=None, concurrency: int = 1, delay=None) -> ScanOrchestrator:
    settings = ScannerSettings(pacing=PacingSettings(probe_interval=0, max_concurrency=concurrency))
    return ScanOrchestrator(
        dispatcher=FakeDispatcher(responder, delay),
        analyzers=analyzers,
        settings=settings,
    )


SQL_ONLY = ScanOptions(scan_types=["SQL Injection"], max_payloads=3)


class TestProbeMatrix:
    """Test suite for probe expansion and record order"""

    @pytest.mark.asyncio
    async def test_record_count_bounded(self):
        """Test one type with three payloads gives at most N x 3 x 2 records"""
        orchestrator = make_orchestrator()

        report = await orchestrator.run_scan([make_endpoint("A"), make_endpoint("B")], SQL_ONLY)

        assert report.summary.total_endpoints == 2
        assert report.summary.total_tests == 2 * 3 * 2
        for endpoint_result in report.endpoints:
            assert endpoint_result.summary.total == 6

    @pytest.mark.asyncio
    async def test_record_order(self):
        """Test records follow payload -> variant order"""
        orchestrator = make_orchestrator()
        payloads = get_payloads(VulnerabilityType.SQL_INJECTION, 3)

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)
        tests = report.endpoints[0].tests

        assert [t.payload for t in tests] == [payloads[0], payloads[0], payloads[1], payloads[1], payloads[2], payloads[2]]
        assert [t.injection_point for t in tests[:2]] == ["Query param: a", "Query param: q (injected)"]

    @pytest.mark.asyncio
    async def test_analyzer_order_not_selection_order(self):
        """Test types run in analyzer order regardless of how they were selected"""
        orchestrator = make_orchestrator()

        report = await orchestrator.run_scan(
            [make_endpoint()],
            {"scanTypes": ["XSS", "SQL Injection"], "maxPayloads": 1},
        )

        assert [t.type for t in report.endpoints[0].tests] == [
            "SQL Injection", "SQL Injection", "XSS", "XSS",
        ]
        assert report.options["max_payloads"] == 1

    @pytest.mark.asyncio
    async def test_baseline_sent_first(self):
        """Test the unmodified endpoint is dispatched before any probe"""
        orchestrator = make_orchestrator()
        endpoint = make_endpoint()

        await orchestrator.run_scan([endpoint], SQL_ONLY)

        sent = orchestrator.dispatcher.sent
        assert sent[0] is endpoint
        assert len(sent) == 1 + 6

    @pytest.mark.asyncio
    async def test_long_payload_kept_in_full(self):
        """Test oversized payloads are recorded exactly as sent"""
        orchestrator = make_orchestrator()

        report = await orchestrator.run_scan(
            [make_endpoint()],
            ScanOptions(scan_types=["Payload Size"], max_payloads=1),
        )
        record = report.endpoints[0].tests[0]

        assert record.payload == "A" * 500
        assert report.to_dict()["endpoints"][0]["tests"][0]["payload"] == "A" * 500

    def test_payload_label(self):
        """Test long payloads are shortened for display only"""
        assert payload_label("' OR 1=1") == "' OR 1=1"
        assert payload_label("B" * 101) == "B" * 20 + "... (101 chars)"


class TestVerdicts:
    """Test suite for verdict folding and failure isolation"""

    @pytest.mark.asyncio
    async def test_clean_target_passes(self):
        """Test a clean target yields PASS records only"""
        orchestrator = make_orchestrator()

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)

        assert report.summary.passed == 6
        assert report.summary.failed == 0
        assert all(t.baseline_status == 200 for t in report.endpoints[0].tests)
        assert all(t.status_changed is False for t in report.endpoints[0].tests)

    @pytest.mark.asyncio
    async def test_findings_collected(self):
        """Test FAIL records land in the vulnerability rollup"""
        orchestrator = make_orchestrator(responder=sql_error)

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)

        assert report.summary.failed == 6
        assert len(report.summary.vulnerabilities) == 6
        first = report.endpoints[0].tests[0]
        assert first.result is Verdict.FAIL
        assert first.vulnerable is True
        assert first.response_code == 500
        assert first.response_preview == "You have an error in your SQL syntax"

    @pytest.mark.asyncio
    async def test_status_change_against_baseline(self):
        """Test probes record the baseline status and whether it changed"""
        def responder(endpoint):
            if endpoint.query_params == {"a": 1}:
                return ResponseCapture(status=404, body="Not Found")
            return ResponseCapture(status=200, body="[]")

        orchestrator = make_orchestrator(responder=responder)

        report = await orchestrator.run_scan([make_endpoint()], ScanOptions(scan_types=["SQL Injection"], max_payloads=1))
        record = report.endpoints[0].tests[0]

        assert record.baseline_status == 404
        assert record.status_changed is True
        # Error baseline turned into success
        assert record.result is Verdict.FAIL

    @pytest.mark.asyncio
    async def test_transport_failure_is_error(self):
        """Test refused connections become ERROR records, never verdicts"""
        orchestrator = make_orchestrator(responder=refused)

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)
        tests = report.endpoints[0].tests

        assert all(t.result is Verdict.ERROR for t in tests)
        assert tests[0].notes == f"Request failed: {CONNECTION_REFUSED}"
        assert tests[0].baseline_status is None
        assert report.summary.errors == 6

    @pytest.mark.asyncio
    async def test_analyzer_exception_is_error(self):
        """Test an analyzer crash becomes an ERROR record"""
        class BrokenAnalyzer(SQLInjectionAnalyzer):
            def analyze(self, response, payload, baseline_status=None, elapsed_ms=None):
                raise RuntimeError("boom")

        orchestrator = make_orchestrator(analyzers=[BrokenAnalyzer()])

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)
        record = report.endpoints[0].tests[0]

        assert record.result is Verdict.ERROR
        assert record.notes == "Analysis failed: boom"
        assert record.response_code == 200

    @pytest.mark.asyncio
    async def test_endpoint_failure_isolated(self):
        """Test a failing endpoint becomes a zero-test ERROR result"""
        class FragileAnalyzer(SQLInjectionAnalyzer):
            def build_variants(self, endpoint, payload, location="all"):
                if endpoint.name == "Broken":
                    raise ValueError("cannot inject")
                return super().build_variants(endpoint, payload, location)

        orchestrator = make_orchestrator(analyzers=[FragileAnalyzer()])

        report = await orchestrator.run_scan([make_endpoint("Broken"), make_endpoint("Fine")], SQL_ONLY)

        broken, fine = report.endpoints
        assert broken.tests == []
        assert broken.error == "cannot inject"
        assert fine.summary.total == 6
        assert report.summary.errors == 1


class TestScanControl:
    """Test suite for progress, observers, cancellation and concurrency"""

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        """Test progress is reported after every endpoint"""
        progress = []
        orchestrator = make_orchestrator()

        await orchestrator.run_scan(
            [make_endpoint("A"), make_endpoint("B")],
            SQL_ONLY,
            progress_callback=progress.append,
        )

        assert progress == [
            {"current": 1, "total": 2, "endpoint": "A"},
            {"current": 2, "total": 2, "endpoint": "B"},
        ]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self):
        """Test coroutine progress callbacks are awaited"""
        progress = []

        async def on_progress(update):
            progress.append(update["current"])

        orchestrator = make_orchestrator()

        await orchestrator.run_scan([make_endpoint()], SQL_ONLY, progress_callback=on_progress)

        assert progress == [1]

    @pytest.mark.asyncio
    async def test_observers_notified(self):
        """Test orchestration events reach subscribed observers"""
        events = []
        orchestrator = make_orchestrator(responder=sql_error)
        orchestrator.subscribe(lambda event, data: events.append(event))

        await orchestrator.run_scan([make_endpoint()], SQL_ONLY, scan_id="scan-42")

        assert events[0] == "scan_started"
        assert events.count("vulnerability_found") == 6
        assert events[-2:] == ["endpoint_completed", "scan_completed"]
        assert orchestrator.scan_id == "scan-42"

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_abort(self):
        """Test an observer error is logged and the scan continues"""
        def broken_observer(event, data):
            raise RuntimeError("observer down")

        orchestrator = make_orchestrator()
        orchestrator.subscribe(broken_observer)

        report = await orchestrator.run_scan([make_endpoint()], SQL_ONLY)

        assert report.summary.total_tests == 6

    @pytest.mark.asyncio
    async def test_cancel_between_endpoints(self):
        """Test cancel() stops the scan and marks the report partial"""
        orchestrator = make_orchestrator()

        def stop_after_first(event, data):
            if event == "endpoint_completed":
                orchestrator.cancel()

        orchestrator.subscribe(stop_after_first)

        report = await orchestrator.run_scan([make_endpoint("A"), make_endpoint("B")], SQL_ONLY)

        assert report.cancelled is True
        assert [e.api for e in report.endpoints] == ["A"]
        assert report.summary.total_endpoints == 2
        assert report.duration_ms is not None

    @pytest.mark.asyncio
    async def test_concurrency_keeps_order(self):
        """Test concurrent probes produce records in sequential order"""
        # Injected query key answers faster, so completion order differs
        def delay(endpoint):
            return 0 if "q" in endpoint.query_params else 0.01

        sequential = make_orchestrator()
        concurrent = make_orchestrator(concurrency=4, delay=delay)

        expected = await sequential.run_scan([make_endpoint()], SQL_ONLY)
        actual = await concurrent.run_scan([make_endpoint()], SQL_ONLY)

        def key(report):
            return [(t.payload, t.injection_point) for t in report.endpoints[0].tests]

        assert key(actual) == key(expected)

    @pytest.mark.asyncio
    async def test_injected_dispatcher_not_closed(self):
        """Test a caller-supplied dispatcher stays open after the scan"""
        orchestrator = make_orchestrator()

        await orchestrator.run_scan([make_endpoint()], SQL_ONLY)

        assert orchestrator.dispatcher.closed is False

    @pytest.mark.asyncio
    async def test_get_status(self):
        """Test status reporting"""
        orchestrator = make_orchestrator(analyzers=[SQLInjectionAnalyzer(), XSSAnalyzer()])

        await orchestrator.run_scan([make_endpoint()], SQL_ONLY)
        status = orchestrator.get_status()

        assert status["is_running"] is False
        assert status["probes_sent"] == 6
        assert status["analyzers"] == ["SQL Injection", "XSS"]
        assert "pacer" in status


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
