"""
Unit tests for the scan registry and the scan service facade.

Run with: pytest tests/unit/test_registry.py -v
"""

import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer
from pydantic import ValidationError

from apisentinel.core.config import PacingSettings, ScannerSettings
from apisentinel.core.models import EndpointDescriptor, ScanReport, Verdict
from apisentinel.core.registry import ScanNotFoundError, ScanRegistry, ScanStatus
from apisentinel.core.service import ScanService


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_report(scan_id: str) -> ScanReport:
    return ScanReport(scan_id=scan_id, timestamp="2026-01-01T00:00:00")


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def search(request: web.Request) -> web.Response:
    term = request.query.get("q", "")
    return web.Response(text=f"<p>Results for {term}</p>", content_type="text/html")


def make_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/search", search)
    return app


FAST = ScannerSettings(pacing=PacingSettings(probe_interval=0))


class TestScanRegistry:
    """Test suite for ScanRegistry"""

    def test_create_and_get(self):
        """Test a new scan is running with zero progress"""
        registry = ScanRegistry()

        entry = registry.create(scan_id="scan-1", total=3)
        stored = registry.get("scan-1")

        assert entry.scan_id == "scan-1"
        assert stored.status is ScanStatus.RUNNING
        assert stored.progress == {"current": 0, "total": 3}
        assert "scan-1" in registry
        assert len(registry) == 1

    def test_generated_id(self):
        """Test ids are generated when not supplied"""
        registry = ScanRegistry()

        first = registry.create()
        second = registry.create()

        assert first.scan_id != second.scan_id

    def test_progress_callback(self):
        """Test the bound callback records progress"""
        registry = ScanRegistry()
        registry.create(scan_id="scan-1", total=2)

        registry.progress_callback("scan-1")({"current": 1, "total": 2, "endpoint": "A"})

        assert registry.get("scan-1").progress == {"current": 1, "total": 2, "endpoint": "A"}

    def test_snapshots_are_copies(self):
        """Test callers cannot modify stored entries through a snapshot"""
        registry = ScanRegistry()
        registry.create(scan_id="scan-1", total=2)

        registry.get("scan-1").progress["current"] = 99

        assert registry.get("scan-1").progress["current"] == 0

    def test_complete(self):
        """Test completed scans carry their report"""
        registry = ScanRegistry()
        registry.create(scan_id="scan-1")

        registry.complete("scan-1", make_report("scan-1"))
        data = registry.get("scan-1").to_dict()

        assert data["status"] == "completed"
        assert data["results"]["scan_id"] == "scan-1"

    def test_fail(self):
        """Test failed scans carry their error"""
        registry = ScanRegistry()
        registry.create(scan_id="scan-1")

        registry.fail("scan-1", "boom")

        assert registry.get("scan-1").to_dict() == {
            "scan_id": "scan-1",
            "status": "error",
            "progress": {"current": 0, "total": 0},
            "error": "boom",
        }

    def test_progress_ignored_after_finish(self):
        """Test late progress events do not touch finished scans"""
        registry = ScanRegistry()
        registry.create(scan_id="scan-1", total=1)
        registry.complete("scan-1", make_report("scan-1"))

        registry.update_progress("scan-1", {"current": 5, "total": 1})

        assert registry.get("scan-1").progress == {"current": 0, "total": 1}

    def test_finish_unknown(self):
        """Test finishing an unknown scan raises ScanNotFoundError"""
        registry = ScanRegistry()

        with pytest.raises(ScanNotFoundError):
            registry.complete("missing", make_report("missing"))

    def test_sweep_evicts_after_ttl(self):
        """Test finished scans disappear once the retention window passes"""
        clock = FakeClock()
        registry = ScanRegistry(ttl=3600, clock=clock)
        registry.create(scan_id="done")
        registry.create(scan_id="running")
        registry.complete("done", make_report("done"))

        clock.now += 3599
        assert registry.sweep() == []

        clock.now += 1
        assert registry.sweep() == ["done"]
        assert registry.get("done") is None
        assert registry.get("running") is not None


class TestScanService:
    """Test suite for ScanService"""

    def test_list_scan_types(self):
        """Test every check is listed with severity and payload count"""
        types = ScanService.list_scan_types()

        assert len(types) == 10
        assert types[0]["type"] == "SQL Injection"
        assert types[0]["severity"] == "Critical"
        assert types[-1] == {"type": "Payload Size", "severity": "Medium", "payload_count": 5}

    def test_unknown_scan_status(self):
        """Test querying an unknown scan raises ScanNotFoundError"""
        with pytest.raises(ScanNotFoundError):
            ScanService().get_status("missing")

    @pytest.mark.asyncio
    async def test_tracked_scan_completes(self):
        """Test a tracked scan ends completed with its results"""
        service = ScanService(settings=FAST)
        updates = []
        endpoint = EndpointDescriptor(url=f"http://127.0.0.1:{unused_port()}/api", name="Down")

        report = await service.run_tracked_scan(
            [endpoint],
            {"scanTypes": ["XSS"], "maxPayloads": 1},
            scan_id="scan-7",
            progress_callback=updates.append,
        )
        status = service.get_status("scan-7")

        assert report.scan_id == "scan-7"
        assert status["status"] == "completed"
        assert status["progress"] == {"current": 1, "total": 1, "endpoint": "Down"}
        assert status["results"]["summary"]["errors"] == report.summary.errors
        assert all(t.result is Verdict.ERROR for t in report.endpoints[0].tests)
        assert updates == [{"current": 1, "total": 1, "endpoint": "Down"}]

    @pytest.mark.asyncio
    async def test_tracked_scan_failure(self):
        """Test an aborted scan is recorded as error and re-raised"""
        service = ScanService(settings=FAST)

        with pytest.raises(ValidationError):
            await service.run_tracked_scan(
                [EndpointDescriptor(url="http://127.0.0.1:1/")],
                {"maxPayloads": -1},
                scan_id="scan-8",
            )

        status = service.get_status("scan-8")
        assert status["status"] == "error"
        assert "error" in status

    @pytest.mark.asyncio
    async def test_quick_scan(self):
        """Test a quick scan finds reflected XSS through the URL's query key"""
        service = ScanService(settings=FAST)

        async with LocalServer(make_app()) as server:
            result = await service.quick_scan(
                str(server.make_url("/search")) + "?q=shoes",
                options={"scanTypes": ["XSS"], "maxPayloads": 1},
            )

        assert result.summary.total == 2
        assert result.tests[0].injection_point == "Query param: q"
        assert result.tests[0].result is Verdict.FAIL

    @pytest.mark.asyncio
    async def test_connection_success(self):
        """Test a reachable target reports its status"""
        service = ScanService()

        async with LocalServer(make_app()) as server:
            outcome = await service.test_connection(str(server.make_url("/search")))

        assert outcome["success"] is True
        assert outcome["status"] == 200
        assert outcome["error"] is None

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test an unreachable target reports the classified error"""
        outcome = await ScanService().test_connection(f"http://127.0.0.1:{unused_port()}/")

        assert outcome["success"] is False
        assert outcome["status"] is None
        assert outcome["error"] == "Connection refused - server may be down"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
