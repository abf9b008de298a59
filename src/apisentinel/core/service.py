"""
Scan Service - Host facade over the scan engine.

Bundles what a front end (CLI, web API) needs: the catalog of scan types,
tracked scans with status polling, quick single-URL scans and a plain
connection test. Each call builds its own dispatcher, so one service can
serve several scans concurrently.
"""

import inspect
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

from ..analyzers import BaseAnalyzer, default_analyzers
from .config import ScanOptions, ScannerSettings
from .dispatcher import RequestDispatcher
from .endpoints import endpoint_from_url
from .models import EndpointDescriptor, EndpointScanResult, ScanReport
from .orchestrator import ProgressCallback, ScanOrchestrator
from .registry import ScanNotFoundError, ScanRegistry


QUICK_SCAN_PAYLOADS = 3


class ScanService:
    """
    Entry point for hosts embedding the scanner.

    Example:
        >>> service = ScanService()
        >>> report = await service.run_tracked_scan(endpoints, {"maxPayloads": 2})
        >>> service.get_status(report.scan_id)["status"]
        'completed'
    """

    def __init__(
        self,
        settings: Optional[ScannerSettings] = None,
        registry: Optional[ScanRegistry] = None,
    ):
        self.settings = settings or ScannerSettings()
        self.registry = registry or ScanRegistry(ttl=self.settings.registry_ttl)
        self.logger = structlog.get_logger(__name__)

    def create_orchestrator(self, dispatcher: Optional[RequestDispatcher] = None) -> ScanOrchestrator:
        return ScanOrchestrator(dispatcher=dispatcher, settings=self.settings)

    @staticmethod
    def list_scan_types(analyzers: Optional[Sequence[BaseAnalyzer]] = None) -> List[Dict[str, Any]]:
        """
        Describe every available vulnerability check.

        Returns:
            List of {type, severity, payload_count} in scan order
        """
        return [
            {
                "type": analyzer.vuln_type.value,
                "severity": analyzer.severity.value,
                "payload_count": len(analyzer.payloads()),
            }
            for analyzer in (analyzers if analyzers is not None else default_analyzers())
        ]

    async def run_tracked_scan(
        self,
        endpoints: Sequence[EndpointDescriptor],
        options: Union[ScanOptions, Dict[str, Any], None] = None,
        scan_id: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ScanReport:
        """
        Run a scan whose progress and result are kept in the registry.

        Args:
            endpoints: Endpoints to scan
            options: Scan options
            scan_id: Scan identifier (a new uuid4 if None)
            progress_callback: Extra progress listener

        Returns:
            ScanReport

        Raises:
            Exception: Whatever aborted the scan; the entry is marked as error first
        """
        self.registry.sweep()
        entry = self.registry.create(scan_id=scan_id, total=len(endpoints))
        track = self.registry.progress_callback(entry.scan_id)

        async def on_progress(progress: Dict[str, Any]):
            track(progress)
            if progress_callback is not None:
                outcome = progress_callback(progress)
                if inspect.isawaitable(outcome):
                    await outcome

        orchestrator = self.create_orchestrator()
        self.logger.info("tracked_scan_started", scan_id=entry.scan_id, endpoints=len(endpoints))

        try:
            report = await orchestrator.run_scan(
                endpoints,
                options,
                progress_callback=on_progress,
                scan_id=entry.scan_id,
            )
        except Exception as e:
            self.registry.fail(entry.scan_id, str(e))
            self.logger.error("tracked_scan_failed", scan_id=entry.scan_id, error=str(e))
            raise

        self.registry.complete(entry.scan_id, report)
        return report

    def get_status(self, scan_id: str) -> Dict[str, Any]:
        """
        Get the status of a tracked scan.

        Args:
            scan_id: Scan identifier

        Returns:
            {scan_id, status, progress} plus results or error once finished

        Raises:
            ScanNotFoundError: If the scan is unknown or was evicted
        """
        self.registry.sweep()
        entry = self.registry.get(scan_id)
        if entry is None:
            raise ScanNotFoundError(scan_id)
        return entry.to_dict()

    async def quick_scan(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        options: Union[ScanOptions, Dict[str, Any], None] = None,
    ) -> EndpointScanResult:
        """
        Scan a single URL with fewer payloads per type.

        Query parameters in the URL become injection points.

        Args:
            url: Target URL
            method: HTTP method
            headers: Request headers
            body: Request body
            options: Scan options (defaults to 3 payloads per type)

        Returns:
            EndpointScanResult
        """
        endpoint = endpoint_from_url(url, method=method, headers=headers, body=body)
        if options is None:
            options = ScanOptions(max_payloads=QUICK_SCAN_PAYLOADS)

        async with RequestDispatcher(self.settings.dispatcher) as dispatcher:
            orchestrator = self.create_orchestrator(dispatcher)
            return await orchestrator.scan_endpoint(endpoint, options)

    async def test_connection(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Send one unmodified request to check that a target is reachable.

        Returns:
            {success, status, response_time, error}
        """
        endpoint = endpoint_from_url(url, method=method, headers=headers)

        async with RequestDispatcher(self.settings.dispatcher) as dispatcher:
            result = await dispatcher.send(endpoint)

        self.logger.info(
            "connection_tested",
            url=url,
            status=result.response.status,
            elapsed_ms=result.elapsed_ms,
            error=result.error,
        )
        return {
            "success": result.ok,
            "status": result.response.status if result.ok else None,
            "response_time": result.elapsed_ms,
            "error": result.error,
        }
