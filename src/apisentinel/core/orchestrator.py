"""
Scan Orchestrator - Drives the probe matrix for a list of endpoints.

For every endpoint the orchestrator captures a baseline, expands the
(analyzer x payload x injection variant) matrix, dispatches each probe,
hands the response to the analyzer and folds the verdicts into a
ScanReport. A failing probe becomes an ERROR record and a failing endpoint
becomes a zero-test ERROR result; the scan itself always completes.

Probes run sequentially by default, in analyzer -> payload -> variant
order. With ``max_concurrency > 1`` the probes of one endpoint run through
a bounded worker pool; records keep the sequential order and the pacer
still spaces requests out.

Design Pattern: Template Method + Observer
"""

import asyncio
import inspect
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from ..analyzers import BaseAnalyzer, default_analyzers
from .config import PacingSettings, ScanOptions, ScannerSettings
from .dispatcher import BaselineCollector, RequestDispatcher, build_url
from .models import (
    Baseline,
    EndpointDescriptor,
    EndpointScanResult,
    InjectionVariant,
    ScanReport,
    TestRecord,
    Verdict,
    payload_label,
    truncate_preview,
)
from .rate_limiter import PacerConfig, ProbePacer


ProgressCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]

Probe = Tuple[BaseAnalyzer, str, InjectionVariant]


class ScanOrchestrator:
    """
    Central coordinator of a scan run.

    Responsibilities:
    1. Baseline capture and probe matrix expansion per endpoint
    2. Dispatch, analysis and verdict folding per probe
    3. Progress reporting and orchestration events
    4. Failure isolation (probe -> ERROR record, endpoint -> ERROR result)

    Example:
        >>> orchestrator = ScanOrchestrator()
        >>> report = await orchestrator.run_scan(endpoints, {"scanTypes": ["XSS"]})
        >>> report.summary.failed
    """

    def __init__(
        self,
        dispatcher: Optional[RequestDispatcher] = None,
        analyzers: Optional[Sequence[BaseAnalyzer]] = None,
        settings: Optional[ScannerSettings] = None,
        pacer: Optional[ProbePacer] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            dispatcher: Request dispatcher (created from settings if None)
            analyzers: Analyzers in scan order (all ten if None)
            settings: Scanner settings (uses defaults if None)
            pacer: Probe pacer (created from the pacing settings if None)
        """
        self.settings = settings or ScannerSettings()
        self.pacing: PacingSettings = self.settings.pacing

        self._owns_dispatcher = dispatcher is None
        self.dispatcher = dispatcher or RequestDispatcher(self.settings.dispatcher)
        self.baseline_collector = BaselineCollector(self.dispatcher)
        self.analyzers: List[BaseAnalyzer] = list(analyzers) if analyzers is not None else default_analyzers()
        self.pacer = pacer or ProbePacer(PacerConfig(
            interval=self.pacing.probe_interval,
            adaptive=self.pacing.adaptive,
            max_interval=self.pacing.max_interval,
        ))

        # State tracking
        self.scan_id: Optional[str] = None
        self.is_running = False
        self._cancelled = False
        self.probes_sent = 0

        self.logger = structlog.get_logger(__name__)

        # Observer pattern - callbacks
        self.observers: List[Callable] = []

    def subscribe(self, observer: Callable):
        """
        Subscribe to orchestration events (Observer pattern).

        Events: scan_started, endpoint_completed, vulnerability_found,
        scan_completed.

        Args:
            observer: Callback receiving (event, data)
        """
        self.observers.append(observer)
        self.logger.info("observer_subscribed", observer=getattr(observer, "__name__", repr(observer)))

    def _notify_observers(self, event: str, data: Dict[str, Any]):
        """Notify all observers of an event"""
        for observer in self.observers:
            try:
                observer(event, data)
            except Exception as e:
                self.logger.error(
                    "observer_error",
                    observer=getattr(observer, "__name__", repr(observer)),
                    error=str(e),
                )

    def cancel(self):
        """Stop the running scan before its next probe"""
        if self.is_running:
            self.logger.info("scan_cancel_requested", scan_id=self.scan_id)
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @staticmethod
    def _resolve_options(options: Union[ScanOptions, Dict[str, Any], None]) -> ScanOptions:
        if options is None:
            return ScanOptions()
        if isinstance(options, ScanOptions):
            return options
        return ScanOptions.model_validate(options)

    async def run_scan(
        self,
        endpoints: Sequence[EndpointDescriptor],
        options: Union[ScanOptions, Dict[str, Any], None] = None,
        progress_callback: Optional[ProgressCallback] = None,
        scan_id: Optional[str] = None,
    ) -> ScanReport:
        """
        Scan a list of endpoints.

        Args:
            endpoints: Endpoints to scan, in order
            options: Scan options (model, mapping with camelCase or snake_case keys, or None)
            progress_callback: Called after each endpoint with {current, total, endpoint}
            scan_id: Scan identifier (a new uuid4 if None)

        Returns:
            ScanReport covering every endpoint (partial if cancelled)
        """
        options = self._resolve_options(options)
        self.scan_id = scan_id or str(uuid.uuid4())
        self.is_running = True
        self._cancelled = False
        started = datetime.now()

        report = ScanReport(
            scan_id=self.scan_id,
            timestamp=started.isoformat(),
            options=options.to_dict(),
        )
        report.summary.total_endpoints = len(endpoints)

        self.logger.info(
            "scan_started",
            scan_id=self.scan_id,
            endpoints=len(endpoints),
            options=report.options,
        )
        self._notify_observers("scan_started", {"scan_id": self.scan_id, "endpoints": len(endpoints)})

        try:
            for index, endpoint in enumerate(endpoints, start=1):
                if self._cancelled:
                    break

                try:
                    result = await self.scan_endpoint(endpoint, options)
                except Exception as e:
                    self.logger.error(
                        "endpoint_scan_failed",
                        scan_id=self.scan_id,
                        endpoint=endpoint.display_name,
                        error=str(e),
                    )
                    result = EndpointScanResult.failed_endpoint(endpoint, str(e))

                report.add_endpoint_result(result)
                self._notify_observers("endpoint_completed", {
                    "scan_id": self.scan_id,
                    "endpoint": result.api,
                    "summary": result.summary.to_dict(),
                })
                await self._report_progress(progress_callback, {
                    "current": index,
                    "total": len(endpoints),
                    "endpoint": endpoint.display_name,
                })
        finally:
            self.is_running = False
            if self._owns_dispatcher:
                await self.dispatcher.close()

        report.cancelled = self._cancelled
        report.duration_ms = int((datetime.now() - started).total_seconds() * 1000)

        self.logger.info(
            "scan_completed",
            scan_id=self.scan_id,
            duration_ms=report.duration_ms,
            total_tests=report.summary.total_tests,
            failed=report.summary.failed,
            errors=report.summary.errors,
            cancelled=report.cancelled,
        )
        self._notify_observers("scan_completed", {
            "scan_id": self.scan_id,
            "summary": report.summary.to_dict(),
            "cancelled": report.cancelled,
        })
        return report

    async def _report_progress(self, callback: Optional[ProgressCallback], progress: Dict[str, Any]):
        if callback is None:
            return
        try:
            outcome = callback(progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.error("progress_callback_error", scan_id=self.scan_id, error=str(e))

    async def scan_endpoint(
        self,
        endpoint: EndpointDescriptor,
        options: Union[ScanOptions, Dict[str, Any], None] = None,
    ) -> EndpointScanResult:
        """
        Run every selected probe against one endpoint.

        Args:
            endpoint: Endpoint to scan
            options: Scan options

        Returns:
            EndpointScanResult with records in analyzer -> payload -> variant order
        """
        options = self._resolve_options(options)
        result = EndpointScanResult(
            api=endpoint.display_name,
            method=endpoint.method,
            url=endpoint.url,
        )

        baseline = await self.baseline_collector.collect(endpoint)
        probes = self.build_probes(endpoint, options)

        self.logger.info(
            "endpoint_scan_started",
            scan_id=self.scan_id,
            endpoint=endpoint.display_name,
            probes=len(probes),
            baseline_status=baseline.status if baseline else None,
        )

        if self.pacing.max_concurrency > 1:
            records = await self._run_concurrent(probes, baseline)
        else:
            records = await self._run_sequential(probes, baseline)

        for record in records:
            result.add(record)

        self.logger.info(
            "endpoint_scan_completed",
            scan_id=self.scan_id,
            endpoint=endpoint.display_name,
            **result.summary.to_dict(),
        )
        return result

    def build_probes(self, endpoint: EndpointDescriptor, options: ScanOptions) -> List[Probe]:
        """
        Expand the probe matrix of one endpoint.

        Args:
            endpoint: Source endpoint
            options: Scan options (type selection, payload prefix, location)

        Returns:
            Ordered list of (analyzer, payload, variant)
        """
        probes: List[Probe] = []
        for analyzer in self.analyzers:
            if not options.selects(analyzer.vuln_type):
                continue
            for payload in analyzer.payloads(options.max_payloads):
                variants = analyzer.build_variants(endpoint, payload, options.inject_location)
                for variant in variants[:self.pacing.variant_cap]:
                    probes.append((analyzer, payload, variant))
        return probes

    async def _run_sequential(self, probes: List[Probe], baseline: Optional[Baseline]) -> List[TestRecord]:
        records = []
        for analyzer, payload, variant in probes:
            if self._cancelled:
                break
            records.append(await self.run_probe(analyzer, payload, variant, baseline))
            await self.pacer.wait()
        return records

    async def _run_concurrent(self, probes: List[Probe], baseline: Optional[Baseline]) -> List[TestRecord]:
        semaphore = asyncio.Semaphore(self.pacing.max_concurrency)

        async def worker(probe: Probe) -> Optional[TestRecord]:
            async with semaphore:
                if self._cancelled:
                    return None
                record = await self.run_probe(*probe, baseline)
                await self.pacer.wait()
                return record

        # gather keeps input order, so records stay in matrix order
        results = await asyncio.gather(*(worker(probe) for probe in probes))
        return [record for record in results if record is not None]

    async def run_probe(
        self,
        analyzer: BaseAnalyzer,
        payload: str,
        variant: InjectionVariant,
        baseline: Optional[Baseline] = None,
    ) -> TestRecord:
        """
        Dispatch one probe and classify the response.

        Args:
            analyzer: Analyzer owning the payload
            payload: Payload carried by the variant
            variant: Injected endpoint and its injection point
            baseline: Baseline of the source endpoint (None if unavailable)

        Returns:
            TestRecord (ERROR on transport or analysis failure)
        """
        endpoint = variant.endpoint
        record = TestRecord(
            type=analyzer.vuln_type.value,
            severity=analyzer.severity.value,
            payload=payload,
            injection_point=variant.injection_point,
            request_method=endpoint.method,
            request_url=build_url(endpoint),
            result=Verdict.ERROR,
            baseline_status=baseline.status if baseline else None,
        )

        self.probes_sent += 1
        try:
            dispatch = await self.dispatcher.send(endpoint)
        except Exception as e:
            record.notes = f"Request failed: {e}"
            self.logger.warning("probe_dispatch_failed", type=record.type, url=record.request_url, error=str(e))
            return record

        response = dispatch.response
        record.response_code = response.status
        record.response_time = dispatch.elapsed_ms
        record.response_size = response.size
        record.response_preview = truncate_preview(response.body)

        if not dispatch.ok:
            record.notes = f"Request failed: {dispatch.error}"
            record.indicators = [dispatch.error]
            self.pacer.on_error(0)
            self.logger.debug("probe_transport_error", type=record.type, url=record.request_url, error=dispatch.error)
            return record

        self.pacer.on_response(response.status, dispatch.elapsed_ms)
        if baseline is not None:
            record.status_changed = response.status != baseline.status

        try:
            analysis = analyzer.analyze(
                response,
                payload,
                baseline_status=baseline.status if baseline else None,
                elapsed_ms=dispatch.elapsed_ms,
            )
        except Exception as e:
            record.notes = f"Analysis failed: {e}"
            self.logger.error("analysis_failed", type=record.type, payload=payload_label(payload), error=str(e))
            return record

        record.result = analysis.verdict
        record.vulnerable = analysis.vulnerable
        record.confidence = analysis.confidence
        record.indicators = list(analysis.indicators)
        record.notes = analysis.notes

        self.logger.debug(
            "probe_dispatched",
            type=record.type,
            injection_point=record.injection_point,
            status=record.response_code,
            result=record.result.value,
        )

        if analysis.vulnerable:
            self.logger.warning(
                "vulnerability_found",
                scan_id=self.scan_id,
                type=record.type,
                severity=record.severity,
                confidence=analysis.confidence.value,
                injection_point=record.injection_point,
                url=record.request_url,
            )
            self._notify_observers("vulnerability_found", {
                "scan_id": self.scan_id,
                "record": record.to_dict(),
            })

        return record

    def get_status(self) -> Dict[str, Any]:
        """
        Get current orchestrator status.

        Returns:
            Status dictionary
        """
        return {
            "scan_id": self.scan_id,
            "is_running": self.is_running,
            "cancelled": self._cancelled,
            "probes_sent": self.probes_sent,
            "analyzers": [analyzer.vuln_type.value for analyzer in self.analyzers],
            "pacer": self.pacer.get_stats(),
        }
