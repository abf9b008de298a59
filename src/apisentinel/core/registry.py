"""
Scan Registry - In-process store of tracked scans.

The orchestrator's progress callback writes into the registry while status
queries read from it, possibly from another thread, so every access goes
through one lock. Finished entries are kept for a retention window and
removed by an explicit ``sweep()``.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog

from .models import ScanReport


class ScanStatus(Enum):
    """Lifecycle state of a tracked scan"""
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class ScanEntry:
    """Registry record of one scan"""
    scan_id: str
    status: ScanStatus = ScanStatus.RUNNING
    progress: Dict[str, Any] = field(default_factory=dict)
    report: Optional[ScanReport] = None
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def finished(self) -> bool:
        return self.status is not ScanStatus.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "scan_id": self.scan_id,
            "status": self.status.value,
            "progress": dict(self.progress),
        }
        if self.report is not None:
            data["results"] = self.report.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


class ScanNotFoundError(KeyError):
    """Raised when a scan id is unknown (or already evicted)"""
    pass


class ScanRegistry:
    """
    Thread-safe map from scan id to scan status and results.

    Example:
        >>> registry = ScanRegistry(ttl=3600)
        >>> entry = registry.create(total=3)
        >>> registry.update_progress(entry.scan_id, {"current": 1, "total": 3})
        >>> registry.get(entry.scan_id).status
        <ScanStatus.RUNNING: 'running'>
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.time):
        """
        Initialize the registry.

        Args:
            ttl: Seconds a finished scan stays queryable
            clock: Time source (seconds), injectable for tests
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, ScanEntry] = {}
        self._lock = threading.Lock()
        self.logger = structlog.get_logger(__name__)

    def create(self, scan_id: Optional[str] = None, total: int = 0) -> ScanEntry:
        """
        Register a new running scan.

        Args:
            scan_id: Scan identifier (a new uuid4 if None)
            total: Number of endpoints the scan will cover

        Returns:
            Snapshot of the new entry
        """
        entry = ScanEntry(
            scan_id=scan_id or str(uuid.uuid4()),
            progress={"current": 0, "total": total},
            started_at=self._clock(),
        )
        with self._lock:
            self._entries[entry.scan_id] = entry
        self.logger.debug("scan_registered", scan_id=entry.scan_id, total=total)
        return replace(entry, progress=dict(entry.progress))

    def update_progress(self, scan_id: str, progress: Dict[str, Any]):
        """Record the latest progress event of a running scan"""
        with self._lock:
            entry = self._entries.get(scan_id)
            if entry is not None and not entry.finished:
                entry.progress = dict(progress)

    def complete(self, scan_id: str, report: ScanReport):
        """Mark a scan completed and attach its report"""
        self._finish(scan_id, ScanStatus.COMPLETED, report=report)

    def fail(self, scan_id: str, error: str):
        """Mark a scan failed with an error message"""
        self._finish(scan_id, ScanStatus.ERROR, error=error)

    def _finish(self, scan_id: str, status: ScanStatus, report: Optional[ScanReport] = None, error: Optional[str] = None):
        with self._lock:
            entry = self._entries.get(scan_id)
            if entry is None:
                raise ScanNotFoundError(scan_id)
            entry.status = status
            entry.report = report
            entry.error = error
            entry.finished_at = self._clock()
        self.logger.debug("scan_finished", scan_id=scan_id, status=status.value)

    def get(self, scan_id: str) -> Optional[ScanEntry]:
        """
        Get a snapshot of a scan entry.

        Args:
            scan_id: Scan identifier

        Returns:
            Copy of the entry, or None if unknown or evicted
        """
        with self._lock:
            entry = self._entries.get(scan_id)
            if entry is None:
                return None
            return replace(entry, progress=dict(entry.progress))

    def sweep(self) -> List[str]:
        """
        Evict finished entries older than the retention window.

        Returns:
            Ids of the evicted scans
        """
        cutoff = self._clock() - self.ttl
        with self._lock:
            expired = [
                scan_id for scan_id, entry in self._entries.items()
                if entry.finished_at is not None and entry.finished_at <= cutoff
            ]
            for scan_id in expired:
                del self._entries[scan_id]

        if expired:
            self.logger.info("scans_evicted", count=len(expired))
        return expired

    def progress_callback(self, scan_id: str) -> Callable[[Dict[str, Any]], None]:
        """Build an orchestrator progress callback bound to one scan"""
        def on_progress(progress: Dict[str, Any]):
            self.update_progress(scan_id, progress)
        return on_progress

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, scan_id: str) -> bool:
        with self._lock:
            return scan_id in self._entries
