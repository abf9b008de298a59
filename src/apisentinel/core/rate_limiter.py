"""
Probe Pacer - Inter-probe delay so scans do not overwhelm the target.

By default the pacer waits a fixed, short interval after every probe. In
adaptive mode it slows down when the target answers 429 or 5xx and drifts
back towards the base interval after a streak of fast successes.

Design Pattern: Adaptive Control System
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import structlog


@dataclass
class PacerConfig:
    """Configuration for the probe pacer"""
    interval: float = 0.05          # Pause after each probe (seconds)
    adaptive: bool = False          # Adjust the pause to server feedback
    max_interval: float = 5.0       # Upper bound for adaptive slowdown
    speedup_threshold: int = 10     # Success count before speeding up again
    speedup_factor: float = 0.9     # Factor applied when speeding up
    slowdown_factor_429: float = 2.0
    slowdown_factor_5xx: float = 1.5


class ProbePacer:
    """
    Pauses between probes, optionally adapting to server feedback.

    Pauses are serialized through a lock, so when several probe workers
    share one pacer the target still sees at most one probe per interval
    window.

    Example:
        >>> pacer = ProbePacer(PacerConfig(interval=0.05))
        >>> await pacer.wait()
        >>> pacer.on_response(status_code=429, response_time=120)
    """

    def __init__(self, config: Optional[PacerConfig] = None):
        """
        Initialize the pacer.

        Args:
            config: Pacer configuration (uses defaults if None)
        """
        self.config = config or PacerConfig()
        self.current_interval = self.config.interval
        self.error_count = 0
        self.success_count = 0
        self.request_count = 0
        self.last_request_time: Optional[float] = None

        self._lock = asyncio.Lock()
        self.logger = structlog.get_logger(__name__)

    async def wait(self):
        """Pause for the current interval before the next probe"""
        async with self._lock:
            if self.current_interval > 0:
                await asyncio.sleep(self.current_interval)
            self.last_request_time = time.time()
            self.request_count += 1

    def on_response(self, status_code: int, response_time: int):
        """
        Feed a probe outcome back into the pacer.

        Args:
            status_code: HTTP status (0 for transport failures)
            response_time: Response time in milliseconds
        """
        if status_code == 429 or status_code >= 500:
            self.on_error(status_code)
        else:
            self.on_success(response_time)

    def on_success(self, response_time: int):
        """
        Record a healthy response and, in adaptive mode, speed back up.

        Args:
            response_time: Response time in milliseconds
        """
        self.success_count += 1
        self.error_count = 0

        if not self.config.adaptive:
            return

        if response_time < 1000 and self.success_count >= self.config.speedup_threshold:
            old_interval = self.current_interval
            self.current_interval = max(
                self.config.interval,
                self.current_interval * self.config.speedup_factor,
            )
            if old_interval != self.current_interval:
                self.logger.debug(
                    "pacing_speedup",
                    old_interval=f"{old_interval:.3f}s",
                    new_interval=f"{self.current_interval:.3f}s",
                )

    def on_error(self, status_code: int):
        """
        Record a throttling or server error and, in adaptive mode, slow down.

        Args:
            status_code: HTTP status code of the error
        """
        self.error_count += 1
        self.success_count = 0

        if not self.config.adaptive:
            return

        old_interval = self.current_interval
        # Starting from zero would never grow
        base = max(self.current_interval, 0.01)

        if status_code == 429:
            self.current_interval = base * self.config.slowdown_factor_429
        elif status_code >= 500:
            self.current_interval = base * self.config.slowdown_factor_5xx

        self.current_interval = min(self.config.max_interval, self.current_interval)

        if old_interval != self.current_interval:
            self.logger.warning(
                "pacing_slowdown",
                status_code=status_code,
                old_interval=f"{old_interval:.3f}s",
                new_interval=f"{self.current_interval:.3f}s",
            )

    def reset(self):
        """Reset the pacer to its initial state"""
        self.current_interval = self.config.interval
        self.error_count = 0
        self.success_count = 0
        self.request_count = 0
        self.last_request_time = None

    def get_stats(self) -> dict:
        """
        Get pacer statistics.

        Returns:
            Dictionary with current statistics
        """
        return {
            "current_interval": f"{self.current_interval:.3f}s",
            "error_count": self.error_count,
            "success_count": self.success_count,
            "request_count": self.request_count,
            "config": {
                "interval": self.config.interval,
                "adaptive": self.config.adaptive,
                "max_interval": self.config.max_interval,
            },
        }
