"""Integrity daemon — re-runs the integrity check at a fixed interval.

The daemon alternates between CHECKING and WAITING until asked to stop. The
baseline is loaded once by the caller and frozen here; every check works on a
throwaway copy of it. Waits are a fixed duration measured from the end of the
previous check, so check times drift by the check duration over a long run.
"""

import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..engine.checker import CheckResult, IntegrityChecker, snapshot_baseline
from ..errors import ConfigurationError
from ..utils.logging import get_logger


class DaemonState(Enum):
    IDLE = "idle"
    CHECKING = "checking"
    WAITING = "waiting"
    STOPPED = "stopped"


class IntegrityDaemon:
    """Periodic integrity checking with a cancellable wait between checks."""

    def __init__(
        self,
        checker: IntegrityChecker,
        configured_paths: Sequence[str],
        baseline: Mapping[str, str],
        interval_minutes: int = 60,
    ):
        if interval_minutes < 1:
            raise ConfigurationError(
                f"check interval must be at least 1 minute, got {interval_minutes}"
            )

        self.name = "integrity_daemon"
        self.logger = get_logger(f"module.{self.name}")

        self._checker = checker
        self._configured_paths = tuple(configured_paths)
        self._baseline = snapshot_baseline(baseline)
        self._interval_minutes = interval_minutes
        self._interval_seconds: float = interval_minutes * 60

        # State
        self.state = DaemonState.IDLE
        self.running = False
        self.health_status = "initialized"
        self.last_heartbeat: Optional[datetime] = None
        self.checks_run = 0
        self._last_result: Optional[CheckResult] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def baseline(self) -> Mapping[str, str]:
        return self._baseline

    @property
    def last_result(self) -> Optional[CheckResult]:
        return self._last_result

    async def start(self) -> None:
        """Start the check loop; the first check begins immediately."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._stop_event = asyncio.Event()
        self.running = True
        self.health_status = "running"
        self._loop_task = asyncio.create_task(self._run_loop())
        self.logger.info(
            "integrity_daemon_started",
            files=len(self._configured_paths),
            baseline_entries=len(self._baseline),
            interval_minutes=self._interval_minutes,
        )

    def request_stop(self) -> None:
        """Ask the loop to stop; safe to call from a signal handler."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish.

        A check already in progress completes; no further check starts.
        """
        self.request_stop()
        if self._loop_task is not None:
            try:
                await self._loop_task
            finally:
                self._loop_task = None
        self.logger.info("integrity_daemon_stopped", checks_run=self.checks_run)

    async def wait(self) -> None:
        """Block until the loop ends, re-raising the error that ended it."""
        if self._loop_task is not None:
            await self._loop_task

    async def run(self) -> None:
        """Start the loop and block until it is stopped."""
        await self.start()
        await self.wait()

    async def health_check(self) -> dict:
        self.heartbeat()
        return {
            "status": self.health_status,
            "details": {
                "state": self.state.value,
                "checks_run": self.checks_run,
                "baseline_entries": len(self._baseline),
                "watched_files": len(self._configured_paths),
                "interval_minutes": self._interval_minutes,
                "last_summary": (
                    self._last_result.summary.to_dict() if self._last_result else None
                ),
            },
        }

    def heartbeat(self) -> None:
        self.last_heartbeat = datetime.now(timezone.utc)

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "running": self.running,
            "state": self.state.value,
            "health_status": self.health_status,
            "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
        }

    async def run_check(self) -> CheckResult:
        """Run one check against a fresh copy of the frozen baseline."""
        self.state = DaemonState.CHECKING
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, self._checker.check, self._configured_paths, self._baseline
        )
        self.checks_run += 1
        self._last_result = result
        self.heartbeat()
        return result

    async def _run_loop(self) -> None:
        try:
            while True:
                await self.run_check()

                if self._stop_event.is_set():
                    break

                self.state = DaemonState.WAITING
                self.logger.info(
                    "integrity_daemon_sleeping", minutes=self._interval_minutes
                )
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._interval_seconds
                    )
                    break
                except asyncio.TimeoutError:
                    continue
        except Exception as e:
            # Losing incidents silently is worse than stopping
            self.health_status = "error"
            self.logger.error("integrity_daemon_check_failed", error=str(e))
            raise
        else:
            self.health_status = "stopped"
        finally:
            self.state = DaemonState.STOPPED
            self.running = False
