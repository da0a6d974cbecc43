"""Periodic background maintenance over a record store."""

from threading import Event, Lock, Timer
from typing import Optional
import logging

from ..models.transaction import MaintenanceResult
from .ledger import DuplicateLedger

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """
    Runs bulk maintenance every ``interval_seconds`` against the ledger's store.

    A tick that fires while the previous run is still going is skipped.
    Failures are logged and the schedule keeps going.
    """

    def __init__(self, ledger: DuplicateLedger, interval_seconds: float = 30 * 60):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self.cancel_event = Event()
        self.last_result: Optional[MaintenanceResult] = None
        self.runs = 0
        self._timer: Optional[Timer] = None
        self._running = Lock()
        self._state = Lock()

    @property
    def is_active(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        with self._state:
            if self._timer is not None:
                return
            self.cancel_event.clear()
            self._schedule()
        logger.info(f"Maintenance scheduled every {self.interval_seconds:.0f}s")

    def stop(self) -> None:
        """Cancel the timer and ask an in-flight run to stop between buckets."""
        with self._state:
            self.cancel_event.set()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Maintenance scheduler stopped")

    def run_once(self) -> Optional[MaintenanceResult]:
        """
        Run maintenance now.

        Returns:
            The run's result, or None if a run was already in progress
        """
        if not self._running.acquire(blocking=False):
            logger.debug("Maintenance already running, skipping")
            return None

        try:
            result = self.ledger.run_maintenance(cancel_event=self.cancel_event)
            self.last_result = result
            self.runs += 1
            if result.updates:
                logger.info(f"Background maintenance applied {len(result.updates)} updates")
            return result
        finally:
            self._running.release()

    def _schedule(self) -> None:
        self._timer = Timer(self.interval_seconds, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Background maintenance failed")
        finally:
            with self._state:
                if self._timer is not None and not self.cancel_event.is_set():
                    self._schedule()
