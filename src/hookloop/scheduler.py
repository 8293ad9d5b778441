"""
Serialization of full-analysis runs.

At most one run is in flight. A request that arrives during a run is queued
and fires as soon as the current run finishes; any further requests in the
meantime coalesce into that single queued run. A queued request never
aborts the run in progress.

hookloop/src/hookloop/scheduler.py
"""

import logging
import threading
from typing import Any, Callable, Optional

__all__ = ["AnalysisScheduler"]

logger = logging.getLogger(__name__)


class AnalysisScheduler:
    """Runs ``run_fn`` on a background thread, one run at a time."""

    def __init__(self, run_fn: Callable[[], Any], on_result: Optional[Callable[[Any], None]] = None):
        self._run_fn = run_fn
        self._on_result = on_result
        self._condition = threading.Condition()
        self._running = False
        self._pending = False
        self._thread: Optional[threading.Thread] = None
        self.runs_started = 0
        self.runs_coalesced = 0
        self.last_result: Any = None
        self.last_error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        with self._condition:
            return self._running

    @property
    def pending(self) -> bool:
        with self._condition:
            return self._pending

    def request(self) -> bool:
        """Ask for a run. Returns True if a run started now, False if it was queued or coalesced."""
        with self._condition:
            if self._running:
                if self._pending:
                    self.runs_coalesced += 1
                    logger.debug("Analysis already queued; coalescing request")
                else:
                    self._pending = True
                    logger.debug("Analysis in progress; queued one follow-up run")
                return False
            self._running = True
            self._thread = threading.Thread(target=self._loop, name="hookloop-analysis", daemon=True)
            self._thread.start()
            return True

    def _loop(self) -> None:
        while True:
            with self._condition:
                self.runs_started += 1
            try:
                result = self._run_fn()
                if self._on_result is not None:
                    self._on_result(result)
            except Exception as e:
                logger.warning(f"Analysis run failed: {e}")
                logger.debug("Analysis run traceback", exc_info=True)
                with self._condition:
                    self.last_error = e
            else:
                with self._condition:
                    self.last_result = result
                    self.last_error = None
            with self._condition:
                if self._pending:
                    self._pending = False
                    continue
                self._running = False
                self._condition.notify_all()
                return

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is in flight or queued. Returns False on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: not self._running, timeout=timeout)
