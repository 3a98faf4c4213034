"""
PurgeWorker: background daemon thread that removes notes past their maximum age.
"""

from __future__ import annotations

import os
import threading
from typing import Optional

from darknote_core.constants import DEFAULT_PURGE_INTERVAL_SECS
from darknote_core.lifecycle import NoteLifecycleController
from darknote_core.logger import get_logger

log = get_logger("darknote.purge")


class PurgeWorker:
    """Runs NoteLifecycleController.purge_expired() every `interval` seconds.

    Usage:
        worker = PurgeWorker(controller)
        worker.start()
        # ... later ...
        worker.stop()
    """

    def __init__(
        self,
        controller: NoteLifecycleController,
        max_age_ms: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> None:
        self._controller = controller
        self._max_age_ms = max_age_ms
        if interval is None:
            interval = float(os.getenv("DARKNOTE_PURGE_INTERVAL_SECS", DEFAULT_PURGE_INTERVAL_SECS))
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="note-purge", daemon=True)
        self._thread.start()
        log.info(f"[PURGE] worker started (interval: {self._interval}s)")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        log.info("[PURGE] worker stopped")

    def run_once(self) -> int:
        removed = self._controller.purge_expired(self._max_age_ms)
        self.runs += 1
        return removed

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # one bad tick must not kill the worker
                log.exception("[PURGE] tick failed")
            self._stop_event.wait(self._interval)
