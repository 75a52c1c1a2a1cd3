"""
Session state management and the background refresh worker.

Architecture:
  - SessionState: owns the snapshot list, sort spec, view state, phase and
    daemon summary behind one RLock. Every mutation is a method here.
  - RefreshWorker: daemon thread that drives the refresh cadence. It is the
    only caller of Collector.collect(), so at most one collect is in flight;
    manual refreshes just wake it up and coalesce.

Phases:
  IDLE -> LOADING -> READY -> LOADING -> READY ...
                  `-> ERROR (list call failed; previous rows and cursor kept)

Thread Safety:
  - Readers call get_view() and receive a copy, never the live list
  - A completed collect is committed by swapping the whole list under the
    lock, so the UI never sees a half-updated table
  - get_version() lets the UI skip re-rendering when nothing changed

Shutdown:
  - RefreshWorker.stop() cancels the in-flight Deadline and wakes the thread;
    join() returns once the collector's fork-join barrier unwinds
  - shutdown() stops the worker before closing the Docker client
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from .backend import DockerBackend
from .cache import cache_manager
from .collector import Collector, Deadline
from .exceptions import CollectError
from .model import (
    ContainerSnapshot, DaemonSummary, SessionPhase, SessionView, SortField, SortSpec, ViewState,
)
from .sorter import sort_snapshots

logger = logging.getLogger(__name__)

NAVIGATION_COMMANDS = ("up", "down", "page_up", "page_down", "home", "end")


class SessionState:
    """Thread-safe session state."""

    def __init__(self, visible_rows: int = 20, sort: Optional[SortSpec] = None):
        self._lock = threading.RLock()
        self._snapshots: List[ContainerSnapshot] = []
        self._sort = sort or SortSpec()
        self._view = ViewState(visible_rows=max(1, visible_rows))
        self._phase = SessionPhase.IDLE
        self._last_error = ""
        self._summary: Optional[DaemonSummary] = None
        self._updated_at: Optional[datetime] = None
        self._version = 0
        self._next_ticket = 0
        self._committed_ticket = -1

    def get_version(self) -> int:
        with self._lock:
            return self._version

    def _inc_version(self):
        # Assumes lock is held
        self._version += 1

    @property
    def phase(self) -> SessionPhase:
        with self._lock:
            return self._phase

    # --- refresh cycle ---

    def begin_refresh(self) -> int:
        with self._lock:
            ticket = self._next_ticket
            self._next_ticket += 1
            if self._phase != SessionPhase.ERROR:
                # ERROR stays visible until a collect succeeds
                self._phase = SessionPhase.LOADING
            self._inc_version()
            return ticket

    def commit_snapshots(self, snapshots: List[ContainerSnapshot], ticket: Optional[int] = None) -> bool:
        with self._lock:
            if ticket is not None:
                if ticket < self._committed_ticket:
                    logger.debug(f"Dropping stale collect result (ticket {ticket})")
                    return False
                self._committed_ticket = ticket

            new_snapshots = list(snapshots)
            sort_snapshots(new_snapshots, self._sort.field, self._sort.ascending)
            self._snapshots = new_snapshots
            self._clamp_unlocked()
            self._phase = SessionPhase.READY
            self._last_error = ""
            self._updated_at = datetime.now(timezone.utc)
            self._inc_version()
            return True

    def fail_refresh(self, error: Exception, ticket: Optional[int] = None) -> None:
        with self._lock:
            if ticket is not None and ticket < self._committed_ticket:
                return
            self._phase = SessionPhase.ERROR
            self._last_error = str(error)
            self._inc_version()

    def set_summary(self, summary: Optional[DaemonSummary]) -> None:
        with self._lock:
            self._summary = summary
            self._inc_version()

    # --- user commands ---

    def sort_by(self, field: SortField) -> SortSpec:
        with self._lock:
            if field == self._sort.field:
                self._sort = SortSpec(field, not self._sort.ascending)
            else:
                self._sort = SortSpec(field, field.default_ascending)
            sort_snapshots(self._snapshots, self._sort.field, self._sort.ascending)
            self._inc_version()
            return self._sort

    def navigate(self, command: str) -> None:
        with self._lock:
            count = len(self._snapshots)
            view = self._view
            if count == 0:
                view.selected = 0
                view.scroll = 0
                return

            page = view.visible_rows
            if command == "up":
                target = view.selected - 1
            elif command == "down":
                target = view.selected + 1
            elif command == "page_up":
                target = view.selected - page
            elif command == "page_down":
                target = view.selected + page
            elif command == "home":
                target = 0
            elif command == "end":
                target = count - 1
            else:
                raise ValueError(f"Unknown navigation command: {command}")

            target = max(0, min(target, count - 1))
            if target == view.selected:
                return
            view.selected = target

            # Scroll only when the selection leaves the visible window
            if view.selected < view.scroll:
                view.scroll = view.selected
            elif view.selected >= view.scroll + page:
                view.scroll = view.selected - page + 1
            self._inc_version()

    def resize(self, visible_rows: int) -> None:
        with self._lock:
            self._view.visible_rows = max(1, visible_rows)
            self._clamp_unlocked()
            self._inc_version()

    def _clamp_unlocked(self):
        count = len(self._snapshots)
        view = self._view
        view.selected = max(0, min(view.selected, count - 1))
        max_scroll = max(0, count - view.visible_rows)
        view.scroll = max(0, min(view.scroll, max_scroll))

    # --- readers ---

    def get_view(self) -> SessionView:
        with self._lock:
            return SessionView(
                snapshots=list(self._snapshots),
                sort=self._sort,
                view=replace(self._view),
                phase=self._phase,
                last_error=self._last_error,
                summary=self._summary,
                updated_at=self._updated_at,
                version=self._version,
            )


class RefreshWorker(threading.Thread):
    def __init__(self, state: SessionState, collector: Collector, backend: DockerBackend,
                 interval: float = 2.0, include_stopped: bool = False, timeout: float = 10.0):
        super().__init__(daemon=True, name="refresh-worker")
        self.state = state
        self.collector = collector
        self.backend = backend
        self.interval = interval
        self.include_stopped = include_stopped
        self.timeout = timeout
        self.running = True
        self._wake = threading.Event()
        self._deadline_lock = threading.Lock()
        self._deadline: Optional[Deadline] = None
        self._cycles = 0

    def force_refresh(self) -> None:
        # Repeated triggers while a cycle runs collapse into one extra cycle
        self._wake.set()

    def stop(self) -> None:
        self.running = False
        with self._deadline_lock:
            if self._deadline is not None:
                self._deadline.cancel()
        self._wake.set()

    def refresh_summary(self) -> None:
        try:
            summary = self.backend.get_daemon_summary()
        except Exception as e:
            logger.warning(f"Daemon summary unavailable: {e}")
            summary = None
        self.state.set_summary(summary)

    def run_cycle(self) -> None:
        deadline = Deadline(self.timeout)
        with self._deadline_lock:
            if not self.running:
                return
            self._deadline = deadline
        ticket = self.state.begin_refresh()
        try:
            snapshots = self.collector.collect(deadline, self.include_stopped)
        except CollectError as e:
            self.state.fail_refresh(e, ticket)
        else:
            if not deadline.cancelled:
                self.state.commit_snapshots(snapshots, ticket)
        finally:
            with self._deadline_lock:
                self._deadline = None

        # After the table, outside the cycle deadline: a slow or failing
        # summary never costs the container fetch any time
        if not deadline.cancelled:
            self.refresh_summary()

        self._cycles += 1
        if self._cycles % 30 == 0:
            cache_manager.cleanup_expired()

    def run(self) -> None:
        logger.info(f"Refresh worker started (interval {self.interval}s)")
        while self.running:
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Unexpected error in refresh cycle: {e}", exc_info=True)
                self.state.fail_refresh(e)
            if not self.running:
                break
            self._wake.wait(self.interval)
            self._wake.clear()
        logger.info("Refresh worker stopped")


def shutdown(worker: Optional[RefreshWorker], backend: Optional[DockerBackend], join_timeout: Optional[float] = None) -> None:
    """Stop the refresh cadence, wait for the in-flight collect, then close the client."""
    if worker is not None:
        worker.stop()
        if worker.is_alive():
            worker.join(join_timeout)
    if backend is not None:
        backend.close()
