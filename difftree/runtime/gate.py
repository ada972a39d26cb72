"""Debounced, single-flight refresh scheduling.

State is explicit: one pending debounce timer, a busy flag for the running
refresh, and a rerun flag (with the latest payload) for triggers that arrive
while busy. However many triggers land during one refresh, at most one more
refresh follows it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from functools import partial
from typing import Generic, TypeVar

from loguru import logger

from ..diff_model.types import ComparisonState, RepositoryContext
from ..errors import BackendError
from ..git.backend import RepositoryBackend

PayloadT = TypeVar("PayloadT")


def _spawn_daemon(target: Callable[..., None], *args: object) -> None:
    worker = threading.Thread(target=target, args=args, name="difftree-refresh", daemon=True)
    worker.start()


class ChangeGate(Generic[PayloadT]):
    """Coalesce change signals and serialize the refreshes they trigger."""

    def __init__(
        self,
        run: Callable[[PayloadT], None],
        *,
        debounce_seconds: float = 2.0,
        timer_factory: Callable[[float, Callable[[], None]], object] = threading.Timer,
        spawn: Callable[..., None] = _spawn_daemon,
    ) -> None:
        self._run = run
        self.debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._spawn = spawn
        self._lock = threading.Lock()

        self._timer = None
        self._timer_payload: PayloadT | None = None
        self._timer_generation = 0
        self._busy = False
        self._rerun_requested = False
        self._rerun_payload: PayloadT | None = None
        self._visible = True
        self._focused = True
        self._wake_pending = False
        self._wake_payload: PayloadT | None = None

    @property
    def paused(self) -> bool:
        return not (self._visible and self._focused)

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def has_pending_timer(self) -> bool:
        with self._lock:
            return self._timer is not None

    def signal(self, payload: PayloadT) -> None:
        """Restart the quiet window; the last payload of a burst wins."""
        with self._lock:
            if self.paused:
                self._wake_pending = True
                self._wake_payload = payload
                return
            self._restart_timer_locked(payload)

    def _restart_timer_locked(self, payload: PayloadT) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer_payload = payload
        self._timer_generation += 1
        timer = self._timer_factory(self.debounce_seconds, partial(self._on_timer, self._timer_generation))
        self._timer = timer
        if hasattr(timer, "daemon"):
            timer.daemon = True
        timer.start()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if self._timer is None or generation != self._timer_generation:
                # superseded by a later signal
                return
            payload = self._timer_payload
            self._timer = None
            self._timer_payload = None
            if self.paused:
                self._wake_pending = True
                self._wake_payload = payload
                return
            start = self._request_run_locked(payload)
        if start:
            self._spawn(self._worker, payload)

    def trigger(self, payload: PayloadT) -> None:
        """Run now, skipping the debounce but not the mutual exclusion."""
        with self._lock:
            start = self._request_run_locked(payload)
        if start:
            self._spawn(self._worker, payload)

    def _request_run_locked(self, payload: PayloadT) -> bool:
        if self._busy:
            self._rerun_requested = True
            self._rerun_payload = payload
            return False
        self._busy = True
        return True

    def _worker(self, payload: PayloadT) -> None:
        while True:
            try:
                self._run(payload)
            except Exception:
                logger.exception("refresh failed")
            with self._lock:
                if not self._rerun_requested:
                    self._busy = False
                    return
                payload = self._rerun_payload
                self._rerun_requested = False
                self._rerun_payload = None

    def set_visible(self, visible: bool) -> None:
        self._set_pause_inputs(visible=visible)

    def set_focused(self, focused: bool) -> None:
        self._set_pause_inputs(focused=focused)

    def _set_pause_inputs(self, *, visible: bool | None = None, focused: bool | None = None) -> None:
        with self._lock:
            if visible is not None:
                self._visible = visible
            if focused is not None:
                self._focused = focused
            if self.paused:
                if self._timer is not None:
                    # hold the burst until the view is back
                    self._timer.cancel()
                    self._wake_pending = True
                    self._wake_payload = self._timer_payload
                    self._timer = None
                    self._timer_payload = None
                return
            if not self._wake_pending:
                return
            payload = self._wake_payload
            self._wake_pending = False
            self._wake_payload = None
            self._restart_timer_locked(payload)

    def cancel(self) -> None:
        """Drop the pending timer, wake-up and rerun; a running refresh finishes."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._timer_payload = None
            self._wake_pending = False
            self._wake_payload = None
            self._rerun_requested = False
            self._rerun_payload = None


class HeadProbe:
    """Cheap HEAD-movement check: a stat and at most one ref file read."""

    def __init__(self, backend: RepositoryBackend) -> None:
        self.backend = backend

    def has_moved(self, context: RepositoryContext, state: ComparisonState | None) -> bool:
        if state is None:
            return True
        try:
            if self.backend.head_pointer_modified_at(context) > state.last_head_checked_at:
                return True
            if state.head_ref_name is not None:
                commit_id = self.backend.resolve_branch_commit(context, state.head_ref_name)
                return commit_id != state.head_commit_id
        except BackendError as exc:
            logger.debug("HEAD probe failed, assuming moved: {}", exc)
            return True
        return False


__all__ = ["ChangeGate", "HeadProbe"]
