# 2026-10-17  local_npm_core/replication.py

import enum
import logging
import math
import threading
from typing import Any, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_when_event_set,
    wait_exponential,
)

from local_npm_core.errors import (
    ReplicationTransientFailure, StoreError, UpstreamUnavailable
)
from local_npm_core.general import seq_number
from local_npm_core.stores import ReplicatingStore, ReplicationHandle
from local_npm_core.upstream import UpstreamRegistry


logger = logging.getLogger(__name__)

BACKOFF_BASE_MILLIS = 1000.0
BACKOFF_FACTOR = 1.1
SHUTDOWN_JOIN_TIMEOUT = 5.0  # seconds


def percent_complete(last_seq: int, update_seq: int) -> float:
    """
    Replication progress, floored to two decimals and clamped to 100,
    since upstream keeps advancing while we catch up.
        (1, 3)    -> 33.33
        (12, 10)  -> 100
    """
    if update_seq <= 0:
        return 100.0
    return min(100.0, math.floor(last_seq / update_seq * 10000) / 100)


class Backoff(object):
    """
    Handshake retry delays: `base_millis * factor ** n` before the n-th
    retry, n counting from 1. No upper bound.
        (1000, 1.1) -> 1.1 s, 1.21 s, 1.331 s, ...
    """

    def __init__(
            self,
            base_millis: float = BACKOFF_BASE_MILLIS,
            factor: float = BACKOFF_FACTOR
            ) -> None:
        assert base_millis > 0 and factor > 1
        self.base_millis = base_millis
        self.factor = factor

    def wait_strategy(self) -> wait_exponential:
        """`tenacity` wait for the delays above, in seconds."""
        return wait_exponential(
            multiplier=self.base_millis * self.factor / 1000,
            exp_base=self.factor,
        )


class ReplicationState(enum.Enum):
    IDLE = 'idle'
    SYNCING = 'syncing'
    BACKOFF = 'backoff'
    CANCELLED = 'cancelled'


class ReplicationController(object):
    """
    Keeps the secondary mirror following upstream's change feed.

    The handshake (reading upstream's `update_seq`, then starting a live
    replication into the mirror) is retried with `Backoff` until it succeeds
    or the controller is cancelled. Every `run()` starts a fresh retry
    sequence, so the delay is back at its base once the feed resumed.
    Once live, errors reported by the replication are only logged: the
    replication recovers on its own.
    """

    def __init__(
            self,
            upstream: UpstreamRegistry,
            mirror: ReplicatingStore,
            backoff: Optional[Backoff] = None
            ) -> None:
        self.upstream = upstream
        self.mirror = mirror
        self.backoff = backoff if backoff is not None else Backoff()
        self.state = ReplicationState.IDLE
        self.update_seq = 0
        self.last_seq = 0
        self._handle: Optional[ReplicationHandle] = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> 'ReplicationController':
        """Run the handshake loop on a daemon thread."""
        self._thread = threading.Thread(
            target=self.run, name='replication', daemon=True
        )
        self._thread.start()
        return self

    def _before_retry(self, retry_state: RetryCallState) -> None:
        self.state = ReplicationState.BACKOFF
        logger.warning(
            "%s, retrying after %d ms...",
            retry_state.outcome.exception(),
            round(retry_state.next_action.sleep * 1000)
        )

    def run(self) -> None:
        """Attempt the handshake until it succeeds or we are cancelled."""
        retrying = Retrying(
            retry=retry_if_exception_type(ReplicationTransientFailure),
            wait=self.backoff.wait_strategy(),
            stop=stop_when_event_set(self._cancelled),
            # Cancellation interrupts the wait.
            sleep=self._cancelled.wait,
            before_sleep=self._before_retry,
            reraise=True,
        )
        try:
            retrying(self.handshake)
        except ReplicationTransientFailure as e:
            logger.info("replication handshake abandoned: %s", e)

    def handshake(self) -> None:
        """
        Read upstream's `update_seq` and start the live replication.
        Raise `ReplicationTransientFailure` if either step fails.
        """
        if self.cancelled:
            return
        source = self.upstream.remote_skim
        try:
            info = self.upstream.change_feed_info()
        except UpstreamUnavailable as e:
            raise ReplicationTransientFailure(
                f"error fetching info from {source}: {e}"
            ) from e
        self.update_seq = seq_number(info.get('update_seq'))

        try:
            handle = self.mirror.replicate_from(
                source, self._on_change, self._on_error
            )
        except StoreError as e:
            raise ReplicationTransientFailure(
                f"error starting replication from {source}: {e}"
            ) from e

        with self._lock:
            if self.cancelled:
                # Cancelled while we were starting: do not leave it running.
                handle.cancel()
                return
            self._handle = handle
            self.state = ReplicationState.SYNCING
        logger.info(
            "sync: replicating %s into %r, upstream at seq %d",
            source, self.mirror, self.update_seq
        )

    def _on_change(self, change: dict[str, Any]) -> None:
        self.last_seq = max(self.last_seq, seq_number(change.get('last_seq')))
        logger.info(
            "sync: %d %.2f%%",
            self.last_seq, self.progress
        )

    def _on_error(self, error: Exception) -> None:
        logger.warning(
            "error during replication with %s: %s",
            self.upstream.remote_skim, error
        )

    @property
    def progress(self) -> float:
        return percent_complete(self.last_seq, self.update_seq)

    def cancel(self) -> None:
        """Stop the live replication and any pending retry, for good."""
        with self._lock:
            self._cancelled.set()
            handle, self._handle = self._handle, None
            self.state = ReplicationState.CANCELLED
        if handle is not None:
            handle.cancel()
        if self._thread is not None and \
                self._thread is not threading.current_thread():
            self._thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT)


def start_replication(
        upstream: UpstreamRegistry,
        mirror: ReplicatingStore,
        backoff: Optional[Backoff] = None
        ) -> ReplicationController:
    """Start syncing `mirror` from upstream; cancel the returned controller."""
    return ReplicationController(upstream, mirror, backoff).start()
