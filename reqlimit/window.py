"""Sliding-window request accounting per client key."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional

from reqlimit.config import LimiterConfig

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of one rate-limit check.

    ``hits`` counts the live attempts in the window, including this one. A
    key keeps at most ``limit + 1`` timestamps, so ``hits`` never exceeds
    ``limit + 1`` however hard a client floods.
    """

    allowed: bool
    hits: int
    limit: int
    retry_after: float = 0.0


@dataclass
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    table: Dict[str, Deque[float]] = field(default_factory=dict)


class WindowTracker:
    """Tracks request timestamps per client key within a sliding window.

    The window for a check at ``now`` is ``(now - window, now]``. Every
    attempt is recorded, including denied ones, so a client that keeps
    retrying past its quota stays limited until it slows down.

    Keys are spread across shards, each guarded by its own lock; reading,
    pruning and appending a key's history happens under that one lock.
    """

    def __init__(self, config: LimiterConfig, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.config = config
        self._clock = clock
        self._shards: List[_Shard] = [_Shard() for _ in range(config.shards)]
        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop: Optional[threading.Event] = None
        self._sweeper_lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self.config.limit

    @property
    def window(self) -> float:
        return self.config.window

    def _shard(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def _prune(self, history: Deque[float], now: float) -> None:
        while history and history[0] + self.window <= now:
            history.popleft()

    def check(self, key: str, now: Optional[float] = None) -> Decision:
        """Record an attempt for ``key`` and decide whether it may proceed.

        An explicit ``now`` must not go backwards for a given key.
        """

        shard = self._shard(key)
        with shard.lock:
            # Read under the lock so timestamps reach the deque in order.
            if now is None:
                now = self._clock()
            history = shard.table.get(key)
            if history is None:
                # Only the newest limit + 1 timestamps can affect a decision.
                history = deque(maxlen=self.limit + 1)
                shard.table[key] = history
            self._prune(history, now)
            history.append(now)
            hits = len(history)
            if hits <= self.limit:
                return Decision(allowed=True, hits=hits, limit=self.limit)
            # The retry is allowed once all but limit - 1 entries have expired.
            unblock_at = history[hits - self.limit] + self.window
        return Decision(
            allowed=False,
            hits=hits,
            limit=self.limit,
            retry_after=max(unblock_at - now, 0.0),
        )

    def hits(self, key: str, now: Optional[float] = None) -> int:
        """Return the live request count for ``key`` without recording one."""

        shard = self._shard(key)
        with shard.lock:
            if now is None:
                now = self._clock()
            history = shard.table.get(key)
            if history is None:
                return 0
            self._prune(history, now)
            if not history:
                del shard.table[key]
                return 0
            return len(history)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the history of ``key``, or of every key when omitted."""

        if key is not None:
            shard = self._shard(key)
            with shard.lock:
                shard.table.pop(key, None)
            return
        for shard in self._shards:
            with shard.lock:
                shard.table.clear()

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop keys whose newest request has left the window."""

        removed = 0
        for shard in self._shards:
            with shard.lock:
                cutoff = self._clock() if now is None else now
                stale = [
                    key
                    for key, history in shard.table.items()
                    if not history or history[-1] + self.window <= cutoff
                ]
                for key in stale:
                    del shard.table[key]
            removed += len(stale)
        if removed:
            LOGGER.debug("swept idle clients", extra={"removed": removed})
        return removed

    def start_sweeper(self, interval: float) -> None:
        """Run :meth:`sweep` every ``interval`` seconds on a daemon thread."""

        if interval <= 0:
            raise ValueError(f"sweep interval must be positive, got {interval!r}")
        with self._sweeper_lock:
            if self._sweeper is not None:
                return
            stop = threading.Event()
            thread = threading.Thread(
                target=self._sweep_loop,
                args=(interval, stop),
                name="reqlimit-sweeper",
                daemon=True,
            )
            self._sweeper, self._sweeper_stop = thread, stop
            thread.start()
        LOGGER.info("sweeper started")

    def stop_sweeper(self, timeout: Optional[float] = None) -> None:
        with self._sweeper_lock:
            thread, stop = self._sweeper, self._sweeper_stop
            self._sweeper = self._sweeper_stop = None
        if thread is None or stop is None:
            return
        stop.set()
        thread.join(timeout)
        LOGGER.info("sweeper stopped")

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None

    def _sweep_loop(self, interval: float, stop: threading.Event) -> None:
        while not stop.wait(interval):
            try:
                self.sweep()
            except Exception:  # noqa: BLE001
                LOGGER.exception("sweep failed")

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.table)
        return total

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        shard = self._shard(key)
        with shard.lock:
            return key in shard.table
