# =============================================================================
# Report Relay - Rate Limiting
# =============================================================================
"""
Two-layer per-client throttling.

SlidingWindowLimiter bounds the sustained rate (N accepted requests per
rolling window). BurstTracker bounds tight bursts with a counter that keeps
growing while requests arrive less than ``window_seconds`` apart. Both are
plain objects owned by the application lifespan, so tests can build fresh
instances with an injected clock.
"""

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Tuple

import structlog


logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    retry_after: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        """RateLimit-* response headers for this result."""
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class SlidingWindowLimiter:
    """
    Sliding-log limiter: at most ``max_requests`` accepted per identity in
    any ``window_seconds`` span.

    Only accepted requests are logged, so a throttled client regains
    capacity as soon as its oldest accepted request leaves the window.
    The number of identities is capped. When the table is full, identities
    with no requests left in the window are dropped to make room; if every
    tracked identity is still live, new identities are refused until one
    expires, so no live request log is ever discarded.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int = 6,
        window_seconds: float = 60.0,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Clock = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._logs: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._logs)

    def _prune(self, log: Deque[float], now: float) -> None:
        while log and now - log[0] >= self.window_seconds:
            log.popleft()

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Record a request for ``key`` if it fits in the window."""
        async with self._lock:
            now = self._clock()

            log = self._logs.get(key)
            if log is None:
                if len(self._logs) >= self._max_entries and not self.sweep(now):
                    logger.warning("global_limiter_full", tracked=len(self._logs))
                    return self._rejected(self._earliest_expiry(now))
                log = deque()
                self._logs[key] = log
            self._prune(log, now)

            if len(log) >= self.max_requests:
                return self._rejected(self.window_seconds - (now - log[0]))

            log.append(now)
            reset_after = max(1, math.ceil(self.window_seconds - (now - log[0])))
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(log),
                reset_after=reset_after,
            )

    def _rejected(self, wait: float) -> RateLimitResult:
        retry_after = max(1, math.ceil(wait))
        return RateLimitResult(
            allowed=False,
            limit=self.max_requests,
            remaining=0,
            reset_after=retry_after,
            retry_after=retry_after,
        )

    def _earliest_expiry(self, now: float) -> float:
        """Seconds until the first tracked identity frees up."""
        return min(
            (self.window_seconds - (now - log[0]) for log in self._logs.values()),
            default=self.window_seconds,
        )

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop identities with no requests left in the window."""
        now = self._clock() if now is None else now
        expired = []
        for key, log in self._logs.items():
            self._prune(log, now)
            if not log:
                expired.append(key)
        for key in expired:
            del self._logs[key]
        return len(expired)


@dataclass
class ClientState:
    """Burst counter for one client identity."""
    count: int
    last_seen_at: float


class ClientStateStore:
    """
    Mapping of client identity to ClientState.

    All methods are synchronous. On a single event loop each call runs to
    completion without interleaving, which keeps per-identity
    read-modify-write sequences atomic.
    """

    def __init__(self) -> None:
        self._states: Dict[str, ClientState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: str) -> bool:
        return key in self._states

    def get(self, key: str) -> Optional[ClientState]:
        return self._states.get(key)

    def put(self, key: str, state: ClientState) -> None:
        self._states[key] = state

    def evict_idle(self, now: float, ttl: float) -> int:
        """Remove entries last seen more than ``ttl`` seconds before ``now``."""
        idle = [k for k, s in self._states.items() if now - s.last_seen_at > ttl]
        for key in idle:
            del self._states[key]
        return len(idle)

    def clear(self) -> None:
        self._states.clear()


class BurstTracker:
    """
    Burst detector with a decaying per-client counter.

    A request less than ``window_seconds`` after the client's previous one
    increments its counter; a longer gap resets it to 1. Requests are
    rejected while the counter exceeds ``max_requests``.

    A background sweep evicts clients idle for longer than
    ``idle_ttl_seconds``. Call ``start()`` / ``stop()`` from the
    application lifespan.
    """

    def __init__(
        self,
        window_seconds: float = 5.0,
        max_requests: int = 10,
        idle_ttl_seconds: float = 300.0,
        sweep_interval_seconds: float = 60.0,
        store: Optional[ClientStateStore] = None,
        clock: Clock = time.monotonic,
        also_sweep: Tuple[SlidingWindowLimiter, ...] = (),
    ):
        """
        Args:
            window_seconds: Gap below which the counter keeps growing
            max_requests: Largest counter value still accepted
            idle_ttl_seconds: Idle time after which a client is forgotten
            sweep_interval_seconds: Time between eviction sweeps
            store: Client state store (a fresh one when omitted)
            clock: Monotonic time source in seconds
            also_sweep: Limiters whose stale identities are dropped on each sweep
        """
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.idle_ttl_seconds = idle_ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.store = store if store is not None else ClientStateStore()
        self._clock = clock
        self._also_sweep = also_sweep
        self._task: Optional[asyncio.Task] = None

    def hit(self, key: str) -> bool:
        """
        Count a request from ``key``.

        Returns:
            bool: True if the request may proceed
        """
        now = self._clock()
        state = self.store.get(key)
        if state is None:
            state = ClientState(count=1, last_seen_at=now)
        elif now - state.last_seen_at < self.window_seconds:
            state.count += 1
        else:
            state.count = 1
        state.last_seen_at = now
        self.store.put(key, state)
        return state.count <= self.max_requests

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Evict idle clients.

        Returns:
            int: Number of evicted client states
        """
        now = self._clock() if now is None else now
        evicted = self.store.evict_idle(now, self.idle_ttl_seconds)
        for limiter in self._also_sweep:
            limiter.sweep(now)
        if evicted:
            logger.debug("burst_tracker_swept", evicted=evicted, remaining=len(self.store))
        return evicted

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.running:
            logger.debug("burst_sweep_already_running")
            return
        self._task = asyncio.create_task(self._run_sweeps())
        logger.info("burst_sweep_started", interval_seconds=self.sweep_interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep task and drop all client state."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("burst_sweep_stopped")
        self.store.clear()

    async def _run_sweeps(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error("burst_sweep_failed", error=str(e), error_type=type(e).__name__)
