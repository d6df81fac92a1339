"""Admission control for inquiry submissions.

Implements two fixed-window limiters that gate requests before any delivery
work starts:

- burst: global window protecting the shared relay credential from exceeding
  the provider's sending ceiling
- abuse: per-client window keeping one origin from monopolizing the burst budget

Admission is all-or-nothing: a request is counted by every window or by none.
A request one limiter rejects never consumes budget in another, so an origin
past its abuse ceiling cannot drain the global burst window for everyone else.

Window counters live in a WindowStore. The in-memory store serves a single
process; the Redis store shares windows between API instances and performs the
check-and-increment of all windows inside one Lua script so concurrent
requests can neither double-count nor under-count.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from fastapi import Request
from redis import Redis

from ..config import Settings
from ..errors import RateLimitExceeded
from ..observability.logging_config import get_logger
from ..observability.metrics import admission_rejections_total

logger = get_logger(__name__)

GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class WindowPolicy:
    """Limits for one fixed counting window.

    Attributes:
        name: Limiter name used in keys, logs and metrics
        window_seconds: Window duration
        max_requests: Requests admitted per window
        per_client: Key the window by client identifier instead of globally
    """
    name: str
    window_seconds: int
    max_requests: int
    per_client: bool = False

    def key_for(self, client_id: str) -> str:
        scope = client_id if self.per_client else GLOBAL_SCOPE
        return f"rate_limit:{self.name}:{scope}"

    def check_for(self, client_id: str) -> "WindowCheck":
        return WindowCheck(self.key_for(client_id), self.window_seconds, self.max_requests)


@dataclass(frozen=True)
class WindowCheck:
    """One window a request must fit into."""
    key: str
    window_seconds: int
    max_requests: int


@dataclass(frozen=True)
class WindowResult:
    """State of one window after an all-or-nothing hit.

    Attributes:
        allowed: The window had room for the request
        count: Stored count after the hit
        retry_after: Seconds until the window resets
    """
    allowed: bool
    count: int
    retry_after: int


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of running a request through every limiter."""
    allowed: bool
    limiter: Optional[str] = None
    retry_after: int = 0


def _seconds_left(seconds: float) -> int:
    return max(1, math.ceil(seconds))


class WindowStore(ABC):
    """Storage for fixed-window counters."""

    @abstractmethod
    def hit_all(self, checks: Sequence[WindowCheck]) -> List[WindowResult]:
        """Atomically count one request against every window, or against none.

        The request is counted only when every window has room. Otherwise no
        window is incremented, so a stored count never exceeds its ceiling and
        a rejection by one window costs nothing in the others.

        Returns:
            One WindowResult per check, in order
        """

    def hit(self, key: str, window_seconds: int, max_requests: int) -> WindowResult:
        """Single-window form of hit_all()."""
        return self.hit_all([WindowCheck(key, window_seconds, max_requests)])[0]


class InMemoryWindowStore(WindowStore):
    """Process-local window store guarded by a lock.

    Expired per-client windows are pruned at most once per prune_interval so
    the map does not grow with every address ever seen.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        prune_interval: float = 300.0,
    ):
        self._clock = clock
        self._prune_interval = prune_interval
        self._lock = threading.Lock()
        # key -> (window_start, window_seconds, count)
        self._windows: dict[str, tuple[float, int, int]] = {}
        self._last_prune = clock()

    def hit_all(self, checks: Sequence[WindowCheck]) -> List[WindowResult]:
        with self._lock:
            now = self._clock()
            self._maybe_prune(now)

            current = []
            for check in checks:
                start, _, count = self._windows.get(check.key, (now, check.window_seconds, 0))
                if now - start >= check.window_seconds:
                    start, count = now, 0
                current.append((start, count))

            room = [count < check.max_requests for check, (_, count) in zip(checks, current)]
            admitted = all(room)

            results = []
            for check, (start, count), has_room in zip(checks, current, room):
                if admitted:
                    count += 1
                self._windows[check.key] = (start, check.window_seconds, count)
                remaining = start + check.window_seconds - now
                results.append(WindowResult(has_room, count, _seconds_left(remaining)))
            return results

    def _maybe_prune(self, now: float) -> None:
        if now - self._last_prune < self._prune_interval:
            return
        self._last_prune = now
        expired = [
            key for key, (start, window, _) in self._windows.items()
            if now - start >= window
        ]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)


# Atomic all-or-nothing fixed-window check-and-increment.
# KEYS[i] = window key, ARGV[2i-1] = window in ms, ARGV[2i] = ceiling
# Returns {allowed_1 (0|1), count_1, ttl_ms_1, allowed_2, ...}
_HIT_SCRIPT = """
local counts = {}
local admitted = true
for i, key in ipairs(KEYS) do
    counts[i] = tonumber(redis.call('GET', key) or '0')
    if counts[i] >= tonumber(ARGV[2 * i]) then
        admitted = false
    end
end
local result = {}
for i, key in ipairs(KEYS) do
    local window_ms = tonumber(ARGV[2 * i - 1])
    local allowed = 1
    if counts[i] >= tonumber(ARGV[2 * i]) then
        allowed = 0
    end
    local count = counts[i]
    if admitted then
        count = redis.call('INCR', key)
    end
    local ttl = redis.call('PTTL', key)
    if admitted and ttl < 0 then
        redis.call('PEXPIRE', key, window_ms)
        ttl = window_ms
    end
    table.insert(result, allowed)
    table.insert(result, count)
    table.insert(result, ttl)
end
return result
"""


class RedisWindowStore(WindowStore):
    """Window store shared by every API instance through Redis.

    All keys of one admission go to a single script call; on Redis Cluster
    they must therefore hash to the same slot.
    """

    def __init__(self, client: Redis):
        self.redis = client
        self._script = client.register_script(_HIT_SCRIPT)

    def hit_all(self, checks: Sequence[WindowCheck]) -> List[WindowResult]:
        args: list[int] = []
        for check in checks:
            args += [check.window_seconds * 1000, check.max_requests]
        raw = self._script(keys=[check.key for check in checks], args=args)

        results = []
        for i, check in enumerate(checks):
            allowed, count, ttl_ms = raw[3 * i:3 * i + 3]
            ttl_ms = int(ttl_ms)
            if ttl_ms < 0:
                # Untouched window (rejected elsewhere) or key without expiry
                ttl_ms = check.window_seconds * 1000
            results.append(
                WindowResult(bool(int(allowed)), int(count), _seconds_left(ttl_ms / 1000))
            )
        return results


def get_redis_client(url: str) -> Optional[Redis]:
    """Get Redis client for admission windows.

    Returns None if Redis is not available; the caller falls back to the
    in-memory store.
    """
    try:
        client = Redis.from_url(url, decode_responses=True)
        client.ping()
        return client
    except Exception as e:
        logger.warning(f"Redis unavailable for rate limiting ({e}), using in-memory windows")
        return None


def build_window_store(
    settings: Settings,
    clock: Callable[[], float] = time.monotonic,
) -> WindowStore:
    """Pick the window store for the configured deployment."""
    if settings.RATE_LIMIT_REDIS_URL:
        client = get_redis_client(settings.RATE_LIMIT_REDIS_URL)
        if client is not None:
            logger.info("Admission windows stored in Redis")
            return RedisWindowStore(client)
    return InMemoryWindowStore(clock=clock)


class AdmissionControl:
    """Runs the burst limiter, then the abuse limiter.

    Both windows are checked and counted in one atomic store call. When several
    limiters reject, the first in order (burst) is reported.
    """

    def __init__(self, store: WindowStore, burst: WindowPolicy, abuse: WindowPolicy):
        self.store = store
        self.policies = (burst, abuse)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[WindowStore] = None,
    ) -> "AdmissionControl":
        return cls(
            store=store if store is not None else build_window_store(settings),
            burst=WindowPolicy(
                name="burst",
                window_seconds=settings.BURST_LIMIT_WINDOW,
                max_requests=settings.BURST_LIMIT_MAX,
            ),
            abuse=WindowPolicy(
                name="abuse",
                window_seconds=settings.ABUSE_LIMIT_WINDOW,
                max_requests=settings.ABUSE_LIMIT_MAX,
                per_client=True,
            ),
        )

    def admit(self, client_id: str) -> AdmissionDecision:
        """Check a request against every limiter.

        Args:
            client_id: Source address of the request

        Returns:
            AdmissionDecision naming the limiter that rejected, if any
        """
        results = self.store.hit_all([policy.check_for(client_id) for policy in self.policies])
        for policy, result in zip(self.policies, results):
            if not result.allowed:
                admission_rejections_total.labels(limiter=policy.name).inc()
                logger.warning(
                    f"Admission rejected by {policy.name} limiter",
                    extra={"limiter": policy.name, "retry_after": result.retry_after},
                )
                return AdmissionDecision(
                    allowed=False,
                    limiter=policy.name,
                    retry_after=result.retry_after,
                )
        return AdmissionDecision(allowed=True)

    def check(self, client_id: str) -> None:
        """Admit a request or raise RateLimitExceeded."""
        decision = self.admit(client_id)
        if not decision.allowed:
            raise RateLimitExceeded(decision.limiter, decision.retry_after)

    def describe(self) -> dict:
        return {
            policy.name: {
                "window_seconds": policy.window_seconds,
                "max_requests": policy.max_requests,
                "scope": "client" if policy.per_client else "global",
            }
            for policy in self.policies
        } | {"store": type(self.store).__name__}


def get_client_identifier(request: Request, trust_proxy_headers: bool = True) -> str:
    """Extract the source address used to key per-client windows.

    Uses the first X-Forwarded-For hop when the service runs behind a proxy,
    otherwise the socket peer address.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"
