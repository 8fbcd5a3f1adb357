"""Per-process cache of the maintenance state

Every request consults this cache, so a hit must never block. A miss loads
the record from the store in a worker thread under a bounded timeout, and
concurrent misses share one in-flight load.
"""
import asyncio
import logging
import time
from typing import Callable, NamedTuple, Optional

from maintenance_gate import schemas
from maintenance_gate.core.config import settings
from maintenance_gate.core.errors import StoreUnavailable
from maintenance_gate.core.maintenance_state import MaintenanceStateStore

logger = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    state: schemas.MaintenanceState
    fetched_at: float
    expires_at: float


class GateCache:
    def __init__(
        self,
        store: MaintenanceStateStore,
        ttl: float = settings.MAINTENANCE_CACHE_TTL_SECONDS,
        store_timeout: float = settings.MAINTENANCE_STORE_TIMEOUT_SECONDS,
        failure_ttl: float = settings.MAINTENANCE_FAILURE_TTL_SECONDS,
        fail_open: bool = settings.MAINTENANCE_FAIL_OPEN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self.ttl = ttl
        self.store_timeout = store_timeout
        self.failure_ttl = failure_ttl
        self.fail_open = fail_open
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._inflight: Optional[asyncio.Future] = None

    async def read(self) -> schemas.MaintenanceState:
        """Return the cached state, loading it from the store on miss or expiry"""
        entry = self._entry
        if entry is not None and entry.expires_at > self._clock():
            return entry.state

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._load())

        #shield so one cancelled request does not abort the shared load
        return await asyncio.shield(self._inflight)

    def invalidate(self, state: schemas.MaintenanceState) -> bool:
        """Overwrite the cache with a pushed state and restart its TTL

        Pushes older than the cached revision are dropped, since bus delivery
        is unordered.
        """
        current = self._entry
        if current is not None and state.revision < current.state.revision:
            logger.debug(
                f"Ignoring stale maintenance push (revision {state.revision} < {current.state.revision})"
            )
            return False

        self._put(state, self.ttl)
        return True

    def clear(self):
        self._entry = None

    def snapshot(self) -> Optional[CacheEntry]:
        return self._entry

    def last_known(self) -> schemas.MaintenanceState:
        """Best answer available without I/O"""
        if self._entry is not None:
            return self._entry.state
        return self._policy_default()

    async def _load(self) -> schemas.MaintenanceState:
        try:
            loop = asyncio.get_running_loop()
            #on timeout the worker thread is abandoned, not joined
            state = await asyncio.wait_for(
                loop.run_in_executor(None, self._store.get),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            return self._fall_back(f"store read timed out after {self.store_timeout}s")
        except StoreUnavailable as e:
            return self._fall_back(str(e))

        current = self._entry
        if current is not None and current.state.revision > state.revision:
            #a newer push landed while the read was in flight
            self._put(current.state, self.ttl)
            return current.state

        self._put(state, self.ttl)
        return state

    def _fall_back(self, reason: str) -> schemas.MaintenanceState:
        state = self.last_known()
        if self._entry is not None:
            logger.warning(
                f"Maintenance state unavailable ({reason}), serving cached revision {state.revision}"
            )
        else:
            logger.warning(
                f"Maintenance state unavailable ({reason}), no cached value, "
                f"failing {'open' if self.fail_open else 'closed'}"
            )

        #hold the fallback briefly so a dead store is not hit on every request
        self._put(state, self.failure_ttl)
        return state

    def _policy_default(self) -> schemas.MaintenanceState:
        return schemas.MaintenanceState(enabled=not self.fail_open)

    def _put(self, state: schemas.MaintenanceState, ttl: float):
        now = self._clock()
        self._entry = CacheEntry(state=state, fetched_at=now, expires_at=now + ttl)
