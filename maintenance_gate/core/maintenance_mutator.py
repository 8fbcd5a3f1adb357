"""Validated writes to the maintenance toggle"""
import json
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from maintenance_gate import schemas
from maintenance_gate.core.config import settings
from maintenance_gate.core.errors import PayloadValidationError, RevisionConflict
from maintenance_gate.core.gate_cache import GateCache
from maintenance_gate.core.invalidation import InvalidationBus
from maintenance_gate.core.maintenance_state import MaintenanceStateStore

logger = logging.getLogger(__name__)


class MaintenanceMutator:
    def __init__(
        self,
        store: MaintenanceStateStore,
        bus: InvalidationBus,
        cache: Optional[GateCache] = None,
        max_attempts: int = settings.MAINTENANCE_MAX_WRITE_ATTEMPTS,
        message_max_length: int = settings.MAINTENANCE_MESSAGE_MAX_LENGTH,
        data_max_bytes: int = settings.MAINTENANCE_DATA_MAX_BYTES,
    ):
        self._store = store
        self._bus = bus
        self._cache = cache
        self.max_attempts = max(1, max_attempts)
        self.message_max_length = message_max_length
        self.data_max_bytes = data_max_bytes

    def get_state(self) -> schemas.MaintenanceState:
        """Read straight from the store, admins never see a cached value"""
        return self._store.get()

    def validate(self, update: schemas.MaintenanceUpdate):
        if update.message is not None and len(update.message) > self.message_max_length:
            raise PayloadValidationError(
                "message",
                f"must be at most {self.message_max_length} characters",
            )

        if update.data is not None:
            if not isinstance(update.data, dict):
                raise PayloadValidationError("data", "must be a JSON object")
            try:
                encoded = json.dumps(update.data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise PayloadValidationError("data", f"must be JSON serializable ({e})") from e
            if len(encoded) > self.data_max_bytes:
                raise PayloadValidationError(
                    "data",
                    f"must be at most {self.data_max_bytes} bytes as UTF-8 JSON",
                )

    async def apply(self, update: schemas.MaintenanceUpdate) -> schemas.MaintenanceState:
        """Write the update with optimistic concurrency and broadcast the result

        Conflicts are retried as a fresh read-modify-write up to
        ``max_attempts`` times before RevisionConflict reaches the caller.
        """
        self.validate(update)

        conflict = None
        for attempt in range(1, self.max_attempts + 1):
            current = await run_in_threadpool(self._store.get)
            candidate = self._merge(current, update)
            try:
                new_state = await run_in_threadpool(self._store.set, candidate, current.revision)
            except RevisionConflict as e:
                conflict = e
                logger.info(
                    f"Maintenance write conflicted on revision {current.revision} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue
            break
        else:
            logger.warning(f"Giving up maintenance write after {self.max_attempts} conflicting attempts")
            raise conflict

        if self._cache is not None:
            self._cache.invalidate(new_state)
        await self._bus.publish(new_state)

        logger.info(
            f"Maintenance mode {'ENABLED' if new_state.enabled else 'DISABLED'} "
            f"(revision {new_state.revision}, by {new_state.updated_by or 'unknown'})"
        )
        return new_state

    @staticmethod
    def _merge(
        current: schemas.MaintenanceState,
        update: schemas.MaintenanceUpdate,
    ) -> schemas.MaintenanceState:
        return schemas.MaintenanceState(
            enabled=update.enabled,
            message=current.message if update.message is None else update.message,
            data=current.data if update.data is None else update.data,
            revision=current.revision,
            updated_at=current.updated_at,
            updated_by=update.updated_by,
        )
