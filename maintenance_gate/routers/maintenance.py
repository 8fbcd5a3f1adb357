from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from maintenance_gate import schemas
from maintenance_gate.core.config import settings
from maintenance_gate.core.errors import PayloadValidationError, RevisionConflict, StoreUnavailable
from maintenance_gate.core.gate_cache import GateCache
from maintenance_gate.core.maintenance_mutator import MaintenanceMutator
from maintenance_gate.dependencies import get_gate_cache, get_maintenance_mutator

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.get("", response_model=schemas.MaintenanceState)
def get_maintenance_state(
    mutator: MaintenanceMutator = Depends(get_maintenance_mutator)
):
    """Get the stored maintenance state"""
    try:
        return mutator.get_state()
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance state store unavailable"
        )


@router.put("", response_model=schemas.MaintenanceState)
@limiter.limit(settings.MAINTENANCE_WRITE_RATE_LIMIT)
async def update_maintenance_state(
    request: Request,
    update: schemas.MaintenanceUpdate,
    mutator: MaintenanceMutator = Depends(get_maintenance_mutator)
):
    """Enable or disable maintenance mode"""
    try:
        return await mutator.apply(update)
    except PayloadValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"field": e.field, "message": e.detail}
        )
    except RevisionConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance state store unavailable"
        )


@router.get("/status", response_model=schemas.MaintenanceStatus)
async def get_maintenance_status(gate_cache: GateCache = Depends(get_gate_cache)):
    """Get current maintenance mode status (public endpoint)"""
    state = await gate_cache.read()
    return schemas.MaintenanceStatus(
        enabled=state.enabled,
        message=state.message,
        data=state.data or {}
    )
