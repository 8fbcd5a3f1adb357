import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from maintenance_gate import schemas
from maintenance_gate.core.config import settings

logger = logging.getLogger(__name__)


def is_bypassed(path: str, prefixes) -> bool:
    """Match bypass prefixes on whole path segments"""
    for prefix in prefixes:
        prefix = prefix.rstrip("/")
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


async def maintenance_mode_middleware(request: Request, call_next):
    """Block requests with a 503 while maintenance mode is enabled"""

    #health checks and the maintenance/admin endpoints stay reachable
    if is_bypassed(request.url.path, settings.maintenance_bypass_prefixes):
        return await call_next(request)

    #let CORS preflight through so browsers can read the 503 body
    if request.method == "OPTIONS":
        return await call_next(request)

    gate_cache = request.app.state.gate_cache
    try:
        state = await gate_cache.read()
    except Exception:
        logger.exception("Maintenance gate check failed, using last known state")
        state = gate_cache.last_known()

    if state.enabled:
        body = schemas.MaintenanceGateResponse(message=state.message, data=state.data or {})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(),
            headers={"Retry-After": str(settings.MAINTENANCE_RETRY_AFTER_SECONDS)}
        )

    return await call_next(request)
