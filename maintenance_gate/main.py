import logging

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from slowapi.errors import RateLimitExceeded

from maintenance_gate.core.config import settings
from .database import SessionLocal
from .routers import maintenance
from .middleware.maintenance import maintenance_mode_middleware
from .core.errors import StoreUnavailable
from .core.gate_cache import GateCache
from .core.invalidation import build_invalidation_bus
from .core.maintenance_mutator import MaintenanceMutator
from .core.maintenance_state import MaintenanceStateStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = MaintenanceStateStore(SessionLocal)
    try:
        store.bootstrap()
    except StoreUnavailable as e:
        logger.warning(f"Could not bootstrap maintenance state, gate starts on fallback policy: {e}")

    gate_cache = GateCache(
        store,
        ttl=settings.MAINTENANCE_CACHE_TTL_SECONDS,
        store_timeout=settings.MAINTENANCE_STORE_TIMEOUT_SECONDS,
        failure_ttl=settings.MAINTENANCE_FAILURE_TTL_SECONDS,
        fail_open=settings.MAINTENANCE_FAIL_OPEN,
    )
    bus = build_invalidation_bus(settings.REDIS_URL)
    bus.subscribe(gate_cache.invalidate)

    app.state.maintenance_store = store
    app.state.gate_cache = gate_cache
    app.state.invalidation_bus = bus
    app.state.maintenance_mutator = MaintenanceMutator(
        store,
        bus,
        cache=gate_cache,
        max_attempts=settings.MAINTENANCE_MAX_WRITE_ATTEMPTS,
        message_max_length=settings.MAINTENANCE_MESSAGE_MAX_LENGTH,
        data_max_bytes=settings.MAINTENANCE_DATA_MAX_BYTES,
    )

    await bus.start()
    yield
    await bus.stop()

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
    docs_url=None,
    redoc_url=None
)

#rate limiting
app.state.limiter = maintenance.limiter

#maintenance gate
app.middleware("http")(maintenance_mode_middleware)

#security headers, also applied to maintenance responses
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    return response

#CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "PUT", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-Requested-With",
        "Accept",
        "Origin"
    ],
)

#trusted hosts
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.ALLOWED_HOSTS,
)

api_router = APIRouter(prefix=settings.API_V1_STR)

api_router.include_router(maintenance.router)

app.include_router(api_router)

@app.get("/", include_in_schema=False)
def read_root():
    return {"message": "OK"}

@app.get("/health", tags=["health"])
def health_check(request: Request):
    entry = request.app.state.gate_cache.snapshot()
    return {
        "status": "healthy",
        "project_name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "maintenance_enabled": entry.state.enabled if entry else None,
    }

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests"}
    )
