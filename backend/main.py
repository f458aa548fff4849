from dotenv import load_dotenv
load_dotenv()

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import get_db

# ENV
from config.env import ENV, CORS_ALLOWED_ORIGINS, ENSURE_INDEXES_ON_STARTUP, validate_production_env

# ROUTES
from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.orders import router as orders_router
from routes.navigation import router as navigation_router

from utils.indexes import ensure_indexes

# DOMAIN ERRORS
from utils.order_lifecycle import InvalidTransition, OrderValidationError, TransitionForbidden
from utils.order_store import OrderStoreFailure
from utils.role_cache import CacheUnavailable
from utils.order_workflow import AccountSuspended, RecordNotFound, TransitionInProgress

logger = logging.getLogger(__name__)
logger.info("ENV: %s", ENV)

app = FastAPI(
    title="Garmentflow API",
    version="1.0.0",
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
)

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(orders_router)
app.include_router(navigation_router)

# -----------------------------
# ERRORS
# -----------------------------

@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(
        status_code=403 if isinstance(exc, TransitionForbidden) else 409,
        content={
            "detail": str(exc),
            "current_status": exc.current_status,
            "attempted_status": exc.attempted_status,
        },
    )


@app.exception_handler(TransitionInProgress)
async def transition_in_progress_handler(request: Request, exc: TransitionInProgress):
    return JSONResponse(status_code=409, content={"detail": str(exc), "order_id": exc.order_id})


@app.exception_handler(OrderStoreFailure)
async def order_store_failure_handler(request: Request, exc: OrderStoreFailure):
    return JSONResponse(status_code=503, content={"detail": str(exc), "retryable": True})


@app.exception_handler(CacheUnavailable)
async def cache_unavailable_handler(request: Request, exc: CacheUnavailable):
    return JSONResponse(status_code=503, content={"detail": "Role cache unavailable", "retryable": True})


@app.exception_handler(OrderValidationError)
async def order_validation_handler(request: Request, exc: OrderValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RecordNotFound)
async def not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AccountSuspended)
async def suspended_handler(request: Request, exc: AccountSuspended):
    return JSONResponse(status_code=403, content={"detail": str(exc)})

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok"}

@app.get("/api/health/db")
async def health_db():
    db = get_db()
    await db.command("ping")
    return {"status": "mongodb connected"}

# -----------------------------
# STARTUP
# -----------------------------

@app.on_event("startup")
async def startup():
    validate_production_env()
    if ENSURE_INDEXES_ON_STARTUP:
        await ensure_indexes(get_db())
