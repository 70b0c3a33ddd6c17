"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from corphub.core.config import settings
from corphub.core.websocket import ConnectionManager
from corphub.db.session import engine
from corphub.services.relay_service import MessageRelay

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from corphub.core.rate_limit import limiter


# ============================================================================
# Realtime relay lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the websocket heartbeat sweep for the lifetime of the app."""
    heartbeat = None
    if settings.WS_HEARTBEAT_SECONDS > 0:
        heartbeat = asyncio.create_task(
            app.state.connections.run_heartbeat(settings.WS_HEARTBEAT_SECONDS)
        )
    try:
        yield
    finally:
        if heartbeat is not None:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="CorpHub API",
    description="Multi-tenant corporate hierarchy, messaging and meetings API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.connections = ConnectionManager()
app.state.relay = MessageRelay(app.state.connections)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Body/query shape errors answer 400 instead of FastAPI's 422."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# ============================================================================
# Routers
# ============================================================================

from corphub.routers import (
    auth_router,
    chat_router,
    companies_router,
    jobs_router,
    meetings_router,
    messages_router,
    users_router,
    websocket_router,
    zoom_router,
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(companies_router, prefix="/api/companies", tags=["companies"])
app.include_router(messages_router, prefix="/api/messages", tags=["messages"])
app.include_router(meetings_router, prefix="/api/meetings", tags=["meetings"])

# Provider proxy and team chat
app.include_router(zoom_router, prefix="/api/zoom", tags=["zoom"])
app.include_router(chat_router, prefix="/api/v1", tags=["team-chat"])

# Provider sync outbox status
app.include_router(jobs_router, prefix="/api/jobs")

# Realtime relay
app.include_router(websocket_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": settings.VERSION,
        "connections": app.state.connections.get_total_connections(),
    }
