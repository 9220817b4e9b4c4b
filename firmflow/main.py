"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from firmflow.core.config import settings
from firmflow.core.structured_logging import build_log_context, configure_logging
from firmflow.db.session import engine
from firmflow.services.workflow_errors import WorkflowError

configure_logging(settings.LOG_LEVEL)
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
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from firmflow.core.rate_limit import limiter

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Firmflow API",
    description="Service lifecycle API for professional-services firms",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Map workflow errors to {"detail": {"kind", "message"}} with their status code."""
    if exc.status_code >= 500:
        logger.error(
            f"Workflow error: {exc.kind}",
            extra=build_log_context(route=request.url.path, method=request.method),
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


app.add_exception_handler(WorkflowError, workflow_error_handler)

# ============================================================================
# Routers
# ============================================================================

from firmflow.routers import metadata_router, service_requests_router, services_router

app.include_router(services_router, prefix="/services", tags=["services"])
app.include_router(service_requests_router, prefix="/service-requests", tags=["service-requests"])
app.include_router(metadata_router, prefix="/metadata", tags=["metadata"])


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
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
