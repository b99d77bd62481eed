"""
FastAPI application entry point for the content access service.

Authentication happens at the gateway. The gateway forwards the verified
principal in X-Principal-Id / X-Principal-Role, which PrincipalContext
copies onto request.state for the route dependencies.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from content_access.api.routes import access
from content_access.api.routes import subscription_claims
from content_access.config.settings import get_access_settings

# Root logging; modules log with extra={} fields.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PRINCIPAL_ID_HEADER = "X-Principal-Id"
PRINCIPAL_ROLE_HEADER = "X-Principal-Role"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log effective settings and store configuration at startup."""
    logger.info("Starting content access API")

    settings = get_access_settings()
    logger.info(
        "Content access settings loaded",
        extra={
            "period_timezone": settings.period_timezone,
            "delegate_cache_ttl_seconds": settings.delegate_cache_ttl_seconds,
        },
    )

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set. Access endpoints will return 503.")
        app.state.database_configured = False
    else:
        masked = database_url.split("@")[-1] if "@" in database_url else "(no @ found)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        app.state.database_configured = True

    yield

    logger.info("Shutting down content access API")


app = FastAPI(
    title="Content Access API",
    description="Access decisions and subscription claims for catalog content",
    version="0.1.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def principal_context(request: Request, call_next):
    """Expose the gateway-verified principal on request.state."""
    principal_id = request.headers.get(PRINCIPAL_ID_HEADER)
    if principal_id:
        request.state.user_id = principal_id
        request.state.user_role = request.headers.get(PRINCIPAL_ROLE_HEADER, "user")
    return await call_next(request)


app.include_router(access.router)
app.include_router(subscription_claims.router)


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and answer with an opaque 500."""
    logger.error(
        "Unhandled exception",
        extra={
            "principal_id": getattr(request.state, "user_id", "unknown"),
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
