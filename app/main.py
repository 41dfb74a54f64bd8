"""
FastAPI application for RHS email notification sign-up.

This module wires dependencies and configures the application.
Business logic is in app/core, infrastructure in app/infrastructure.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime

# Configure logging FIRST, before other local imports
from app.logging_config import setup_global_logging

setup_global_logging()

# Now import other modules (they will use the configured logging)
from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from starlette.middleware.sessions import SessionMiddleware  # noqa: E402

from app.core.domain import ErrorKind  # noqa: E402
from app.core.exceptions import OAuthFlowError  # noqa: E402
from app.infrastructure.state_store import run_maintenance  # noqa: E402
from app.oauth import router as oauth_router  # noqa: E402
from app.oauth.config import get_oauth_config  # noqa: E402
from app.oauth.dependencies import get_pending_store  # noqa: E402

logger = logging.getLogger(__name__)

SERVICE_NAME = "email-schedule"


# ============================================================================
# Application Lifecycle
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Starts the task that purges expired sign-up attempts and stops it on
    shutdown.
    """
    logger.info("Application starting up...")
    if not get_oauth_config().is_configured():
        logger.warning("BLACKBAUD_CLIENT_ID is not set; /sign-up will return 503")
    store = get_pending_store()
    stop = asyncio.Event()
    maintenance = asyncio.create_task(
        run_maintenance(store, store.ttl_seconds, stop)
    )
    yield
    logger.info("Shutting down application...")
    stop.set()
    try:
        await asyncio.wait_for(maintenance, timeout=10)
    except asyncio.TimeoutError:
        logger.warning("Maintenance task did not stop in time, cancelling")
        maintenance.cancel()


app = FastAPI(
    title="RHS Email Schedule",
    description="Sign up for RHS email notifications through Blackbaud",
    version="1.0.0",
    lifespan=lifespan,
)

# Session middleware binds each sign-up attempt's state to the browser
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY")
if not SESSION_SECRET_KEY:
    raise ValueError("SESSION_SECRET_KEY is not set in the environment.")
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET_KEY,
    same_site="lax",
    https_only=os.getenv("SESSION_HTTPS_ONLY", "false").lower() == "true",
)


# ============================================================================
# Centralized Exception Handlers
# ============================================================================


ERROR_STATUS_CODES = {
    ErrorKind.AUTHORIZATION_DENIED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STATE_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_GRANT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NETWORK_ERROR: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(OAuthFlowError)
async def oauth_flow_error_handler(request: Request, exc: OAuthFlowError):
    """
    Handle failed sign-up attempts.

    Only the plain user-facing message is returned; the provider detail has
    already been logged by the core service.
    """
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(
            exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        content={
            "status": "error",
            "error": exc.kind.value,
            "message": exc.user_message,
        },
    )


# ============================================================================
# Pages
# ============================================================================


@app.get("/")
async def root():
    """Home page: points the user at the sign-up flow."""
    return {
        "title": "Sign Up",
        "description": "Sign up for RHS email notifications",
        "sign_up_url": "/sign-up",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/about")
async def about():
    """About page."""
    return {
        "title": "About",
        "description": (
            "RHS email notifications use your Blackbaud account to "
            "schedule school emails. Signing up grants this service access "
            "through Blackbaud's OAuth authorization."
        ),
        "service": SERVICE_NAME,
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(oauth_router.router)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        ssl_certfile=os.getenv("SSL_CERTFILE"),
        ssl_keyfile=os.getenv("SSL_KEYFILE"),
    )
