# Standard library imports
import asyncio
import logging
from contextlib import asynccontextmanager

# Third-party imports
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Local imports
from config import get_settings
from database import engine, Base
from auth.middleware import AuthMiddleware
from credentials import CredentialError, check_master_secret
from dependencies import get_rate_limiter, get_token_cache
import models  # noqa: F401  registers tables on Base

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Get settings
settings = get_settings()


async def sweep_expired_entries(interval_seconds: float):
    """Periodically drop expired handshake secrets and rate-limit windows."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed_tokens = get_token_cache().sweep()
            removed_windows = get_rate_limiter().sweep()
            if removed_tokens or removed_windows:
                logger.debug(f"Sweep removed {removed_tokens} tokens and {removed_windows} rate-limit windows")
        except Exception as e:
            logger.error(f"Error during sweep: {str(e)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast without Twitter consumer credentials
    settings.require_twitter_credentials()
    check_master_secret(settings.TOKEN_ENCRYPTION_KEY, settings.is_production)

    # Initialize database
    Base.metadata.create_all(bind=engine)

    sweeper = asyncio.create_task(sweep_expired_entries(settings.TOKEN_SWEEP_INTERVAL_SECONDS))
    logger.info("Agent credential service started")
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Agent Credential Service", lifespan=lifespan)

# Add authentication middleware
app.add_middleware(
    AuthMiddleware,
    protected_paths=[
        "/twitter/oauth/initiate",
        "/agents/*"
    ]
)


@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError):
    """Render credential errors as structured JSON."""
    if request.url.path == CALLBACK_PATH:
        # The browser callback always answers with a redirect
        return redirect_callback_error(request.query_params.get("agentId"), exc)
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Import and include routers
from twitter_oauth_routes import CALLBACK_PATH, redirect_callback_error, router as twitter_oauth_router

app.include_router(twitter_oauth_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
