import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kumabridge import __version__
from kumabridge.config import ConfigurationError, Settings, load_settings
from kumabridge.routers import webhooks
from kumabridge.telegram import TelegramClient

API_VERSION = __version__
APP_NAME = "KumaBridge"

logger = logging.getLogger(__name__)


# --- Exception Handlers ---


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.status_code, "message": exc.detail}},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": 500, "message": "Internal server error"}},
    )


def create_app(settings: Settings, telegram: Optional[TelegramClient] = None) -> FastAPI:
    """
    Build the application.

    ``telegram`` defaults to a client built from ``settings``; either way the
    application owns it and closes it on shutdown.
    """
    telegram = telegram or TelegramClient.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await telegram.aclose()

    app = FastAPI(
        title=APP_NAME,
        description="Receive Uptime Kuma webhooks and relay them to a Telegram chat.",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.telegram = telegram

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # --- Routes ---

    app.include_router(webhooks.router)

    @app.get("/health", summary="Health check")
    async def health(request: Request):
        # Unhealthy once the shared Telegram client has been closed
        client: TelegramClient = request.app.state.telegram
        if client.is_closed:
            return JSONResponse(
                status_code=503,
                content={"status": "unavailable", "telegram": "closed", "version": API_VERSION},
            )
        return {"status": "healthy", "telegram": "open", "version": API_VERSION}

    return app


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run() -> None:
    """Console entry point: load configuration and serve until interrupted."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"FATAL: configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.info("Listening on %s:%d", settings.listen_host, settings.listen_port)
    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=settings.log_level.lower(),
    )
