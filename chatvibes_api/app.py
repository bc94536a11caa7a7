"""FastAPI application factory"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatvibes_api import __version__
from chatvibes_api.core.config import Settings, get_settings, load_secrets
from chatvibes_api.core.context import AppContext, build_context
from chatvibes_api.core.database import DocumentStore, create_firestore_client
from chatvibes_api.core.errors import ChatVibesError, SecretStoreError
from chatvibes_api.core.logging import RequestLoggingMiddleware, setup_logging
from chatvibes_api.routers import (
    auth_api_router,
    auth_router,
    bot_router,
    obs_router,
    rewards_router,
    shortlink_router,
    tts_router,
    viewer_router,
)
from chatvibes_api.services import SecretStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "chatvibes-web-ui-functions"
NOT_READY_MESSAGE = "Service Unavailable: Server is initializing or has a configuration error."
READINESS_EXEMPT_PATHS = ("/health",)
HTTP_TIMEOUT = 30.0


async def _initialize(app: FastAPI, settings: Settings, http: httpx.AsyncClient) -> AppContext:
    if not settings.gcloud_project:
        raise SecretStoreError("GCLOUD_PROJECT is not configured")

    firestore_client = app.state.firestore_client or create_firestore_client(
        settings.gcloud_project
    )
    secret_client = app.state.secret_client or secretmanager.SecretManagerServiceAsyncClient()
    secret_store = SecretStore(secret_client, settings.gcloud_project)

    secrets = await load_secrets(settings, secret_store)
    return build_context(settings, secrets, DocumentStore(firestore_client), secret_store, http)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting ChatVibes API server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")

    owns_http = app.state.http_client is None
    http = app.state.http_client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)

    app.state.context = None
    try:
        app.state.context = await _initialize(app, settings, http)
        logger.info("Application context ready")
    except (
        ChatVibesError,
        gcp_exceptions.GoogleAPICallError,
        auth_exceptions.GoogleAuthError,
    ) as e:
        # requests keep getting 503 until a restart with working config
        logger.error(f"Startup failed, service not ready: {type(e).__name__}: {e}")

    yield

    # Shutdown
    logger.info("Shutting down ChatVibes API server")
    app.state.context = None
    if owns_http:
        await http.aclose()


# ============================================
# Error Responses
# ============================================


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        content = {
            "success": False,
            "error": "Endpoint not found",
            "path": request.url.path,
            "method": request.method,
        }
    elif isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    settings: Settings = request.app.state.settings
    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "message": message},
    )


def create_app(
    settings: Settings | None = None,
    *,
    firestore_client=None,
    secret_client=None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure FastAPI application

    The optional clients replace the Google Cloud and HTTP clients built at
    startup; the caller keeps ownership of anything it passes in.
    """
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="ChatVibes API",
        description="Control plane for the ChatVibes Twitch TTS bot",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings
    app.state.firestore_client = firestore_client
    app.state.secret_client = secret_client
    app.state.http_client = http_client
    app.state.context = None

    @app.middleware("http")
    async def require_ready(request: Request, call_next):
        if request.url.path not in READINESS_EXEMPT_PATHS and request.app.state.context is None:
            return JSONResponse(
                status_code=503, content={"success": False, "message": NOT_READY_MESSAGE}
            )
        return await call_next(request)

    app.add_middleware(RequestLoggingMiddleware)

    # Configure CORS (outermost user middleware: readiness 503s and handled
    # HTTP errors carry the headers, unhandled 500s from ServerErrorMiddleware do not)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Register routers
    app.include_router(auth_router.router)
    app.include_router(auth_api_router.router)
    app.include_router(bot_router.router)
    app.include_router(rewards_router.router)
    app.include_router(obs_router.router)
    app.include_router(shortlink_router.router)
    app.include_router(tts_router.router)
    app.include_router(viewer_router.router)

    # Liveness probe, answered even while the context is missing
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": SERVICE_NAME,
        }

    logger.info("FastAPI application configured")

    return app
