"""Logging configuration"""

import logging
import time
import uuid
from typing import Any

from fastapi import Request
from rich.console import Console
from rich.logging import RichHandler
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from chatvibes_api.core.config import Settings

SENSITIVE_KEY_PARTS = ("password", "token", "secret", "key", "authorization")
REDACTED = "[REDACTED]"

request_logger = logging.getLogger("chatvibes_api.request")


def setup_logging(settings: Settings) -> None:
    """Configure application logging with Rich handler"""

    level = getattr(logging, settings.log_level, logging.INFO)

    try:
        console = Console(
            force_terminal=True,
            width=120,
        )

        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            tracebacks_width=120,
        )

        rich_handler.setFormatter(
            logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
        )

        # force=True: uvicorn configures the root logger first
        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%Y-%m-%d %H:%M:%S]",
            handlers=[rich_handler],
            force=True,
        )
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )
        logging.getLogger(__name__).warning(
            f"Rich logging setup failed: {e}, using standard logging"
        )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging: {settings.log_level} | Env: {settings.environment}")


def redact_sensitive(data: Any) -> Any:
    """Return a copy of *data* with credential-like values masked.

    Any mapping key containing password/token/secret/key/authorization
    (case-insensitive) has its value replaced; lists and nested mappings are
    walked recursively.
    """
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if any(part in str(key).lower() for part in SENSITIVE_KEY_PARTS):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_sensitive(value)
        return redacted
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with a correlation id and echo it on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = (
            request.headers.get("x-correlation-id")
            or request.headers.get("x-request-id")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        request_logger.info(f"[{correlation_id}] --> {request.method} {request.url.path}")
        response = await call_next(request)

        duration_ms = (time.perf_counter() - started) * 1000
        message = (
            f"[{correlation_id}] <-- {request.method} {request.url.path} "
            f"{response.status_code} ({duration_ms:.0f}ms)"
        )
        if response.status_code >= 400:
            request_logger.warning(message)
        else:
            request_logger.info(message)

        response.headers["X-Correlation-Id"] = correlation_id
        return response
