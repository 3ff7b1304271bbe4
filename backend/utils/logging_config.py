import logging
import logging.handlers
import contextvars
import uuid
from pathlib import Path
from typing import Optional

from core.config import settings
from core.security import decode_session_token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Balance-moving events (credits, requests, approvals) go to their own file as well
LEDGER_LOGGER_NAME = "refearn.ledger"


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")
request_id_var = contextvars.ContextVar("request_id", default="-")


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        record.request_id = request_id_var.get()
        return True


def _build_rotating_file_handler(filename: str, level: int, formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        interval=1,
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def _build_handlers(level: int, log_dir: Path) -> dict[str, logging.Handler]:
    formatter = logging.Formatter(
        fmt="%(levelname)s - %(asctime)s - %(request_id)s - %(user_id)s - %(api)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    return {
        "app": _build_rotating_file_handler("app.log", level, formatter, log_dir),
        "access": _build_rotating_file_handler("access.log", level, formatter, log_dir),
        "error": _build_rotating_file_handler("error.log", logging.WARNING, formatter, log_dir),
        "ledger": _build_rotating_file_handler("ledger.log", logging.INFO, formatter, log_dir),
        "console": console_handler,
    }


def _reset_handlers(target_logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    for h in list(target_logger.handlers):
        target_logger.removeHandler(h)
    for h in handlers:
        target_logger.addHandler(h)
    target_logger.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """Configure logging with daily rotation and TTL-based retention.

    - Rotates at midnight; keeps last LOG_TTL_DAYS files
    - Root and app loggers write app/error/console; uvicorn.access writes access
    - The ledger logger additionally writes ledger.log
    """
    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, directory)
    default_handlers = [handlers["app"], handlers["error"], handlers["console"]]

    _reset_handlers(logging.getLogger(), default_handlers, level)

    app_logger = logging.getLogger(app_logger_name or "refearn")
    app_logger.propagate = False
    _reset_handlers(app_logger, default_handlers, level)

    ledger_logger = logging.getLogger(LEDGER_LOGGER_NAME)
    ledger_logger.propagate = False
    _reset_handlers(ledger_logger, default_handlers + [handlers["ledger"]], level)

    for name in ("uvicorn", "uvicorn.error", "fastapi"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _reset_handlers(lgr, default_handlers, level)
    access_logger = logging.getLogger("uvicorn.access")
    access_logger.propagate = False
    _reset_handlers(access_logger, [handlers["access"], handlers["console"]], level)

    return app_logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Expose the caller's user id, the route and a request id to every log record"""

    async def dispatch(self, request: Request, call_next):
        user_id = "-"
        auth_header = request.headers.get("authorization") or ""
        if auth_header.startswith("Bearer "):
            claims = decode_session_token(auth_header.split(" ", 1)[1])
            if claims:
                user_id = str(claims[0])

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        tokens = (
            user_id_var.set(user_id),
            api_var.set(f"{request.method} {request.url.path}"),
            request_id_var.set(request_id),
        )
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            user_id_var.reset(tokens[0])
            api_var.reset(tokens[1])
            request_id_var.reset(tokens[2])
