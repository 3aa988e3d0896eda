import logging
import sys
import time
import uuid

import structlog
from fastapi import Request
from starlette.responses import JSONResponse

from .config import settings

_MASKED_KEYS = ("phone", "client_phone", "email", "password")

logger = structlog.get_logger("nailbook.http")


def masking_processor(logger, method_name, event_dict):
    """Masks contact data and secrets in log events."""
    for key in _MASKED_KEYS:
        if key in event_dict and event_dict[key] is not None:
            val = str(event_dict[key])
            if key == "password":
                event_dict[key] = "***"
            else:
                event_dict[key] = f"{val[:3]}***{val[-2:]}" if len(val) > 5 else "***"
    return event_dict


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            masking_processor,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def request_tracing_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        path=request.url.path,
        method=request.method,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.exception("http_request_failed", error=str(exc), duration_ms=duration_ms)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error", "request_id": request_id},
            headers={"X-Request-ID": request_id},
        )

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info("http_request", status=response.status_code, duration_ms=duration_ms)
    response.headers["X-Request-ID"] = request_id
    return response
