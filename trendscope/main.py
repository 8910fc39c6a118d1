from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from trendscope.api.routes import router
from trendscope.dependencies import close_http_client, get_settings, get_telemetry
from trendscope.logging_config import configure_application_logging
from trendscope.services.youtube_client import YouTubeClientError
from trendscope.telemetry import TelemetryEvent

LOGGER = logging.getLogger("trendscope.api")

UPSTREAM_ERROR_MESSAGE = "Upstream video platform request failed."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."
REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    log_file = configure_application_logging(settings)
    LOGGER.info(
        "trendscope starting log_file=%s telemetry_sink=%s max_retries=%s",
        log_file,
        settings.telemetry_sink if settings.telemetry_enabled else "disabled",
        settings.http_max_retries,
    )
    try:
        yield
    finally:
        await close_http_client()
        LOGGER.info("trendscope stopped")


async def youtube_client_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = exc.status_code if isinstance(exc, YouTubeClientError) else None
    LOGGER.warning(
        "upstream request failed method=%s path=%s upstream_status=%s error=%s",
        request.method,
        request.url.path,
        status_code,
        exc,
    )
    return JSONResponse(status_code=502, content={"error": UPSTREAM_ERROR_MESSAGE})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error(
        "unhandled error method=%s path=%s error_type=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": UNEXPECTED_ERROR_MESSAGE})


def resolve_request_id(request: Request) -> str:
    supplied = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    return supplied or uuid4().hex


async def track_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag the request with an id, bind it to log context and report its outcome."""
    request_id = resolve_request_id(request)
    route = {"request_id": request_id, "method": request.method, "path": request.url.path}
    telemetry = get_telemetry().for_component("http")
    tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    )
    started = perf_counter()

    def elapsed_ms() -> int:
        return round((perf_counter() - started) * 1000)

    telemetry.emit(TelemetryEvent.HTTP_REQUEST_START, **route)
    try:
        response = await call_next(request)
    except Exception as exc:
        telemetry.emit(
            TelemetryEvent.HTTP_REQUEST_ERROR,
            **route,
            duration_ms=elapsed_ms(),
            error_type=type(exc).__name__,
        )
        raise
    finally:
        reset_contextvars(**tokens)

    response.headers[REQUEST_ID_HEADER] = request_id
    telemetry.emit(
        TelemetryEvent.HTTP_REQUEST_FINISH,
        **route,
        duration_ms=elapsed_ms(),
        status_code=response.status_code,
    )
    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Trendscope API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(track_request)
    app.add_exception_handler(YouTubeClientError, youtube_client_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)
    app.add_api_route("/health", health_check, methods=["GET"], tags=["system"])
    return app


app = create_app()
