from __future__ import annotations

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .constants import APP_VERSION, LOGGER

MAX_LOGGED_BODY = 1000


def build_provider_client(*, timeout: float, debug_enabled: bool) -> httpx.AsyncClient:
    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        LOGGER.info("Provider request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        LOGGER.info(
            "Provider response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > MAX_LOGGED_BODY:
                text = text[:MAX_LOGGED_BODY] + "...<truncated>"
            LOGGER.warning("Provider error body: %s", text)

    return httpx.AsyncClient(
        timeout=timeout,
        event_hooks={"request": [log_request], "response": [log_response]},
    )


def error_response(code: str, description: str, status_code: int) -> Response:
    return JSONResponse(
        {"error": code, "error_description": description},
        status_code=status_code,
    )


async def health_route(request: Request) -> Response:
    del request
    return JSONResponse({"status": "ok", "version": APP_VERSION})
