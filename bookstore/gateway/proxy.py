"""
Reverse proxy that forwards each request to the pool chosen by
``RuleTable``.

The method, path, query string, headers and body of the incoming
request are relayed to the selected upstream, and the upstream
response is streamed back unchanged apart from hop-by-hop headers.
Upstream transport failures become ``502 Bad Gateway``; the gateway
never retries on another pool member.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ..settings import GatewaySettings
from .rules import MethodNotRouted, RoutingError, RuleTable

logger = logging.getLogger(__name__)

# Headers that describe a single connection and must not be relayed.
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


def _request_headers(request: Request) -> List[Tuple[str, str]]:
    headers = [
        (name, value)
        for name, value in request.headers.items()
        if name not in HOP_BY_HOP_HEADERS
        and name != "host"
        and not name.startswith("x-forwarded-")
    ]
    client_host = request.client.host if request.client else ""
    forwarded_for = request.headers.get("x-forwarded-for")
    headers.append(
        ("x-forwarded-for", f"{forwarded_for}, {client_host}" if forwarded_for else client_host)
    )
    headers.append(("x-forwarded-host", request.headers.get("host", "")))
    headers.append(("x-forwarded-proto", request.url.scheme))
    return headers


def _response_headers(response: httpx.Response) -> List[Tuple[bytes, bytes]]:
    return [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers.multi_items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]


def _has_body(request: Request) -> bool:
    return "content-length" in request.headers or "transfer-encoding" in request.headers


def _upstream_url(upstream: str, request: Request) -> httpx.URL:
    # Forward the path exactly as received so encoded characters reach the replica unchanged.
    raw_path = request.scope.get("raw_path") or request.url.path.encode("latin-1")
    raw_path = raw_path.split(b"?", 1)[0]
    query = request.scope.get("query_string", b"")
    return httpx.URL(upstream).copy_with(raw_path=raw_path + (b"?" + query if query else b""))


async def _relay_body(response: httpx.Response) -> AsyncIterator[bytes]:
    if response.is_stream_consumed:
        yield response.content
        return
    async for chunk in response.aiter_raw():
        yield chunk


async def forward(request: Request, rules: RuleTable, client: httpx.AsyncClient) -> Response:
    """Relay one request to the upstream chosen by ``rules``."""
    started = time.perf_counter()
    try:
        pool, upstream = rules.route(request.url.path, request.method)
    except MethodNotRouted as exc:
        logger.info("Rejected %s %s: no rule", exc.method, exc.path)
        return JSONResponse(
            status_code=405,
            content={"detail": "Method Not Allowed"},
            headers={"Allow": ", ".join(exc.allowed)},
        )

    upstream_request = client.build_request(
        request.method,
        _upstream_url(upstream, request),
        headers=_request_headers(request),
        content=request.stream() if _has_body(request) else None,
    )
    try:
        upstream_response = await client.send(upstream_request, stream=True)
    except httpx.TransportError as exc:
        logger.warning(
            "%s %s -> pool %s (%s) failed: %s",
            request.method,
            request.url.path,
            pool,
            upstream,
            exc,
        )
        return JSONResponse(status_code=502, content={"detail": "Bad Gateway"})

    logger.info(
        "%s %s -> pool %s (%s) -> %d (%.1f ms)",
        request.method,
        request.url.path,
        pool,
        upstream,
        upstream_response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    response = StreamingResponse(
        _relay_body(upstream_response),
        status_code=upstream_response.status_code,
        background=BackgroundTask(upstream_response.aclose),
    )
    response.raw_headers = _response_headers(upstream_response)
    return response


def create_gateway(
    settings: Optional[GatewaySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the gateway application.

    ``transport`` replaces the network transport of the upstream
    client, which lets tests plug in ``httpx.MockTransport``.
    Everything except ``GET /gateway/health`` is proxied, whatever the
    method; only ``/api`` restricts methods.
    """
    settings = settings or GatewaySettings()
    rules = RuleTable(settings.pools())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(
            transport=transport,
            timeout=settings.upstream_timeout_seconds,
            follow_redirects=False,
        ) as client:
            app.state.client = client
            yield

    # Docs routes are left off so /docs and /openapi.json reach the full pool.
    app = FastAPI(
        title="Bookstore gateway",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.rules = rules

    @app.get("/gateway/health")
    def gateway_health():
        return {"status": "ok", "pools": rules.describe()}

    async def proxy_app(scope, receive, send):
        request = Request(scope, receive)
        response = await forward(request, rules, app.state.client)
        await response(scope, receive, send)

    # A mount matches every path and every method.
    app.mount("/", proxy_app)
    return app


def run() -> None:
    """Console entry point for the gateway."""
    settings = GatewaySettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        app = create_gateway(settings)
    except RoutingError as exc:
        logger.error("Invalid pool configuration: %s", exc)
        sys.exit(1)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
