from __future__ import annotations

from fastapi import APIRouter, Request, Response

from corsproxy.cache import CacheStatus, ResourceCache
from corsproxy.config import settings
from corsproxy.errors import NoCacheAvailable

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_MAX_ERROR_HEADER = 200


def _header_safe(message: str) -> str:
    """Flatten an error message into a single latin-1 header value."""
    flat = " ".join(message.split())[:_MAX_ERROR_HEADER]
    return flat.encode("latin-1", "replace").decode("latin-1")


@router.get(settings.RESOURCE_PATH)
async def get_resource(request: Request) -> Response:
    proxy: ResourceCache = request.app.state.proxy
    try:
        result = await proxy.get()
    except NoCacheAvailable as e:
        return Response(
            content=e.message,
            status_code=e.status_code,
            media_type="text/plain",
            headers=CORS_HEADERS,
        )

    headers = {**CORS_HEADERS, "X-Proxy-Cache": result.status.value}
    if result.status is CacheStatus.STALE and result.error:
        headers["X-Proxy-Error"] = _header_safe(result.error)
    return Response(
        content=result.body,
        media_type="application/json",
        headers=headers,
    )


@router.options(settings.RESOURCE_PATH)
async def preflight_resource() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)
