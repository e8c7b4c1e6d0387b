from __future__ import annotations

import time

from fastapi import APIRouter, Request

from corsproxy.cache import ResourceCache
from corsproxy.config import settings

router = APIRouter()

_start_time = time.time()
_VERSION = "0.1.0"


@router.get("/healthz")
async def healthz(request: Request):
    proxy: ResourceCache = request.app.state.proxy
    entry = proxy.entry
    age = proxy.age()
    return {
        "status": "ok",
        "version": _VERSION,
        "uptime_seconds": round(time.time() - _start_time),
        "upstream_url": settings.UPSTREAM_URL,
        "cache": {
            "state": proxy.state().value,
            "ttl_seconds": proxy.ttl,
            "age_seconds": round(age, 1) if age is not None else None,
            "fetched_at": entry.fetched_at if entry else None,
            "bytes": len(entry.body) if entry else 0,
            "refreshing": proxy.refreshing,
            "last_error": proxy.last_error,
        },
    }
