"""corsproxy: caching, CORS-enabled proxy for a single upstream JSON document."""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable

import httpx
from fastapi import FastAPI

from corsproxy.cache import ResourceCache
from corsproxy.config import Settings, settings
from corsproxy.errors import UpstreamError
from corsproxy.routes import health, resource
from corsproxy.services import upstream

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("corsproxy")


async def _warm(proxy: ResourceCache) -> None:
    """Fill the cache once at startup so the first client gets a HIT."""
    try:
        await proxy.refresh()
    except UpstreamError as e:
        log.warning("Startup warm-up failed: %s", e)


def create_app(
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Settings.validate()

        client = upstream.build_client(settings, transport=transport)
        app.state.http = client
        app.state.proxy = ResourceCache(
            lambda: upstream.fetch_resource(
                client, settings.UPSTREAM_URL, timeout=settings.UPSTREAM_TIMEOUT
            ),
            ttl=settings.CACHE_TTL,
            clock=clock,
        )

        warm_task = None
        if settings.WARM_ON_START:
            warm_task = asyncio.create_task(_warm(app.state.proxy))

        log.info(
            "corsproxy started: %s -> %s (ttl=%ss, port %s)",
            settings.RESOURCE_PATH,
            settings.UPSTREAM_URL,
            settings.CACHE_TTL,
            settings.PORT,
        )
        yield

        if warm_task is not None:
            warm_task.cancel()
            await asyncio.gather(warm_task, return_exceptions=True)
        await app.state.proxy.aclose()
        await client.aclose()
        log.info("corsproxy shutdown complete")

    app = FastAPI(
        title="corsproxy",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(resource.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "corsproxy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
