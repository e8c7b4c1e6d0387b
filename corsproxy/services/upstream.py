"""Client for the single upstream JSON document.

The body is passed through untouched; it is never parsed as JSON here.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from corsproxy.config import Settings
from corsproxy.errors import UpstreamHTTPError, UpstreamTransportError

log = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 5.0


def build_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Shared client carrying the proxy's User-Agent and a bounded timeout."""
    timeout = httpx.Timeout(
        settings.UPSTREAM_TIMEOUT,
        connect=min(_CONNECT_TIMEOUT, settings.UPSTREAM_TIMEOUT),
    )
    return httpx.AsyncClient(
        headers={"User-Agent": settings.USER_AGENT},
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
    )


async def fetch_resource(
    client: httpx.AsyncClient, url: str, timeout: float | None = None
) -> bytes:
    """GET *url* and return the raw body.

    *timeout* bounds the whole exchange, including a slow body; the
    client's own timeouts only bound each connect or read.

    Raises ``UpstreamHTTPError`` on a non-2xx answer and
    ``UpstreamTransportError`` when the upstream cannot be reached.
    """
    try:
        resp = await asyncio.wait_for(client.get(url), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise UpstreamTransportError(
            f"Upstream timed out after {timeout}s: {url}"
        ) from e
    except httpx.TimeoutException as e:
        raise UpstreamTransportError(
            f"Upstream timed out ({type(e).__name__}): {url}"
        ) from e
    except httpx.HTTPError as e:
        detail = str(e) or type(e).__name__
        raise UpstreamTransportError(f"Upstream unreachable: {detail}") from e
    except httpx.InvalidURL as e:
        raise UpstreamTransportError(f"Invalid upstream URL: {e}") from e

    if not resp.is_success:
        log.debug("Upstream %s answered %s", url, resp.status_code)
        raise UpstreamHTTPError(resp.status_code)
    return resp.content
