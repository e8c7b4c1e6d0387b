"""Upstream failure types.

``fetch_resource`` converts every httpx failure into an ``UpstreamError``;
``ResourceCache.get`` absorbs those into a stale serve when it can and raises
``NoCacheAvailable`` when it cannot.
"""
from __future__ import annotations


class UpstreamError(Exception):
    """Base class for a failed upstream fetch."""

    status_code: int | None = None

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"Upstream error: {status_code}")


class UpstreamTransportError(UpstreamError):
    """Upstream could not be reached (connect, DNS, read or timeout)."""


class NoCacheAvailable(Exception):
    """Upstream failed and there is no earlier body to fall back on."""

    def __init__(self, cause: UpstreamError) -> None:
        self.cause = cause
        self.message = cause.message
        status = cause.status_code
        if status is None:
            self.status_code = 500
        elif status < 400:
            # 1xx/3xx cannot carry an error body downstream
            self.status_code = 502
        else:
            self.status_code = status
        super().__init__(cause.message)
