"""
Process-wide httpx client for the GitHub REST API.

Ingestion, enrichment and branch discovery jobs run side by side on the
scheduler loop; they all borrow connections from this one pool. Tokens
differ per project owner, so auth headers travel with each request.
"""

import logging

import httpx

from commitsync.config import settings

logger = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None


def get_github_client() -> httpx.AsyncClient:
    """Return the shared client, creating it after first use or after close."""
    global _client
    if _client is None or _client.is_closed:
        max_connections = settings.github_http_max_connections
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.github_http_read_timeout_seconds,
                connect=settings.github_http_connect_timeout_seconds,
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(max_connections // 2, 1),
            ),
            http2=True,
        )
        logger.debug(f"[github-http] Client opened (max {max_connections} connections)")
    return _client


async def close_github_client() -> None:
    """Close the shared client on shutdown. Safe to call when none is open."""
    global _client
    if _client is None or _client.is_closed:
        return
    await _client.aclose()
    _client = None
    logger.debug("[github-http] Client closed")
