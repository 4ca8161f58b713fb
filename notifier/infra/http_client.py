# notifier/infra/http_client.py
"""
Shared HTTP client sessions for the application.

Provides named, lazy-initialized aiohttp.ClientSession singletons
to avoid per-request session creation overhead and TCP connection churn.

Session profiles
~~~~~~~~~~~~~~~~
- **directory** – Realtime Database reads (total=15 s, connect=5 s, pool limit=20)
- **push**      – FCM sends            (total=25 s, connect=5 s, pool limit=100)

The push pool is the only external bound on concurrent sends during a
fan-out; the dispatcher itself submits every message at once.

Shutdown
~~~~~~~~
Call ``close_all_sessions()`` once during application shutdown.
"""
from __future__ import annotations

import aiohttp

from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------

_sessions: dict[str, aiohttp.ClientSession] = {}


def _get_or_create(
    name: str,
    timeout: aiohttp.ClientTimeout,
    limit: int = 10,
) -> aiohttp.ClientSession:
    """Return an existing session or create a new one."""
    session = _sessions.get(name)
    if session is None or session.closed:
        session = aiohttp.ClientSession(
            timeout=timeout,
            connector=aiohttp.TCPConnector(
                keepalive_timeout=30,
                limit=limit,
                enable_cleanup_closed=True,
            ),
        )
        _sessions[name] = session
        logger.debug("HTTP session '%s' created (limit=%d)", name, limit)
    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_directory_session() -> aiohttp.ClientSession:
    """Session for Realtime Database REST reads."""
    return _get_or_create(
        "directory",
        aiohttp.ClientTimeout(total=15, connect=5),
        limit=20,
    )


def get_push_session() -> aiohttp.ClientSession:
    """Session for FCM HTTP v1 sends."""
    return _get_or_create(
        "push",
        aiohttp.ClientTimeout(total=25, connect=5),
        limit=100,
    )


async def close_all_sessions() -> None:
    """Gracefully close every managed session.  Call during app shutdown."""
    for name in list(_sessions):
        session = _sessions.pop(name, None)
        if session is not None and not session.closed:
            await session.close()
            logger.debug("HTTP session '%s' closed", name)
