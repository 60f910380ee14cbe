"""Readiness polling for the Linkerd proxy."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from .admin_client import AdminClient
from .duration import format_duration
from .errors import ReadinessTimeout

logger = logging.getLogger(__name__)


async def await_ready(client: AdminClient, backoff: timedelta) -> None:
    """
    Poll the proxy's readiness endpoint until it answers with a 2xx status.

    Every failed attempt is followed by a constant ``backoff`` sleep. There
    is no attempt limit; callers bound the wait with ``await_ready_within``.
    """
    delay = backoff.total_seconds()
    attempts = 0
    while True:
        attempts += 1
        if await client.probe_ready():
            logger.debug("Proxy ready after %d attempt(s)", attempts)
            return
        await asyncio.sleep(delay)


async def await_ready_within(
    client: AdminClient,
    backoff: timedelta,
    timeout: timedelta | None,
    timeout_fatal: bool = True,
) -> None:
    """
    Wait for readiness, racing against an optional overall deadline.

    A zero or absent ``timeout`` waits indefinitely. When the deadline
    wins, the error is logged; if ``timeout_fatal`` is set
    ``ReadinessTimeout`` is raised, otherwise this returns as if the proxy
    were ready.

    Raises:
        ReadinessTimeout: if the deadline elapsed and timeouts are fatal.
    """
    if not timeout:
        await await_ready(client, backoff)
        return

    ready = asyncio.ensure_future(await_ready(client, backoff))
    deadline = asyncio.ensure_future(asyncio.sleep(timeout.total_seconds()))
    try:
        done, _ = await asyncio.wait({ready, deadline}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (ready, deadline):
            if not task.done():
                task.cancel()

    if ready in done:
        return

    message = f"linkerd-proxy failed to become ready within {format_duration(timeout)} timeout"
    logger.error(message)
    if timeout_fatal:
        raise ReadinessTimeout(message)
