"""Lightweight HTTP client for the Linkerd proxy admin server."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable

import requests

from .constants import (
    READY_PATH,
    READY_REQUEST_TIMEOUT_S,
    SHUTDOWN_PATH,
    SHUTDOWN_REQUEST_TIMEOUT_S,
    USER_AGENT,
)

logger = logging.getLogger(__name__)


def run_detached(func: Callable[..., Any], *args: Any, **kwargs: Any) -> asyncio.Future:
    """
    Run a blocking call on a daemon thread and return a future for its result.

    Unlike ``asyncio.to_thread`` the worker is not joined at interpreter
    exit, so a request that loses a race never holds up process exit.
    Must be called from a running event loop.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _resolve(result: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _worker() -> None:
        try:
            result, error = func(*args, **kwargs), None
        except Exception as e:
            result, error = None, e
        try:
            loop.call_soon_threadsafe(_resolve, result, error)
        except RuntimeError:
            # Loop already closed; nobody is waiting for this result.
            pass

    threading.Thread(target=_worker, name="linkerd-await-http", daemon=True).start()
    return future


class AdminClient:
    """Client for the proxy's /ready and /shutdown endpoints."""

    def __init__(self, authority: str):
        """
        Args:
            authority: host:port of the proxy admin server, resolved once.
        """
        self.authority = authority
        self.ready_url = f"http://{authority}{READY_PATH}"
        self.shutdown_url = f"http://{authority}{SHUTDOWN_PATH}"
        # The admin server is always local; never route through HTTP_PROXY and friends
        self.session = requests.Session()
        self.session.trust_env = False
        self.session.headers.update({"User-Agent": USER_AGENT})

    def check_ready(self) -> bool:
        """
        Probe the readiness endpoint once (blocking).

        Returns:
            True iff the proxy answered with a 2xx status. Connection
            errors and timeouts count as "not ready".
        """
        try:
            response = self.session.get(self.ready_url, timeout=READY_REQUEST_TIMEOUT_S)
        except requests.exceptions.RequestException as e:
            logger.debug("Readiness probe failed: %s", e)
            return False

        if 200 <= response.status_code < 300:
            return True
        logger.debug("Readiness probe returned HTTP %d", response.status_code)
        return False

    async def probe_ready(self) -> bool:
        """Probe readiness without blocking the event loop."""
        try:
            return await asyncio.wait_for(
                run_detached(self.check_ready), timeout=READY_REQUEST_TIMEOUT_S
            )
        except asyncio.TimeoutError:
            logger.debug("Readiness probe timed out after %.1fs", READY_REQUEST_TIMEOUT_S)
            return False

    def _post_shutdown(self) -> None:
        response = self.session.post(self.shutdown_url, timeout=SHUTDOWN_REQUEST_TIMEOUT_S)
        logger.debug("Shutdown request returned HTTP %d", response.status_code)

    async def send_shutdown(self) -> None:
        """
        Ask the proxy to shut down. Fire-and-forget.

        The outcome is deliberately discarded: no retry, no error
        propagation, no effect on the exit code. Do not turn this into a
        blocking or failing call; the proxy may legitimately be gone already.
        """
        try:
            await asyncio.wait_for(
                run_detached(self._post_shutdown), timeout=SHUTDOWN_REQUEST_TIMEOUT_S
            )
        except Exception as e:
            logger.debug("Shutdown request failed: %s", e)
