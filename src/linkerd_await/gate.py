"""
End-to-end flow: wait for the proxy, then run the program.
"""

from __future__ import annotations

import asyncio
import logging

from .admin_client import AdminClient
from .config import AwaitConfig
from .constants import EX_OK, EX_OSERR
from .process import catch_sigterm, exec_command, fork_with_sigterm
from .readiness import await_ready_within

logger = logging.getLogger(__name__)


async def pass_gate(config: AwaitConfig, client: AdminClient) -> None:
    """
    Block until the proxy is ready, unless the check is disabled.

    A non-fatal timeout counts as ready for everything that follows.

    Raises:
        ReadinessTimeout: if the timeout elapsed and is fatal.
    """
    if config.disabled_reason:
        if config.verbose:
            logger.warning("Linkerd readiness check skipped: %s", config.disabled_reason)
        return

    await await_ready_within(client, config.backoff, config.timeout, config.timeout_fatal)


async def supervise(config: AwaitConfig, client: AdminClient) -> int:
    """
    Run the program as a child, then tell the proxy to shut down.

    SIGTERM stays caught until the shutdown request has been sent, so a
    repeated SIGTERM from kubelet cannot cut the notification short.

    Returns the child's exit code, or EX_OSERR if there isn't one.
    """
    with catch_sigterm() as sigterm:
        outcome = await fork_with_sigterm(config.cmd, config.args, sigterm)

        # Only once the child is gone
        await client.send_shutdown()

    if outcome.exit_code is not None:
        return outcome.exit_code
    if outcome.pid is not None:
        logger.warning(
            "Child program (PID: %d) exited without an exit code (returncode %d)",
            outcome.pid,
            outcome.returncode,
        )
    return EX_OSERR


async def run_async(config: AwaitConfig) -> int | None:
    """
    Gate and, with --shutdown, supervise.

    Returns the exit code when the invocation is finished, or None when the
    caller should go on to exec the program.
    """
    client = AdminClient(config.authority)
    await pass_gate(config, client)

    if config.shutdown:
        return await supervise(config, client)
    if config.cmd:
        return None
    return EX_OK


def run(config: AwaitConfig) -> int:
    """
    Run one invocation and return its exit code.

    Without --shutdown the program replaces this process once the event
    loop has been torn down, so in that case this only returns (by raising
    ExecFailed) if exec fails.

    Raises:
        ReadinessTimeout: if the proxy was not ready in time and the timeout is fatal.
        ExecFailed: if the program could not be executed.
    """
    code = asyncio.run(run_async(config))
    if code is not None:
        return code

    exec_command(config.cmd, config.args)
    return EX_OSERR
