"""
Launching the target program.

Two modes:
- exec_command: replace this process with the program (no supervision).
- fork_with_sigterm: run the program as a child, forwarding SIGTERM to it,
  and report how it exited.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Sequence

from .errors import ExecFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChildOutcome:
    """How a supervised child finished."""

    returncode: int | None  # None if the child could not be spawned
    pid: int | None = None

    @property
    def exit_code(self) -> int | None:
        """The child's numeric exit code, or None if it was killed by a signal or never ran."""
        if self.returncode is None or self.returncode < 0:
            return None
        return self.returncode


def exec_command(cmd: str, args: Sequence[str]) -> None:
    """
    Replace the current process image with ``cmd``. Does not return on success.

    Raises:
        ExecFailed: if the program could not be executed.
    """
    logger.debug("Executing %s %s", cmd, " ".join(args))

    # exec discards anything still sitting in Python's buffers
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()

    # The interpreter ignores these at startup and ignored dispositions survive exec
    inherited = {signum: signal.getsignal(signum) for signum in (signal.SIGPIPE, signal.SIGXFSZ)}
    for signum in inherited:
        signal.signal(signum, signal.SIG_DFL)

    try:
        os.execvp(cmd, [cmd, *args])
    except OSError as e:
        for signum, disposition in inherited.items():
            signal.signal(signum, disposition)
        raise ExecFailed(f"Failed to exec child program: {cmd}: {e}") from e


@contextmanager
def catch_sigterm() -> Iterator[asyncio.Event]:
    """
    Turn SIGTERM into an event for as long as the block runs.

    Must be entered from inside a running event loop.
    """
    loop = asyncio.get_running_loop()
    sigterm = asyncio.Event()
    loop.add_signal_handler(signal.SIGTERM, sigterm.set)
    try:
        yield sigterm
    finally:
        loop.remove_signal_handler(signal.SIGTERM)


async def fork_with_sigterm(
    cmd: str, args: Sequence[str], sigterm: asyncio.Event
) -> ChildOutcome:
    """
    Run ``cmd`` as a child process, proxying SIGTERM to it.

    Waits for the child to exit on its own or, once ``sigterm`` is set
    (kubelet sends SIGTERM to start graceful shutdown), forwards the signal
    to the child and then waits for it to exit. ``sigterm`` comes from
    ``catch_sigterm``, entered before this is called so an early SIGTERM
    is not lost.

    Spawn failures are logged and reported as ``ChildOutcome(None)`` rather
    than raised, so the caller still notifies the proxy.
    """
    try:
        child = await asyncio.create_subprocess_exec(cmd, *args)
    except OSError as e:
        logger.error("Failed to fork child program: %s: %s", cmd, e)
        return ChildOutcome(returncode=None)

    logger.debug("Spawned %s (PID: %d)", cmd, child.pid)
    returncode = await _wait_forwarding_sigterm(child, sigterm)
    logger.debug("Child %d exited with %d", child.pid, returncode)
    return ChildOutcome(returncode=returncode, pid=child.pid)


async def _wait_forwarding_sigterm(
    child: asyncio.subprocess.Process, sigterm: asyncio.Event
) -> int:
    exited = asyncio.ensure_future(child.wait())
    received = asyncio.ensure_future(sigterm.wait())
    try:
        await asyncio.wait({exited, received}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not received.done():
            received.cancel()

    if exited.done():
        return exited.result()

    # If the child hasn't already completed, pass the SIGTERM on.
    logger.debug("Received SIGTERM; forwarding to child %d", child.pid)
    try:
        child.send_signal(signal.SIGTERM)
    except ProcessLookupError as e:
        logger.warning("Failed to forward SIGTERM to child process: %s", e)
    except OSError as e:
        logger.error("Failed to forward SIGTERM to child process: %s", e)

    return await exited
