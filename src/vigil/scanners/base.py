"""DomainScanner protocol and shared helpers for shelling out."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from vigil.audit.models import Domain, DomainResult, ScanWarning

logger = logging.getLogger(__name__)


@runtime_checkable
class DomainScanner(Protocol):
    """Protocol for the per-domain inspection tasks.

    ``run`` must not raise for environmental problems (missing binary,
    permission denied); those become ``ScanWarning`` entries on the result.
    """

    domain: Domain

    async def run(self) -> DomainResult:
        """Collect findings for this domain."""
        ...


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


class CommandError(Exception):
    """A command could not be launched or did not finish in time."""

    def to_warning(self, source: str) -> ScanWarning:
        return ScanWarning(source, str(self))


async def run_command(
    *args: str,
    timeout: float | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run *args* without a shell and capture its output.

    A non-zero exit status is returned, not raised: several tools (``npm
    audit`` for one) exit non-zero with useful output. Raises ``CommandError``
    when the binary is missing, cannot be executed, or exceeds *timeout*.
    The child is killed if the awaiting task is cancelled.
    """
    if shutil.which(args[0]) is None:
        raise CommandError(f"{args[0]}: not found")

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )
    except OSError as exc:
        raise CommandError(f"{args[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        raise CommandError(f"{args[0]}: timed out after {timeout:g}s") from None
    except asyncio.CancelledError:
        _kill(proc)
        raise

    logger.debug("%s exited with %d", " ".join(args), proc.returncode)
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
