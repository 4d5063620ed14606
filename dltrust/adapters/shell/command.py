"""
Shell command runner — the single place where ``subprocess.run`` is called.

cosign, gpg and retried user commands all go through ``run_command`` so
timeouts, missing binaries and secret redaction are handled once.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Sequence

logger = logging.getLogger(__name__)

# Conventional exit codes for failures that never reached the command
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127

_SENSITIVE_KEYS = ("password", "token", "authorization", "bearer")


@dataclass
class CommandResult:
    """Outcome of one command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for tools that report on either."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


CommandRunner = Callable[..., CommandResult]


def redact_command(cmd: Sequence[str]) -> list[str]:
    """Replace anything that looks like a credential before logging."""
    redacted: list[str] = []
    skip_next = False
    for item in cmd:
        lower = item.lower()
        if skip_next:
            redacted.append("***")
            skip_next = False
            continue
        if lower in {"--password", "--token"}:
            redacted.append(item)
            skip_next = True
            continue
        if any(key in lower for key in _SENSITIVE_KEYS):
            redacted.append("***")
            continue
        redacted.append(item)
    return redacted


def run_command(
    cmd: Sequence[str],
    *,
    capture: bool = True,
    timeout: float | None = None,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run a command and report its exit status.

    Never raises for command failures: a missing binary maps to exit 127
    and a timeout to exit 124, like a POSIX shell would report them.

    Args:
        cmd: Command list for ``subprocess.run()``.
        capture: Capture stdout/stderr.  When False the child inherits the
            parent's streams.
        timeout: Seconds before ``TimeoutExpired``.
        env_overrides: Extra environment variables for the child.
        cwd: Working directory for the command.
    """
    env = None
    if env_overrides:
        env = os.environ.copy()
        env.update(env_overrides)

    logger.debug("Executing: %s", " ".join(redact_command(cmd)))
    start = time.monotonic()
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
    except FileNotFoundError:
        return CommandResult(
            returncode=EXIT_NOT_FOUND,
            stderr=f"Command not found: {cmd[0]}",
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            returncode=EXIT_TIMEOUT,
            stderr=f"Command timed out after {timeout}s",
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )

    return CommandResult(
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        elapsed_ms=int((time.monotonic() - start) * 1000),
    )
