"""
Retry with exponential backoff.

One combinator, ``retry_call``, drives every retried operation: HTTP
fetches, release-index lookups, and external commands.  The delay after
failed attempt ``n`` is ``min(initial_delay * 2 ** (n - 1), max_delay)``.

Integrity and configuration failures are never retried; only
``AvailabilityError`` (minus ``NotFoundError``) is, unless the caller
passes its own predicate.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, Sequence, TypeVar

from dltrust.adapters.shell.command import CommandResult, redact_command, run_command
from dltrust.core.errors import AvailabilityError, NotFoundError
from dltrust.core.models.policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("rate limit", "403")


def is_retryable(exc: BaseException) -> bool:
    """Default predicate: availability failures, except missing resources."""
    return isinstance(exc, AvailabilityError) and not isinstance(exc, NotFoundError)


def retry_call(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy | None = None,
    retryable: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """Call ``fn`` until it returns, retrying retryable exceptions.

    Non-retryable exceptions propagate immediately.  When attempts run out,
    the last exception propagates unchanged.
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:
            if not retryable(e) or attempt >= policy.max_attempts:
                if attempt > 1:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", description, attempt, e,
                    )
                raise
            delay = policy.delay_for(attempt)
            logger.info(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description, attempt, policy.max_attempts, e, delay,
            )
            sleep(delay)
            attempt += 1


def run_with_backoff(
    command: Sequence[str],
    *,
    policy: RetryPolicy | None = None,
    runner: Callable[..., CommandResult] = run_command,
    sleep: Callable[[float], None] = time.sleep,
    capture: bool = False,
    on_failure: Callable[[int, CommandResult], None] | None = None,
) -> CommandResult:
    """Run ``command`` until it exits 0 or attempts are exhausted.

    Returns the result of the last attempt, so its exit code is the
    failing command's own code, not a generic 1.
    """
    policy = policy or RetryPolicy()
    shown = " ".join(redact_command(command))
    result = CommandResult(returncode=1)

    for attempt in range(1, policy.max_attempts + 1):
        result = runner(command, capture=capture)
        if result.ok:
            return result

        if on_failure is not None:
            on_failure(attempt, result)

        if attempt < policy.max_attempts:
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed (exit code: %d): %s; retrying in %.1fs",
                attempt, policy.max_attempts, result.returncode, shown, delay,
            )
            sleep(delay)
        else:
            logger.error(
                "Command failed after %d attempt(s) (exit code: %d): %s",
                policy.max_attempts, result.returncode, shown,
            )
    return result


def retry_with_backoff(
    command: Sequence[str],
    *,
    policy: RetryPolicy | None = None,
    runner: Callable[..., CommandResult] = run_command,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run a command with exponential backoff and return its exit code.

    The command inherits stdout/stderr.  A command that succeeds on the
    first attempt incurs no sleep at all.
    """
    return run_with_backoff(
        command, policy=policy, runner=runner, sleep=sleep,
    ).returncode


def retry_github_api(
    command: Sequence[str],
    *,
    token: str | None = None,
    policy: RetryPolicy | None = None,
    runner: Callable[..., CommandResult] = run_command,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Retry a curl-style GitHub API command, authenticating when possible.

    When ``token`` is set, ``-H "Authorization: Bearer <token>"`` is
    appended to the command.  The token is never logged.  Output of the
    successful attempt is written to stdout.
    """
    cmd = list(command)
    if token:
        cmd += ["-H", f"Authorization: Bearer {token}"]

    def _note_rate_limit(attempt: int, result: CommandResult) -> None:
        text = result.output.lower()
        if any(marker in text for marker in _RATE_LIMIT_MARKERS):
            logger.warning(
                "GitHub API rate limit detected on attempt %d", attempt,
            )
            if not token:
                logger.warning(
                    "Set GITHUB_TOKEN to raise the limit "
                    "(60 requests/hour anonymous, 5000 with a token)",
                )

    result = run_with_backoff(
        cmd,
        policy=policy,
        runner=runner,
        sleep=sleep,
        capture=True,
        on_failure=_note_rate_limit,
    )
    if result.ok and result.stdout:
        sys.stdout.write(result.stdout)
    elif result.stderr:
        sys.stderr.write(result.stderr)
    return result.returncode
