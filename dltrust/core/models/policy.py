"""
Policy value objects — read once per top-level call, immutable afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VerificationPolicy:
    """Controls whether Tier 4 (TOFU) may accept an unverified artifact.

    Args:
        require_verified: When True, a download that reaches Tier 4 is a
            hard failure instead of an ``UNVERIFIED`` acceptance.
    """

    require_verified: bool = False

    @property
    def allows_tofu(self) -> bool:
        return not self.require_verified


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters.

    Args:
        max_attempts: Total attempts, including the first one.
        initial_delay: Seconds to wait after the first failure.
        max_delay: Upper bound for any single wait.
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay * (2 ** (attempt - 1)), self.max_delay)
