"""
Reconnect Policy - Exponential backoff with a bounded attempt budget.

delay(attempt) = initial_delay * multiplier ** (attempt - 1), for attempts
1..max_attempts. Asking for one more delay raises ReconnectExhaustedError.
The counter goes back to zero on any successful subscription.
"""

import logging

from ..core.constants import (
    INITIAL_RECONNECT_DELAY_MS, MAX_RECONNECT_ATTEMPTS, RECONNECT_MULTIPLIER,
)
from ..core.exceptions import ReconnectExhaustedError


logger = logging.getLogger(__name__)


class ReconnectPolicy:
    """Tracks reconnect attempts and computes backoff delays."""

    def __init__(
        self,
        initial_delay_ms: int = INITIAL_RECONNECT_DELAY_MS,
        multiplier: float = RECONNECT_MULTIPLIER,
        max_attempts: int = MAX_RECONNECT_ATTEMPTS
    ):
        if initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {initial_delay_ms}")
        if multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {multiplier}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self.initial_delay_ms = initial_delay_ms
        self.multiplier = multiplier
        self.max_attempts = max_attempts
        self.attempt = 0

    def delay_ms(self, attempt: int) -> float:
        """Backoff delay for a 1-based attempt number."""
        return self.initial_delay_ms * self.multiplier ** (attempt - 1)

    def next_delay(self) -> float:
        """
        Register one more reconnect attempt.

        Returns:
            Delay in seconds to wait before the attempt

        Raises:
            ReconnectExhaustedError: If max_attempts were already used
        """
        if self.attempt >= self.max_attempts:
            raise ReconnectExhaustedError(
                f"Gave up after {self.attempt} reconnect attempts",
                max_attempts=self.max_attempts
            )

        self.attempt += 1
        delay = self.delay_ms(self.attempt)
        logger.info(
            "Reconnect attempt %d/%d in %.0fms",
            self.attempt, self.max_attempts, delay
        )
        return delay / 1000.0

    def reset(self) -> None:
        if self.attempt:
            logger.debug("Reconnect counter reset after %d attempts", self.attempt)
        self.attempt = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts
