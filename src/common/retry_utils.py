"""Backoff strategies and error classification for batch retries."""

import logging
import random
from typing import Callable

from common.config import settings

logger = logging.getLogger(__name__)

# Maps the number of failed attempts so far (1-based) to a delay in seconds
BackoffStrategy = Callable[[int], float]


def calculate_exponential_backoff_delay(
    initial_delay: float,
    attempt: int,
    exponential_base: int,
    max_delay: float,
) -> float:
    """
    Calculate delay with exponential backoff and jitter.

    Args:
        initial_delay: Initial delay in seconds
        attempt: Current attempt number (0-indexed)
        exponential_base: Base for exponential calculation (e.g., 2)
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds with jitter applied
    """
    delay = initial_delay * (exponential_base**attempt)
    delay = min(delay, max_delay)

    # Add jitter (0-50% of delay) to prevent thundering herd
    jitter = random.uniform(0, delay * 0.5)
    return delay + jitter


def fixed_backoff(delay: float) -> BackoffStrategy:
    """
    Wait the same cooldown after every failed attempt.

    Example:
        >>> fixed_backoff(3.0)(4)
        3.0
    """
    if delay < 0:
        raise ValueError(f"delay must not be negative, got {delay}")

    def strategy(failed_attempts: int) -> float:
        return delay

    return strategy


def exponential_backoff(
    initial_delay: float, exponential_base: int = 2, max_delay: float = 60.0
) -> BackoffStrategy:
    """Grow the cooldown exponentially with the number of failed attempts."""

    def strategy(failed_attempts: int) -> float:
        return calculate_exponential_backoff_delay(
            initial_delay=initial_delay,
            attempt=max(failed_attempts - 1, 0),
            exponential_base=exponential_base,
            max_delay=max_delay,
        )

    return strategy


def backoff_from_settings() -> BackoffStrategy:
    """Build the backoff strategy configured in settings."""
    if settings.translate_retry_strategy == "exponential":
        return exponential_backoff(
            initial_delay=settings.translate_retry_delay,
            exponential_base=settings.translate_retry_exponential_base,
            max_delay=settings.translate_retry_max_delay,
        )
    return fixed_backoff(settings.translate_retry_delay)


def is_transient_error(error: Exception) -> bool:
    """
    Determine if a failed batch should be retried.

    Rate limits and redirects to the purchase flow are permanent for the
    credentials in use. Any other failure of a batch request (network
    error, backend error message, malformed response) is retried.

    Checks both the error itself and its __cause__ chain.

    Args:
        error: Exception to check

    Returns:
        True if error is transient and should be retried, False otherwise
    """
    # Import here to avoid circular dependencies
    from translator.translation_service import BatchTranslationError, RateLimitError

    if isinstance(error, RateLimitError):
        return False

    if isinstance(error, BatchTranslationError):
        if error.__cause__ is not None:
            return is_transient_error(error.__cause__)
        return True

    # Any other failure of a single request is retried; the attempt ceiling
    # bounds the cost
    return True
