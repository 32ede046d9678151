"""Utility functions for common operations across the application."""

import logging
import re
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


class MathUtils:
    """Mathematical utility functions."""

    @staticmethod
    def calculate_percentage(completed: int, total: int) -> float:
        """
        Calculate the percentage of completed items out of total items.

        Args:
            completed: Number of completed items
            total: Total number of items

        Returns:
            Percentage as a float between 0 and 100

        Example:
            >>> MathUtils.calculate_percentage(5, 10)
            50.0
        """
        if total <= 0:
            return 0.0
        return (completed / total) * 100

    @staticmethod
    def ceil_div(numerator: int, denominator: int) -> int:
        """
        Integer ceiling division.

        Example:
            >>> MathUtils.ceil_div(21, 10)
            3
        """
        if denominator <= 0:
            raise ValueError(f"denominator must be positive, got {denominator}")
        return -(-numerator // denominator)


class TimestampUtils:
    """Conversions between caption timestamp notations and milliseconds."""

    # H:MM:SS.cc (ASS), [HH:]MM:SS.mmm (WebVTT), HH:MM:SS,mmm (SRT)
    _CLOCK_PATTERN = re.compile(
        r"^\s*(?:(\d+):)?(\d{1,2}):(\d{1,2})[.,](\d{1,3})\s*$"
    )

    @staticmethod
    def ms_to_srt_timestamp(total_ms: int) -> str:
        """
        Format milliseconds as an SRT timestamp.

        Example:
            >>> TimestampUtils.ms_to_srt_timestamp(3723004)
            '01:02:03,004'
        """
        if total_ms < 0:
            total_ms = 0
        hours, remainder = divmod(total_ms, 3600_000)
        minutes, remainder = divmod(remainder, 60_000)
        seconds, milliseconds = divmod(remainder, 1000)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d},{milliseconds:03d}"

    @staticmethod
    def clock_to_ms(value: str) -> Optional[int]:
        """
        Parse an ASS, WebVTT or SRT clock value into milliseconds.

        The fractional part is interpreted by its digit count, so ``.5``,
        ``.50`` (centiseconds) and ``,500`` all mean half a second.

        Returns:
            Milliseconds, or None if the value is not a clock value
        """
        match = TimestampUtils._CLOCK_PATTERN.match(value)
        if not match:
            return None
        hours, minutes, seconds, fraction = match.groups()
        fraction_ms = int(fraction.ljust(3, "0"))
        return (
            int(hours or 0) * 3600_000
            + int(minutes) * 60_000
            + int(seconds) * 1000
            + fraction_ms
        )


class DateTimeUtils:
    """Date and time utility functions."""

    @staticmethod
    def get_date_string_for_log_file() -> str:
        """
        Get a date string suitable for log file names.

        Returns:
            Date string in YYYYMMDD format

        Example:
            >>> DateTimeUtils.get_date_string_for_log_file()
            '20240101'
        """
        return datetime.now().strftime("%Y%m%d")
