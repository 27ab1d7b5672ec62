import logging
import sys
from datetime import date, datetime, time
from typing import Any, Optional


def setup_logging(log_level_name: str = "INFO"):
    """Sets up basic logging configuration."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)  # Default to INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    # Reduce noise from libraries
    logging.getLogger("schedule").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at level: {log_level_name}")


def to_date(value: Any) -> date:
    """Coerces a date, datetime or 'YYYY-MM-DD' string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Cannot convert {type(value).__name__} to date: {value!r}")


def to_time(value: Any) -> Optional[time]:
    """
    Coerces a time value into datetime.time.

    Accepts time objects, 'HH:MM' / 'H:MM' / 'HH:MM:SS' strings and integer
    minutes since midnight (YAML reads unquoted 8:30 as 510).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Cannot convert bool to time: {value!r}")
    if isinstance(value, (int, float)):
        minutes = int(value)
        if not 0 <= minutes < 24 * 60:
            raise ValueError(f"Minutes since midnight out of range: {value}")
        return time(minutes // 60, minutes % 60)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        parts = text.split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"Invalid time format: {value!r}")
        return time(*(int(p) for p in parts))
    raise TypeError(f"Cannot convert {type(value).__name__} to time: {value!r}")
