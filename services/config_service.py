import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from utils import to_time

from .interfaces import IConfigService

logger = logging.getLogger(__name__)


class ConfigServiceImpl(IConfigService):
    """Реализация сервиса конфигурации, читающая из словаря."""

    def __init__(self, config_data: Dict[str, Any]):
        self._config = config_data
        logger.debug("ConfigService initialized.")

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        return self._config.get(key, default)

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key, default)
        return str(value) if value is not None else None

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                f"Expected int for config key '{key}', but got {value!r}. Returning default."
            )
            return default

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                f"Expected float for config key '{key}', but got {value!r}. Returning default."
            )
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def get_list_str(
        self, key: str, default: Optional[List[str]] = None
    ) -> Optional[List[str]]:
        value = self.get(key)
        if isinstance(value, list):
            return [str(v) for v in value]
        elif value is None:
            return default
        elif isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        else:
            logger.warning(
                f"Expected list for config key '{key}', but got {type(value)}. Returning default."
            )
            return default

    def get_log_level(self) -> str:
        return self.get_str("LOG_LEVEL", "INFO")  # type: ignore

    def is_reminders_enabled(self) -> bool:
        return self.get_bool("REMINDERS_ENABLED", True)

    def get_lookahead_minutes(self) -> int:
        return self.get_int("REMINDER_LOOKAHEAD_MINUTES", 1440)

    def get_default_reminder_offsets(self) -> Tuple[int, ...]:
        values = self.get_list_str("DEFAULT_REMINDER_OFFSETS", default=["15"]) or []
        offsets = set()
        for value in values:
            try:
                minutes = int(value)
            except ValueError:
                logger.warning(f"Ignoring invalid default reminder offset {value!r}")
                continue
            if minutes >= 0:
                offsets.add(minutes)
        return tuple(sorted(offsets))

    def get_default_snooze_minutes(self) -> int:
        return self.get_int("DEFAULT_SNOOZE_MINUTES", 5)

    def get_all_day_reminder_time(self) -> datetime.time:
        value = self.get("ALL_DAY_REMINDER_TIME")
        try:
            return to_time(value) or datetime.time(0, 0)
        except (TypeError, ValueError):
            logger.warning(
                f"Invalid ALL_DAY_REMINDER_TIME {value!r}. Using midnight."
            )
            return datetime.time(0, 0)

    def get_max_occurrences_per_expansion(self) -> int:
        return self.get_int("MAX_OCCURRENCES_PER_EXPANSION", 1000)

    def get_timer_poll_interval(self) -> float:
        return self.get_float("TIMER_POLL_INTERVAL_SECONDS", 0.5)
