import os
import logging
from dotenv import load_dotenv
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Загрузка .env файла остается для локальной разработки
load_dotenv()

_loaded_config: Optional[Dict[str, Any]] = None

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    logger.warning(f"{name}={raw!r} is not a boolean. Using default: {default}")
    return default


def _env_number(name: str, default, cast, minimum):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number. Using default: {default}")
        return default
    if value < minimum:
        logger.warning(f"{name}={value} is below {minimum}. Using default: {default}")
        return default
    return value


def _env_offsets(name: str, default: str):
    raw = os.getenv(name, default)
    offsets = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            minutes = int(part)
        except ValueError:
            logger.warning(f"Ignoring invalid reminder offset {part!r} in {name}")
            continue
        if minutes < 0:
            logger.warning(f"Ignoring negative reminder offset {minutes} in {name}")
            continue
        offsets.append(minutes)
    return sorted(set(offsets))


def load_app_config() -> Dict[str, Any]:
    """
    Загружает конфигурацию из переменных окружения и возвращает ее в виде словаря.
    Некорректные значения заменяются значениями по умолчанию с предупреждением.
    """
    global _loaded_config
    if _loaded_config is not None:
        return _loaded_config

    config_data = {
        # --- Application Settings ---
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        # --- Reminder Settings ---
        "REMINDERS_ENABLED": _env_bool("REMINDERS_ENABLED", True),
        "REMINDER_LOOKAHEAD_MINUTES": _env_number(
            "REMINDER_LOOKAHEAD_MINUTES", 1440, int, 1
        ),
        "DEFAULT_REMINDER_OFFSETS": _env_offsets("DEFAULT_REMINDER_OFFSETS", "15"),
        "DEFAULT_SNOOZE_MINUTES": _env_number("DEFAULT_SNOOZE_MINUTES", 5, int, 1),
        "ALL_DAY_REMINDER_TIME": os.getenv("ALL_DAY_REMINDER_TIME", "00:00"),
        # --- Expansion / Timer Settings ---
        "MAX_OCCURRENCES_PER_EXPANSION": _env_number(
            "MAX_OCCURRENCES_PER_EXPANSION", 1000, int, 1
        ),
        "TIMER_POLL_INTERVAL_SECONDS": _env_number(
            "TIMER_POLL_INTERVAL_SECONDS", 0.5, float, 0.01
        ),
    }

    # --- Валидации (остаются как предупреждения при загрузке) ---
    if not config_data["REMINDERS_ENABLED"]:
        logger.warning(
            "REMINDERS_ENABLED is off. Events will be accepted but no reminders will fire."
        )
    if not config_data["DEFAULT_REMINDER_OFFSETS"]:
        logger.warning(
            "DEFAULT_REMINDER_OFFSETS is empty. Events without explicit offsets get no reminders."
        )

    _loaded_config = config_data
    logger.info("Application configuration loaded.")
    return _loaded_config


def reset_app_config() -> None:
    """Сбрасывает кэш конфигурации (нужно тестам, меняющим окружение)."""
    global _loaded_config
    _loaded_config = None
