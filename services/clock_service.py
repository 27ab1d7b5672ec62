import datetime

from .interfaces import IClock


class SystemClock(IClock):
    """Часы на основе системного локального времени."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now()

    def today(self) -> datetime.date:
        return datetime.date.today()
