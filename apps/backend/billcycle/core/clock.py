from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from .config import settings


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "America/Sao_Paulo"))
except Exception:
    LOCAL_ZONE = ZoneInfo("America/Sao_Paulo")


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


class SystemClock:
    def now(self) -> datetime:
        return now_local_naive()


class FixedClock:
    """Clock pinned to a single instant; used by tests and replays."""

    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


def get_clock() -> SystemClock:
    return SystemClock()
