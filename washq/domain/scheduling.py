from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

DEFAULT_ETA_MINUTES = 60
TOKEN_SEQUENCE_WIDTH = 3


def day_start(now: datetime) -> datetime:
    """Midnight of `now`'s calendar day, in whatever clock `now` was read from."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def format_token(now: datetime, jobs_today: int, width: int = TOKEN_SEQUENCE_WIDTH) -> str:
    """
    Builds a YYYYMMDD-NNN token for the next job of the day.

    `jobs_today` is how many jobs the business already created since midnight,
    so the first job of the day is 001. Past 999 the sequence simply grows a
    digit (20241215-1000) rather than wrapping.
    """
    sequence = str(jobs_today + 1).zfill(width)
    return f"{day_start(now):%Y%m%d}-{sequence}"


def _max_time(service: Any) -> Optional[int]:
    if isinstance(service, dict):
        return service.get("max_time", service.get("maxTime"))
    return getattr(service, "max_time", None)


def compute_eta(
    services: Iterable[Any],
    now: datetime,
    default_minutes: int = DEFAULT_ETA_MINUTES,
) -> datetime:
    """
    Estimated delivery for a job started at `now`.

    With no services the shop default applies. Otherwise it is the sum of
    each service's max_time in minutes; a service without max_time adds 0.
    Accepts ORM rows, ServiceSnapshot objects or plain dicts.
    """
    services = list(services or [])
    if not services:
        return now + timedelta(minutes=default_minutes)

    total_minutes = sum(_max_time(s) or 0 for s in services)
    return now + timedelta(minutes=total_minutes)
