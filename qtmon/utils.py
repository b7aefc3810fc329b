from datetime import datetime, date, time, timezone
from dateutil import tz


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def now_local(local_tz: str) -> datetime:
    return datetime.now(tz.gettz(local_tz))


def split_local(dt: datetime, local_tz: str) -> tuple[date, time]:
    """Local calendar date and naive time-of-day for an aware datetime."""
    loc = dt.astimezone(tz.gettz(local_tz))
    return loc.date(), loc.time().replace(tzinfo=None)


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def parse_time(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()
