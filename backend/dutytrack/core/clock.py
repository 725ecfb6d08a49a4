"""Wall-clock access, kept in one place so services can take it as a parameter."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter

from dutytrack.core.config import settings

_TIMESTAMP = TypeAdapter(datetime)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: datetime | None = None) -> date:
    """Calendar day of ``now`` in the configured business time zone."""
    now = now or utcnow()
    return now.astimezone(ZoneInfo(settings.TIMEZONE)).date()


def json_timestamp(value: datetime) -> str:
    """Serialize a timestamp exactly like the stored models do (``model_dump(mode="json")``)."""
    return _TIMESTAMP.dump_python(value, mode="json")


def parse_timestamp(value: str) -> datetime:
    return _TIMESTAMP.validate_python(value)
