from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Stored documents and API payloads share camelCase field names
CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AttendanceSession(BaseModel):
    model_config = CAMEL_CONFIG

    id: str | None = None
    employee_id: str
    employee_name: str
    company_key: str
    date: date
    start_time: datetime
    end_time: datetime | None = None
    location: Coordinate | None = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class AttendanceHistoryEntry(AttendanceSession):
    state: str
    duration: str
