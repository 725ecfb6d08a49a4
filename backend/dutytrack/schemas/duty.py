from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from dutytrack.schemas.attendance import CAMEL_CONFIG, AttendanceSession, Coordinate


class DutyStatus(BaseModel):
    model_config = CAMEL_CONFIG

    is_active: bool = False
    status: Literal["on_duty", "off_duty"] = "off_duty"
    current_location: Coordinate | None = None
    last_updated: datetime | None = None
    employee_name: str | None = None
    company_key: str | None = None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class DutyStartRequest(BaseModel):
    model_config = CAMEL_CONFIG

    location: Coordinate
    location_permission: bool = True


class LocationReport(BaseModel):
    model_config = CAMEL_CONFIG

    location: Coordinate


class DutyStateResponse(BaseModel):
    model_config = CAMEL_CONFIG

    state: Literal["on_duty", "off_duty"]
    duty_status: DutyStatus
    session: AttendanceSession | None = None


class DutyEndResponse(BaseModel):
    model_config = CAMEL_CONFIG

    state: Literal["on_duty", "off_duty"]
    closed_sessions: int
