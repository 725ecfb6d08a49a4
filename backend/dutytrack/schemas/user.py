from uuid import UUID

from pydantic import BaseModel, Field

from dutytrack.schemas.attendance import CAMEL_CONFIG, AttendanceHistoryEntry
from dutytrack.schemas.duty import DutyStatus


class EmployeeCreate(BaseModel):
    model_config = CAMEL_CONFIG

    email: str
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)
    department: str | None = None


class UserResponse(BaseModel):
    model_config = {**CAMEL_CONFIG, "from_attributes": True}

    id: UUID
    email: str
    role: str
    full_name: str | None
    company_name: str | None
    department: str | None
    is_active: bool


class EmployeeSummary(UserResponse):
    duty_status: DutyStatus


class EmployeeDetail(EmployeeSummary):
    attendance_history: list[AttendanceHistoryEntry]
