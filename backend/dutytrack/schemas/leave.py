from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from dutytrack.core.errors import InvalidTransition
from dutytrack.schemas.attendance import CAMEL_CONFIG

LeaveType = Literal["sick", "personal", "holiday", "other"]
LeaveStatus = Literal["pending", "approved", "rejected"]

# Spellings used by older mobile clients
_LEAVE_TYPE_ALIASES = {
    "sick_leave": "sick",
    "personal_leave": "personal",
    "govt_holiday": "holiday",
}


def _normalize_leave_type(value):
    if isinstance(value, str):
        value = value.strip().lower()
        if not value:
            return None
        return _LEAVE_TYPE_ALIASES.get(value, value)
    return value


class LeaveRequest(BaseModel):
    model_config = CAMEL_CONFIG

    id: str | None = None
    employee_id: str
    employee_name: str
    company_key: str
    leave_date: date
    reason: str
    leave_type: LeaveType | None = None
    status: LeaveStatus = "pending"
    admin_response: str | None = None
    response_date: datetime | None = None
    timestamp: datetime | None = None

    normalize_leave_type = field_validator("leave_type", mode="before")(_normalize_leave_type)

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def decide(
        self,
        status: Literal["approved", "rejected"],
        response: str | None,
        at: datetime,
    ) -> "LeaveRequest":
        """Return the decided copy; a request leaves ``pending`` exactly once."""
        if self.is_terminal:
            raise InvalidTransition(
                f"Leave request {self.id} is already {self.status}"
            )
        return self.model_copy(
            update={"status": status, "admin_response": response, "response_date": at}
        )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class LeaveCreate(BaseModel):
    model_config = CAMEL_CONFIG

    leave_date: date
    reason: str = Field(..., min_length=1, max_length=1000)
    leave_type: LeaveType | None = None

    normalize_leave_type = field_validator("leave_type", mode="before")(_normalize_leave_type)

    @field_validator("reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason must not be empty")
        return v.strip()


class LeaveDecision(BaseModel):
    model_config = CAMEL_CONFIG

    admin_response: str | None = Field(default=None, max_length=1000)
