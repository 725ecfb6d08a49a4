from datetime import date
from typing import Literal

from pydantic import BaseModel

from dutytrack.schemas.attendance import CAMEL_CONFIG

DayKind = Literal["worked", "approved_leave", "pending_leave", "absent", "weekend", "future"]


class MonthlyStat(BaseModel):
    model_config = CAMEL_CONFIG

    year: int
    month: int
    days_in_month: int
    business_days: int
    weekend_days: int
    past_business_days: int
    is_current_month: bool

    work_days: int
    leave_days: int
    pending_leave_days: int
    absent_days: int

    work_percentage: float
    leave_percentage: float
    pending_leave_percentage: float
    absent_percentage: float


class DailyStatus(BaseModel):
    model_config = CAMEL_CONFIG

    date: date
    status: DayKind
    leave_status: Literal["pending", "approved", "rejected"] | None = None
