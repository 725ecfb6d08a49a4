"""
Monthly attendance statistics.

Raw sessions and leave requests are loaded from the document store and
handed to the aggregator untouched; it skips records it cannot date.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dutytrack.core.clock import local_today
from dutytrack.core.dependencies import get_store
from dutytrack.core.errors import InvalidArgument, NotFound
from dutytrack.core.middleware import require_capability
from dutytrack.core.roles import Capability, Role, Subject
from dutytrack.db.models import User
from dutytrack.db.session import get_db
from dutytrack.schemas.stats import DailyStatus, MonthlyStat
from dutytrack.services.aggregator import classify_month, compute_monthly_stats
from dutytrack.store.base import ATTENDANCE, LEAVES, DocumentStore

router = APIRouter()


@router.get("/monthly", response_model=MonthlyStat, summary="Monthly attendance summary")
async def get_monthly_stats(
    employee_id: uuid.UUID | None = Query(default=None),
    year: int | None = Query(default=None),
    month: int | None = Query(default=None, description="1 = January"),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    subject: Subject = Depends(require_capability(Capability.VIEW_OWN_STATS)),
) -> MonthlyStat:
    today = local_today()
    y, m = _resolve_month(year, month, today)
    eid = await _resolve_employee_id(employee_id, subject, db)
    sessions, leaves = await _load_records(store, eid)
    return compute_monthly_stats(y, m, sessions, leaves, today)


@router.get(
    "/calendar",
    response_model=list[DailyStatus],
    summary="Per-day classification of a month",
)
async def get_calendar(
    employee_id: uuid.UUID | None = Query(default=None),
    year: int | None = Query(default=None),
    month: int | None = Query(default=None, description="1 = January"),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    subject: Subject = Depends(require_capability(Capability.VIEW_OWN_STATS)),
) -> list[DailyStatus]:
    today = local_today()
    y, m = _resolve_month(year, month, today)
    eid = await _resolve_employee_id(employee_id, subject, db)
    sessions, leaves = await _load_records(store, eid)
    return classify_month(y, m, sessions, leaves, today)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_month(year: int | None, month: int | None, today: date) -> tuple[int, int]:
    y = year if year is not None else today.year
    m = month if month is not None else today.month
    if not 1 <= m <= 12:
        raise InvalidArgument(f"month must be an integer in 1..12, got {m}")
    if (y, m) > (today.year, today.month):
        raise InvalidArgument("Statistics are not available for future months")
    return y, m


async def _resolve_employee_id(
    requested: uuid.UUID | None, subject: Subject, db: AsyncSession
) -> uuid.UUID:
    """
    Administrators may query any employee of their company.
    Employees always get their own ID.
    """
    if not subject.can(Capability.VIEW_COMPANY_STATS):
        return subject.id
    if requested is None:
        raise InvalidArgument("employee_id is required")
    user = await db.get(User, requested)
    if user is None or user.company_key != subject.company_key or user.role != Role.EMPLOYEE.value:
        raise NotFound("Employee not found")
    return user.id


async def _load_records(store: DocumentStore, employee_id: uuid.UUID) -> tuple[list[dict], list[dict]]:
    key = [("employeeId", "==", str(employee_id))]
    sessions = await store.query(ATTENDANCE, key)
    leaves = await store.query(LEAVES, key)
    return sessions, leaves
