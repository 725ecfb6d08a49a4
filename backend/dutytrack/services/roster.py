import logging
import uuid
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dutytrack.core.errors import NotFound, PermissionDenied
from dutytrack.core.roles import Capability, Role, Subject
from dutytrack.db.models import User
from dutytrack.identity import IdentityProvider
from dutytrack.schemas.attendance import AttendanceHistoryEntry, AttendanceSession
from dutytrack.schemas.duty import DutyStatus
from dutytrack.schemas.user import EmployeeCreate, EmployeeDetail, EmployeeSummary, UserResponse
from dutytrack.store.base import ATTENDANCE, DUTY_STATUS, DocumentStore

logger = logging.getLogger(__name__)


def format_duration(start: datetime | None, end: datetime | None) -> str:
    """Human-readable session length: "2h 5m", "12m" or "40s"; "N/A" if unknown."""
    if start is None or end is None:
        return "N/A"
    seconds = int((end - start).total_seconds())
    if seconds < 0:
        return "N/A"
    if seconds < 60:
        return f"{seconds}s"
    hours, rem = divmod(seconds, 3600)
    minutes = rem // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def history_entry(session: AttendanceSession) -> AttendanceHistoryEntry:
    return AttendanceHistoryEntry(
        **session.model_dump(),
        state="in_progress" if session.is_open else "completed",
        duration=format_duration(session.start_time, session.end_time),
    )


async def attendance_history(
    store: DocumentStore, employee_id: uuid.UUID, limit: int | None = None
) -> list[AttendanceHistoryEntry]:
    """Attendance sessions of one employee, newest date first."""
    docs = await store.query(ATTENDANCE, [("employeeId", "==", str(employee_id))])
    sessions = []
    for doc in docs:
        try:
            sessions.append(AttendanceSession.model_validate(doc))
        except ValidationError:
            logger.warning("Skipping malformed attendance document %s", doc.get("id"))
    sessions.sort(key=lambda s: (s.date, s.start_time.replace(tzinfo=None)), reverse=True)
    if limit is not None:
        sessions = sessions[:limit]
    return [history_entry(s) for s in sessions]


async def duty_status_of(store: DocumentStore, employee_id: uuid.UUID) -> DutyStatus:
    doc = await store.get(DUTY_STATUS, str(employee_id))
    if doc is None:
        return DutyStatus()
    try:
        return DutyStatus.model_validate(doc)
    except ValidationError:
        logger.warning("Malformed duty status for %s; reporting off duty", employee_id)
        return DutyStatus()


class RosterService:
    def __init__(self, db: AsyncSession, identity: IdentityProvider, store: DocumentStore) -> None:
        self._db = db
        self._identity = identity
        self._store = store

    async def create_employee(self, admin: Subject, body: EmployeeCreate) -> User:
        _require_roster(admin)
        user = await self._identity.sign_up(
            body.email,
            body.password,
            role=Role.EMPLOYEE,
            full_name=body.full_name,
            company_name=admin.company_name,
            department=body.department,
        )
        logger.info("Employee %s added to company '%s' by %s", user.id, admin.company_key, admin.id)
        return user

    async def list_employees(self, admin: Subject) -> list[EmployeeSummary]:
        _require_roster(admin)
        result = await self._db.execute(
            select(User)
            .where(User.company_key == admin.company_key, User.role == Role.EMPLOYEE.value)
            .order_by(User.full_name)
        )
        summaries = []
        for user in result.scalars().all():
            status = await duty_status_of(self._store, user.id)
            summaries.append(
                EmployeeSummary(
                    **UserResponse.model_validate(user).model_dump(),
                    duty_status=status,
                )
            )
        return summaries

    async def get_employee(self, admin: Subject, employee_id: uuid.UUID) -> User:
        _require_roster(admin)
        user = await self._db.get(User, employee_id)
        if user is None or user.company_key != admin.company_key or user.role != Role.EMPLOYEE.value:
            raise NotFound("Employee not found")
        return user

    async def employee_detail(
        self, admin: Subject, employee_id: uuid.UUID, history_limit: int
    ) -> EmployeeDetail:
        user = await self.get_employee(admin, employee_id)
        return EmployeeDetail(
            **UserResponse.model_validate(user).model_dump(),
            duty_status=await duty_status_of(self._store, user.id),
            attendance_history=await attendance_history(self._store, user.id, history_limit),
        )


def _require_roster(subject: Subject) -> None:
    if not subject.can(Capability.MANAGE_ROSTER):
        raise PermissionDenied("Only administrators can manage employees")
