import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dutytrack.core.config import settings
from dutytrack.core.dependencies import get_identity, get_store
from dutytrack.core.middleware import get_current_user, require_capability
from dutytrack.core.roles import Capability, Subject
from dutytrack.db.models import User
from dutytrack.db.session import get_db
from dutytrack.identity import IdentityProvider
from dutytrack.schemas.attendance import AttendanceHistoryEntry
from dutytrack.schemas.user import EmployeeCreate, EmployeeDetail, EmployeeSummary, UserResponse
from dutytrack.services.roster import RosterService, attendance_history
from dutytrack.store.base import DocumentStore

router = APIRouter()


async def _roster(
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
) -> RosterService:
    return RosterService(db, identity, store)


@router.get("/me", response_model=UserResponse, summary="Current authenticated user profile")
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an employee account in the administrator's company",
)
async def create_employee(
    body: EmployeeCreate,
    roster: RosterService = Depends(_roster),
    admin: Subject = Depends(require_capability(Capability.MANAGE_ROSTER)),
) -> UserResponse:
    user = await roster.create_employee(admin, body)
    return UserResponse.model_validate(user)


@router.get(
    "/",
    response_model=list[EmployeeSummary],
    summary="Employees of the company with their current duty status",
)
async def list_employees(
    roster: RosterService = Depends(_roster),
    admin: Subject = Depends(require_capability(Capability.MANAGE_ROSTER)),
) -> list[EmployeeSummary]:
    return await roster.list_employees(admin)


@router.get(
    "/{employee_id}",
    response_model=EmployeeDetail,
    summary="Employee profile, live status and recent work history",
)
async def get_employee(
    employee_id: uuid.UUID,
    roster: RosterService = Depends(_roster),
    admin: Subject = Depends(require_capability(Capability.MANAGE_ROSTER)),
) -> EmployeeDetail:
    return await roster.employee_detail(admin, employee_id, settings.ATTENDANCE_HISTORY_LIMIT)


@router.get(
    "/{employee_id}/attendance",
    response_model=list[AttendanceHistoryEntry],
    summary="Attendance sessions of an employee, newest first",
)
async def get_employee_attendance(
    employee_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=500),
    roster: RosterService = Depends(_roster),
    store: DocumentStore = Depends(get_store),
    admin: Subject = Depends(require_capability(Capability.MANAGE_ROSTER)),
) -> list[AttendanceHistoryEntry]:
    user = await roster.get_employee(admin, employee_id)
    return await attendance_history(store, user.id, limit)
