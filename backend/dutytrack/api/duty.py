from fastapi import APIRouter, Depends, Query, status

from dutytrack.core.dependencies import get_duty_registry, get_store
from dutytrack.core.middleware import require_capability
from dutytrack.core.roles import Capability, Subject
from dutytrack.schemas.attendance import AttendanceHistoryEntry
from dutytrack.schemas.duty import (
    DutyEndResponse,
    DutyStartRequest,
    DutyStateResponse,
    LocationReport,
)
from dutytrack.services.duty import DutySession, DutySessionRegistry
from dutytrack.services.roster import attendance_history, duty_status_of
from dutytrack.store.base import DocumentStore

router = APIRouter()

_employee = require_capability(Capability.TRACK_DUTY)


async def _state_response(session: DutySession, store: DocumentStore) -> DutyStateResponse:
    history = await attendance_history(store, session.subject.id)
    open_session = next((h for h in history if h.is_open), None)
    return DutyStateResponse(
        state=session.state.value,
        duty_status=await duty_status_of(store, session.subject.id),
        session=open_session,
    )


@router.get("/status", response_model=DutyStateResponse, summary="Current duty state")
async def get_status(
    subject: Subject = Depends(_employee),
    registry: DutySessionRegistry = Depends(get_duty_registry),
    store: DocumentStore = Depends(get_store),
) -> DutyStateResponse:
    async with registry.use(subject) as session:
        return await _state_response(session, store)


@router.post(
    "/start",
    response_model=DutyStateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Go on duty (clock in) at the reported location",
)
async def start_duty(
    body: DutyStartRequest,
    subject: Subject = Depends(_employee),
    registry: DutySessionRegistry = Depends(get_duty_registry),
    store: DocumentStore = Depends(get_store),
) -> DutyStateResponse:
    async with registry.use(subject) as session:
        session.location.set_permission(body.location_permission)
        session.location.set_position(body.location)
        await session.start_duty()
        return await _state_response(session, store)


@router.post(
    "/location",
    response_model=DutyStateResponse,
    summary="Report the device position while on duty",
)
async def report_location(
    body: LocationReport,
    subject: Subject = Depends(_employee),
    registry: DutySessionRegistry = Depends(get_duty_registry),
    store: DocumentStore = Depends(get_store),
) -> DutyStateResponse:
    async with registry.use(subject) as session:
        # A client that reports positions has granted the permission
        session.location.set_permission(True)
        await session.resume_sampling()
        await session.location.report(body.location)
        return await _state_response(session, store)


@router.post("/end", response_model=DutyEndResponse, summary="Go off duty (clock out)")
async def end_duty(
    subject: Subject = Depends(_employee),
    registry: DutySessionRegistry = Depends(get_duty_registry),
) -> DutyEndResponse:
    async with registry.use(subject) as session:
        closed = await session.end_duty()
        return DutyEndResponse(state=session.state.value, closed_sessions=closed)


@router.get(
    "/history",
    response_model=list[AttendanceHistoryEntry],
    summary="Own attendance sessions, newest first",
)
async def get_history(
    limit: int = Query(default=50, ge=1, le=500),
    subject: Subject = Depends(_employee),
    store: DocumentStore = Depends(get_store),
) -> list[AttendanceHistoryEntry]:
    return await attendance_history(store, subject.id, limit)
