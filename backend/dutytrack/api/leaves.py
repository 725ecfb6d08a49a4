from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from dutytrack.core.dependencies import get_leave_service
from dutytrack.core.middleware import get_current_subject, require_capability
from dutytrack.core.roles import Capability, Subject
from dutytrack.schemas.leave import LeaveCreate, LeaveDecision, LeaveRequest
from dutytrack.services.leaves import LeaveService

router = APIRouter()


@router.post(
    "/",
    response_model=LeaveRequest,
    status_code=status.HTTP_201_CREATED,
    summary="Request a day of leave",
)
async def request_leave(
    body: LeaveCreate,
    leaves: LeaveService = Depends(get_leave_service),
    subject: Subject = Depends(require_capability(Capability.REQUEST_LEAVE)),
) -> LeaveRequest:
    return await leaves.request_leave(subject, body)


@router.get("/mine", response_model=list[LeaveRequest], summary="Own leave requests, newest first")
async def list_my_leaves(
    leaves: LeaveService = Depends(get_leave_service),
    subject: Subject = Depends(get_current_subject),
) -> list[LeaveRequest]:
    return await leaves.list_own(subject)


@router.get("/", response_model=list[LeaveRequest], summary="Leave requests of the company")
async def list_company_leaves(
    status_filter: Literal["pending", "approved", "rejected"] | None = Query(
        default=None, alias="status"
    ),
    leaves: LeaveService = Depends(get_leave_service),
    admin: Subject = Depends(require_capability(Capability.VIEW_COMPANY_LEAVES)),
) -> list[LeaveRequest]:
    return await leaves.list_company(admin, status_filter)


@router.post("/{leave_id}/approve", response_model=LeaveRequest, summary="Approve a pending leave request")
async def approve_leave(
    leave_id: str,
    body: LeaveDecision | None = None,
    leaves: LeaveService = Depends(get_leave_service),
    admin: Subject = Depends(require_capability(Capability.DECIDE_LEAVE)),
) -> LeaveRequest:
    return await leaves.approve(admin, leave_id, body.admin_response if body else None)


@router.post("/{leave_id}/reject", response_model=LeaveRequest, summary="Reject a pending leave request")
async def reject_leave(
    leave_id: str,
    body: LeaveDecision | None = None,
    leaves: LeaveService = Depends(get_leave_service),
    admin: Subject = Depends(require_capability(Capability.DECIDE_LEAVE)),
) -> LeaveRequest:
    return await leaves.reject(admin, leave_id, body.admin_response if body else None)
