import logging
from collections.abc import Callable
from datetime import datetime
from typing import Literal

from pydantic import ValidationError

from dutytrack.core.clock import json_timestamp, utcnow
from dutytrack.core.errors import InvalidArgument, NotFound, PermissionDenied, PreconditionFailed
from dutytrack.core.roles import Capability, Subject
from dutytrack.schemas.leave import LeaveCreate, LeaveRequest
from dutytrack.store.base import LEAVES, DocumentStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.min


def _require(subject: Subject, capability: Capability) -> None:
    if not subject.can(capability):
        raise PermissionDenied(f"{subject.role.value} may not {capability.value.replace('_', ' ')}")


class LeaveService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    async def request_leave(self, subject: Subject, body: LeaveCreate) -> LeaveRequest:
        _require(subject, Capability.REQUEST_LEAVE)
        if not subject.company_key:
            raise PreconditionFailed("Employee profile has no company")

        # One live request per employee and date keeps the monthly statistics unambiguous
        existing = await self._store.query(
            LEAVES,
            [
                ("employeeId", "==", str(subject.id)),
                ("leaveDate", "==", body.leave_date.isoformat()),
            ],
        )
        if any(doc.get("status", "pending") != "rejected" for doc in existing):
            raise InvalidArgument(f"A leave request for {body.leave_date} already exists")

        leave = LeaveRequest(
            employee_id=str(subject.id),
            employee_name=subject.display_name,
            company_key=subject.company_key,
            leave_date=body.leave_date,
            reason=body.reason,
            leave_type=body.leave_type,
            status="pending",
            timestamp=self._clock(),
        )
        leave.id = await self._store.add(LEAVES, leave.to_document())
        logger.info("Leave requested: %s by %s for %s", leave.id, subject.id, leave.leave_date)
        return leave

    async def list_own(self, subject: Subject) -> list[LeaveRequest]:
        docs = await self._store.query(LEAVES, [("employeeId", "==", str(subject.id))])
        return _newest_first(_parse_all(docs))

    async def list_company(
        self,
        subject: Subject,
        status: Literal["pending", "approved", "rejected"] | None = None,
    ) -> list[LeaveRequest]:
        _require(subject, Capability.VIEW_COMPANY_LEAVES)
        filters = [("companyKey", "==", subject.company_key)]
        if status is not None:
            filters.append(("status", "==", status))
        docs = await self._store.query(LEAVES, filters)
        return _newest_first(_parse_all(docs))

    async def approve(self, subject: Subject, leave_id: str, response: str | None = None) -> LeaveRequest:
        return await self._decide(subject, leave_id, "approved", response)

    async def reject(self, subject: Subject, leave_id: str, response: str | None = None) -> LeaveRequest:
        return await self._decide(subject, leave_id, "rejected", response)

    async def _decide(
        self,
        subject: Subject,
        leave_id: str,
        status: Literal["approved", "rejected"],
        response: str | None,
    ) -> LeaveRequest:
        _require(subject, Capability.DECIDE_LEAVE)

        doc = await self._store.get(LEAVES, leave_id)
        # Requests of other companies are reported as missing
        if doc is None or doc.get("companyKey") != subject.company_key:
            raise NotFound(f"Leave request {leave_id} not found")

        try:
            current = LeaveRequest.model_validate(doc)
        except ValidationError as exc:
            raise PreconditionFailed(f"Leave request {leave_id} is malformed") from exc

        decided = current.decide(status, (response or "").strip() or None, self._clock())
        await self._store.update(
            LEAVES,
            leave_id,
            {
                "status": decided.status,
                "adminResponse": decided.admin_response,
                "responseDate": json_timestamp(decided.response_date),
            },
        )
        logger.info("Leave %s %s by %s", leave_id, status, subject.id)
        return decided


def _parse_all(docs: list[dict]) -> list[LeaveRequest]:
    leaves = []
    for doc in docs:
        try:
            leaves.append(LeaveRequest.model_validate(doc))
        except ValidationError:
            logger.warning("Skipping malformed leave document %s", doc.get("id"))
    return leaves


def _newest_first(leaves: list[LeaveRequest]) -> list[LeaveRequest]:
    return sorted(
        leaves,
        key=lambda leave: (
            leave.timestamp.replace(tzinfo=None) if leave.timestamp else _EPOCH,
            leave.leave_date,
        ),
        reverse=True,
    )
