"""
Leave workflow tests (service level, in-memory store).

Tests:
  - TestRequestLeave : creation, type aliases, duplicates, capability check
  - TestDecide       : approve / reject once, company isolation, malformed docs
  - TestListing      : newest first, status filter
"""

import uuid
from datetime import date

import pytest
from pydantic import ValidationError

from dutytrack.core.clock import json_timestamp
from dutytrack.core.errors import (
    InvalidArgument,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PreconditionFailed,
)
from dutytrack.core.roles import Administrator, Employee
from dutytrack.schemas.leave import LeaveCreate
from dutytrack.services.leaves import LeaveService
from dutytrack.store.base import LEAVES


def make_employee(company: str = "acme corp") -> Employee:
    return Employee(
        id=uuid.uuid4(),
        email=f"{uuid.uuid4().hex[:6]}@example.com",
        full_name="Eve Employee",
        company_name=company.title(),
        company_key=company,
    )


def make_admin(company: str = "acme corp") -> Administrator:
    return Administrator(
        id=uuid.uuid4(),
        email="ada@example.com",
        full_name="Ada Admin",
        company_name=company.title(),
        company_key=company,
    )


@pytest.fixture
def leaves(memory_store, clock) -> LeaveService:
    return LeaveService(memory_store, clock)


def body(day: str = "2024-02-20", reason: str = "Family event", leave_type: str | None = None) -> LeaveCreate:
    return LeaveCreate(leave_date=day, reason=reason, leave_type=leave_type)


class TestRequestLeave:
    async def test_request_is_pending_and_stored(self, leaves, memory_store, clock) -> None:
        employee = make_employee()
        leave = await leaves.request_leave(employee, body())
        assert leave.status == "pending"
        assert leave.timestamp == clock()

        stored = await memory_store.get(LEAVES, leave.id)
        assert stored["employeeId"] == str(employee.id)
        assert stored["companyKey"] == "acme corp"
        assert stored["leaveDate"] == "2024-02-20"
        assert stored["status"] == "pending"

    def test_legacy_type_spellings_are_normalized(self) -> None:
        assert body(leave_type="sick_leave").leave_type == "sick"
        assert body(leave_type="GOVT_HOLIDAY").leave_type == "holiday"
        assert body(leave_type="").leave_type is None

    def test_blank_reason_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            body(reason="   ")

    async def test_admin_cannot_request_leave(self, leaves) -> None:
        with pytest.raises(PermissionDenied):
            await leaves.request_leave(make_admin(), body())

    async def test_employee_without_company(self, leaves) -> None:
        with pytest.raises(PreconditionFailed):
            await leaves.request_leave(make_employee(company=""), body())

    async def test_duplicate_live_request_is_refused(self, leaves) -> None:
        employee = make_employee()
        await leaves.request_leave(employee, body())
        with pytest.raises(InvalidArgument):
            await leaves.request_leave(employee, body())

    async def test_new_request_allowed_after_rejection(self, leaves) -> None:
        employee, admin = make_employee(), make_admin()
        first = await leaves.request_leave(employee, body())
        await leaves.reject(admin, first.id)
        second = await leaves.request_leave(employee, body())
        assert second.id != first.id


class TestDecide:
    async def test_approve_sets_response_and_date(self, leaves, memory_store, clock) -> None:
        leave = await leaves.request_leave(make_employee(), body())
        clock.advance(hours=2)
        decided = await leaves.approve(make_admin(), leave.id, "  Enjoy  ")

        assert decided.status == "approved"
        assert decided.admin_response == "Enjoy"
        assert decided.response_date == clock()
        stored = await memory_store.get(LEAVES, leave.id)
        assert stored["status"] == "approved"
        assert stored["responseDate"] == json_timestamp(clock())

    async def test_reject_twice_fails_and_keeps_first_decision(self, leaves, memory_store) -> None:
        admin = make_admin()
        leave = await leaves.request_leave(make_employee(), body())
        await leaves.reject(admin, leave.id, "Busy week")

        with pytest.raises(InvalidTransition):
            await leaves.reject(admin, leave.id, "Again")
        with pytest.raises(InvalidTransition):
            await leaves.approve(admin, leave.id)

        stored = await memory_store.get(LEAVES, leave.id)
        assert stored["status"] == "rejected"
        assert stored["adminResponse"] == "Busy week"

    async def test_other_company_request_is_not_found(self, leaves) -> None:
        leave = await leaves.request_leave(make_employee("other co"), body())
        with pytest.raises(NotFound):
            await leaves.approve(make_admin(), leave.id)

    async def test_missing_request_is_not_found(self, leaves) -> None:
        with pytest.raises(NotFound):
            await leaves.approve(make_admin(), "does-not-exist")

    async def test_employee_cannot_decide(self, leaves) -> None:
        employee = make_employee()
        leave = await leaves.request_leave(employee, body())
        with pytest.raises(PermissionDenied):
            await leaves.approve(employee, leave.id)

    async def test_malformed_document(self, leaves, memory_store) -> None:
        await memory_store.set(LEAVES, "bad", {"companyKey": "acme corp", "status": "pending"})
        with pytest.raises(PreconditionFailed):
            await leaves.approve(make_admin(), "bad")


class TestListing:
    async def test_own_requests_newest_first(self, leaves, clock) -> None:
        employee = make_employee()
        await leaves.request_leave(employee, body("2024-02-20"))
        clock.advance(minutes=1)
        await leaves.request_leave(employee, body("2024-02-21"))
        await leaves.request_leave(make_employee(), body("2024-02-22"))

        own = await leaves.list_own(employee)
        assert [leave.leave_date for leave in own] == [date(2024, 2, 21), date(2024, 2, 20)]

    async def test_company_listing_with_status_filter(self, leaves, memory_store) -> None:
        admin = make_admin()
        first = await leaves.request_leave(make_employee(), body("2024-02-20"))
        await leaves.request_leave(make_employee(), body("2024-02-21"))
        await leaves.request_leave(make_employee("other co"), body("2024-02-22"))
        await leaves.approve(admin, first.id)

        assert len(await leaves.list_company(admin)) == 2
        approved = await leaves.list_company(admin, "approved")
        assert [leave.id for leave in approved] == [first.id]
        pending = await leaves.list_company(admin, "pending")
        assert len(pending) == 1

    async def test_malformed_documents_are_skipped(self, leaves, memory_store) -> None:
        admin = make_admin()
        await memory_store.set(LEAVES, "bad", {"companyKey": "acme corp"})
        await leaves.request_leave(make_employee(), body())
        assert len(await leaves.list_company(admin)) == 1

    async def test_employee_cannot_list_company(self, leaves) -> None:
        with pytest.raises(PermissionDenied):
            await leaves.list_company(make_employee())
