"""
Leave endpoints.

Tests:
  - test_request_and_list            : employee requests, sees it under /mine
  - test_admin_approves              : pending → approved, second decision → 409
  - test_reject_with_response        : adminResponse stored
  - test_duplicate_date              : second live request for a date → 400
  - test_role_checks                 : admin cannot request, employee cannot decide
  - test_other_company_not_found     : decisions are scoped to the admin's company
"""

from httpx import AsyncClient

from tests.conftest import auth_headers, create_user

LEAVE = {"leaveDate": "2030-01-15", "reason": "Family event", "leaveType": "sick_leave"}


async def request_leave(client: AsyncClient, headers: dict, **overrides) -> dict:
    resp = await client.post("/api/leaves/", json={**LEAVE, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRequestLeave:
    async def test_request_and_list(self, client: AsyncClient, employee_headers: dict, employee_user) -> None:
        leave = await request_leave(client, employee_headers)
        assert leave["status"] == "pending"
        assert leave["leaveType"] == "sick"
        assert leave["employeeId"] == str(employee_user.id)
        assert leave["employeeName"] == "Eve Employee"

        resp = await client.get("/api/leaves/mine", headers=employee_headers)
        assert resp.status_code == 200, resp.text
        assert [item["id"] for item in resp.json()] == [leave["id"]]

    async def test_blank_reason(self, client: AsyncClient, employee_headers: dict) -> None:
        resp = await client.post("/api/leaves/", json={**LEAVE, "reason": "  "}, headers=employee_headers)
        assert resp.status_code == 422, resp.text

    async def test_duplicate_date(self, client: AsyncClient, employee_headers: dict) -> None:
        await request_leave(client, employee_headers)
        resp = await client.post("/api/leaves/", json=LEAVE, headers=employee_headers)
        assert resp.status_code == 400, resp.text
        assert resp.json()["kind"] == "invalid_argument"


class TestDecideLeave:
    async def test_admin_approves(
        self, client: AsyncClient, employee_headers: dict, admin_headers: dict
    ) -> None:
        leave = await request_leave(client, employee_headers)

        pending = await client.get("/api/leaves/", params={"status": "pending"}, headers=admin_headers)
        assert [item["id"] for item in pending.json()] == [leave["id"]]

        resp = await client.post(f"/api/leaves/{leave['id']}/approve", headers=admin_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "approved"
        assert resp.json()["responseDate"] is not None

        again = await client.post(f"/api/leaves/{leave['id']}/reject", headers=admin_headers)
        assert again.status_code == 409, again.text
        assert again.json()["kind"] == "invalid_transition"

        mine = await client.get("/api/leaves/mine", headers=employee_headers)
        assert mine.json()[0]["status"] == "approved"

    async def test_reject_with_response(
        self, client: AsyncClient, employee_headers: dict, admin_headers: dict
    ) -> None:
        leave = await request_leave(client, employee_headers)
        resp = await client.post(
            f"/api/leaves/{leave['id']}/reject",
            json={"adminResponse": "Busy week"},
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "rejected"
        assert resp.json()["adminResponse"] == "Busy week"

    async def test_role_checks(
        self, client: AsyncClient, employee_headers: dict, admin_headers: dict
    ) -> None:
        resp = await client.post("/api/leaves/", json=LEAVE, headers=admin_headers)
        assert resp.status_code == 403, resp.text

        leave = await request_leave(client, employee_headers)
        resp = await client.post(f"/api/leaves/{leave['id']}/approve", headers=employee_headers)
        assert resp.status_code == 403, resp.text

        resp = await client.get("/api/leaves/", headers=employee_headers)
        assert resp.status_code == 403, resp.text

    async def test_other_company_not_found(
        self, client: AsyncClient, employee_headers: dict, sessionmaker
    ) -> None:
        leave = await request_leave(client, employee_headers)
        outsider = await create_user(sessionmaker, role="admin", company_name="Other Co")

        resp = await client.post(f"/api/leaves/{leave['id']}/approve", headers=auth_headers(outsider))
        assert resp.status_code == 404, resp.text
        assert resp.json()["kind"] == "not_found"

        listing = await client.get("/api/leaves/", headers=auth_headers(outsider))
        assert listing.json() == []

    async def test_missing_leave(self, client: AsyncClient, admin_headers: dict) -> None:
        resp = await client.post("/api/leaves/does-not-exist/approve", headers=admin_headers)
        assert resp.status_code == 404, resp.text
