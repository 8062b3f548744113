"""
Tests for leave request endpoints
"""
from fastapi import status

from ems.models import ActivityLog, LeaveRequest, Privilege
from ems.models.audit_log import ActivityAction
from ems.services.audit_service import audit_trail
from ems.tests.helpers import headers_for, make_account


def _leave_payload(employee_id, start="2024-05-06", end="2024-05-08", leave_type="annual"):
    return {
        "employee_id": employee_id,
        "leave_type": leave_type,
        "start_date": start,
        "end_date": end,
        "reason": "Holiday",
    }


def _link(client, admin_headers, account_id, employee_id):
    response = client.put(
        f"/api/v1/accounts/{account_id}/employee",
        json={"employee_id": employee_id},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK


def test_linked_employee_reads_and_creates_own_leaves(
    client, db, admin_headers, employee_account, employee_headers, employee_e123, other_employee
):
    _link(client, admin_headers, employee_account.id, employee_e123.id)

    response = client.get("/api/v1/leaves", params={"employee_id": employee_e123.id}, headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []

    response = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=employee_headers)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "pending"
    assert data["days_count"] == 3

    response = client.get("/api/v1/leaves", params={"employee_id": employee_e123.id}, headers=employee_headers)
    assert [leave["id"] for leave in response.json()] == [data["id"]]

    response = client.get(f"/api/v1/leaves/{data['id']}", headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK


def test_linked_employee_denied_for_other_employee(
    client, admin_headers, employee_account, employee_headers, employee_e123, other_employee
):
    _link(client, admin_headers, employee_account.id, employee_e123.id)

    response = client.get("/api/v1/leaves", params={"employee_id": other_employee.id}, headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "authorization_denied"

    response = client.post("/api/v1/leaves", json=_leave_payload(other_employee.id), headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unscoped_listing_is_denied_for_employee(client, admin_headers, employee_account, employee_headers, employee_e123):
    _link(client, admin_headers, employee_account.id, employee_e123.id)
    response = client.get("/api/v1/leaves", headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unlinked_employee_cannot_create_leave(client, employee_headers, employee_e123):
    response = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_foreign_leave_is_denied_not_hidden(client, db, admin_headers, hr_headers, employee_account, employee_headers, employee_e123, other_employee):
    _link(client, admin_headers, employee_account.id, employee_e123.id)
    created = client.post("/api/v1/leaves", json=_leave_payload(other_employee.id), headers=hr_headers).json()

    response = client.get(f"/api/v1/leaves/{created['id']}", headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get("/api/v1/leaves/does-not-exist", headers=employee_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_hr_lists_all_and_approves(client, db, hr_headers, hr_account, employee_e123, other_employee):
    first = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=hr_headers).json()
    client.post("/api/v1/leaves", json=_leave_payload(other_employee.id, "2024-06-03", "2024-06-03"), headers=hr_headers)

    response = client.get("/api/v1/leaves", headers=hr_headers)
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 2

    response = client.post(f"/api/v1/leaves/{first['id']}/decision", json={"status": "approved"}, headers=hr_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "approved"
    assert data["decided_by"] == hr_account.id
    assert data["decided_at"].endswith("Z")

    response = client.get("/api/v1/leaves", params={"status": "pending"}, headers=hr_headers)
    assert len(response.json()) == 1

    audit_trail.flush()
    actions = {entry.action for entry in db.query(ActivityLog).all()}
    assert ActivityAction.LEAVE_REQUESTED.value in actions
    assert ActivityAction.LEAVE_APPROVED.value in actions


def test_decision_only_on_pending(client, hr_headers, employee_e123):
    leave = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=hr_headers).json()
    url = f"/api/v1/leaves/{leave['id']}/decision"

    assert client.post(url, json={"status": "cancelled"}, headers=hr_headers).status_code == status.HTTP_200_OK
    response = client.post(url, json={"status": "approved"}, headers=hr_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_reject_requires_reason(client, hr_headers, employee_e123):
    leave = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=hr_headers).json()
    url = f"/api/v1/leaves/{leave['id']}/decision"

    response = client.post(url, json={"status": "rejected"}, headers=hr_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post(url, json={"status": "rejected", "rejection_reason": "Peak season"}, headers=hr_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["rejection_reason"] == "Peak season"


def test_employee_cannot_decide_own_leave(client, db, admin_headers, employee_account, employee_headers, employee_e123):
    _link(client, admin_headers, employee_account.id, employee_e123.id)
    leave = client.post("/api/v1/leaves", json=_leave_payload(employee_e123.id), headers=employee_headers).json()

    response = client.post(f"/api/v1/leaves/{leave['id']}/decision", json={"status": "approved"}, headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert db.get(LeaveRequest, leave["id"]).status == "pending"


def test_end_before_start_is_rejected(client, hr_headers, employee_e123):
    response = client.post(
        "/api/v1/leaves",
        json=_leave_payload(employee_e123.id, start="2024-05-08", end="2024-05-06"),
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_leave_for_missing_employee(client, hr_headers):
    response = client.post("/api/v1/leaves", json=_leave_payload("missing"), headers=hr_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "employee_not_found"


def test_privilege_comes_from_claim_not_store(client, db, employee_e123):
    """An account promoted in the store keeps its old claim until it refreshes"""
    account = make_account(db, "promoted@example.com", Privilege.EMPLOYEE, employee_id=employee_e123.id)
    stale_headers = headers_for(account)
    account.privilege = Privilege.HR.value
    db.commit()

    response = client.get("/api/v1/leaves", headers=stale_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
