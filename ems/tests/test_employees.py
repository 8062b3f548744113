"""
Tests for employee endpoints
"""
from fastapi import status

from ems.models import Account, Employee
from ems.tests.helpers import make_account


def _payload(number="E900", email="new.person@example.com"):
    return {
        "employee_number": number,
        "first_name": "New",
        "last_name": "Person",
        "email": email,
        "position": "Analyst",
    }


def test_any_signed_in_account_can_list_employees(client, employee_headers, employee_e123, other_employee):
    response = client.get("/api/v1/employees", headers=employee_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [e["employee_number"] for e in response.json()] == ["E123", "E456"]


def test_list_requires_claim(client, employee_e123):
    response = client.get("/api/v1/employees")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_search_employees(client, hr_headers, employee_e123, other_employee):
    response = client.get("/api/v1/employees", params={"search": "ORT"}, headers=hr_headers)
    assert [e["employee_number"] for e in response.json()] == ["E456"]


def test_hr_creates_employee(client, hr_headers):
    response = client.post("/api/v1/employees", json=_payload(email=" New.Person@Example.com "), headers=hr_headers)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "new.person@example.com"
    assert data["status"] == "active"


def test_duplicate_employee_number(client, hr_headers, employee_e123):
    response = client.post("/api/v1/employees", json=_payload(number="E123"), headers=hr_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_invalid_email_is_rejected(client, hr_headers):
    response = client.post("/api/v1/employees", json=_payload(email="not-an-email"), headers=hr_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_employee_cannot_create_employee(client, employee_headers):
    response = client.post("/api/v1/employees", json=_payload(), headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_employee(client, hr_headers, employee_e123):
    response = client.patch(
        f"/api/v1/employees/{employee_e123.id}",
        json={"position": "Lead Engineer", "status": "on-leave"},
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["position"] == "Lead Engineer"
    assert response.json()["status"] == "on-leave"


def test_hr_cannot_delete_employee(client, hr_headers, employee_e123):
    response = client.delete(f"/api/v1/employees/{employee_e123.id}", headers=hr_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_delete_employee_keeps_linked_account(client, db, admin_headers, employee_e123):
    account = make_account(db, "linked@example.com", employee_id=employee_e123.id)
    employee_id = employee_e123.id

    response = client.delete(f"/api/v1/employees/{employee_id}", headers=admin_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    db.expire_all()
    assert db.get(Employee, employee_id) is None
    assert db.get(Account, account.id).employee_id is None


def test_get_missing_employee(client, employee_headers):
    response = client.get("/api/v1/employees/missing", headers=employee_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "employee_not_found"
