"""
Tests for authentication endpoints
"""
from fastapi import status
from jose import jwt

from ems.core.errors import ERRORS_BY_CODE
from ems.core.security import create_refresh_token
from ems.models import ActivityLog, Privilege
from ems.models.audit_log import ActivityAction
from ems.services.audit_service import audit_trail
from ems.tests.helpers import DEFAULT_PASSWORD, headers_for, make_account


def _login(client, email, password=DEFAULT_PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_login_success_embeds_privilege(client, hr_account):
    response = _login(client, "hr@example.com")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["token_type"] == "bearer"
    claims = jwt.get_unverified_claims(data["access_token"])
    assert claims["sub"] == hr_account.id
    assert claims["privilege"] == "hr"
    assert claims["type"] == "access"
    assert jwt.get_unverified_claims(data["refresh_token"])["type"] == "refresh"


def test_login_email_is_case_insensitive(client, hr_account):
    assert _login(client, "  HR@Example.com ").status_code == status.HTTP_200_OK


def test_login_wrong_password(client, hr_account):
    response = _login(client, "hr@example.com", "wrong-password")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "invalid_credentials"


def test_login_unknown_email(client, db):
    response = _login(client, "nobody@example.com")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "invalid_credentials"


def test_login_is_audited(client, db, hr_account):
    _login(client, "hr@example.com")
    assert audit_trail.flush() == 1
    entry = db.query(ActivityLog).one()
    assert entry.action == ActivityAction.USER_LOGIN.value
    assert entry.actor_id == hr_account.id
    assert entry.details["email"] == "hr@example.com"


def test_failed_login_is_not_audited(client, db, hr_account):
    _login(client, "hr@example.com", "wrong-password")
    assert audit_trail.flush() == 0


def test_register_creates_employee_without_claim_privilege(client, db):
    response = client.post("/api/v1/auth/register", json={"email": "New@Example.com", "password": "secret123"})
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["privilege"] == "employee"
    assert data["employee_id"] is None

    tokens = _login(client, "new@example.com", "secret123").json()
    assert "privilege" not in jwt.get_unverified_claims(tokens["access_token"])


def test_register_duplicate_email(client, hr_account):
    response = client.post("/api/v1/auth/register", json={"email": "hr@example.com", "password": "secret123"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_register_rejects_short_password(client, db):
    response = client.post("/api/v1/auth/register", json={"email": "a@example.com", "password": "123"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_refresh_fills_missing_privilege(client, db):
    account = make_account(db, "legacy@example.com", with_claim_metadata=False)
    tokens = _login(client, "legacy@example.com").json()
    assert "privilege" not in jwt.get_unverified_claims(tokens["access_token"])

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == status.HTTP_200_OK
    claims = jwt.get_unverified_claims(response.json()["access_token"])
    assert claims["privilege"] == "employee"
    db.refresh(account)
    assert account.app_metadata["privilege"] == "employee"


def test_refresh_rejects_access_token(client, hr_account):
    tokens = _login(client, "hr@example.com").json()
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "refresh_expired"


def test_refresh_rejects_expired_credential(client, hr_account):
    expired = create_refresh_token(hr_account.id, expires_minutes=-1)
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": expired})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "refresh_expired"


def test_refresh_for_deleted_account(client, db, hr_account):
    refresh_token = create_refresh_token(hr_account.id)
    db.delete(hr_account)
    db.commit()
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert response.json()["code"] == "refresh_expired"


def test_me_returns_authorization_record(client, hr_account, hr_headers):
    response = client.get("/api/v1/auth/me", headers=hr_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "id": hr_account.id,
        "email": "hr@example.com",
        "privilege": "hr",
        "employee_id": None,
    }


def test_me_with_expired_claim(client, hr_account):
    response = client.get("/api/v1/auth/me", headers=headers_for(hr_account, expires_minutes=-1))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "claim_expired"


def test_me_with_forged_claim(client, hr_account):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "invalid_credentials"


def test_me_employee_link(client, db, employee_e123):
    account = make_account(db, "linked@example.com", employee_id=employee_e123.id)
    response = client.get("/api/v1/auth/me/employee-link", headers=headers_for(account))
    assert response.json() == {"employee_id": employee_e123.id}


def test_logout_is_audited(client, db, hr_account, hr_headers):
    response = client.post("/api/v1/auth/logout", headers=hr_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    audit_trail.flush()
    entry = db.query(ActivityLog).one()
    assert entry.action == ActivityAction.USER_LOGOUT.value
    assert entry.actor_id == hr_account.id


def test_password_reset_flow(client, db, admin_headers, employee_account, reset_outbox):
    issued = client.post(f"/api/v1/accounts/{employee_account.id}/password-reset", headers=admin_headers)
    assert issued.status_code == status.HTTP_200_OK
    assert issued.json()["delivered_to"] == "x@example.com"

    [(email, token, _)] = reset_outbox
    assert email == "x@example.com"
    assert token not in issued.text

    confirm = client.post(
        "/api/v1/auth/password-reset/confirm",
        json={"token": token, "new_password": "brand-new-pass"},
    )
    assert confirm.status_code == status.HTTP_204_NO_CONTENT
    assert _login(client, "x@example.com").status_code == status.HTTP_401_UNAUTHORIZED
    assert _login(client, "x@example.com", "brand-new-pass").status_code == status.HTTP_200_OK

    # A used token no longer matches the stored hash
    reused = client.post(
        "/api/v1/auth/password-reset/confirm",
        json={"token": token, "new_password": "another-pass"},
    )
    assert reused.status_code == status.HTTP_401_UNAUTHORIZED


def test_employee_cannot_issue_password_reset(client, hr_account, employee_headers):
    response = client.post(f"/api/v1/accounts/{hr_account.id}/password-reset", headers=employee_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "authorization_denied"


def test_hr_cannot_reset_admin_password(client, admin_account, hr_headers, reset_outbox):
    response = client.post(f"/api/v1/accounts/{admin_account.id}/password-reset", headers=hr_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "authorization_denied"
    assert reset_outbox == []
    assert _login(client, "admin@example.com").status_code == status.HTTP_200_OK


def test_hr_cannot_reset_another_hr_password(client, db, hr_headers, reset_outbox):
    peer = make_account(db, "peer.hr@example.com", Privilege.HR)
    response = client.post(f"/api/v1/accounts/{peer.id}/password-reset", headers=hr_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert reset_outbox == []


def test_hr_resets_employee_password_out_of_band(client, employee_account, hr_headers, reset_outbox):
    response = client.post(f"/api/v1/accounts/{employee_account.id}/password-reset", headers=hr_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [email for email, _, _ in reset_outbox] == ["x@example.com"]
    assert reset_outbox[0][1] not in response.text


def test_error_codes_map_back_to_classes():
    assert ERRORS_BY_CODE["linkage_conflict"].status_code == 409
    assert ERRORS_BY_CODE["claim_expired"].status_code == 401
    assert ERRORS_BY_CODE["self_modification_rejected"].status_code == 400
