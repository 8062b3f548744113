"""
Tests for the audit trail
"""
import threading
from contextlib import contextmanager
from datetime import date

import pytest
from fastapi import status

from ems.core.errors import AuthorizationDenied
from ems.models import ActivityLog, LeaveRequest, Privilege
from ems.models.audit_log import ActivityAction, EntityType
from ems.policy import ClaimContext
from ems.services.audit_service import AuditEntry, AuditTrail, audit_trail, list_activity
from ems.tests.helpers import headers_for, make_account


class RecordingSession:
    def __init__(self, written, committed):
        self.written = written
        self.committed = committed
        self.pending = []

    def add_all(self, items):
        self.pending.extend(items)

    def commit(self):
        self.written.extend(self.pending)
        self.committed.set()

    def rollback(self):
        self.pending = []


def _recording_scope():
    written = []
    committed = threading.Event()

    @contextmanager
    def scope():
        yield RecordingSession(written, committed)

    return scope, written, committed


def _failing_scope(calls):
    @contextmanager
    def scope():
        calls.append(1)
        raise ConnectionError("audit store unavailable")
        yield

    return scope


def test_build_normalizes_inputs():
    entry = AuditEntry.build(42, "user_login", "user", entity_id=7, details={"on": date(2024, 1, 2)})
    assert entry.actor_id == "42"
    assert entry.action == ActivityAction.USER_LOGIN
    assert entry.entity_type == EntityType.USER
    assert entry.entity_id == "7"
    assert entry.details == {"on": "2024-01-02"}


def test_malformed_entry_is_dropped_without_raising():
    trail = AuditTrail(session_scope=_recording_scope()[0], maxsize=10, max_attempts=1)
    trail.record("acc-1", "not_an_action", "user")
    trail.record("acc-1", ActivityAction.USER_LOGIN, "spaceship")
    trail.record_many([{"actor_id": "acc-1", "action": "bogus", "entity_type": "user"}])
    assert trail.pending() == 0


def test_failed_write_is_retried_then_dropped():
    calls = []
    trail = AuditTrail(session_scope=_failing_scope(calls), maxsize=10, max_attempts=3)

    trail.record("acc-1", ActivityAction.USER_LOGIN, EntityType.USER)
    assert trail.flush() == 0

    assert len(calls) == 3
    assert trail.pending() == 0


def test_full_queue_drops_entries():
    trail = AuditTrail(session_scope=_recording_scope()[0], maxsize=1, max_attempts=1)
    trail.record("acc-1", ActivityAction.USER_LOGIN, EntityType.USER)
    trail.record("acc-1", ActivityAction.USER_LOGOUT, EntityType.USER)
    assert trail.pending() == 1


def test_worker_writes_in_background():
    scope, written, committed = _recording_scope()
    trail = AuditTrail(session_scope=scope, maxsize=10, max_attempts=1)
    trail.start()
    try:
        trail.record("acc-1", ActivityAction.USER_LOGIN, EntityType.USER, entity_id="acc-1")
        assert committed.wait(timeout=5)
    finally:
        trail.stop()
    assert [e.action for e in written] == [ActivityAction.USER_LOGIN.value]
    assert trail.pending() == 0


def test_stop_writes_remaining_entries():
    scope, written, _ = _recording_scope()
    trail = AuditTrail(session_scope=scope, maxsize=10, max_attempts=1)
    trail.record_many([
        AuditEntry.build("acc-1", ActivityAction.LEAVE_REQUESTED, EntityType.LEAVE),
        AuditEntry.build("acc-1", ActivityAction.LEAVE_APPROVED, EntityType.LEAVE),
    ])
    trail.stop()
    assert len(written) == 2


def test_unknown_actor_write_fails_quietly(db, admin_account):
    audit_trail.record("no-such-account", ActivityAction.USER_LOGIN, EntityType.USER)
    assert audit_trail.flush() == 0
    assert db.query(ActivityLog).count() == 0


def test_batch_is_all_or_nothing(db, admin_account):
    audit_trail.record_many([
        {"actor_id": admin_account.id, "action": "user_login", "entity_type": "user"},
        {"actor_id": "no-such-account", "action": "user_logout", "entity_type": "user"},
    ])
    assert audit_trail.flush() == 0
    assert db.query(ActivityLog).count() == 0


def test_operation_succeeds_during_audit_outage(client, db, employee_e123, monkeypatch):
    account = make_account(db, "x@example.com", employee_id=employee_e123.id)
    calls = []
    monkeypatch.setattr(audit_trail, "session_scope", _failing_scope(calls))

    response = client.post(
        "/api/v1/leaves",
        json={
            "employee_id": employee_e123.id,
            "leave_type": "annual",
            "start_date": "2024-03-04",
            "end_date": "2024-03-06",
            "reason": "Family trip",
        },
        headers=headers_for(account),
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["days_count"] == 3
    assert audit_trail.flush() == 0
    assert calls
    assert db.query(LeaveRequest).count() == 1
    assert db.query(ActivityLog).count() == 0


def test_list_activity_is_admin_only(db, admin_account, hr_account):
    audit_trail.record(admin_account.id, ActivityAction.USER_LOGIN, EntityType.USER)
    audit_trail.flush()

    admin_ctx = ClaimContext(admin_account.id, Privilege.ADMIN)
    assert [e.actor_id for e in list_activity(db, admin_ctx)] == [admin_account.id]

    with pytest.raises(AuthorizationDenied):
        list_activity(db, ClaimContext(hr_account.id, Privilege.HR))


def test_activity_endpoints(client, db, admin_headers, admin_account, employee_headers, employee_account):
    response = client.post(
        "/api/v1/activity",
        json={"action": "employee_updated", "entity_type": "employee", "entity_id": "emp-9"},
        headers=employee_headers,
    )
    assert response.status_code == status.HTTP_202_ACCEPTED
    assert audit_trail.flush() == 1

    assert client.get("/api/v1/activity", headers=employee_headers).status_code == status.HTTP_403_FORBIDDEN

    response = client.get("/api/v1/activity", headers=admin_headers, params={"actor_id": employee_account.id})
    assert response.status_code == status.HTTP_200_OK
    entries = response.json()
    assert len(entries) == 1
    assert entries[0]["action"] == "employee_updated"
    assert entries[0]["entity_id"] == "emp-9"
