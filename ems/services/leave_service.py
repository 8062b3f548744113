"""
Leave service - leave requests and decisions
"""
import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ems.core.errors import EmployeeNotFound, RecordNotFound
from ems.models.audit_log import ActivityAction, EntityType
from ems.models.employee import Employee
from ems.models.leave import LeaveRequest, LeaveStatus
from ems.policy import ClaimContext, authorize, authorize_rows, authorize_scope, authorize_update
from ems.policy.rules import LEAVE_REQUESTS, Operation
from ems.schemas.leave import LeaveCreate, LeaveDecision
from ems.services.audit_service import record_activity
from ems.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

_DECISION_ACTIONS = {
    LeaveStatus.APPROVED: ActivityAction.LEAVE_APPROVED,
    LeaveStatus.REJECTED: ActivityAction.LEAVE_REJECTED,
    LeaveStatus.CANCELLED: ActivityAction.LEAVE_CANCELLED,
}


def list_leaves(
    db: Session,
    ctx: ClaimContext,
    employee_id: Optional[str] = None,
    status_filter: Optional[LeaveStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[LeaveRequest]:
    """
    Leave requests for one employee, or for everyone when employee_id is None.

    Asking for everyone's requests without admin/hr is denied, not narrowed.
    """
    authorize_scope(ctx, LEAVE_REQUESTS, "employee_id", employee_id)

    query = db.query(LeaveRequest)
    if employee_id:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status_filter:
        query = query.filter(LeaveRequest.status == status_filter.value)
    rows = query.order_by(LeaveRequest.start_date.desc()).offset(skip).limit(limit).all()
    authorize_rows(ctx, LEAVE_REQUESTS, rows)
    return rows


def get_leave(db: Session, ctx: ClaimContext, leave_id: str) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise RecordNotFound("Leave request not found")
    authorize(ctx, LEAVE_REQUESTS, Operation.SELECT, leave)
    return leave


def create_leave(db: Session, ctx: ClaimContext, data: LeaveCreate) -> LeaveRequest:
    """
    Submit a leave request for an employee

    Raises:
        AuthorizationDenied: Requester is neither the linked employee nor admin/hr
        EmployeeNotFound: No such employee
    """
    values = {
        "employee_id": data.employee_id,
        "leave_type": data.leave_type.value,
        "start_date": data.start_date,
        "end_date": data.end_date,
        "days_count": (data.end_date - data.start_date).days + 1,
        "reason": data.reason.strip(),
        "status": LeaveStatus.PENDING.value,
    }
    authorize(ctx, LEAVE_REQUESTS, Operation.INSERT, values)
    if db.get(Employee, data.employee_id) is None:
        raise EmployeeNotFound()

    leave = LeaveRequest(**values)
    db.add(leave)
    db.commit()
    db.refresh(leave)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.LEAVE_REQUESTED,
        entity_type=EntityType.LEAVE,
        entity_id=leave.id,
        details={
            "employee_id": leave.employee_id,
            "leave_type": leave.leave_type,
            "start_date": leave.start_date,
            "end_date": leave.end_date,
            "days_count": leave.days_count,
        },
    )
    return leave


def decide_leave(db: Session, ctx: ClaimContext, leave_id: str, decision: LeaveDecision) -> LeaveRequest:
    """
    Approve, reject or cancel a pending request (admin/hr)

    Raises:
        HTTPException 400: The request is no longer pending
    """
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise RecordNotFound("Leave request not found")

    changes = {
        "status": decision.status.value,
        "decided_by": ctx.account_id,
        "decided_at": now_utc(),
        "rejection_reason": decision.rejection_reason if decision.status == LeaveStatus.REJECTED else None,
    }
    authorize_update(ctx, LEAVE_REQUESTS, leave, changes)

    if leave.status != LeaveStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Leave request is already {leave.status}"
        )

    for field, value in changes.items():
        setattr(leave, field, value)
    db.commit()
    db.refresh(leave)

    record_activity(
        actor_id=ctx.account_id,
        action=_DECISION_ACTIONS[decision.status],
        entity_type=EntityType.LEAVE,
        entity_id=leave.id,
        details={"employee_id": leave.employee_id, "rejection_reason": leave.rejection_reason},
    )
    return leave
