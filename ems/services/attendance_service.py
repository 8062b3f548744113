"""
Attendance service
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ems.core.errors import EmployeeNotFound
from ems.models.attendance import AttendanceRecord
from ems.models.audit_log import ActivityAction, EntityType
from ems.models.employee import Employee
from ems.policy import ClaimContext, authorize, authorize_rows, authorize_scope
from ems.policy.rules import ATTENDANCE_RECORDS, Operation
from ems.schemas.attendance import AttendanceCreate
from ems.services.audit_service import record_activity

logger = logging.getLogger(__name__)


def list_attendance(
    db: Session,
    ctx: ClaimContext,
    employee_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[AttendanceRecord]:
    authorize_scope(ctx, ATTENDANCE_RECORDS, "employee_id", employee_id)

    query = db.query(AttendanceRecord)
    if employee_id:
        query = query.filter(AttendanceRecord.employee_id == employee_id)
    if date_from:
        query = query.filter(AttendanceRecord.date >= date_from)
    if date_to:
        query = query.filter(AttendanceRecord.date <= date_to)
    rows = query.order_by(AttendanceRecord.date.desc()).offset(skip).limit(limit).all()
    authorize_rows(ctx, ATTENDANCE_RECORDS, rows)
    return rows


def record_attendance(db: Session, ctx: ClaimContext, data: AttendanceCreate) -> AttendanceRecord:
    """
    Record one day of attendance for an employee

    Raises:
        HTTPException 400: A record for that employee and date already exists
    """
    values = data.model_dump()
    values["status"] = data.status.value
    authorize(ctx, ATTENDANCE_RECORDS, Operation.INSERT, values)
    if db.get(Employee, data.employee_id) is None:
        raise EmployeeNotFound()

    record = AttendanceRecord(**values)
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Attendance already recorded for {data.date.isoformat()}"
        )
    db.refresh(record)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.ATTENDANCE_RECORDED,
        entity_type=EntityType.ATTENDANCE,
        entity_id=record.id,
        details={"employee_id": record.employee_id, "date": record.date, "status": record.status},
    )
    return record
