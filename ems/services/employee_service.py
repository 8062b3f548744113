"""
Employee service - business logic for employee management
"""
import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ems.core.errors import EmployeeNotFound
from ems.models.audit_log import ActivityAction, EntityType
from ems.models.employee import Employee, EmployeeStatus
from ems.policy import ClaimContext, authorize, authorize_update
from ems.policy.rules import EMPLOYEES, Operation
from ems.schemas.employee import EmployeeCreate, EmployeeUpdate
from ems.services.audit_service import record_activity

logger = logging.getLogger(__name__)


def _raise_duplicate() -> None:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Employee number or email already exists"
    )


def list_employees(
    db: Session,
    ctx: ClaimContext,
    status_filter: Optional[EmployeeStatus] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Employee]:
    authorize(ctx, EMPLOYEES, Operation.SELECT, {"id": None})

    query = db.query(Employee)
    if status_filter:
        query = query.filter(Employee.status == status_filter.value)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Employee.first_name).like(pattern),
            func.lower(Employee.last_name).like(pattern),
            func.lower(Employee.email).like(pattern),
            func.lower(Employee.employee_number).like(pattern),
        ))
    return query.order_by(Employee.last_name, Employee.first_name).offset(skip).limit(limit).all()


def get_employee(db: Session, ctx: ClaimContext, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFound()
    authorize(ctx, EMPLOYEES, Operation.SELECT, employee)
    return employee


def create_employee(db: Session, ctx: ClaimContext, data: EmployeeCreate) -> Employee:
    """
    Create a new employee

    Raises:
        AuthorizationDenied: Requester is not admin or hr
        HTTPException 400: Employee number or email already in use
    """
    values = data.model_dump()
    values["status"] = data.status.value
    authorize(ctx, EMPLOYEES, Operation.INSERT, values)

    existing = db.query(Employee.id).filter(or_(
        Employee.employee_number == data.employee_number,
        Employee.email == data.email,
    )).first()
    if existing:
        _raise_duplicate()

    employee = Employee(**values)
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        _raise_duplicate()
    db.refresh(employee)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.EMPLOYEE_CREATED,
        entity_type=EntityType.EMPLOYEE,
        entity_id=employee.id,
        details={"employee_number": employee.employee_number, "name": employee.full_name},
    )
    return employee


def update_employee(db: Session, ctx: ClaimContext, employee_id: str, data: EmployeeUpdate) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFound()

    changes = data.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] is not None:
        changes["status"] = EmployeeStatus(changes["status"]).value
    changes = {k: v for k, v in changes.items() if v is not None}
    authorize_update(ctx, EMPLOYEES, employee, changes)

    before = {k: getattr(employee, k) for k in changes}
    for field, value in changes.items():
        setattr(employee, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        _raise_duplicate()
    db.refresh(employee)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.EMPLOYEE_UPDATED,
        entity_type=EntityType.EMPLOYEE,
        entity_id=employee.id,
        details={"before": before, "after": changes},
    )
    return employee


def delete_employee(db: Session, ctx: ClaimContext, employee_id: str) -> None:
    """Delete an employee. A linked account loses its link but is kept."""
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFound()
    authorize(ctx, EMPLOYEES, Operation.DELETE, employee)

    details = {"employee_number": employee.employee_number, "name": employee.full_name}
    if employee.account is not None:
        employee.account.employee_id = None
    db.delete(employee)
    db.commit()

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.EMPLOYEE_DELETED,
        entity_type=EntityType.EMPLOYEE,
        entity_id=employee_id,
        details=details,
    )
