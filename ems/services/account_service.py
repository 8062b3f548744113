"""
Account service - account management and account/employee linkage
"""
import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import exists, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ems.core.config import settings
from ems.core.errors import (
    AccountNotFound,
    EmployeeNotFound,
    LinkageConflict,
    SelfModificationRejected,
)
from ems.core.security import create_password_reset_token, hash_password
from ems.models.account import Account, Privilege
from ems.models.audit_log import ActivityAction, EntityType
from ems.models.employee import Employee, EmployeeStatus
from ems.policy import ClaimContext, authorize
from ems.policy.rules import ACCOUNTS, EMPLOYEES, Operation
from ems.schemas.account import AccountCreate, PasswordResetIssued
from ems.services.audit_service import record_activity
from ems.services.notification_service import send_password_reset
from ems.services.auth_service import (
    get_account_by_email,
    sync_claim_metadata,
    write_authorization_record,
)

logger = logging.getLogger(__name__)


def _current_holder(db: Session, employee_id: str, exclude_account_id: Optional[str] = None) -> Optional[str]:
    """Account currently linked to the employee, other than the excluded one"""
    query = db.query(Account.id).filter(Account.employee_id == employee_id)
    if exclude_account_id:
        query = query.filter(Account.id != exclude_account_id)
    row = query.first()
    return row.id if row else None


def list_accounts(
    db: Session,
    ctx: ClaimContext,
    privilege: Optional[Privilege] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Account]:
    """All accounts, newest first (admin/hr)"""
    authorize(ctx, ACCOUNTS, Operation.SELECT, {"id": None})

    query = db.query(Account).options(joinedload(Account.employee))
    if privilege:
        query = query.filter(Account.privilege == privilege.value)
    if search:
        query = query.filter(Account.email.ilike(f"%{search.strip()}%"))
    return query.order_by(Account.created_at.desc()).offset(skip).limit(limit).all()


def get_account(db: Session, ctx: ClaimContext, account_id: str) -> Account:
    authorize(ctx, ACCOUNTS, Operation.SELECT, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    return account


def create_account(db: Session, ctx: ClaimContext, data: AccountCreate) -> Account:
    """
    Create an account with a privilege and, optionally, a linked employee.

    Claim metadata is synced on creation so the first login carries the privilege.
    """
    values = {
        "email": data.email,
        "privilege": data.privilege.value,
        "employee_id": data.employee_id,
    }
    authorize(ctx, ACCOUNTS, Operation.INSERT, values)

    if get_account_by_email(db, data.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )
    if data.employee_id:
        if db.get(Employee, data.employee_id) is None:
            raise EmployeeNotFound()
        if _current_holder(db, data.employee_id):
            raise LinkageConflict()

    account = Account(password_hash=hash_password(data.password), app_metadata={}, **values)
    sync_claim_metadata(db, account, commit=False)
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if data.employee_id and _current_holder(db, data.employee_id):
            raise LinkageConflict()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )
    db.refresh(account)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_CREATED,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={"email": account.email, "privilege": account.privilege, "employee_id": account.employee_id},
    )
    return account


def change_privilege(db: Session, ctx: ClaimContext, account_id: str, privilege: Privilege) -> Account:
    """
    Change an account's privilege

    Raises:
        SelfModificationRejected: The requester targets their own account
    """
    if account_id == ctx.account_id:
        raise SelfModificationRejected("You cannot change your own role")

    previous = get_account(db, ctx, account_id).privilege
    account = write_authorization_record(db, ctx, account_id, {"privilege": privilege})
    if previous != account.privilege:
        record_activity(
            actor_id=ctx.account_id,
            action=ActivityAction.USER_UPDATED,
            entity_type=EntityType.USER,
            entity_id=account.id,
            details={"email": account.email, "previous_privilege": previous, "privilege": account.privilege},
        )
    return account


def delete_account(db: Session, ctx: ClaimContext, account_id: str) -> None:
    """
    Delete an account. The linked employee, if any, is left in place.

    Raises:
        SelfModificationRejected: The requester targets their own account
    """
    if account_id == ctx.account_id:
        raise SelfModificationRejected("You cannot delete your own account")

    authorize(ctx, ACCOUNTS, Operation.DELETE, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    authorize(ctx, ACCOUNTS, Operation.DELETE, account)

    details = {"email": account.email, "privilege": account.privilege, "employee_id": account.employee_id}
    db.delete(account)
    db.commit()

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_DELETED,
        entity_type=EntityType.USER,
        entity_id=account_id,
        details=details,
    )


def link(db: Session, ctx: ClaimContext, account_id: str, employee_id: str) -> Account:
    """
    Link an account to an employee.

    Linking the pair that is already linked is a no-op. The employee's email is
    brought in line with the account's after a successful link.

    Raises:
        AccountNotFound / EmployeeNotFound: Either side is missing
        LinkageConflict: The employee is linked to a different account
    """
    authorize(ctx, ACCOUNTS, Operation.UPDATE, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFound()

    if account.employee_id == employee_id:
        return account

    if _current_holder(db, employee_id, exclude_account_id=account_id):
        raise LinkageConflict()

    previous_employee_id = account.employee_id
    # The unique constraint on accounts.employee_id settles concurrent links
    account = write_authorization_record(db, ctx, account_id, {"employee_id": employee_id})
    _sync_employee_email(db, employee, account.email)

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_EMPLOYEE_LINKED,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={
            "email": account.email,
            "employee_id": employee_id,
            "previous_employee_id": previous_employee_id,
        },
    )
    return account


def _sync_employee_email(db: Session, employee: Employee, email: str) -> None:
    if employee.email == email:
        return
    try:
        employee.email = email
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Could not sync email of employee %s to %s: address already in use", employee.id, email)


def unlink(db: Session, ctx: ClaimContext, account_id: str) -> Account:
    """Remove an account's employee link. Unlinking an unlinked account is a no-op."""
    authorize(ctx, ACCOUNTS, Operation.UPDATE, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    if account.employee_id is None:
        return account

    previous_employee_id = account.employee_id
    account = write_authorization_record(db, ctx, account_id, {"employee_id": None})

    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_EMPLOYEE_UNLINKED,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={"email": account.email, "employee_id": previous_employee_id},
    )
    return account


def unlinked_employees(db: Session, ctx: ClaimContext, active_only: bool = True, search: Optional[str] = None) -> List[Employee]:
    """Employees no account links to, computed in one query"""
    authorize(ctx, ACCOUNTS, Operation.SELECT, {"id": None})
    authorize(ctx, EMPLOYEES, Operation.SELECT, {"id": None})

    query = db.query(Employee).filter(~exists().where(Account.employee_id == Employee.id))
    if active_only:
        query = query.filter(Employee.status == EmployeeStatus.ACTIVE.value)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Employee.first_name).like(pattern),
            func.lower(Employee.last_name).like(pattern),
            func.lower(Employee.email).like(pattern),
            func.lower(Employee.employee_number).like(pattern),
        ))
    return query.order_by(Employee.last_name, Employee.first_name).all()


def issue_password_reset(db: Session, ctx: ClaimContext, account_id: str) -> PasswordResetIssued:
    """
    Send a reset token to the account holder.

    The token goes through the notification sender; the requester only learns
    where it was sent. hr may reset accounts below its own rank.
    """
    authorize(ctx, ACCOUNTS, Operation.UPDATE, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    authorize(ctx, ACCOUNTS, Operation.UPDATE, account)

    token = create_password_reset_token(account.id, account.password_hash)
    send_password_reset(account.email, token, settings.PASSWORD_RESET_EXPIRE_MINUTES)
    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_PASSWORD_RESET,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={"email": account.email},
    )
    return PasswordResetIssued(
        account_id=account.id,
        delivered_to=account.email,
        expires_in_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
