"""
Account management endpoints (admin/hr)
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ems.core.deps import get_db, require_privilege
from ems.models.account import Privilege
from ems.policy import ClaimContext
from ems.schemas.account import (
    AccountCreate,
    AccountOut,
    AccountUpdate,
    LinkRequest,
    PasswordResetIssued,
)
from ems.schemas.employee import EmployeeOut
from ems.services import account_service

router = APIRouter()

manage_accounts = require_privilege(Privilege.HR)


@router.get("", response_model=List[AccountOut])
async def list_accounts_endpoint(
    privilege: Optional[Privilege] = Query(None, description="Filter by privilege"),
    search: Optional[str] = Query(None, description="Search by email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    return account_service.list_accounts(db, ctx, privilege=privilege, search=search, skip=skip, limit=limit)


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def create_account_endpoint(
    account_data: AccountCreate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Create an account (admin only, enforced by policy)"""
    return account_service.create_account(db, ctx, account_data)


@router.get("/unlinked-employees", response_model=List[EmployeeOut])
async def unlinked_employees_endpoint(
    active_only: bool = Query(True, description="Only active employees"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Employees that no account links to"""
    return account_service.unlinked_employees(db, ctx, active_only=active_only, search=search)


@router.get("/{account_id}", response_model=AccountOut)
async def get_account_endpoint(
    account_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    return account_service.get_account(db, ctx, account_id)


@router.patch("/{account_id}", response_model=AccountOut)
async def update_account_endpoint(
    account_id: str,
    account_data: AccountUpdate,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Change an account's privilege. Your own account is rejected."""
    return account_service.change_privilege(db, ctx, account_id, account_data.privilege)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account_endpoint(
    account_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Delete an account (admin only). Your own account is rejected."""
    account_service.delete_account(db, ctx, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{account_id}/employee", response_model=AccountOut)
async def link_employee_endpoint(
    account_id: str,
    body: LinkRequest,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Link an employee to the account (409 if linked elsewhere)"""
    return account_service.link(db, ctx, account_id, body.employee_id)


@router.delete("/{account_id}/employee", response_model=AccountOut)
async def unlink_employee_endpoint(
    account_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    """Remove the account's employee link"""
    return account_service.unlink(db, ctx, account_id)


@router.post("/{account_id}/password-reset", response_model=PasswordResetIssued)
async def issue_password_reset_endpoint(
    account_id: str,
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(manage_accounts),
):
    return account_service.issue_password_reset(db, ctx, account_id)
