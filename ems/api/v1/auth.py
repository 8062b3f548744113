"""
Authentication endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ems.core.deps import get_claim_context, get_db
from ems.policy import ClaimContext
from ems.schemas.auth import (
    AuthorizationRecordOut,
    EmployeeLinkOut,
    LoginRequest,
    PasswordResetConfirm,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from ems.services import auth_service

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate and return a claim pair

    The access claim carries the privilege snapshot from the account's claim
    metadata when one has been synced.
    """
    return auth_service.authenticate(db, login_data.email, login_data.password)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    db: Session = Depends(get_db)
):
    """Exchange a refresh credential for a new claim pair"""
    return auth_service.refresh_claim(db, body.refresh_token)


@router.post("/register", response_model=AuthorizationRecordOut, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Self-registration (employee privilege)"""
    return auth_service.register(db, body.email, body.password)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(ctx: ClaimContext = Depends(get_claim_context)):
    """Record the sign-out; the client discards its claims"""
    auth_service.sign_out(ctx)


@router.get("/me", response_model=AuthorizationRecordOut)
async def me(
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Authoritative privilege and linkage for the current account"""
    return auth_service.read_authorization_record(db, ctx)


@router.get("/me/employee-link", response_model=EmployeeLinkOut)
async def my_employee_link(
    db: Session = Depends(get_db),
    ctx: ClaimContext = Depends(get_claim_context),
):
    """Linked employee for the current account"""
    return EmployeeLinkOut(employee_id=auth_service.read_linked_employee(db, ctx))


@router.post("/password-reset/confirm", status_code=status.HTTP_204_NO_CONTENT)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    db: Session = Depends(get_db)
):
    auth_service.confirm_password_reset(db, body.token, body.new_password)
