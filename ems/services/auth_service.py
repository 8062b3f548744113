"""
Authentication service: credentials, session claims and authorization records
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ems.core.config import settings
from ems.core.constants import CLAIM_PRIVILEGE, TOKEN_TYPE_PASSWORD_RESET, TOKEN_TYPE_REFRESH
from ems.core.errors import (
    AccountNotFound,
    AuthenticationFailure,
    LinkageConflict,
    RefreshExpired,
)
from ems.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    password_reset_matches,
    verify_password,
)
from ems.models.account import Account, Privilege
from ems.models.audit_log import ActivityAction, EntityType
from ems.policy import ClaimContext, authorize, authorize_update
from ems.policy.rules import ACCOUNTS, Operation
from ems.schemas.auth import TokenResponse
from ems.services.audit_service import record_activity

logger = logging.getLogger(__name__)

# Columns of the authorization record that may be written through this service
WRITABLE_FIELDS = ("privilege", "employee_id")


def get_account_by_email(db: Session, email: str) -> Optional[Account]:
    return db.query(Account).filter(func.lower(Account.email) == email.strip().lower()).first()


def issue_claims(account: Account) -> TokenResponse:
    """
    Sign a claim pair for an account.

    The privilege snapshot comes from the account's claim metadata, not from the
    record itself, so accounts whose metadata was never synced get claims without one.
    """
    metadata = account.app_metadata or {}
    access_token = create_access_token(
        account_id=account.id,
        email=account.email,
        privilege=metadata.get(CLAIM_PRIVILEGE),
    )
    refresh_token = create_refresh_token(account.id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


def sync_claim_metadata(db: Session, account: Account, commit: bool = True) -> None:
    """Copy the record's privilege into the metadata embedded in future claims"""
    metadata = dict(account.app_metadata or {})
    if metadata.get(CLAIM_PRIVILEGE) == account.privilege:
        return
    metadata[CLAIM_PRIVILEGE] = account.privilege
    # Reassign so the JSON column is flagged dirty
    account.app_metadata = metadata
    if commit:
        db.commit()


def authenticate(db: Session, email: str, password: str) -> TokenResponse:
    """
    Verify credentials and issue a claim pair

    Raises:
        AuthenticationFailure: Unknown email, no password set or wrong password
    """
    account = get_account_by_email(db, email)
    if account is None or not verify_password(password, account.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationFailure()

    tokens = issue_claims(account)
    record_activity(
        actor_id=account.id,
        action=ActivityAction.USER_LOGIN,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={"email": account.email},
    )
    return tokens


def refresh_claim(db: Session, refresh_token: str) -> TokenResponse:
    """
    Exchange a refresh credential for a new claim pair.

    Accounts whose claim metadata lacks a privilege are synced first, so a
    refreshed claim always carries the stored privilege.

    Raises:
        RefreshExpired: The credential is expired, invalid, or its account is gone
    """
    try:
        payload = decode_token(refresh_token, expected_type=TOKEN_TYPE_REFRESH)
    except ValueError:
        raise RefreshExpired()

    account = db.get(Account, str(payload["sub"]))
    if account is None:
        raise RefreshExpired("Account for this refresh credential no longer exists")

    if CLAIM_PRIVILEGE not in (account.app_metadata or {}):
        sync_claim_metadata(db, account)
    return issue_claims(account)


def register(db: Session, email: str, password: str) -> Account:
    """
    Create an account through self-registration.

    The account starts at the employee privilege with empty claim metadata, so
    its first claim carries no privilege snapshot.
    """
    if not settings.ALLOW_SELF_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Self-registration is disabled"
        )
    if get_account_by_email(db, email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )

    account = Account(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        privilege=Privilege.EMPLOYEE.value,
        app_metadata={},
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )
    db.refresh(account)

    record_activity(
        actor_id=account.id,
        action=ActivityAction.USER_CREATED,
        entity_type=EntityType.USER,
        entity_id=account.id,
        details={"email": account.email, "privilege": account.privilege, "source": "self_registration"},
    )
    return account


def read_authorization_record(db: Session, ctx: ClaimContext, account_id: Optional[str] = None) -> Account:
    """
    Authoritative privilege and linkage for an account (default: the requester)

    Raises:
        AccountNotFound: No such account
        AuthorizationDenied: Requester may not read that account
    """
    account_id = account_id or ctx.account_id
    authorize(ctx, ACCOUNTS, Operation.SELECT, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    return account


def read_linked_employee(db: Session, ctx: ClaimContext) -> Optional[str]:
    """Linked employee id for the requester, read without touching the privilege"""
    authorize(ctx, ACCOUNTS, Operation.SELECT, {"id": ctx.account_id})
    row = db.query(Account.id, Account.employee_id).filter(Account.id == ctx.account_id).first()
    if row is None:
        raise AccountNotFound()
    return row.employee_id


def write_authorization_record(
    db: Session,
    ctx: ClaimContext,
    account_id: str,
    changes: Dict[str, Any],
) -> Account:
    """
    Update privilege and/or linkage on an account.

    A privilege change is mirrored into the claim metadata in the same
    transaction; sessions already holding a claim keep the old snapshot until
    they refresh.

    Raises:
        AuthorizationDenied: Requester may not update authorization records
        AccountNotFound: No such account
        LinkageConflict: The employee is already linked to a different account
    """
    unknown = set(changes) - set(WRITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Not an authorization field: {', '.join(sorted(unknown))}")

    values = dict(changes)
    if "privilege" in values:
        values["privilege"] = Privilege(values["privilege"]).value

    authorize(ctx, ACCOUNTS, Operation.UPDATE, {"id": account_id})
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFound()
    authorize_update(ctx, ACCOUNTS, account, values)

    for field, value in values.items():
        setattr(account, field, value)
    if "privilege" in values:
        sync_claim_metadata(db, account, commit=False)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if "employee_id" in values:
            logger.info("Link of employee %s to account %s lost to a concurrent link", values["employee_id"], account_id)
            raise LinkageConflict()
        raise
    db.refresh(account)
    return account


def sign_out(ctx: ClaimContext) -> None:
    """Record the sign-out. Claims are stateless and simply expire."""
    record_activity(
        actor_id=ctx.account_id,
        action=ActivityAction.USER_LOGOUT,
        entity_type=EntityType.USER,
        entity_id=ctx.account_id,
    )


def confirm_password_reset(db: Session, token: str, new_password: str) -> Account:
    """
    Set a new password using a reset token

    Raises:
        AuthenticationFailure: Token invalid, expired, or already used
    """
    try:
        payload = decode_token(token, expected_type=TOKEN_TYPE_PASSWORD_RESET)
    except ValueError:
        raise AuthenticationFailure("Invalid or expired reset token")

    account = db.get(Account, str(payload["sub"]))
    if account is None or not password_reset_matches(payload, account.password_hash):
        raise AuthenticationFailure("Invalid or expired reset token")

    account.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(account)
    return account
