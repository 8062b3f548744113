"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Any, Dict, Generator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ems.core.constants import TOKEN_TYPE_ACCESS
from ems.core.errors import AuthenticationFailure, AuthorizationDenied, ClaimExpired
from ems.core.security import TokenExpiredError, decode_token
from ems.db.session import SessionLocal
from ems.models.account import Privilege
from ems.policy import ClaimContext, resolve_claim_context


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_access_claim(token: str) -> Dict[str, Any]:
    """
    Verified payload of an access claim

    Raises:
        ClaimExpired: The claim is past its window (client should refresh)
        AuthenticationFailure: The claim is malformed, forged or not an access claim
    """
    try:
        return decode_token(token, expected_type=TOKEN_TYPE_ACCESS)
    except TokenExpiredError:
        raise ClaimExpired()
    except ValueError:
        raise AuthenticationFailure("Invalid authentication credentials")


async def get_claims(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    return verify_access_claim(credentials.credentials)


def get_claim_context(
    claims: Dict[str, Any] = Depends(get_claims),
    db: Session = Depends(get_db),
) -> ClaimContext:
    """Policy context for the request: claimed privilege plus current linkage"""
    return resolve_claim_context(db, claims)


def require_privilege(minimum: Privilege):
    """
    Dependency factory for page-level guards

    Compares the claimed privilege by rank, so a higher level always passes.

    Usage:
        @router.get("/accounts")
        async def list_accounts(ctx: ClaimContext = Depends(require_privilege(Privilege.HR))):
            ...
    """
    def privilege_checker(ctx: ClaimContext = Depends(get_claim_context)) -> ClaimContext:
        if ctx.privilege.rank < minimum.rank:
            raise AuthorizationDenied(
                f"Access denied. Requires privilege '{minimum.value}' or higher"
            )
        return ctx
    return privilege_checker
