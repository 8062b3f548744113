"""
Store backends for the client session

``AuthBackend`` is what the session layer consumes. ``LocalBackend`` calls the
service layer in-process (scripts, workers, tests); ``HttpBackend`` talks to a
running API over httpx and maps error codes back onto the domain errors.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, Optional, Protocol

import httpx
from fastapi.concurrency import run_in_threadpool
from jose import jwt
from sqlalchemy.orm import Session

from ems.core.constants import CLAIM_PRIVILEGE
from ems.core.deps import verify_access_claim
from ems.core.errors import ERRORS_BY_CODE, AccountNotFound
from ems.models.account import Privilege
from ems.policy import ClaimContext, resolve_claim_context
from ems.services import auth_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedClaim:
    """A claim pair as held by the client. The payload is read, not verified."""

    access_token: str
    refresh_token: str
    account_id: str
    email: Optional[str]
    privilege: Optional[Privilege]
    expires_at: Optional[datetime]

    @classmethod
    def from_tokens(cls, access_token: str, refresh_token: str) -> "IssuedClaim":
        payload = jwt.get_unverified_claims(access_token)
        exp = payload.get("exp")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            account_id=str(payload["sub"]),
            email=payload.get("email"),
            privilege=Privilege.parse(payload.get(CLAIM_PRIVILEGE)),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None,
        )

    @property
    def bearer(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@dataclass(frozen=True)
class AuthorizationRecord:
    account_id: str
    privilege: Privilege
    linked_employee_id: Optional[str] = None


class AuthBackend(Protocol):
    async def authenticate(self, email: str, password: str) -> IssuedClaim:
        ...

    async def refresh_claim(self, refresh_token: str) -> IssuedClaim:
        ...

    async def read_authorization_record(self, claim: IssuedClaim) -> Optional[AuthorizationRecord]:
        """None when the account has no record"""
        ...

    async def read_linked_employee(self, claim: IssuedClaim) -> Optional[str]:
        ...

    async def sign_out(self, claim: IssuedClaim) -> None:
        ...


def _default_session_scope() -> ContextManager[Session]:
    from ems.db.session import session_scope
    return session_scope()


class LocalBackend:
    """
    Backend that runs the service layer in the current process

    The service layer is synchronous SQLAlchemy, so every call runs in the
    threadpool and the event loop never blocks on the database.
    """

    def __init__(self, session_scope: Optional[Callable[[], ContextManager[Session]]] = None) -> None:
        self.session_scope = session_scope or _default_session_scope

    async def authenticate(self, email: str, password: str) -> IssuedClaim:
        return await run_in_threadpool(self._authenticate, email, password)

    async def refresh_claim(self, refresh_token: str) -> IssuedClaim:
        return await run_in_threadpool(self._refresh_claim, refresh_token)

    async def read_authorization_record(self, claim: IssuedClaim) -> Optional[AuthorizationRecord]:
        return await run_in_threadpool(self._read_authorization_record, claim)

    async def read_linked_employee(self, claim: IssuedClaim) -> Optional[str]:
        return await run_in_threadpool(self._read_linked_employee, claim)

    async def sign_out(self, claim: IssuedClaim) -> None:
        await run_in_threadpool(auth_service.sign_out, ClaimContext.from_claims(verify_access_claim(claim.access_token)))

    def _authenticate(self, email: str, password: str) -> IssuedClaim:
        with self.session_scope() as db:
            tokens = auth_service.authenticate(db, email, password)
        return IssuedClaim.from_tokens(tokens.access_token, tokens.refresh_token)

    def _refresh_claim(self, refresh_token: str) -> IssuedClaim:
        with self.session_scope() as db:
            tokens = auth_service.refresh_claim(db, refresh_token)
        return IssuedClaim.from_tokens(tokens.access_token, tokens.refresh_token)

    def _read_authorization_record(self, claim: IssuedClaim) -> Optional[AuthorizationRecord]:
        with self.session_scope() as db:
            ctx = resolve_claim_context(db, verify_access_claim(claim.access_token))
            try:
                account = auth_service.read_authorization_record(db, ctx)
            except AccountNotFound:
                return None
            return AuthorizationRecord(
                account_id=account.id,
                privilege=Privilege(account.privilege),
                linked_employee_id=account.employee_id,
            )

    def _read_linked_employee(self, claim: IssuedClaim) -> Optional[str]:
        with self.session_scope() as db:
            ctx = resolve_claim_context(db, verify_access_claim(claim.access_token))
            return auth_service.read_linked_employee(db, ctx)


class HttpBackend:
    """
    Backend for a running API

    Args:
        base_url: API root including the version prefix, e.g. http://host/api/v1
        client: Optional preconfigured httpx.AsyncClient (tests pass an ASGI transport)
        timeout: Request timeout in seconds when the client is created here
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        claim: Optional[IssuedClaim] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Call the API and return the decoded JSON body (None for empty bodies)

        Raises:
            DomainError subclass: The API answered with a known error code
            httpx.HTTPStatusError: Any other error response
            httpx.HTTPError: Transport failures
        """
        headers = dict(kwargs.pop("headers", None) or {})
        if claim is not None:
            headers.update(claim.bearer)
        response = await self._get_client().request(
            method, f"{self.base_url}{path}", headers=headers, **kwargs
        )
        if response.status_code >= 400:
            self._raise_for_error(response)
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        error_cls = ERRORS_BY_CODE.get(body.get("code")) if isinstance(body, dict) else None
        if error_cls is not None:
            raise error_cls(body.get("detail"))
        logger.debug("Unmapped error response %s: %s", response.status_code, response.text[:200])
        response.raise_for_status()

    async def authenticate(self, email: str, password: str) -> IssuedClaim:
        body = await self.request("POST", "/auth/login", json={"email": email, "password": password})
        return IssuedClaim.from_tokens(body["access_token"], body["refresh_token"])

    async def refresh_claim(self, refresh_token: str) -> IssuedClaim:
        body = await self.request("POST", "/auth/refresh", json={"refresh_token": refresh_token})
        return IssuedClaim.from_tokens(body["access_token"], body["refresh_token"])

    async def read_authorization_record(self, claim: IssuedClaim) -> Optional[AuthorizationRecord]:
        try:
            body = await self.request("GET", "/auth/me", claim)
        except AccountNotFound:
            return None
        return AuthorizationRecord(
            account_id=body["id"],
            privilege=Privilege(body["privilege"]),
            linked_employee_id=body.get("employee_id"),
        )

    async def read_linked_employee(self, claim: IssuedClaim) -> Optional[str]:
        body = await self.request("GET", "/auth/me/employee-link", claim)
        return body.get("employee_id")

    async def sign_out(self, claim: IssuedClaim) -> None:
        await self.request("POST", "/auth/logout", claim)
