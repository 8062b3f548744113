"""
Client session: holds the claim and reconciles it against the authorization record

One ``SessionContext`` per signed-in user, created by the caller and passed to
whatever needs the current privilege. Reads of the authorization record that
fail during reconciliation are absorbed; the session falls back to the
employee privilege instead of refusing to start.
"""
import asyncio
import enum
import logging
from typing import Awaitable, Callable, Coroutine, Optional, Set, TypeVar

from ems.client.backend import AuthBackend, AuthorizationRecord, IssuedClaim
from ems.core.errors import AuthenticationFailure, ClaimExpired, ReconciliationFailure, RefreshExpired
from ems.models.account import Privilege

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    CLAIM_ISSUED = "claim_issued"
    RECONCILING_FAST = "reconciling_fast"
    RECONCILING_SLOW = "reconciling_slow"
    READY = "ready"
    READY_DEGRADED = "ready_degraded"


READY_STATES = frozenset({SessionState.READY, SessionState.READY_DEGRADED})


class SessionContext:
    """
    Lifecycle of one authenticated session.

    States: UNAUTHENTICATED -> CLAIM_ISSUED -> RECONCILING_FAST | RECONCILING_SLOW
    -> READY | READY_DEGRADED. Sign-out, or a refresh credential that is no
    longer accepted, returns to UNAUTHENTICATED.
    """

    def __init__(self, backend: AuthBackend) -> None:
        self.backend = backend
        self.state = SessionState.UNAUTHENTICATED
        self._claim: Optional[IssuedClaim] = None
        self._privilege: Optional[Privilege] = None
        self._linked_employee_id: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def claim(self) -> Optional[IssuedClaim]:
        return self._claim

    @property
    def account_id(self) -> Optional[str]:
        return self._claim.account_id if self._claim else None

    @property
    def linked_employee_id(self) -> Optional[str]:
        return self._linked_employee_id

    def current_privilege(self) -> Privilege:
        """Last known privilege; employee when nothing better is known"""
        return self._privilege or Privilege.EMPLOYEE

    def require_at_least(self, level: Privilege) -> bool:
        """Page-level guard. False until the session is ready."""
        if self.state not in READY_STATES:
            return False
        return self.current_privilege().rank >= Privilege(level).rank

    async def sign_in(self, email: str, password: str) -> SessionState:
        """
        Exchange credentials for a claim and reconcile it

        Raises:
            AuthenticationFailure: Bad credentials; the session stays unauthenticated
        """
        self._discard()
        claim = await self.backend.authenticate(email, password)
        await self._establish(claim)
        return self.state

    async def invalidate(self) -> SessionState:
        """
        The privilege changed elsewhere: fetch a replacement claim and reconcile again

        Raises:
            RefreshExpired: The refresh credential was rejected; the session is discarded
        """
        if self._claim is None:
            return self.state
        await self._refresh()
        return self.state

    async def run(self, operation: Callable[[IssuedClaim], Awaitable[T]]) -> T:
        """
        Run a store operation with the current claim.

        A ClaimExpired rejection triggers one refresh and one retry.

        Raises:
            AuthenticationFailure: Not signed in
            RefreshExpired: The claim expired and could not be refreshed
        """
        if self._claim is None:
            raise AuthenticationFailure("Not signed in")
        try:
            return await operation(self._claim)
        except ClaimExpired:
            logger.info("Claim expired for account %s, refreshing", self.account_id)
            await self._refresh()
            return await operation(self._claim)

    async def sign_out(self) -> None:
        """Discard local state now; the sign-out audit runs in the background"""
        claim = self._claim
        self._discard()
        if claim is not None:
            self._spawn(self._emit_sign_out(claim))

    async def wait_for_pending(self) -> None:
        """Wait for background work (claim replacement, sign-out audit) to settle"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- internals ----------------------------------------------------------

    async def _establish(self, claim: IssuedClaim) -> None:
        self._claim = claim
        self.state = SessionState.CLAIM_ISSUED
        if claim.privilege is not None:
            await self._reconcile_fast(claim)
        else:
            await self._reconcile_slow(claim)

    async def _reconcile_fast(self, claim: IssuedClaim) -> None:
        self.state = SessionState.RECONCILING_FAST
        self._privilege = claim.privilege
        try:
            self._linked_employee_id = await self._read(self.backend.read_linked_employee(claim))
        except ReconciliationFailure as e:
            logger.warning("Could not read employee link for account %s: %s", claim.account_id, e)
            self._linked_employee_id = None
        self.state = SessionState.READY

    async def _reconcile_slow(self, claim: IssuedClaim) -> None:
        self.state = SessionState.RECONCILING_SLOW
        try:
            record: Optional[AuthorizationRecord] = await self._read(
                self.backend.read_authorization_record(claim)
            )
        except ReconciliationFailure as e:
            logger.warning("Could not read authorization record for account %s: %s", claim.account_id, e)
            record = None

        if record is None:
            logger.warning("Account %s running with degraded privilege", claim.account_id)
            self._privilege = Privilege.EMPLOYEE
            self._linked_employee_id = None
            self.state = SessionState.READY_DEGRADED
            return

        self._privilege = record.privilege
        self._linked_employee_id = record.linked_employee_id
        self.state = SessionState.READY
        self._spawn(self._replace_claim(claim))

    @staticmethod
    async def _read(call: Coroutine) -> T:
        try:
            return await call
        except Exception as e:
            raise ReconciliationFailure(str(e)) from e

    async def _replace_claim(self, claim: IssuedClaim) -> None:
        """Ask for a claim that embeds the privilege so the next cycle takes the fast path"""
        try:
            replacement = await self.backend.refresh_claim(claim.refresh_token)
        except Exception as e:
            logger.warning("Claim replacement for account %s failed: %s", claim.account_id, e)
            return
        # Only adopt it if the session still holds the claim it replaces
        if self._claim is claim:
            self._claim = replacement

    async def _refresh(self) -> None:
        try:
            claim = await self.backend.refresh_claim(self._claim.refresh_token)
        except RefreshExpired:
            logger.info("Refresh credential rejected for account %s, signing out", self.account_id)
            self._discard()
            raise
        await self._establish(claim)

    async def _emit_sign_out(self, claim: IssuedClaim) -> None:
        try:
            await self.backend.sign_out(claim)
        except Exception as e:
            logger.warning("Sign-out audit for account %s failed: %s", claim.account_id, e)

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _discard(self) -> None:
        self.state = SessionState.UNAUTHENTICATED
        self._claim = None
        self._privilege = None
        self._linked_employee_id = None
