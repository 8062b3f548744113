"""
Policy gate at the store boundary

Services call into this module before reading or writing guarded tables.
A denial always raises AuthorizationDenied; nothing here narrows a result set.
"""
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from ems.core.errors import AuthenticationFailure, AuthorizationDenied
from ems.models.account import Account
from ems.policy.context import ClaimContext
from ems.policy.evaluator import PolicyDecision, evaluate
from ems.policy.rules import Operation

logger = logging.getLogger(__name__)


def row_to_mapping(obj: Any) -> Dict[str, Any]:
    """Column values of an ORM instance, keyed by attribute name"""
    if isinstance(obj, Mapping):
        return dict(obj)
    mapper = sa_inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def resolve_claim_context(db: Session, claims: Mapping[str, Any]) -> ClaimContext:
    """
    Build the policy context for one request.

    Reads only the linked employee column; privilege stays whatever the claim says.

    Raises:
        AuthenticationFailure: If the claim's account no longer exists
    """
    row = (
        db.query(Account.id, Account.employee_id)
        .filter(Account.id == str(claims["sub"]))
        .first()
    )
    if row is None:
        raise AuthenticationFailure("Account for this session no longer exists")
    return ClaimContext.from_claims(claims, linked_employee_id=row.employee_id)


def authorize(ctx: ClaimContext, table: str, operation: Operation, row: Any) -> PolicyDecision:
    decision = evaluate(ctx, table, operation, row_to_mapping(row))
    if not decision.allowed:
        logger.info(
            "Policy denied %s on %s for account %s (privilege=%s)",
            operation.value, table, ctx.account_id, ctx.privilege.value,
        )
        raise AuthorizationDenied(
            f"{operation.value} on {table} denied for privilege '{ctx.privilege.value}'"
        )
    return decision


def authorize_scope(ctx: ClaimContext, table: str, owner_column: str, owner_id: Optional[str]) -> PolicyDecision:
    """
    Check a read before it runs.

    ``owner_id=None`` asks for every owner's rows and is judged as such.
    """
    return authorize(ctx, table, Operation.SELECT, {owner_column: owner_id})


def authorize_rows(ctx: ClaimContext, table: str, rows: Iterable[Any]) -> None:
    for row in rows:
        authorize(ctx, table, Operation.SELECT, row)


def authorize_update(ctx: ClaimContext, table: str, current: Any, changes: Mapping[str, Any]) -> None:
    """Check the stored row and the row as it will look after the change"""
    current_row = row_to_mapping(current)
    authorize(ctx, table, Operation.UPDATE, current_row)
    authorize(ctx, table, Operation.UPDATE, {**current_row, **changes})
