"""
Row-level authorization policies
"""
from ems.policy.context import ClaimContext
from ems.policy.rules import Operation, PolicyRule, RULES
from ems.policy.evaluator import PolicyDecision, evaluate, find_recursive_rules
from ems.policy.enforcement import (
    authorize,
    authorize_rows,
    authorize_scope,
    authorize_update,
    resolve_claim_context,
)

__all__ = [
    "ClaimContext",
    "Operation",
    "PolicyRule",
    "RULES",
    "PolicyDecision",
    "evaluate",
    "find_recursive_rules",
    "authorize",
    "authorize_rows",
    "authorize_scope",
    "authorize_update",
    "resolve_claim_context",
]
