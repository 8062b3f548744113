"""
Claim context handed to policy predicates
"""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ems.core.constants import CLAIM_PRIVILEGE
from ems.models.account import Privilege


@dataclass(frozen=True)
class ClaimContext:
    """What a predicate may know about the requester.

    ``privilege`` always comes from the session claim. ``linked_employee_id`` is
    resolved once at the request boundary, never from inside a predicate.
    """

    account_id: str
    privilege: Privilege
    linked_employee_id: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any], linked_employee_id: Optional[str] = None) -> "ClaimContext":
        # A claim without a privilege snapshot is evaluated at the lowest level
        privilege = Privilege.parse(claims.get(CLAIM_PRIVILEGE)) or Privilege.EMPLOYEE
        return cls(
            account_id=str(claims["sub"]),
            privilege=privilege,
            linked_employee_id=linked_employee_id,
        )
