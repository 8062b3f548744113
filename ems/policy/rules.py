"""
Declarative row policies

Every rule names the table it guards, the operations it covers and a pure
predicate over (claim context, row). Predicates declare the tables they read
besides the guarded row so the rule set can be checked for recursion without
running a query.
"""
import enum
from typing import Any, FrozenSet, Mapping, Tuple

from ems.models.account import Privilege
from ems.policy.context import ClaimContext

ACCOUNTS = "accounts"
EMPLOYEES = "employees"
LEAVE_REQUESTS = "leave_requests"
ATTENDANCE_RECORDS = "attendance_records"
ACTIVITY_LOGS = "activity_logs"


class Operation(str, enum.Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


ALL_OPERATIONS = frozenset(Operation)


class Predicate:
    """Base predicate. Subclasses must stay free of I/O."""

    consults: FrozenSet[str] = frozenset()

    def __call__(self, ctx: ClaimContext, row: Mapping[str, Any]) -> bool:
        raise NotImplementedError


class Allow(Predicate):
    def __call__(self, ctx, row):
        return True

    def __repr__(self):
        return "Allow()"


class PrivilegeIn(Predicate):
    """Requester's claimed privilege is one of the given levels"""

    def __init__(self, *privileges: Privilege):
        self.privileges = frozenset(privileges)

    def __call__(self, ctx, row):
        return ctx.privilege in self.privileges

    def __repr__(self):
        return "PrivilegeIn(%s)" % ", ".join(sorted(p.value for p in self.privileges))


class SelfRow(Predicate):
    """Row column holds the requester's own account id"""

    def __init__(self, column: str = "id"):
        self.column = column

    def __call__(self, ctx, row):
        return row.get(self.column) is not None and row.get(self.column) == ctx.account_id

    def __repr__(self):
        return f"SelfRow({self.column!r})"


class OwnedBy(Predicate):
    """Row ownership column matches the requester's linked employee"""

    # The linked employee id is read from the accounts table at the request boundary
    consults = frozenset({ACCOUNTS})

    def __init__(self, column: str = "employee_id"):
        self.column = column

    def __call__(self, ctx, row):
        return ctx.linked_employee_id is not None and row.get(self.column) == ctx.linked_employee_id

    def __repr__(self):
        return f"OwnedBy({self.column!r})"


class RankBelowRequester(Predicate):
    """
    Row's privilege ranks strictly below the requester's claimed privilege.

    A row without the column (an existence check before the stored row is
    loaded) passes; services check the stored row before writing.
    """

    def __init__(self, column: str = "privilege"):
        self.column = column

    def __call__(self, ctx, row):
        if self.column not in row:
            return True
        privilege = Privilege.parse(row[self.column])
        return privilege is not None and privilege.rank < ctx.privilege.rank

    def __repr__(self):
        return f"RankBelowRequester({self.column!r})"


class AnyOf(Predicate):
    def __init__(self, *predicates: Predicate):
        self.predicates = tuple(predicates)
        self.consults = frozenset().union(*(p.consults for p in self.predicates))

    def __call__(self, ctx, row):
        return any(p(ctx, row) for p in self.predicates)

    def __repr__(self):
        return "AnyOf(%s)" % ", ".join(repr(p) for p in self.predicates)


class AllOf(Predicate):
    def __init__(self, *predicates: Predicate):
        self.predicates = tuple(predicates)
        self.consults = frozenset().union(*(p.consults for p in self.predicates))

    def __call__(self, ctx, row):
        return all(p(ctx, row) for p in self.predicates)

    def __repr__(self):
        return "AllOf(%s)" % ", ".join(repr(p) for p in self.predicates)


class PolicyRule:
    __slots__ = ("name", "table", "operations", "predicate")

    def __init__(self, name: str, table: str, operations, predicate: Predicate):
        self.name = name
        self.table = table
        self.operations = frozenset(operations)
        self.predicate = predicate

    def covers(self, table: str, operation: Operation) -> bool:
        return self.table == table and operation in self.operations

    def __repr__(self):
        ops = ",".join(sorted(op.value for op in self.operations))
        return f"PolicyRule({self.name!r}, {self.table}, [{ops}], {self.predicate!r})"


ADMIN_OR_HR = PrivilegeIn(Privilege.ADMIN, Privilege.HR)
ADMIN_ONLY = PrivilegeIn(Privilege.ADMIN)
OWN_OR_ADMIN_HR = AnyOf(OwnedBy("employee_id"), ADMIN_OR_HR)

S, I, U, D = Operation.SELECT, Operation.INSERT, Operation.UPDATE, Operation.DELETE

RULES: Tuple[PolicyRule, ...] = (
    # accounts guards the authorization records themselves: claim-only predicates
    PolicyRule("accounts_select_own", ACCOUNTS, {S}, SelfRow("id")),
    PolicyRule("accounts_select_admin_hr", ACCOUNTS, {S}, ADMIN_OR_HR),
    PolicyRule("accounts_insert_admin", ACCOUNTS, {I}, ADMIN_ONLY),
    PolicyRule("accounts_update_admin", ACCOUNTS, {U}, ADMIN_ONLY),
    # hr may touch accounts below its own rank, before and after the change
    PolicyRule(
        "accounts_update_hr_below_own_rank", ACCOUNTS, {U},
        AllOf(PrivilegeIn(Privilege.HR), RankBelowRequester("privilege")),
    ),
    PolicyRule("accounts_delete_admin", ACCOUNTS, {D}, ADMIN_ONLY),

    PolicyRule("employees_select_all", EMPLOYEES, {S}, Allow()),
    PolicyRule("employees_write_admin_hr", EMPLOYEES, {I, U}, ADMIN_OR_HR),
    PolicyRule("employees_delete_admin", EMPLOYEES, {D}, ADMIN_ONLY),

    PolicyRule("leave_requests_select_own_or_admin_hr", LEAVE_REQUESTS, {S}, OWN_OR_ADMIN_HR),
    PolicyRule("leave_requests_insert_own_or_admin_hr", LEAVE_REQUESTS, {I}, OWN_OR_ADMIN_HR),
    PolicyRule("leave_requests_manage_admin_hr", LEAVE_REQUESTS, {U, D}, ADMIN_OR_HR),

    PolicyRule("attendance_select_own_or_admin_hr", ATTENDANCE_RECORDS, {S}, OWN_OR_ADMIN_HR),
    PolicyRule("attendance_insert_own_or_admin_hr", ATTENDANCE_RECORDS, {I}, OWN_OR_ADMIN_HR),
    PolicyRule("attendance_manage_admin_hr", ATTENDANCE_RECORDS, {U, D}, ADMIN_OR_HR),

    PolicyRule("activity_logs_select_admin", ACTIVITY_LOGS, {S}, ADMIN_ONLY),
    PolicyRule("activity_logs_insert_all", ACTIVITY_LOGS, {I}, Allow()),
)
