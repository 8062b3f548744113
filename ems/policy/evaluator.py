"""
Pure policy evaluation and static checks over a rule set
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ems.policy.context import ClaimContext
from ems.policy.rules import RULES, Operation, PolicyRule


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    table: str
    operation: Operation
    rule: Optional[str] = None


def rules_for(table: str, operation: Operation, rules: Sequence[PolicyRule] = RULES) -> List[PolicyRule]:
    return [rule for rule in rules if rule.covers(table, operation)]


def evaluate(
    ctx: ClaimContext,
    table: str,
    operation: Operation,
    row: Mapping[str, Any],
    rules: Sequence[PolicyRule] = RULES,
) -> PolicyDecision:
    """
    Decide one operation on one row.

    Rules are permissive: the first matching rule allows. With no covering
    rule the decision is deny.
    """
    for rule in rules_for(table, operation, rules):
        if rule.predicate(ctx, row):
            return PolicyDecision(True, table, operation, rule.name)
    return PolicyDecision(False, table, operation)


def consults_graph(rules: Iterable[PolicyRule]) -> Dict[str, Set[str]]:
    """Map each guarded table to the tables its predicates read"""
    graph: Dict[str, Set[str]] = defaultdict(set)
    for rule in rules:
        graph[rule.table] |= rule.predicate.consults
    return graph


def find_recursive_rules(rules: Sequence[PolicyRule] = RULES) -> List[PolicyRule]:
    """
    Return every rule whose predicate reads, directly or through other
    tables' policies, the table the rule itself guards.
    """
    graph = consults_graph(rules)
    recursive = []
    for rule in rules:
        seen: Set[str] = set()
        stack = list(rule.predicate.consults)
        while stack:
            table = stack.pop()
            if table == rule.table:
                recursive.append(rule)
                break
            if table in seen:
                continue
            seen.add(table)
            stack.extend(graph.get(table, ()))
    return recursive


_recursive = find_recursive_rules(RULES)
if _recursive:
    raise RuntimeError(f"Recursive policy rules: {_recursive}")
