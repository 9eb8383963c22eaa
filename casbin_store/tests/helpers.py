"""Sample data and small helpers shared by the test modules."""
import asyncio
import re

from casbin_store.domain.filters import Exact, Pattern, Wildcard, parse_rule_filter
from casbin_store.models import CasbinRule

SAMPLE_POLICIES = [
    CasbinRule(ptype="p", rule=["user1", "data1", "read"]),
    CasbinRule(ptype="p", rule=["user2", "data1", "write"]),
    CasbinRule(ptype="p", rule=["role1", "data2", "read"]),
    CasbinRule(ptype="p", rule=["role1", "data2", "write"]),
    CasbinRule(ptype="p", rule=["role:admin", "data3", "read"]),
    CasbinRule(ptype="p", rule=["role:user", "data3", "read"]),
    CasbinRule(ptype="p", rule=["alice", "data1", "read"]),
]

SAMPLE_ROLES = [
    CasbinRule(ptype="g", rule=["user3", "role1"]),
    CasbinRule(ptype="g", rule=["user4", "role1"]),
    CasbinRule(ptype="g", rule=["user5", "role2"]),
    CasbinRule(ptype="g2", rule=["data1", "group1"]),
]


def sample_data():
    return SAMPLE_POLICIES + SAMPLE_ROLES


def as_set(rules):
    return {r.as_tuple() for r in rules}


def run(coro):
    return asyncio.run(coro)


def _like_to_regex(pattern):
    out = []
    chars = iter(pattern)
    for c in chars:
        if c == "\\":
            out.append(re.escape(next(chars, "")))
        elif c == "%":
            out.append(".*")
        elif c == "_":
            out.append(".")
        else:
            out.append(re.escape(c))
    return "".join(out)


def oracle_matches(policy_filter, rule):
    """Reference evaluation of a filter against one CasbinRule, in Python."""
    if not policy_filter or rule.ptype not in policy_filter:
        return True
    for i, f in enumerate(parse_rule_filter(policy_filter[rule.ptype])):
        if isinstance(f, Wildcard):
            continue
        if i >= len(rule.rule):
            return False
        value = rule.rule[i]
        if isinstance(f, Exact) and value != f.value:
            return False
        if isinstance(f, Pattern) and f.kind == "regex" and not re.search(f.value, value):
            return False
        if isinstance(f, Pattern) and f.kind == "like" and not re.fullmatch(_like_to_regex(f.value), value, re.DOTALL):
            return False
    return True
