"""
Filter mini-language -> parameterized SQL predicate.

A filter maps ``ptype`` to an ordered list of field filters. Each field filter
is one of:

    None / ""          wildcard, no constraint on that position
    "value"            exact match
    "regex:<pattern>"  regular expression search (REGEXP)
    "like:<pattern>"   LIKE pattern, backslash escapes

Values are always bound as ``?`` parameters; only the integer JSON path of a
position is rendered into the SQL text. Pure functions, no I/O.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional, Sequence, Tuple, Union

REGEX_PREFIX = "regex:"
LIKE_PREFIX = "like:"

RuleFilter = Sequence[Optional[str]]
PolicyFilter = Mapping[str, Optional[RuleFilter]]


@dataclass(frozen=True)
class Wildcard:
    pass


@dataclass(frozen=True)
class Exact:
    value: str


@dataclass(frozen=True)
class Pattern:
    kind: Literal["regex", "like"]
    value: str


FieldFilter = Union[Wildcard, Exact, Pattern]

WILDCARD = Wildcard()

_OPERATORS = {
    "regex": "REGEXP ?",
    "like": "LIKE ? ESCAPE '\\'",
}


def parse_field_filter(raw: Optional[str]) -> FieldFilter:
    if raw is None or raw == "":
        return WILDCARD
    if not isinstance(raw, str):
        raise TypeError(f"field filter must be a string or None, got {type(raw).__name__}")
    if raw.startswith(REGEX_PREFIX):
        return Pattern("regex", raw[len(REGEX_PREFIX):])
    if raw.startswith(LIKE_PREFIX):
        return Pattern("like", raw[len(LIKE_PREFIX):])
    return Exact(raw)


def parse_rule_filter(rule_filter: Optional[RuleFilter]) -> List[FieldFilter]:
    if rule_filter is None:
        return []
    if isinstance(rule_filter, str):
        raise TypeError("rule filter must be a sequence of field filters, not a string")
    return [parse_field_filter(v) for v in rule_filter]


@dataclass(frozen=True)
class Predicate:
    """A SQL predicate fragment and its positional parameters, in order."""

    sql: str = ""
    params: Tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.sql)

    def where(self) -> str:
        return f" WHERE {self.sql}" if self.sql else ""


def rule_field(index: int) -> str:
    """SQL expression for position ``index`` of the rule array.

    Matches the expression indexes idx_casbin_rule_v0..v5 for 0..5.
    """
    return f"json_extract(rule, '$[{int(index)}]')"


def _field_clauses(fields: Sequence[FieldFilter], params: List[Any], field_index: int) -> List[str]:
    res: List[str] = []
    for i, f in enumerate(fields):
        if isinstance(f, Wildcard):
            continue
        column = rule_field(i + field_index)
        params.append(f.value)
        if isinstance(f, Pattern):
            res.append(f"{column} {_OPERATORS[f.kind]}")
        else:
            res.append(f"{column} = ?")
    return res


def build_rule_predicate(rule_filter: Optional[RuleFilter], field_index: int = 0) -> Predicate:
    """AND of the non-wildcard field filters, shifted by ``field_index``."""
    if field_index < 0:
        raise ValueError(f"field_index must be >= 0, got {field_index}")
    params: List[Any] = []
    clauses = _field_clauses(parse_rule_filter(rule_filter), params, field_index)
    return Predicate(" AND ".join(clauses), tuple(params))


def build_filter_predicate(policy_filter: Optional[PolicyFilter]) -> Predicate:
    """
    OR of one group per mentioned ptype, plus a pass-through for every ptype
    the filter does not mention. An empty filter restricts nothing.
    """
    if not policy_filter:
        return Predicate()

    params: List[Any] = []
    groups: List[str] = []
    for ptype, rule_filter in policy_filter.items():
        params.append(ptype)
        clauses = _field_clauses(parse_rule_filter(rule_filter), params, 0)
        if clauses:
            groups.append(f"(ptype = ? AND ({' AND '.join(clauses)}))")
        else:
            groups.append("ptype = ?")

    mentioned = list(policy_filter.keys())
    params.extend(mentioned)
    groups.append(f"ptype NOT IN ({', '.join('?' for _ in mentioned)})")
    return Predicate(" OR ".join(groups), tuple(params))
