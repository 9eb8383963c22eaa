from __future__ import annotations

import json
from typing import Any, List, Mapping

from pydantic import BaseModel


class CasbinRule(BaseModel):
    """One policy rule: a ptype tag and its ordered string fields."""

    ptype: str
    rule: List[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CasbinRule":
        return cls(ptype=row["ptype"], rule=json.loads(row["rule"]))

    def serialized_rule(self) -> str:
        return serialize_rule(self.rule)

    def as_tuple(self) -> tuple:
        return (self.ptype, tuple(self.rule))


def serialize_rule(rule: List[str]) -> str:
    """Canonical JSON text of a rule tuple; the unique constraint compares this."""
    return json.dumps(list(rule), separators=(",", ":"), ensure_ascii=False)
