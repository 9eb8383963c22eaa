"""
Engine-facing policy operations on top of CasbinRepository.

A policy engine loads rules as text lines (``"p, alice, data1, read"``),
pushes single adds/removes back, and replaces the whole set on save.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..domain.filters import PolicyFilter
from ..models import CasbinRule
from ..repository import CasbinRepository


def format_policy_line(rule: CasbinRule) -> str:
    return ", ".join([rule.ptype, *rule.rule])


class PolicyAdapter:
    def __init__(self, repo: CasbinRepository, filtered: bool = True):
        self.repo = repo
        self.filtered = filtered

    def is_filtered(self) -> bool:
        return self.filtered

    def enable_filtered(self, enabled: bool) -> None:
        self.filtered = enabled

    async def load_policy(self) -> List[str]:
        rules = await self.repo.get_all_policies()
        return [format_policy_line(r) for r in rules]

    async def load_filtered_policy(self, policy_filter: Optional[PolicyFilter]) -> List[str]:
        rules = await self.repo.get_filtered_policies(policy_filter)
        return [format_policy_line(r) for r in rules]

    async def save_policy(self, rules: Iterable[CasbinRule]) -> bool:
        """Replace every stored rule; True when at least one rule was written.

        Two round trips (clear, then bulk insert), not one atomic unit.
        """
        rules = list(rules)
        await self.repo.clear_policies()
        if rules:
            await self.repo.insert_policies(rules)
        return len(rules) > 0

    async def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> None:
        await self.repo.insert_policy(ptype, rule)

    async def add_policies(self, sec: str, ptype: str, rules: Iterable[Sequence[str]]) -> None:
        await self.repo.insert_policies(CasbinRule(ptype=ptype, rule=list(r)) for r in rules)

    async def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> None:
        await self.repo.delete_policies(ptype, list(rule))

    async def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> None:
        await self.repo.delete_policies(ptype, list(field_values), field_index)
