"""
Policy rule persistence over the ``casbin`` table.

Every public method is one round trip through the repository's handle source.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from ..config import StoreOptions, load_options
from ..domain.filters import PolicyFilter, RuleFilter, build_filter_predicate, build_rule_predicate
from ..logs import LogContext
from ..migrations import applied_migrations, revert_migrations, run_migrations
from ..models import CasbinRule, serialize_rule
from ..pool import Handle, HandleSource, handle_source

logger = logging.getLogger(__name__)

SELECT_SQL = "SELECT ptype, rule FROM casbin"


class CasbinRepository:

    def __init__(self, options: Optional[StoreOptions] = None):
        self.options = options or load_options()
        self.source: HandleSource = handle_source(self.options)

    @classmethod
    async def create(cls, options: Optional[StoreOptions] = None) -> "CasbinRepository":
        repo = cls(options)
        await repo.open()
        return repo

    @classmethod
    async def migrate(cls, options: Optional[StoreOptions] = None) -> List[str]:
        repo = cls(options)
        try:
            return await repo.apply_schema()
        finally:
            await repo.close()

    async def __aenter__(self) -> "CasbinRepository":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _run(self, log: LogContext, work: Callable[[Handle], Awaitable[Any]]) -> Any:
        try:
            out = await self.source.with_handle(work)
        except Exception as e:
            log.write("ERROR", f"{type(e).__name__}: {e}")
            raise
        log.write("OK")
        return out

    # ---------- reads ----------

    async def get_all_policies(self) -> List[CasbinRule]:
        rows = await self._run(LogContext("GET_ALL_POLICIES"), lambda h: h.fetch_all(SELECT_SQL))
        return [CasbinRule.from_row(r) for r in rows]

    async def get_filtered_policies(self, policy_filter: Optional[PolicyFilter]) -> List[CasbinRule]:
        pred = build_filter_predicate(policy_filter)
        log = LogContext("GET_FILTERED_POLICIES")
        log.set_payload({k: list(v or []) for k, v in (policy_filter or {}).items()})
        rows = await self._run(log, lambda h: h.fetch_all(SELECT_SQL + pred.where(), pred.params))
        return [CasbinRule.from_row(r) for r in rows]

    # ---------- writes ----------

    async def insert_policy(self, ptype: str, rule: Sequence[str]) -> None:
        rec = CasbinRule(ptype=ptype, rule=list(rule))
        log = LogContext("INSERT_POLICY")
        log.set_entity(rec.ptype, rec.serialized_rule())
        await self._run(log, lambda h: h.execute(
            "INSERT INTO casbin (ptype, rule) VALUES (?, ?)",
            (rec.ptype, rec.serialized_rule()),
        ))

    async def insert_policies(self, rules: Iterable[CasbinRule]) -> None:
        """Insert all rules in one multi-row statement: all or nothing."""
        rules = list(rules)
        if not rules:
            return
        req: List[str] = []
        values: List[str] = []
        for r in rules:
            req.append("(?, ?)")
            values.extend((r.ptype, r.serialized_rule()))
        sql = "INSERT INTO casbin (ptype, rule) VALUES " + ", ".join(req)
        log = LogContext("INSERT_POLICIES")
        log.set_payload({"count": len(rules)})
        await self._run(log, lambda h: h.execute(sql, values))

    async def delete_policies(self, ptype: str, rule_filter: Optional[RuleFilter], field_index: int = 0) -> int:
        """Delete rows of ``ptype`` whose fields match ``rule_filter`` from ``field_index`` on."""
        pred = build_rule_predicate(rule_filter, field_index)
        sql = "DELETE FROM casbin WHERE ptype = ?"
        if pred:
            sql += " AND " + pred.sql
        log = LogContext("DELETE_POLICIES")
        log.set_entity(ptype, str(field_index))
        log.set_payload(list(rule_filter or []))
        return await self._run(log, lambda h: h.execute(sql, (ptype, *pred.params)))

    async def clear_policies(self) -> int:
        return await self._run(LogContext("CLEAR_POLICIES"), lambda h: h.execute("DELETE FROM casbin"))

    # ---------- schema / lifecycle ----------

    async def apply_schema(self) -> List[str]:
        return await self._run(LogContext("APPLY_SCHEMA"), lambda h: h.run(run_migrations))

    async def revert_schema(self, steps: int = 1) -> List[str]:
        log = LogContext("REVERT_SCHEMA")
        log.set_payload({"steps": steps})
        return await self._run(log, lambda h: h.run(lambda conn: revert_migrations(conn, steps)))

    async def schema_status(self) -> List[str]:
        return await self.source.with_handle(lambda h: h.run(applied_migrations))

    async def open(self) -> None:
        if self.options.migrate is False:
            logger.debug("schema migration disabled by configuration")
            return
        await self.apply_schema()

    async def close(self) -> None:
        await self.source.close()
