"""
Migration: create the casbin table, the ptype index and one expression
index per early rule position (rule[0]..rule[5]).
"""
from __future__ import annotations

import sqlite3

INDEXED_POSITIONS = range(6)


def up(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE casbin (
            id    INTEGER PRIMARY KEY AUTOINCREMENT,
            ptype TEXT NOT NULL,
            rule  TEXT NOT NULL CHECK (CASE WHEN json_valid(rule) THEN json_type(rule) = 'array' ELSE 0 END)
        )
    """)
    conn.execute("CREATE INDEX idx_casbin_ptype ON casbin (ptype)")
    for i in INDEXED_POSITIONS:
        conn.execute(f"CREATE INDEX idx_casbin_rule_v{i} ON casbin (json_extract(rule, '$[{i}]'))")


def down(conn: sqlite3.Connection) -> None:
    for i in INDEXED_POSITIONS:
        conn.execute(f"DROP INDEX IF EXISTS idx_casbin_rule_v{i}")
    conn.execute("DROP INDEX IF EXISTS idx_casbin_ptype")
    conn.execute("DROP TABLE casbin")
