"""
Migration: rule tuples are unique across the table, whatever their ptype.
"""
from __future__ import annotations

import sqlite3


def up(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE UNIQUE INDEX casbin_uniq_rule ON casbin (rule)")


def down(conn: sqlite3.Connection) -> None:
    conn.execute("DROP INDEX casbin_uniq_rule")
