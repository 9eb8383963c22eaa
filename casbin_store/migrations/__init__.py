"""
Versioned schema migrations for the casbin table.

Each migration module exposes ``up(conn)`` and ``down(conn)``. Applied names
are recorded in ``casbin_migrations``; pending ones run inside a single
``BEGIN IMMEDIATE`` transaction so concurrent migrators serialize on the
SQLite write lock (or fail with SchemaError once the busy timeout expires).
"""
from __future__ import annotations

import datetime as dt
import logging
import sqlite3
from types import ModuleType
from typing import List, Tuple

from .. import errors
from . import initial, uniq_rule

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "casbin_migrations"

MIGRATIONS: List[Tuple[str, ModuleType]] = [
    ("1587132340023_initial", initial),
    ("1591572942519_uniq_rule", uniq_rule),
]

LATEST_VERSION = MIGRATIONS[-1][0]

_DDL = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
    id     INTEGER PRIMARY KEY AUTOINCREMENT,
    name   TEXT NOT NULL UNIQUE,
    run_on TEXT NOT NULL
)
"""


def applied_migrations(conn: sqlite3.Connection) -> List[str]:
    exists = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (MIGRATIONS_TABLE,)
    ).fetchone()
    if not exists:
        return []
    rows = conn.execute(f"SELECT name FROM {MIGRATIONS_TABLE} ORDER BY id").fetchall()
    return [r[0] for r in rows]


def run_migrations(conn: sqlite3.Connection) -> List[str]:
    """Apply every pending migration; returns the names applied (may be empty)."""
    done: List[str] = []
    try:
        conn.execute("BEGIN IMMEDIATE")
        conn.execute(_DDL)
        applied = set(applied_migrations(conn))
        for name, mod in MIGRATIONS:
            if name in applied:
                continue
            mod.up(conn)
            conn.execute(
                f"INSERT INTO {MIGRATIONS_TABLE} (name, run_on) VALUES (?, ?)",
                (name, dt.datetime.now(dt.timezone.utc).isoformat()),
            )
            done.append(name)
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise errors.SchemaError(f"migration failed: {e}") from e
    if done:
        logger.info("applied migrations: %s", ", ".join(done))
    return done


def revert_migrations(conn: sqlite3.Connection, steps: int = 1) -> List[str]:
    """Run ``down`` for the ``steps`` most recently applied migrations."""
    if steps < 1:
        raise ValueError(f"steps must be >= 1, got {steps}")
    modules = dict(MIGRATIONS)
    done: List[str] = []
    try:
        conn.execute("BEGIN IMMEDIATE")
        for name in reversed(applied_migrations(conn)[-steps:]):
            if name not in modules:
                raise errors.SchemaError(f"unknown migration in {MIGRATIONS_TABLE}: {name}")
            modules[name].down(conn)
            conn.execute(f"DELETE FROM {MIGRATIONS_TABLE} WHERE name=?", (name,))
            done.append(name)
        conn.execute("COMMIT")
    except (sqlite3.Error, errors.SchemaError) as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        if isinstance(e, errors.SchemaError):
            raise
        raise errors.SchemaError(f"revert failed: {e}") from e
    if done:
        logger.info("reverted migrations: %s", ", ".join(done))
    return done
