from __future__ import annotations

# casbin_store/db.py
import os
import re
import sqlite3
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

from .config import StoreOptions, load_options


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def _regexp(pattern: Optional[str], value: Optional[str]) -> Optional[int]:
    # SQLite 调用 regexp(Y, X) 计算 X REGEXP Y；NULL 字段不匹配
    if pattern is None or value is None:
        return None
    return 1 if _compile(pattern).search(str(value)) else 0


def connect(options: StoreOptions) -> sqlite3.Connection:
    """
    打开一个 SQLite 连接：autocommit（isolation_level=None）、Row 行工厂、
    区分大小写的 LIKE、REGEXP 函数；文件库启用 WAL。
    """
    database, is_uri = options.target()
    if not is_uri and database != ":memory:":
        dirn = os.path.dirname(database)
        if dirn:
            os.makedirs(dirn, exist_ok=True)
    conn = sqlite3.connect(
        database,
        timeout=options.busy_timeout,
        check_same_thread=False,
        isolation_level=None,
        uri=is_uri,
    )
    try:
        conn.row_factory = sqlite3.Row
        conn.create_function("REGEXP", 2, _regexp, deterministic=True)
        conn.execute("PRAGMA case_sensitive_like = ON;")
        if not options.is_memory():
            conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


@contextmanager
def get_conn(options: StoreOptions | None = None) -> Iterator[sqlite3.Connection]:
    """Synchronous connection for scripts and tests; closed on exit."""
    conn = connect(options or load_options())
    try:
        yield conn
    finally:
        conn.close()
