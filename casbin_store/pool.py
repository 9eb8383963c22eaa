"""
Connection dispatcher: run one unit of work against an exclusive handle.

Two handle sources share the ``with_handle``/``close`` contract:

* ``PooledHandleSource`` owns a bounded pool of SQLite connections.
* ``ExternalHandleSource`` delegates to a caller-supplied factory (for example
  one that wraps the work in a transaction it controls) and owns nothing.

Blocking driver calls run through ``asyncio.to_thread``. A worker thread
cannot be stopped, so a cancelled call interrupts its statement and waits for
the thread before the handle is given back.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from . import errors
from .config import HandleFactory, StoreOptions
from .db import connect

logger = logging.getLogger(__name__)

T = TypeVar("T")
Work = Callable[["Handle"], Awaitable[T]]

# progress handler granularity (SQLite VM instructions)
_PROGRESS_STEPS = 1000


class Handle:
    """One exclusive connection for the duration of a single operation."""

    def __init__(self, conn: sqlite3.Connection, statement_timeout: Optional[float] = None):
        self.conn = conn
        self.statement_timeout = statement_timeout
        self._pending: Optional[asyncio.Future] = None

    @property
    def busy(self) -> bool:
        """True while a worker thread still holds the connection."""
        return self._pending is not None and not self._pending.done()

    def _call(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        deadline = None
        if self.statement_timeout:
            deadline = time.monotonic() + self.statement_timeout
            self.conn.set_progress_handler(lambda: int(time.monotonic() > deadline), _PROGRESS_STEPS)
        try:
            return fn(self.conn)
        except sqlite3.IntegrityError as e:
            raise errors.ConstraintViolation(str(e)) from e
        except sqlite3.OperationalError as e:
            if deadline is not None and "interrupted" in str(e):
                raise errors.QueryError(f"statement timed out after {self.statement_timeout}s") from e
            raise errors.QueryError(str(e)) from e
        except sqlite3.Error as e:
            raise errors.QueryError(str(e)) from e
        finally:
            if deadline is not None:
                self.conn.set_progress_handler(None, _PROGRESS_STEPS)

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn(conn)`` in a worker thread with driver errors mapped."""
        task = asyncio.ensure_future(asyncio.to_thread(self._call, fn))
        self._pending = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                self.conn.interrupt()
                # a second cancel leaves the handle busy; release then discards it
                await asyncio.wait({task})
            raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return await self.run(lambda conn: conn.execute(sql, tuple(params)).fetchall())

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute one statement and return the affected row count."""
        return await self.run(lambda conn: conn.execute(sql, tuple(params)).rowcount)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Handle"]:
        """BEGIN on entry; COMMIT on success, ROLLBACK on error.

        A failed ROLLBACK is logged; the error raised by the block wins.
        """
        await self.execute("BEGIN")
        try:
            yield self
        except BaseException:
            try:
                await self.execute("ROLLBACK")
            except errors.StoreError:
                logger.warning("rollback failed", exc_info=True)
            raise
        await self.execute("COMMIT")

    async def reset(self) -> None:
        """Roll back a transaction the last unit of work left open."""
        if self.conn.in_transaction:
            await self.run(lambda conn: conn.rollback())

    def close(self) -> None:
        if self.busy:
            self._pending.add_done_callback(lambda _: self.conn.close())
        else:
            self.conn.close()


class HandleSource(Protocol):
    async def with_handle(self, work: Work) -> Any: ...

    async def close(self) -> None: ...


def _shared_memory(options: StoreOptions) -> StoreOptions:
    """Point an in-memory target at one shared-cache database per pool."""
    database, is_uri = options.target()
    if not options.is_memory() or "cache=shared" in database:
        return options
    if is_uri:
        uri = database + ("&" if "?" in database else "?") + "cache=shared"
    else:
        uri = f"file:casbin-{uuid.uuid4().hex}?mode=memory&cache=shared"
    return options.model_copy(update={"connection_string": uri})


class PooledHandleSource:
    """Bounded pool of handles owned by a single repository instance.

    In-memory targets are shared by every handle of the pool and kept alive by
    one extra connection until ``close()``.
    """

    def __init__(self, options: StoreOptions, opener: Callable[[StoreOptions], sqlite3.Connection] = connect):
        self.options = _shared_memory(options)
        self._opener = opener
        self._slots = asyncio.Semaphore(options.pool_size)
        self._idle: List[Tuple[Handle, float]] = []
        self._in_use = 0
        self._closed = False
        self._anchor: Optional[sqlite3.Connection] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict:
        return {
            "pool_size": self.options.pool_size,
            "in_use": self._in_use,
            "idle": len(self._idle),
        }

    async def with_handle(self, work: Work) -> Any:
        handle = await self._acquire()
        try:
            return await work(handle)
        finally:
            await self._release(handle)

    def _abandon(self, acquire: asyncio.Future) -> None:
        # a slot granted after the caller gave up goes straight back
        def give_back(t: asyncio.Future) -> None:
            if not t.cancelled() and t.exception() is None:
                self._slots.release()

        acquire.cancel()
        acquire.add_done_callback(give_back)

    async def _acquire(self) -> Handle:
        if self._closed:
            raise errors.ConnectionError("connection pool is closed")
        timeout = self.options.acquire_timeout
        acquire = asyncio.ensure_future(self._slots.acquire())
        try:
            done, _ = await asyncio.wait({acquire}, timeout=timeout)
        except BaseException:
            self._abandon(acquire)
            raise
        if not done:
            self._abandon(acquire)
            raise errors.ConnectionError(
                f"connection pool exhausted: no handle free within {timeout}s "
                f"(pool_size={self.options.pool_size})"
            )
        try:
            handle = await self._checkout()
        except BaseException:
            self._slots.release()
            raise
        self._in_use += 1
        return handle

    async def _open(self) -> sqlite3.Connection:
        try:
            return await asyncio.to_thread(self._opener, self.options)
        except sqlite3.Error as e:
            database, _ = self.options.target()
            raise errors.ConnectionError(f"cannot open {database}: {e}") from e

    async def _checkout(self) -> Handle:
        if self._closed:
            raise errors.ConnectionError("connection pool is closed")
        if self._anchor is None and self.options.is_memory():
            self._anchor = await self._open()
        self._reap_idle()
        if self._idle:
            handle, _ = self._idle.pop()
            return handle
        conn = await self._open()
        logger.debug("opened pooled connection (%d in use)", self._in_use + 1)
        return Handle(conn, self.options.statement_timeout)

    def _reap_idle(self) -> None:
        ttl = self.options.idle_timeout
        if not ttl:
            return
        now = time.monotonic()
        keep = []
        for handle, since in self._idle:
            if now - since > ttl:
                handle.close()
                logger.debug("closed idle connection after %.1fs", now - since)
            else:
                keep.append((handle, since))
        self._idle = keep

    async def _release(self, handle: Handle) -> None:
        self._in_use -= 1
        try:
            if self._closed or handle.busy:
                handle.close()
                return
            await handle.reset()
        except errors.StoreError:
            logger.warning("discarding broken connection", exc_info=True)
            handle.close()
        except BaseException:
            handle.close()
            raise
        else:
            self._idle.append((handle, time.monotonic()))
        finally:
            self._slots.release()

    async def close(self) -> None:
        self._closed = True
        idle, self._idle = self._idle, []
        for handle, _ in idle:
            handle.close()
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None
        logger.debug("connection pool closed (%d still in use)", self._in_use)


class ExternalHandleSource:
    """Delegates every unit of work to a caller-supplied handle factory."""

    def __init__(self, factory: HandleFactory):
        self.factory = factory

    async def with_handle(self, work: Work) -> Any:
        return await self.factory(work)

    async def close(self) -> None:
        # the factory's lifecycle belongs to the caller
        return None


def handle_source(options: StoreOptions) -> HandleSource:
    if options.db_client is not None:
        return ExternalHandleSource(options.db_client)
    return PooledHandleSource(options)
