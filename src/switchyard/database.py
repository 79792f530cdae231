from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Iterable, Mapping

from switchyard.services.logger_service import LoggerService
from switchyard.storage import MessagePackStore


def _matches(row: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    if not where:
        return True
    return all(row.get(key) == value for key, value in where.items())


class Database:
    """
    Table-style CRUD over the msgpack store.

    Rows are plain dicts; filters are equality mappings. Writes mark the store
    dirty and the autosave loop makes them durable. `schedule()` runs a write
    in the background so callers can update memory first and return at once.
    """

    def __init__(self, store: MessagePackStore, logger: LoggerService) -> None:
        self.store = store
        self.logger = logger
        self._pending: set[asyncio.Task] = set()

    async def select(
        self,
        table: str,
        fields: Iterable[str] | None = None,
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        rows = [row for row in self.store.table(table) if _matches(row, where)]
        if fields is None:
            return [dict(row) for row in rows]
        keys = list(fields)
        return [{key: row.get(key) for key in keys} for row in rows]

    async def insert(self, table: str, row: Mapping[str, Any]) -> None:
        self.store.table(table).append(dict(row))
        self.store.touch()

    async def update(self, table: str, values: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        count = 0
        for row in self.store.table(table):
            if _matches(row, where):
                row.update(values)
                count += 1
        if count:
            self.store.touch()
        return count

    async def delete(self, table: str, where: Mapping[str, Any] | None, everything: bool = False) -> int:
        if not where and not everything:
            raise ValueError(f"refusing to delete every row of {table} without everything=True")
        rows = self.store.table(table)
        kept = [row for row in rows if not _matches(row, where)]
        removed = len(rows) - len(kept)
        if removed:
            rows[:] = kept
            self.store.touch()
        return removed

    async def replace(self, table: str, where: Mapping[str, Any], rows: Iterable[Mapping[str, Any]]) -> None:
        await self.delete(table, where)
        for row in rows:
            await self.insert(table, {**row, **where})

    def schedule(self, write: Awaitable[Any], context: str) -> asyncio.Task:
        task = asyncio.ensure_future(write)
        self._pending.add(task)
        task.add_done_callback(lambda done: self._on_write_done(done, context))
        return task

    def _on_write_done(self, task: asyncio.Task, context: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            self.logger.warn(f"Write **{context}** was cancelled")
            return
        error = task.exception()
        if error is not None:
            self.logger.err(f"Write **{context}** failed", error)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
