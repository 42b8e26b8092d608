"""
Statement logging and row-streaming readers.

Readers wrap an executed DB-API cursor (sync or asyncio) and expose the
current row by ordinal or column name while advancing through the result in
fetchmany chunks.
"""
import logging
import time
from collections import deque
from collections.abc import Callable
from functools import wraps
from typing import Any

from dataobject.converters import convert, to_string
from dataobject.exceptions import InvalidStateError
from dataobject.types import CommandBehavior, DbType

logger = logging.getLogger(__name__)

CHUNK_SIZE = 5000


def _describe(command: Any) -> tuple[str, dict[str, Any]]:
    args = {p.name: p.value for p in command.parameters}
    return command.text, args


def dumpsql(func):
    """Decorator for logging executed commands and parameters."""
    @wraps(func)
    def wrapper(self, connection: Any, command: Any, *args: Any, **kwargs: Any):
        start = time.time()
        sql, params = _describe(command)
        logger.debug(f'SQL:\n{sql}\nargs: {params}')
        try:
            return func(self, connection, command, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {params}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


def dumpsql_async(func):
    """Decorator for logging commands executed on asyncio connections."""
    @wraps(func)
    async def wrapper(self, connection: Any, command: Any, *args: Any, **kwargs: Any):
        start = time.time()
        sql, params = _describe(command)
        logger.debug(f'SQL:\n{sql}\nargs: {params}')
        try:
            return await func(self, connection, command, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {params}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


class _Record:
    """Current-row access shared by the sync and async readers.
    """

    def __init__(self, cursor: Any, behavior: CommandBehavior = CommandBehavior.DEFAULT,
                 on_close: Callable[[], Any] | None = None,
                 chunk_size: int = CHUNK_SIZE) -> None:
        self.cursor = cursor
        self.behavior = behavior
        self.chunk_size = chunk_size
        self.closed = False
        self.rows_read = 0
        self._on_close = on_close
        self._buffer: deque = deque()
        self._exhausted = cursor.description is None
        self._row: Any = None
        self._names = [column_name(d) for d in (cursor.description or [])]
        self._ordinals = {name.lower(): i for i, name in reversed(list(enumerate(self._names)))}

    @property
    def field_count(self) -> int:
        return len(self._names)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def get_name(self, ordinal: int) -> str:
        return self._names[ordinal]

    def get_ordinal(self, name: str) -> int:
        """Column position by name, case-insensitive."""
        try:
            return self._ordinals[name.lower()]
        except KeyError:
            raise IndexError(f'No column named {name}') from None

    def _current(self) -> Any:
        if self._row is None:
            raise InvalidStateError('No current row; call read() first')
        return self._row

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            key = self.get_ordinal(key)
        return self._current()[key]

    def get(self, key: int | str, kind: DbType) -> Any:
        return convert(self[key], kind)

    def get_string(self, key: int | str) -> str | None:
        return to_string(self[key])

    def is_null(self, key: int | str) -> bool:
        return self[key] is None

    def values(self) -> tuple:
        return tuple(self._current())

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self._names, self._current()))

    def _limit_reached(self) -> bool:
        return CommandBehavior.SINGLE_ROW in self.behavior and self.rows_read >= 1

    def _advance(self) -> bool:
        if self._buffer:
            self._row = self._buffer.popleft()
            self.rows_read += 1
            return True
        self._row = None
        return False


class Reader(_Record):
    """Forward-only reader over a DB-API cursor."""

    def __enter__(self) -> 'Reader':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def read(self) -> bool:
        """Advance to the next row, returning False once the result is exhausted."""
        if self.closed:
            raise InvalidStateError('Reader is closed')
        if self._limit_reached():
            self._row = None
            return False
        if not self._buffer and not self._exhausted:
            self._buffer = deque(self.cursor.fetchmany(self.chunk_size))
            self._exhausted = not self._buffer
        return self._advance()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.cursor.close()
        finally:
            if self._on_close is not None:
                self._on_close()
        logger.debug(f'Reader closed after {self.rows_read} row(s)')


class AsyncReader(_Record):
    """Forward-only reader over an asyncio driver cursor."""

    async def __aenter__(self) -> 'AsyncReader':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def read(self) -> bool:
        if self.closed:
            raise InvalidStateError('Reader is closed')
        if self._limit_reached():
            self._row = None
            return False
        if not self._buffer and not self._exhausted:
            self._buffer = deque(await self.cursor.fetchmany(self.chunk_size))
            self._exhausted = not self._buffer
        return self._advance()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.cursor.close()
        finally:
            if self._on_close is not None:
                await self._on_close()
        logger.debug(f'Reader closed after {self.rows_read} row(s)')


def column_name(description_item: Any) -> str:
    name = getattr(description_item, 'name', None)
    if name is None:
        name = description_item[0]
    return str(name)
