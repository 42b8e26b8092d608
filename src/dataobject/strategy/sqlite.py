"""
SQLite-specific strategy implementation.

This module implements the ProviderStrategy interface on top of the standard
sqlite3 driver and aiosqlite for the asyncio path. It handles SQLite's
particulars such as:
- Named `:name` bind markers
- No stored procedures (text commands only)
- Extended result codes for constraint classification
- No native DECIMAL or DATETIME storage (values bound as text)
"""
import datetime
import decimal
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import aiosqlite
from dataobject.converters import convert
from dataobject.strategy.base import ProviderStrategy, register_strategy
from dataobject.types import DbType, Parameter
from sqlalchemy.engine import make_url

if TYPE_CHECKING:
    from dataobject.options import DataObjectOptions

logger = logging.getLogger(__name__)

SQLITE_CONSTRAINT_FOREIGNKEY = 787
SQLITE_CONSTRAINT_PRIMARYKEY = 1555
SQLITE_CONSTRAINT_UNIQUE = 2067


def database_path(connection_string: str) -> str:
    """Resolve a file path from a plain path or a `sqlite:///` URL."""
    if connection_string.startswith('sqlite:'):
        return make_url(connection_string).database or ':memory:'
    return connection_string


@register_strategy('sqlite')
class SQLiteStrategy(ProviderStrategy):
    """SQLite-specific operations.
    """

    duplicate_key_code = SQLITE_CONSTRAINT_UNIQUE
    foreign_key_code = SQLITE_CONSTRAINT_FOREIGNKEY
    primary_key_code = SQLITE_CONSTRAINT_PRIMARYKEY

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    @property
    def error_types(self) -> tuple[type[BaseException], ...]:
        # aiosqlite re-exports the sqlite3 exception hierarchy
        return (sqlite3.Error,)

    def error_code(self, exc: BaseException) -> int | None:
        return getattr(exc, 'sqlite_errorcode', None)

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def build_connection_string(self, options: 'DataObjectOptions') -> str:
        return options.database

    def connect(self, connection_string: str, autocommit: bool) -> sqlite3.Connection:
        path = database_path(connection_string)
        connection = sqlite3.connect(path, isolation_level=None if autocommit else 'DEFERRED')
        connection.execute('PRAGMA foreign_keys = ON')
        logger.debug(f'Opened SQLite connection to {path} ({autocommit=})')
        return connection

    async def connect_async(self, connection_string: str, autocommit: bool) -> aiosqlite.Connection:
        path = database_path(connection_string)
        connection = await aiosqlite.connect(path, isolation_level=None if autocommit else 'DEFERRED')
        await connection.execute('PRAGMA foreign_keys = ON')
        logger.debug(f'Opened aiosqlite connection to {path} ({autocommit=})')
        return connection

    async def cursor_async(self, connection: aiosqlite.Connection) -> aiosqlite.Cursor:
        return await connection.cursor()

    def adapt_value(self, parameter: Parameter) -> Any:
        """Bind DECIMAL and DATETIME values as text."""
        value = super().adapt_value(parameter)
        if isinstance(value, decimal.Decimal):
            return str(value)
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=' ')
        if isinstance(value, bytearray | memoryview):
            return bytes(value)
        return value

    def adapt_output(self, parameter: Parameter, value: Any) -> Any:
        """Read DECIMAL and DATETIME values stored as text back into their kind."""
        if parameter.db_type in {DbType.DECIMAL, DbType.DATETIME}:
            return convert(value, parameter.db_type)
        return value
