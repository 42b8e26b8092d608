"""
PostgreSQL-specific strategy implementation.

This module implements the ProviderStrategy interface with psycopg, using
psycopg.Connection for the synchronous path and psycopg.AsyncConnection for
the asyncio path. It handles PostgreSQL's particulars such as:
- Named `%(name)s` bind markers
- Stored procedures via CALL, with OUT parameters read back from the
  returned row, and functions via SELECT when a return value is requested
- Server-side prepared statements through psycopg's `prepare` flag
- SQLSTATE codes for constraint classification
"""
import logging
from typing import TYPE_CHECKING, Any

import psycopg
from dataobject.strategy.base import ProviderStrategy, register_strategy
from dataobject.types import ParameterDirection
from psycopg import sql
from sqlalchemy.engine import URL, make_url

if TYPE_CHECKING:
    from dataobject.command import Command
    from dataobject.options import DataObjectOptions

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = 23505
FOREIGN_KEY_VIOLATION = 23503


def normalize_conninfo(connection_string: str) -> str:
    """Strip a SQLAlchemy driver suffix (`postgresql+psycopg://`) so libpq accepts the URL."""
    scheme, sep, _ = connection_string.partition('://')
    if sep and '+' in scheme:
        url = make_url(connection_string).set(drivername='postgresql')
        return url.render_as_string(hide_password=False)
    return connection_string


def procedure_identifier(name: str) -> sql.Identifier:
    """Quote a possibly schema-qualified routine name."""
    return sql.Identifier(*name.split('.'))


@register_strategy('postgresql')
class PostgresStrategy(ProviderStrategy):
    """PostgreSQL-specific operations.

    PostgreSQL reports primary key and unique violations with the same
    SQLSTATE, so both classify as duplicate key.
    """

    duplicate_key_code = UNIQUE_VIOLATION
    foreign_key_code = FOREIGN_KEY_VIOLATION
    primary_key_code = None

    supports_stored_procedures = True

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @property
    def error_types(self) -> tuple[type[BaseException], ...]:
        return (psycopg.Error,)

    def error_code(self, exc: BaseException) -> int | None:
        sqlstate = getattr(exc, 'sqlstate', None)
        if sqlstate and sqlstate.isdigit():
            return int(sqlstate)
        return None

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def build_connection_string(self, options: 'DataObjectOptions') -> str:
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        url = URL.create(
            drivername='postgresql',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query,
        )
        return url.render_as_string(hide_password=False)

    def connect(self, connection_string: str, autocommit: bool) -> psycopg.Connection:
        connection = psycopg.connect(normalize_conninfo(connection_string), autocommit=autocommit)
        logger.debug(f'Opened PostgreSQL connection ({autocommit=})')
        return connection

    async def connect_async(self, connection_string: str, autocommit: bool) -> psycopg.AsyncConnection:
        connection = await psycopg.AsyncConnection.connect(
            normalize_conninfo(connection_string), autocommit=autocommit)
        logger.debug(f'Opened async PostgreSQL connection ({autocommit=})')
        return connection

    async def cursor_async(self, connection: psycopg.AsyncConnection) -> psycopg.AsyncCursor:
        return connection.cursor()

    def render_procedure(self, command: 'Command') -> tuple[sql.Composed, dict[str, Any]]:
        """Render CALL proc(...) or, with a return parameter, SELECT func(...).

        OUT parameters are passed as NULL to CALL and omitted from function
        calls, where PostgreSQL does not accept them.
        """
        returns = command.return_parameter is not None
        args: list[sql.Composable] = []
        params: dict[str, Any] = {}
        for parameter in command.parameters:
            if parameter.is_return:
                continue
            if parameter.direction is ParameterDirection.OUTPUT:
                if not returns:
                    args.append(sql.NULL)
                continue
            args.append(sql.Placeholder(parameter.name))
            params[parameter.name] = self.adapt_value(parameter)
        template = 'SELECT {}({})' if returns else 'CALL {}({})'
        query = sql.SQL(template).format(procedure_identifier(command.text), sql.SQL(', ').join(args))
        return query, params

    def _execute_cursor(self, cursor: psycopg.Cursor, query: Any, params: dict[str, Any],
                        prepared: bool) -> None:
        cursor.execute(query, params, prepare=True if prepared else None)

    async def _execute_cursor_async(self, cursor: psycopg.AsyncCursor, query: Any,
                                    params: dict[str, Any], prepared: bool) -> None:
        await cursor.execute(query, params, prepare=True if prepared else None)
