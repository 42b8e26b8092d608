"""
Base strategy interface for database providers.

Defines the abstract base class that every provider strategy inherits from.
The dispatcher in DataObject works only against this interface: opening and
closing connections, rendering a Command into driver SQL and bind
parameters, executing it on a cursor, and reading the native error code out
of a provider exception. Concrete strategies wrap one DB-API driver (and its
asyncio counterpart) each.
"""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from dataobject.converters import convert
from dataobject.cursor import column_name, dumpsql, dumpsql_async
from dataobject.exceptions import UnsupportedOperationError
from dataobject.types import CommandType, DbType, Parameter

if TYPE_CHECKING:
    from dataobject.command import Command
    from dataobject.options import DataObjectOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['ProviderStrategy']] = {}

_UNCONVERTED_TYPES = {None, DbType.XML, DbType.TABLE}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(ProviderStrategy):
            ...
    """
    def decorator(cls: type['ProviderStrategy']) -> type['ProviderStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class ProviderStrategy(ABC):
    """Base class for provider-specific operations.

    Class attributes declare the provider's constraint error codes and the
    optional capabilities it implements.
    """

    duplicate_key_code: int | None = None
    foreign_key_code: int | None = None
    primary_key_code: int | None = None

    supports_stored_procedures: bool = False
    supports_xml: bool = False
    supports_table: bool = False

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @property
    @abstractmethod
    def error_types(self) -> tuple[type[BaseException], ...]:
        """Provider exception types routed through constraint classification."""

    @abstractmethod
    def error_code(self, exc: BaseException) -> int | None:
        """Extract the numeric provider error code from an exception.

        Args:
            exc: Exception raised by the driver

        Returns
            The native error code, or None when the exception carries none
        """

    @abstractmethod
    def connect(self, connection_string: str, autocommit: bool) -> Any:
        """Open a DB-API connection.

        Args:
            connection_string: Provider connection string
            autocommit: Whether each statement commits on its own
        """

    @abstractmethod
    async def connect_async(self, connection_string: str, autocommit: bool) -> Any:
        """Open an asyncio driver connection."""

    @abstractmethod
    async def cursor_async(self, connection: Any) -> Any:
        """Create a cursor on an asyncio driver connection."""

    @abstractmethod
    def build_connection_string(self, options: 'DataObjectOptions') -> str:
        """Build the provider connection string from option parts.

        Args:
            options: DataObjectOptions containing connection parameters
        """

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return option field names needed to compose a connection string."""

    @classmethod
    def validate_options(cls, options: 'DataObjectOptions') -> None:
        """Validate options for this dialect.

        A complete connection string makes the individual parts optional.

        Raises
            ValueError: If any required field is None or 0
        """
        if options.connection_string:
            return
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    def is_closed(self, connection: Any) -> bool:
        return bool(getattr(connection, 'closed', False))

    def close(self, connection: Any) -> None:
        connection.close()

    async def close_async(self, connection: Any) -> None:
        await connection.close()

    def commit(self, connection: Any) -> None:
        connection.commit()

    def rollback(self, connection: Any) -> None:
        connection.rollback()

    async def commit_async(self, connection: Any) -> None:
        await connection.commit()

    async def rollback_async(self, connection: Any) -> None:
        await connection.rollback()

    def adapt_value(self, parameter: Parameter) -> Any:
        """Coerce a parameter value to its declared kind before binding.
        """
        if parameter.db_type in _UNCONVERTED_TYPES:
            return parameter.value
        return convert(parameter.value, parameter.db_type)

    def bind_parameters(self, command: 'Command') -> dict[str, Any]:
        return {p.name: self.adapt_value(p) for p in command.input_parameters}

    def render(self, command: 'Command') -> tuple[Any, dict[str, Any]]:
        """Render the command into driver SQL and bind parameters.
        """
        if command.command_type is CommandType.STORED_PROCEDURE:
            if not self.supports_stored_procedures:
                raise UnsupportedOperationError(f'{self.dialect_name} does not support stored procedures')
            return self.render_procedure(command)
        return command.text, self.bind_parameters(command)

    def render_procedure(self, command: 'Command') -> tuple[Any, dict[str, Any]]:
        raise UnsupportedOperationError(f'{self.dialect_name} does not support stored procedures')

    def prepare(self, connection: Any, command: 'Command') -> None:
        """Mark the command for prepared execution.

        Drivers that cache statements implicitly need nothing more.
        """
        command.prepared = True
        logger.debug(f'Prepared command on {self.dialect_name}: {command.text}')

    def _execute_cursor(self, cursor: Any, sql: Any, params: dict[str, Any],
                        prepared: bool) -> None:
        cursor.execute(sql, params)

    async def _execute_cursor_async(self, cursor: Any, sql: Any, params: dict[str, Any],
                                    prepared: bool) -> None:
        await cursor.execute(sql, params)

    @dumpsql
    def execute(self, connection: Any, command: 'Command') -> Any:
        """Execute the command and return the cursor positioned before the first row.
        """
        sql, params = self.render(command)
        cursor = connection.cursor()
        try:
            self._execute_cursor(cursor, sql, params, command.prepared)
        except BaseException:
            cursor.close()
            raise
        return cursor

    @dumpsql_async
    async def execute_async(self, connection: Any, command: 'Command') -> Any:
        """Asynchronous counterpart of execute.
        """
        sql, params = self.render(command)
        cursor = await self.cursor_async(connection)
        try:
            await self._execute_cursor_async(cursor, sql, params, command.prepared)
        except BaseException:
            await cursor.close()
            raise
        return cursor

    def adapt_output(self, parameter: Parameter, value: Any) -> Any:
        """Convert a returned value before it is stored on an output parameter."""
        return value

    def bind_outputs(self, command: 'Command', description: Any, row: Any) -> None:
        """Populate output, input-output and return parameters from a result row.

        Columns are matched to parameters by name (case-insensitive); any
        parameter without a matching column takes the value at its position
        among the output parameters.
        """
        outputs = command.output_parameters
        if not outputs or row is None or not description:
            return
        names = [column_name(d).lower() for d in description]
        for position, parameter in enumerate(outputs):
            key = parameter.name.lower()
            if key in names:
                parameter.value = self.adapt_output(parameter, row[names.index(key)])
            elif position < len(row):
                parameter.value = self.adapt_output(parameter, row[position])
        logger.debug(f'Bound {len(outputs)} output parameter(s) from result row')
