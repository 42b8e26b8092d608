"""
Statement execution engine.

DataObject owns one connection and one command. Callers build the command
through the fluent parameter API, then run it as a non-query, a scalar
query, or a row-streaming read, synchronously or through the asyncio API
with an optional cancellation event:

    with DataObject('app.db') as do:
        count = (do.set_sql('update users set name = :name where id = :id')
                   .add_in_parameter('id', 42)
                   .add_in_parameter('name', 'Alice', size=50)
                   .execute())

Provider errors raised while executing go through the constraint
classifier, and in NORMAL mode the connection is closed on every exit path.
"""
import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import fields
from functools import partial, partialmethod
from typing import Any, Self

from dataobject.command import Command, check_name, check_precision
from dataobject.command import check_size
from dataobject.connection import ConnectionManager
from dataobject.constraint import ConstraintClassifier, ConstraintHandler
from dataobject.converters import convert, to_binary, to_string
from dataobject.cursor import AsyncReader, Reader
from dataobject.exceptions import ArgumentMissingError, ParameterNotFoundError
from dataobject.exceptions import ParameterTypeError, ScalarConversionError
from dataobject.exceptions import UnsupportedOperationError
from dataobject.options import DataObjectOptions
from dataobject.strategy import get_strategy
from dataobject.types import RETURN_PARAMETER, VARIABLE_LENGTH_THRESHOLD
from dataobject.types import CommandBehavior, CommandType, ConnectionMode
from dataobject.types import DbType, NumericType, Parameter
from dataobject.types import ParameterDirection, infer_db_type
from dataobject.utils import cancellable

from libb import load_options

logger = logging.getLogger(__name__)

__all__ = ['DataObject', 'connect']

Kind = DbType | NumericType


def _db_type(kind: Kind | None) -> DbType | None:
    if isinstance(kind, NumericType):
        return kind.db_type
    return kind


def _check_callbacks(setter: Any, filler: Any) -> None:
    if not callable(setter):
        raise ArgumentMissingError('Reader setter callback is required')
    if not callable(filler):
        raise ArgumentMissingError('Reader filler callback is required')


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    """Call a reader callback, awaiting it when it is a coroutine function."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class DataObject:
    """Parameterized statement execution over one owned connection.

    Args:
        connection_string: Provider connection string, a file path or URL
            for sqlite and a libpq URL or DSN for postgresql
        mode: ConnectionMode (or its value), fixed for the lifetime of the
            instance
        drivername: Registered provider strategy name
        variable_length_threshold: String parameters larger than this are
            variable-length unless the caller says otherwise
        duplicate_key_code, foreign_key_code, primary_key_code: Provider
            error codes for constraint classification; None keeps the
            provider's default
    """

    def __init__(self, connection_string: str | None,
                 mode: ConnectionMode | str = ConnectionMode.NORMAL, *,
                 drivername: str = 'sqlite',
                 variable_length_threshold: int = VARIABLE_LENGTH_THRESHOLD,
                 duplicate_key_code: int | None = None,
                 foreign_key_code: int | None = None,
                 primary_key_code: int | None = None) -> None:
        self.strategy = get_strategy(drivername)
        self.command = Command()
        self.manager = ConnectionManager(self.strategy, connection_string, ConnectionMode(mode))
        self.variable_length_threshold = variable_length_threshold
        self.classifier = ConstraintClassifier(
            duplicate_key_code=self.strategy.duplicate_key_code if duplicate_key_code is None else duplicate_key_code,
            foreign_key_code=self.strategy.foreign_key_code if foreign_key_code is None else foreign_key_code,
            primary_key_code=self.strategy.primary_key_code if primary_key_code is None else primary_key_code,
        )
        self._handlers: list[ConstraintHandler] = []
        self._in_transaction = False

    def __repr__(self) -> str:
        return f'DataObject({self.strategy.dialect_name}, {self.mode.value}, {self.command!r})'

    @property
    def mode(self) -> ConnectionMode:
        return self.manager.mode

    @property
    def connection(self) -> Any:
        """The underlying driver connection, None while closed."""
        return self.manager.connection

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose_async()

    def dispose(self) -> None:
        """Close the connection if open and release the command. Idempotent.
        """
        self.manager.dispose()
        self.command.clear()

    async def dispose_async(self) -> None:
        await self.manager.dispose_async()
        self.command.clear()

    #
    # constraint violation notification
    #

    def add_constraint_handler(self, handler: ConstraintHandler) -> Self:
        """Subscribe `handler(sender, event)`, called before ConstraintViolationError is raised.
        """
        self._handlers.append(handler)
        return self

    def remove_constraint_handler(self, handler: ConstraintHandler) -> Self:
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    @contextmanager
    def _classify(self):
        try:
            yield
        except self.strategy.error_types as exc:
            self.classifier.raise_for(self, exc, self.strategy.error_code(exc), self._handlers)
            raise

    #
    # command and parameter builder
    #

    def set_sql(self, text: str) -> Self:
        self.command.set(text, CommandType.TEXT)
        return self

    def set_stored_procedure(self, name: str) -> Self:
        self.command.set(name, CommandType.STORED_PROCEDURE)
        return self

    def _check_capability(self, db_type: DbType) -> None:
        if db_type is DbType.XML and not self.strategy.supports_xml:
            raise UnsupportedOperationError(f'{self.strategy.dialect_name} does not support XML parameters')
        if db_type is DbType.TABLE and not self.strategy.supports_table:
            raise UnsupportedOperationError(f'{self.strategy.dialect_name} does not support table-valued parameters')

    def _add(self, name: str, value: Any, db_type: Kind | None,
             direction: ParameterDirection, size: int | None = None,
             variable: bool | None = None, precision: int = 0,
             scale: int = 0) -> Self:
        check_name(name)
        kind = _db_type(db_type)
        if kind is None:
            kind = infer_db_type(value)
        if kind is None:
            if value is None:
                raise ParameterTypeError(f'Parameter {name} has no value; pass db_type explicitly')
            raise ParameterTypeError(f'Cannot bind {type(value).__name__} value to parameter {name}')
        self._check_capability(kind)
        parameter = Parameter(name, kind, direction, value)
        if kind is DbType.STRING:
            if size is None:
                size = max(len(value), 1) if isinstance(value, str) else 1
            check_size(name, size)
            parameter.size = size
            parameter.variable = size > self.variable_length_threshold if variable is None else variable
        elif kind is DbType.BINARY and size is not None:
            check_size(name, size)
            parameter.size = size
            parameter.variable = True if variable is None else variable
        elif kind is DbType.DECIMAL:
            check_precision(name, precision, scale)
            parameter.precision, parameter.scale = precision, scale
        self.command.add(parameter)
        logger.debug(f'Added {direction.value} parameter {name} ({kind.value})')
        return self

    def add_in_parameter(self, name: str, value: Any = None, db_type: Kind | None = None, *,
                         size: int | None = None, variable: bool | None = None,
                         precision: int = 0, scale: int = 0) -> Self:
        """Bind an input parameter.

        The data kind is inferred from `value` unless `db_type` is given. A
        DbType or a NumericType both select the kind; the value of a
        declared parameter can be supplied later through set_parameter.
        """
        return self._add(name, value, db_type, ParameterDirection.INPUT,
                         size, variable, precision, scale)

    def add_out_parameter(self, name: str, db_type: Kind, *,
                          size: int | None = None, variable: bool | None = None,
                          precision: int = 0, scale: int = 0) -> Self:
        return self._add(name, None, db_type, ParameterDirection.OUTPUT,
                         size, variable, precision, scale)

    def add_in_out_parameter(self, name: str, value: Any = None, db_type: Kind | None = None, *,
                             size: int | None = None, variable: bool | None = None,
                             precision: int = 0, scale: int = 0) -> Self:
        return self._add(name, value, db_type, ParameterDirection.INPUT_OUTPUT,
                         size, variable, precision, scale)

    def add_return_parameter(self) -> Self:
        """Register the INT32 return value; it must be the first parameter.
        """
        return self._add(RETURN_PARAMETER, None, DbType.INT32, ParameterDirection.RETURN_VALUE)

    def add_table_parameter(self, name: str, type_name: str, rows: Iterable[Any]) -> Self:
        self._check_capability(DbType.TABLE)
        check_name(name)
        if not type_name:
            raise ArgumentMissingError(f'Table type name is required for parameter {name}')
        self.command.add(Parameter(name, DbType.TABLE, value=list(rows), type_name=type_name))
        return self

    def set_parameter(self, name: str, value: Any) -> Self:
        """Replace the value of a bound parameter, typically between executions of a prepared command.
        """
        check_name(name)
        self.command.set_value(name, value)
        return self

    #
    # parameter accessors
    #

    def _value(self, name: str) -> Any:
        check_name(name)
        return self.command.get(name).value

    def get(self, name: str, kind: Kind) -> Any:
        """Parameter value as `kind`; a NULL value is a cast error.
        """
        value = self._value(name)
        kind = _db_type(kind)
        if value is None:
            raise ScalarConversionError(f'Parameter {name} is NULL and cannot be read as {kind.value}')
        return convert(value, kind, strict=True)

    def get_or_none(self, name: str, kind: Kind) -> Any:
        return convert(self._value(name), _db_type(kind), strict=True)

    def get_or_default(self, name: str, kind: Kind, default: Any) -> Any:
        value = self.get_or_none(name, kind)
        return default if value is None else value

    def get_string(self, name: str) -> str | None:
        return to_string(self._value(name))

    def get_binary(self, name: str) -> bytes | None:
        return to_binary(self._value(name))

    def get_xml(self, name: str) -> str | None:
        if not self.strategy.supports_xml:
            raise UnsupportedOperationError(f'{self.strategy.dialect_name} does not support XML parameters')
        return to_string(self._value(name))

    def get_return(self) -> int:
        """Return value of the executed routine as a 32-bit integer.
        """
        if self.command.return_parameter is None:
            raise ParameterNotFoundError('No return parameter registered; call add_return_parameter() first')
        return self.get(RETURN_PARAMETER, DbType.INT32)

    get_boolean = partialmethod(get, kind=DbType.BOOLEAN)
    get_byte = partialmethod(get, kind=DbType.BYTE)
    get_int16 = partialmethod(get, kind=DbType.INT16)
    get_int32 = partialmethod(get, kind=DbType.INT32)
    get_int64 = partialmethod(get, kind=DbType.INT64)
    get_single = partialmethod(get, kind=DbType.SINGLE)
    get_double = partialmethod(get, kind=DbType.DOUBLE)
    get_decimal = partialmethod(get, kind=DbType.DECIMAL)
    get_datetime = partialmethod(get, kind=DbType.DATETIME)

    get_boolean_or_none = partialmethod(get_or_none, kind=DbType.BOOLEAN)
    get_byte_or_none = partialmethod(get_or_none, kind=DbType.BYTE)
    get_int16_or_none = partialmethod(get_or_none, kind=DbType.INT16)
    get_int32_or_none = partialmethod(get_or_none, kind=DbType.INT32)
    get_int64_or_none = partialmethod(get_or_none, kind=DbType.INT64)
    get_single_or_none = partialmethod(get_or_none, kind=DbType.SINGLE)
    get_double_or_none = partialmethod(get_or_none, kind=DbType.DOUBLE)
    get_decimal_or_none = partialmethod(get_or_none, kind=DbType.DECIMAL)
    get_datetime_or_none = partialmethod(get_or_none, kind=DbType.DATETIME)

    #
    # transactions
    #

    def commit(self) -> None:
        self.manager.commit()

    def rollback(self) -> None:
        self.manager.rollback()

    async def commit_async(self) -> None:
        await self.manager.commit_async()

    async def rollback_async(self) -> None:
        await self.manager.rollback_async()

    #
    # synchronous execution
    #

    def _bind_outputs(self, cursor: Any, row: Any) -> None:
        if row is not None:
            self.strategy.bind_outputs(self.command, cursor.description, row)

    def execute(self) -> int:
        """Run the command as a non-query and return the affected row count.

        Output parameters are populated from the first returned row, if any.
        """
        self.command.check()
        try:
            connection = self.manager.open(self.command)
            with self._classify():
                cursor = self.strategy.execute(connection, self.command)
                try:
                    if cursor.description and self.command.output_parameters:
                        self._bind_outputs(cursor, cursor.fetchone())
                        # rowcount is final only once the result is exhausted
                        cursor.fetchall()
                    return cursor.rowcount
                finally:
                    cursor.close()
        finally:
            self.manager.close(self.command)

    def _first_value(self, cursor: Any) -> Any:
        if not cursor.description:
            return None
        row = cursor.fetchone()
        return None if row is None else row[0]

    def _scalar_kind(self, kind: Kind) -> DbType:
        kind = _db_type(kind)
        if kind is None:
            raise ParameterTypeError('Scalar kind is required')
        if kind is DbType.XML:
            raise UnsupportedOperationError('Use scalar_xml() for XML results')
        if kind is DbType.TABLE:
            raise UnsupportedOperationError('Table values cannot be read as a scalar')
        return kind

    def scalar(self, kind: Kind) -> Any:
        """First column of the first row as `kind`, None for no row or NULL.

        STRING uses string coercion and BINARY a raw cast; other kinds go
        through the numeric converter.
        """
        kind = self._scalar_kind(kind)
        self.command.check()
        try:
            connection = self.manager.open(self.command)
            with self._classify():
                cursor = self.strategy.execute(connection, self.command)
                try:
                    value = self._first_value(cursor)
                finally:
                    cursor.close()
        finally:
            self.manager.close(self.command)
        return convert(value, kind)

    def scalar_xml(self, filler: Callable[[str | None], Any]) -> None:
        if not self.strategy.supports_xml:
            raise UnsupportedOperationError(f'{self.strategy.dialect_name} does not support XML results')
        if not callable(filler):
            raise ArgumentMissingError('XML filler callback is required')
        filler(self.scalar(DbType.STRING))

    scalar_boolean = partialmethod(scalar, DbType.BOOLEAN)
    scalar_byte = partialmethod(scalar, DbType.BYTE)
    scalar_int16 = partialmethod(scalar, DbType.INT16)
    scalar_int32 = partialmethod(scalar, DbType.INT32)
    scalar_int64 = partialmethod(scalar, DbType.INT64)
    scalar_single = partialmethod(scalar, DbType.SINGLE)
    scalar_double = partialmethod(scalar, DbType.DOUBLE)
    scalar_decimal = partialmethod(scalar, DbType.DECIMAL)
    scalar_datetime = partialmethod(scalar, DbType.DATETIME)
    scalar_string = partialmethod(scalar, DbType.STRING)
    scalar_binary = partialmethod(scalar, DbType.BINARY)

    def read(self, setter: Callable[[Reader], Any], filler: Callable[[Reader], Any],
             behavior: CommandBehavior = CommandBehavior.DEFAULT) -> int:
        """Stream the result set through callbacks and return the number of rows read.

        `setter(reader)` is called once before the first row, typically to
        resolve column ordinals, then `filler(reader)` once per row. In
        NORMAL mode the reader closes the connection when it is closed.
        """
        _check_callbacks(setter, filler)
        self.command.check()
        if self.mode is ConnectionMode.NORMAL:
            behavior |= CommandBehavior.CLOSE_CONNECTION
        on_close = None
        if CommandBehavior.CLOSE_CONNECTION in behavior:
            on_close = partial(self.manager.close, self.command, force=True)
        try:
            connection = self.manager.open(self.command)
            with self._classify():
                cursor = self.strategy.execute(connection, self.command)
                with Reader(cursor, behavior, on_close=on_close) as reader:
                    setter(reader)
                    while reader.read():
                        filler(reader)
                    return reader.rows_read
        finally:
            self.manager.close(self.command)

    def prepare(self) -> Self:
        """Ask the provider to prepare the command for repeated execution.
        """
        self.command.check()
        try:
            connection = self.manager.open(self.command)
            with self._classify():
                self.strategy.prepare(connection, self.command)
        finally:
            self.manager.close(self.command)
        return self

    #
    # asynchronous execution
    #

    async def execute_async(self, cancel: asyncio.Event | None = None) -> int:
        """Asynchronous execute, aborted with OperationCancelledError when `cancel` is set.
        """
        self.command.check()
        try:
            connection = await self.manager.open_async(self.command, cancel)
            with self._classify():
                cursor = await cancellable(self.strategy.execute_async(connection, self.command), cancel)
                try:
                    if cursor.description and self.command.output_parameters:
                        self._bind_outputs(cursor, await cancellable(cursor.fetchone(), cancel))
                        await cancellable(cursor.fetchall(), cancel)
                    return cursor.rowcount
                finally:
                    await cursor.close()
        finally:
            await self.manager.close_async(self.command)

    async def scalar_async(self, kind: Kind, cancel: asyncio.Event | None = None) -> Any:
        kind = self._scalar_kind(kind)
        self.command.check()
        try:
            connection = await self.manager.open_async(self.command, cancel)
            with self._classify():
                cursor = await cancellable(self.strategy.execute_async(connection, self.command), cancel)
                try:
                    row = await cancellable(cursor.fetchone(), cancel) if cursor.description else None
                finally:
                    await cursor.close()
        finally:
            await self.manager.close_async(self.command)
        return convert(None if row is None else row[0], kind)

    async def scalar_xml_async(self, filler: Callable[[str | None], Any],
                               cancel: asyncio.Event | None = None) -> None:
        if not self.strategy.supports_xml:
            raise UnsupportedOperationError(f'{self.strategy.dialect_name} does not support XML results')
        if not callable(filler):
            raise ArgumentMissingError('XML filler callback is required')
        await _invoke(filler, await self.scalar_async(DbType.STRING, cancel))

    scalar_boolean_async = partialmethod(scalar_async, DbType.BOOLEAN)
    scalar_byte_async = partialmethod(scalar_async, DbType.BYTE)
    scalar_int16_async = partialmethod(scalar_async, DbType.INT16)
    scalar_int32_async = partialmethod(scalar_async, DbType.INT32)
    scalar_int64_async = partialmethod(scalar_async, DbType.INT64)
    scalar_single_async = partialmethod(scalar_async, DbType.SINGLE)
    scalar_double_async = partialmethod(scalar_async, DbType.DOUBLE)
    scalar_decimal_async = partialmethod(scalar_async, DbType.DECIMAL)
    scalar_datetime_async = partialmethod(scalar_async, DbType.DATETIME)
    scalar_string_async = partialmethod(scalar_async, DbType.STRING)
    scalar_binary_async = partialmethod(scalar_async, DbType.BINARY)

    async def read_async(self, setter: Callable[[AsyncReader], Any], filler: Callable[[AsyncReader], Any],
                         behavior: CommandBehavior = CommandBehavior.DEFAULT,
                         cancel: asyncio.Event | None = None) -> int:
        """Asynchronous read; callbacks may be plain functions or coroutine functions.
        """
        _check_callbacks(setter, filler)
        self.command.check()
        if self.mode is ConnectionMode.NORMAL:
            behavior |= CommandBehavior.CLOSE_CONNECTION
        on_close = None
        if CommandBehavior.CLOSE_CONNECTION in behavior:
            on_close = partial(self.manager.close_async, self.command, force=True)
        try:
            connection = await self.manager.open_async(self.command, cancel)
            with self._classify():
                cursor = await cancellable(self.strategy.execute_async(connection, self.command), cancel)
                async with AsyncReader(cursor, behavior, on_close=on_close) as reader:
                    await _invoke(setter, reader)
                    while await cancellable(reader.read(), cancel):
                        await _invoke(filler, reader)
                    return reader.rows_read
        finally:
            await self.manager.close_async(self.command)

    async def prepare_async(self, cancel: asyncio.Event | None = None) -> Self:
        self.command.check()
        try:
            connection = await self.manager.open_async(self.command, cancel)
            with self._classify():
                self.strategy.prepare(connection, self.command)
        finally:
            await self.manager.close_async(self.command)
        return self


@load_options(cls=DataObjectOptions)
def connect(options: DataObjectOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> DataObject:
    """Create a DataObject from configuration.

    Args:
        options: Can be:
                - DataObjectOptions object
                - Name of a section in the configuration module
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration module holding libb Setting sections
        **kw: Additional keyword arguments to override options

    Returns
        DataObject bound to the configured connection string; no connection
        is opened until the first execution
    """
    if isinstance(options, DataObjectOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DataObjectOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    logger.debug(f'Creating {options.drivername} DataObject in {options.mode.value} mode')
    return DataObject(
        options.connection_string,
        options.mode,
        drivername=options.drivername,
        variable_length_threshold=options.variable_length_threshold,
        duplicate_key_code=options.duplicate_key_code,
        foreign_key_code=options.foreign_key_code,
        primary_key_code=options.primary_key_code,
    )
