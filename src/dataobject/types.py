"""
Parameter model for statement execution.

This module provides:
- DbType: closed set of data kinds a parameter or scalar can carry
- NumericType: provider-agnostic selector for prepared-statement parameters
- ParameterDirection, CommandType, ConnectionMode, CommandBehavior
- ConstraintViolation and the notification payload raised with it
- Parameter: a typed parameter descriptor bound to a command
"""
import datetime
import decimal
import enum
from dataclasses import dataclass
from typing import Any

RETURN_PARAMETER = 'RETURN_VALUE'
VARIABLE_LENGTH_THRESHOLD = 10


class DbType(enum.Enum):
    """Data kinds supported by parameters and scalar retrieval.
    """
    BOOLEAN = 'boolean'
    BYTE = 'byte'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    SINGLE = 'single'
    DOUBLE = 'double'
    DECIMAL = 'decimal'
    DATETIME = 'datetime'
    STRING = 'string'
    BINARY = 'binary'
    XML = 'xml'
    TABLE = 'table'

    @property
    def is_integer(self) -> bool:
        return self in {DbType.BYTE, DbType.INT16, DbType.INT32, DbType.INT64}


class NumericType(enum.Enum):
    """Numeric types used to declare parameters whose value is set later.
    """
    NONE = None
    BOOLEAN = DbType.BOOLEAN
    BYTE = DbType.BYTE
    DATETIME = DbType.DATETIME
    DOUBLE = DbType.DOUBLE
    INT16 = DbType.INT16
    INT32 = DbType.INT32
    INT64 = DbType.INT64
    SINGLE = DbType.SINGLE

    @property
    def db_type(self) -> DbType | None:
        return self.value


class ParameterDirection(enum.Enum):
    INPUT = 'input'
    OUTPUT = 'output'
    INPUT_OUTPUT = 'input_output'
    RETURN_VALUE = 'return_value'


class CommandType(enum.Enum):
    TEXT = 'text'
    STORED_PROCEDURE = 'stored_procedure'
    TABLE_DIRECT = 'table_direct'


class ConnectionMode(enum.Enum):
    """Connection modes.

    NORMAL closes the connection after each statement. TRANSACTIONAL keeps it
    open while the caller manages transaction boundaries. MULTIPLE_RESULT_SETS
    keeps it open so several result sets can be consumed.
    """
    NORMAL = 'normal'
    TRANSACTIONAL = 'transactional'
    MULTIPLE_RESULT_SETS = 'multiple_result_sets'


class CommandBehavior(enum.Flag):
    DEFAULT = 0
    SINGLE_ROW = enum.auto()
    CLOSE_CONNECTION = enum.auto()


class ConstraintViolation(enum.Enum):
    """Referential integrity violation types.
    """
    NONE = 'none'
    PRIMARY_KEY = 'primary_key'
    FOREIGN_KEY = 'foreign_key'
    DUPLICATE_KEY = 'duplicate_key'


@dataclass(frozen=True)
class ConstraintViolationEvent:
    """Payload delivered to constraint violation handlers.
    """
    violation: ConstraintViolation
    message: str


@dataclass
class Parameter:
    """Typed parameter descriptor.

    `size` and `variable` apply to strings, `precision` and `scale` to
    decimals, `type_name` to table-valued parameters.
    """
    name: str
    db_type: DbType | None
    direction: ParameterDirection = ParameterDirection.INPUT
    value: Any = None
    size: int = 0
    variable: bool = False
    precision: int = 0
    scale: int = 0
    type_name: str | None = None

    @property
    def is_input(self) -> bool:
        return self.direction in {ParameterDirection.INPUT, ParameterDirection.INPUT_OUTPUT}

    @property
    def is_output(self) -> bool:
        return self.direction is not ParameterDirection.INPUT

    @property
    def is_return(self) -> bool:
        return self.direction is ParameterDirection.RETURN_VALUE


_INT32_RANGE = (-2**31, 2**31 - 1)


def infer_db_type(value: Any) -> DbType | None:
    """Pick the data kind for a Python value, None when it cannot be inferred.
    """
    if isinstance(value, bool):
        return DbType.BOOLEAN
    if isinstance(value, int):
        lo, hi = _INT32_RANGE
        return DbType.INT32 if lo <= value <= hi else DbType.INT64
    if isinstance(value, float):
        return DbType.DOUBLE
    if isinstance(value, decimal.Decimal):
        return DbType.DECIMAL
    if isinstance(value, datetime.date):
        return DbType.DATETIME
    if isinstance(value, str):
        return DbType.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return DbType.BINARY
    return None
