"""
Scalar value conversion.

Values returned by the provider (scalar results, output parameters, reader
columns) arrive untyped. `convert` coerces them into the requested DbType,
keeping None as None so that a missing value never becomes a cast error.
"""
import datetime
import decimal
import logging
import struct
from typing import Any

import dateutil.parser
from dataobject.exceptions import ScalarConversionError
from dataobject.types import DbType

logger = logging.getLogger(__name__)

INTEGER_BOUNDS: dict[DbType, tuple[int, int]] = {
    DbType.BYTE: (0, 2**8 - 1),
    DbType.INT16: (-2**15, 2**15 - 1),
    DbType.INT32: (-2**31, 2**31 - 1),
    DbType.INT64: (-2**63, 2**63 - 1),
}

_BINARY_TYPES = (bytes, bytearray, memoryview)
_NUMBER_TYPES = (int, float, decimal.Decimal)


def _fail(value: Any, kind: DbType, reason: str | None = None) -> ScalarConversionError:
    msg = f'Cannot convert {type(value).__name__} value {value!r} to {kind.value}'
    if reason:
        msg = f'{msg}: {reason}'
    return ScalarConversionError(msg)


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, _NUMBER_TYPES):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {'true', 'false'}:
            return text == 'true'
    raise _fail(value, DbType.BOOLEAN)


def _to_integer(value: Any, kind: DbType) -> int:
    if isinstance(value, bool):
        result = int(value)
    elif isinstance(value, int):
        result = value
    elif isinstance(value, (float, decimal.Decimal)):
        try:
            result = round(value)
        except (OverflowError, ValueError, decimal.InvalidOperation) as exc:
            raise _fail(value, kind, str(exc)) from exc
    elif isinstance(value, str):
        try:
            result = int(value.strip())
        except ValueError as exc:
            raise _fail(value, kind) from exc
    else:
        raise _fail(value, kind)
    lo, hi = INTEGER_BOUNDS[kind]
    if not lo <= result <= hi:
        raise _fail(value, kind, f'outside [{lo}, {hi}]')
    return result


def _to_single(value: Any) -> float:
    double = _to_double(value, DbType.SINGLE)
    try:
        return struct.unpack('f', struct.pack('f', double))[0]
    except (OverflowError, struct.error) as exc:
        raise _fail(value, DbType.SINGLE, 'outside single precision range') from exc


def _to_double(value: Any, kind: DbType = DbType.DOUBLE) -> float:
    if isinstance(value, (bool, *_NUMBER_TYPES)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise _fail(value, kind) from exc
    raise _fail(value, kind)


def _to_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, decimal.Decimal):
        return value
    if isinstance(value, bool):
        return decimal.Decimal(int(value))
    if isinstance(value, (int, float, str)):
        try:
            return decimal.Decimal(str(value).strip())
        except decimal.InvalidOperation as exc:
            raise _fail(value, DbType.DECIMAL) from exc
    raise _fail(value, DbType.DECIMAL)


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, str):
        try:
            return dateutil.parser.parse(value)
        except (ValueError, OverflowError) as exc:
            raise _fail(value, DbType.DATETIME) from exc
    raise _fail(value, DbType.DATETIME)


_STRICT_TYPES: dict[DbType, tuple[type, ...]] = {
    DbType.BOOLEAN: (bool,),
    DbType.BYTE: (int,),
    DbType.INT16: (int,),
    DbType.INT32: (int,),
    DbType.INT64: (int,),
    DbType.SINGLE: (float, int),
    DbType.DOUBLE: (float, int),
    DbType.DECIMAL: (decimal.Decimal, int),
    DbType.DATETIME: (datetime.datetime,),
    DbType.STRING: (str,),
    DbType.BINARY: _BINARY_TYPES,
}


def _check_strict(value: Any, kind: DbType) -> None:
    """Unboxing check: the value must already hold the kind's Python type.
    """
    expected = _STRICT_TYPES.get(kind)
    if expected is None:
        raise _fail(value, kind, 'kind has no scalar representation')
    if isinstance(value, bool) and kind is not DbType.BOOLEAN:
        raise _fail(value, kind)
    if not isinstance(value, expected):
        raise _fail(value, kind)


def convert(value: Any, kind: DbType, strict: bool = False) -> Any:
    """Convert an untyped value to `kind`, returning None for None.

    With `strict`, the value must already be of the kind's Python type (only
    range checks and widening are applied), as when reading a parameter the
    provider populated.
    """
    if value is None:
        return None
    if strict:
        _check_strict(value, kind)
    if kind is DbType.BOOLEAN:
        return _to_boolean(value)
    if kind.is_integer:
        return _to_integer(value, kind)
    if kind is DbType.SINGLE:
        return _to_single(value)
    if kind is DbType.DOUBLE:
        return _to_double(value)
    if kind is DbType.DECIMAL:
        return _to_decimal(value)
    if kind is DbType.DATETIME:
        return _to_datetime(value)
    if kind is DbType.STRING:
        return to_string(value)
    if kind is DbType.BINARY:
        return to_binary(value)
    raise _fail(value, kind, 'kind has no scalar representation')


def to_string(value: Any) -> str | None:
    """String coercion keeping None distinct from the empty string.
    """
    if value is None:
        return None
    if isinstance(value, _BINARY_TYPES):
        return bytes(value).decode()
    return str(value)


def to_binary(value: Any) -> bytes | None:
    """Raw cast to bytes; values that are not binary yield None.
    """
    if isinstance(value, _BINARY_TYPES):
        return bytes(value)
    if value is not None:
        logger.debug(f'Binary cast of {type(value).__name__} value returned None')
    return None
