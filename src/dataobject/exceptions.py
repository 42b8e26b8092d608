"""
Exception classes for statement building and execution.
"""
import asyncio
import sqlite3

import psycopg


class DataObjectError(Exception):
    """Base class for all dataobject module errors.
    """


class ArgumentMissingError(DataObjectError, ValueError):
    """A required argument (parameter name, command text, callback) is missing.
    """


class ParameterRangeError(DataObjectError, ValueError):
    """Parameter size, precision or scale is out of range.
    """


class ParameterTypeError(DataObjectError, TypeError):
    """Parameter type cannot be determined from the supplied value.
    """


class ParameterNotFoundError(DataObjectError, KeyError):
    """No parameter with the requested name is bound to the command.
    """


class InvalidStateError(DataObjectError):
    """Operation is not valid for the current command or connection state.
    """


class UnsupportedOperationError(DataObjectError, NotImplementedError):
    """Capability not implemented by the provider strategy.
    """


class ScalarConversionError(DataObjectError, TypeError):
    """Value cannot be cast to the requested data kind.
    """


class ConnectionFailure(DataObjectError):
    """Error establishing the database connection.
    """


class ConstraintViolationError(DataObjectError):
    """Integrity constraint violation reported by the provider.

    The provider exception is available as ``__cause__``.
    """

    def __init__(self, violation, message: str) -> None:
        super().__init__(message)
        self.violation = violation
        self.message = message


class OperationCancelledError(asyncio.CancelledError):
    """Asynchronous operation aborted through its cancellation event.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    ConstraintViolationError,
    )
