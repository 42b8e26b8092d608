"""
Parameterized statement execution for SQLite and PostgreSQL.

A DataObject binds typed input, output and return parameters to one command
and runs it as a non-query, a scalar query or a row-streaming read, through
either the synchronous API or the asyncio API with cancellation:

    do = dataobject.connect('sqlite', config=config)
    total = do.set_sql('select count(*) from users where active = :active') \
              .add_in_parameter('active', True) \
              .scalar_int32()

Integrity failures reported by the provider are classified into
ConstraintViolation kinds and raised as ConstraintViolationError.
"""
__version__ = '0.1.0'

from dataobject.constraint import ConstraintClassifier
from dataobject.cursor import AsyncReader, Reader
from dataobject.engine import DataObject, connect
from dataobject.exceptions import ArgumentMissingError, ConnectionFailure
from dataobject.exceptions import ConstraintViolationError, DataObjectError
from dataobject.exceptions import DbConnectionError, IntegrityError
from dataobject.exceptions import InvalidStateError, OperationCancelledError
from dataobject.exceptions import ParameterNotFoundError, ParameterRangeError
from dataobject.exceptions import ParameterTypeError, ScalarConversionError
from dataobject.exceptions import UnsupportedOperationError
from dataobject.options import DataObjectOptions
from dataobject.strategy import ProviderStrategy, get_strategy
from dataobject.strategy import register_strategy
from dataobject.transaction import Transaction
from dataobject.types import CommandBehavior, CommandType, ConnectionMode
from dataobject.types import ConstraintViolation, ConstraintViolationEvent
from dataobject.types import DbType, NumericType, Parameter
from dataobject.types import ParameterDirection

transaction = Transaction

__all__ = [
    'DataObject',
    'connect',
    'DataObjectOptions',
    'Transaction',
    'transaction',
    'Reader',
    'AsyncReader',
    'ConstraintClassifier',
    'ProviderStrategy',
    'register_strategy',
    'get_strategy',
    'CommandBehavior',
    'CommandType',
    'ConnectionMode',
    'ConstraintViolation',
    'ConstraintViolationEvent',
    'DbType',
    'NumericType',
    'Parameter',
    'ParameterDirection',
    'DataObjectError',
    'ArgumentMissingError',
    'ParameterRangeError',
    'ParameterTypeError',
    'ParameterNotFoundError',
    'InvalidStateError',
    'UnsupportedOperationError',
    'ScalarConversionError',
    'ConnectionFailure',
    'ConstraintViolationError',
    'OperationCancelledError',
    'DbConnectionError',
    'IntegrityError',
]
