"""
Fake provider for dispatcher and lifecycle tests.

FakeStrategy implements the ProviderStrategy interface on in-process
connection and cursor objects that record what was executed and return
whatever result the test configured, so the dispatcher can be tested
without a database.

Usage:
    def test_execute(make_data_object, fake_strategy):
        fake_strategy.returns(['id'], [(1,)], rowcount=1)
        do = make_data_object()
        do.set_sql('select :id').add_in_parameter('id', 1).execute()
"""
import asyncio
from collections import deque

import pytest
from dataobject import ConnectionMode, DataObject
from dataobject.strategy import ProviderStrategy, register_strategy

DUPLICATE_KEY = 2601
FOREIGN_KEY = 547
PRIMARY_KEY = 2627


class FakeProviderError(Exception):
    """Provider exception carrying a native error code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeCursor:

    def __init__(self, connection):
        strategy = connection.strategy
        self.connection = connection
        self.description = [(c, None, None, None, None, None, None) for c in strategy.columns] or None
        self.rowcount = strategy.rowcount
        self.closed = False
        self._rows = deque(strategy.rows)
        self._error = strategy.error

    def execute(self, sql, params):
        self.connection.executed.append((sql, params))
        if self._error is not None:
            raise self._error

    def fetchone(self):
        return self._rows.popleft() if self._rows else None

    def fetchmany(self, size):
        self.connection.fetches += 1
        return [self._rows.popleft() for _ in range(min(size, len(self._rows)))]

    def fetchall(self):
        rows = list(self._rows)
        self._rows.clear()
        return rows

    def close(self):
        self.closed = True


class FakeConnection:

    def __init__(self, strategy, autocommit):
        self.strategy = strategy
        self.autocommit = autocommit
        self.closed = False
        self.close_calls = 0
        self.commits = 0
        self.rollbacks = 0
        self.fetches = 0
        self.executed = []
        self.cursors = []

    def cursor(self):
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def close(self):
        self.close_calls += 1
        self.closed = True

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class AsyncFakeCursor(FakeCursor):

    async def execute(self, sql, params):
        self.connection.executed.append((sql, params))
        if self.connection.strategy.hang:
            await asyncio.Event().wait()
        if self._error is not None:
            raise self._error

    async def fetchone(self):
        return FakeCursor.fetchone(self)

    async def fetchmany(self, size):
        return FakeCursor.fetchmany(self, size)

    async def fetchall(self):
        return FakeCursor.fetchall(self)

    async def close(self):
        self.closed = True


class AsyncFakeConnection(FakeConnection):

    def cursor(self):
        cursor = AsyncFakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    async def close(self):
        FakeConnection.close(self)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


@register_strategy('fake')
class FakeStrategy(ProviderStrategy):
    """In-process provider with configurable results and failures."""

    duplicate_key_code = DUPLICATE_KEY
    foreign_key_code = FOREIGN_KEY
    primary_key_code = PRIMARY_KEY

    def __init__(self):
        self.connections = []
        self.columns = ()
        self.rows = []
        self.rowcount = -1
        self.error = None
        self.connect_error = None
        self.hang = False

    @property
    def dialect_name(self):
        return 'fake'

    @property
    def error_types(self):
        return (FakeProviderError,)

    def error_code(self, exc):
        return getattr(exc, 'code', None)

    @classmethod
    def get_required_options(cls):
        return ['database']

    def build_connection_string(self, options):
        return options.database

    def connect(self, connection_string, autocommit):
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeConnection(self, autocommit)
        self.connections.append(connection)
        return connection

    async def connect_async(self, connection_string, autocommit):
        if self.connect_error is not None:
            raise self.connect_error
        connection = AsyncFakeConnection(self, autocommit)
        self.connections.append(connection)
        return connection

    async def cursor_async(self, connection):
        return connection.cursor()

    def returns(self, columns, rows, rowcount=-1):
        self.columns = tuple(columns)
        self.rows = list(rows)
        self.rowcount = rowcount
        return self

    def fails(self, code=None, message='provider failure'):
        self.error = FakeProviderError(message, code)
        return self.error

    @property
    def last_connection(self):
        return self.connections[-1] if self.connections else None

    @property
    def close_calls(self):
        return sum(c.close_calls for c in self.connections)


@pytest.fixture
def fake_strategy():
    """Fresh fake provider for each test."""
    return FakeStrategy()


@pytest.fixture
def make_data_object(fake_strategy):
    """
    Factory creating DataObjects wired to the test's fake provider.

    Example usage:
        def test_transactional(make_data_object):
            do = make_data_object(ConnectionMode.TRANSACTIONAL)
    """
    def factory(mode=ConnectionMode.NORMAL, connection_string='fake.db', **kw):
        do = DataObject(connection_string, mode, drivername='fake', **kw)
        do.strategy = do.manager.strategy = fake_strategy
        return do

    return factory
