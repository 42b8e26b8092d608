import asyncio

import pytest
from dataobject import ConnectionFailure, ConnectionMode, InvalidStateError
from dataobject import OperationCancelledError
from dataobject.command import Command
from dataobject.connection import ConnectionManager
from dataobject.utils import cancellable, check_cancelled


@pytest.fixture
def make_manager(fake_strategy):
    def factory(mode=ConnectionMode.NORMAL, connection_string='fake.db'):
        return ConnectionManager(fake_strategy, connection_string, mode)

    return factory


def test_open_is_lazy_and_idempotent(make_manager, fake_strategy):
    manager = make_manager(ConnectionMode.TRANSACTIONAL)
    assert fake_strategy.connections == []
    command = Command()
    first = manager.open(command)
    second = manager.open(command)
    assert first is second
    assert command.connection is first
    assert manager.opens == 1


def test_close_only_in_normal_mode(make_manager, fake_strategy):
    manager = make_manager(ConnectionMode.MULTIPLE_RESULT_SETS)
    manager.open()
    manager.close()
    assert manager.is_open
    manager.close(force=True)
    assert not manager.is_open
    assert fake_strategy.close_calls == 1


def test_close_releases_command(make_manager):
    manager = make_manager()
    command = Command()
    manager.open(command)
    manager.close(command)
    assert command.connection is None
    assert manager.connection is None


def test_missing_connection_string(make_manager):
    with pytest.raises(ConnectionFailure):
        make_manager(connection_string='').open()


def test_dispose_is_idempotent(make_manager, fake_strategy):
    manager = make_manager(ConnectionMode.TRANSACTIONAL)
    manager.open()
    manager.dispose()
    manager.dispose()
    assert fake_strategy.close_calls == 1
    with pytest.raises(InvalidStateError):
        manager.open()


def test_dispose_logs_open_and_close_counts(make_manager, caplog):
    manager = make_manager()
    for _ in range(2):
        manager.open()
        manager.close()
    manager.dispose()
    assert (manager.opens, manager.closes) == (2, 2)
    assert 'Disposed after 2 open(s) and 2 close(s)' in caplog.text


@pytest.mark.asyncio
async def test_open_async(make_manager, fake_strategy):
    manager = make_manager()
    connection = await manager.open_async()
    assert manager.is_async
    await manager.close_async()
    assert connection.closed


class TestCancellable:

    @pytest.mark.asyncio
    async def test_plain_await_without_event(self):
        async def work():
            return 5

        assert await cancellable(work(), None) == 5

    @pytest.mark.asyncio
    async def test_result_when_event_unset(self):
        async def work():
            await asyncio.sleep(0)
            return 'done'

        assert await cancellable(work(), asyncio.Event()) == 'done'

    @pytest.mark.asyncio
    async def test_aborts_in_flight_work(self):
        started = asyncio.Event()
        cancelled = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        cancel = asyncio.Event()

        async def trigger():
            await started.wait()
            cancel.set()

        trigger_task = asyncio.create_task(trigger())
        with pytest.raises(OperationCancelledError):
            await cancellable(work(), cancel)
        await trigger_task
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_error_from_work_propagates(self):
        async def work():
            raise ValueError('bad')

        with pytest.raises(ValueError, match='bad'):
            await cancellable(work(), asyncio.Event())

    def test_check_cancelled(self):
        check_cancelled(None)
        event = asyncio.Event()
        check_cancelled(event)
        event.set()
        with pytest.raises(OperationCancelledError):
            check_cancelled(event)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
