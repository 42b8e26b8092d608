"""
Connection lifecycle management.

The ConnectionManager owns the single connection of a DataObject. It creates
the connection on demand, decides whether to close it after each statement
from the ConnectionMode, and releases it on disposal. Synchronous and
asyncio connections are never mixed on one manager.
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Any

from dataobject.exceptions import ConnectionFailure, InvalidStateError
from dataobject.types import ConnectionMode
from dataobject.utils import cancellable, check_cancelled

if TYPE_CHECKING:
    from dataobject.command import Command
    from dataobject.strategy import ProviderStrategy

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Open, close and dispose the connection owned by one DataObject.
    """

    def __init__(self, strategy: 'ProviderStrategy', connection_string: str | None,
                 mode: ConnectionMode = ConnectionMode.NORMAL) -> None:
        self.strategy = strategy
        self.connection_string = connection_string
        self._mode = mode
        self.connection: Any = None
        self.is_async = False
        self.disposed = False
        self.opens = 0
        self.closes = 0

    def __repr__(self) -> str:
        state = 'open' if self.is_open else 'closed'
        return f'ConnectionManager({self.strategy.dialect_name}, {self._mode.value}, {state})'

    @property
    def mode(self) -> ConnectionMode:
        return self._mode

    @property
    def autocommit(self) -> bool:
        return self._mode is not ConnectionMode.TRANSACTIONAL

    @property
    def is_open(self) -> bool:
        return self.connection is not None and not self.strategy.is_closed(self.connection)

    def _check_usable(self, is_async: bool) -> None:
        if self.disposed:
            raise InvalidStateError('DataObject has been disposed')
        if self.connection is not None and self.is_async != is_async:
            kind = 'asynchronous' if self.is_async else 'synchronous'
            raise InvalidStateError(f'Connection was opened by the {kind} API')
        if not self.connection_string:
            raise ConnectionFailure('No connection string configured')

    def _attach(self, command: 'Command | None') -> None:
        if command is not None:
            command.connection = self.connection

    def open(self, command: 'Command | None' = None) -> Any:
        """Create and open the connection if needed, and attach it to the command.

        Provider errors raised while connecting propagate unchanged.
        """
        self._check_usable(is_async=False)
        if not self.is_open:
            self.connection = self.strategy.connect(self.connection_string, self.autocommit)
            self.is_async = False
            self.opens += 1
            logger.debug(f'Connection opened ({self._mode.value})')
        self._attach(command)
        return self.connection

    async def open_async(self, command: 'Command | None' = None,
                         cancel: asyncio.Event | None = None) -> Any:
        """Asynchronous counterpart of open, aborted when `cancel` is set.
        """
        check_cancelled(cancel)
        self._check_usable(is_async=True)
        if not self.is_open:
            connect = self.strategy.connect_async(self.connection_string, self.autocommit)
            self.connection = await cancellable(connect, cancel)
            self.is_async = True
            self.opens += 1
            logger.debug(f'Async connection opened ({self._mode.value})')
        self._attach(command)
        return self.connection

    def _release(self, command: 'Command | None') -> None:
        self.connection = None
        self.closes += 1
        if command is not None:
            command.connection = None

    def close(self, command: 'Command | None' = None, force: bool = False) -> None:
        """Close the connection in NORMAL mode; a no-op in the other modes.

        `force` closes regardless of mode.
        """
        if self.connection is None or self.is_async:
            return
        if self._mode is not ConnectionMode.NORMAL and not force:
            return
        try:
            self.strategy.close(self.connection)
        finally:
            self._release(command)
        logger.debug('Connection closed')

    async def close_async(self, command: 'Command | None' = None, force: bool = False) -> None:
        if self.connection is None or not self.is_async:
            return
        if self._mode is not ConnectionMode.NORMAL and not force:
            return
        try:
            await self.strategy.close_async(self.connection)
        finally:
            self._release(command)
        logger.debug('Async connection closed')

    def commit(self) -> None:
        self._check_transaction(is_async=False)
        self.strategy.commit(self.connection)
        logger.debug('Transaction committed')

    def rollback(self) -> None:
        self._check_transaction(is_async=False)
        self.strategy.rollback(self.connection)
        logger.debug('Transaction rolled back')

    async def commit_async(self) -> None:
        self._check_transaction(is_async=True)
        await self.strategy.commit_async(self.connection)
        logger.debug('Transaction committed')

    async def rollback_async(self) -> None:
        self._check_transaction(is_async=True)
        await self.strategy.rollback_async(self.connection)
        logger.debug('Transaction rolled back')

    def _check_transaction(self, is_async: bool) -> None:
        if self._mode is not ConnectionMode.TRANSACTIONAL:
            raise InvalidStateError(f'Transactions require TRANSACTIONAL mode, not {self._mode.value}')
        if self.connection is None:
            raise InvalidStateError('No open connection to commit or roll back')
        if self.is_async != is_async:
            kind = 'asynchronous' if self.is_async else 'synchronous'
            raise InvalidStateError(f'Connection was opened by the {kind} API')

    def dispose(self) -> None:
        """Close the connection if open; later calls do nothing.
        """
        if self.disposed:
            return
        if self.connection is not None and self.is_async:
            raise InvalidStateError('Connection was opened by the asynchronous API; use dispose_async()')
        self.disposed = True
        if self.connection is not None:
            self.close(force=True)
        logger.debug(f'Disposed after {self.opens} open(s) and {self.closes} close(s)')

    async def dispose_async(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        if self.connection is not None:
            if self.is_async:
                await self.close_async(force=True)
            else:
                self.close(force=True)
        logger.debug(f'Disposed after {self.opens} open(s) and {self.closes} close(s)')
