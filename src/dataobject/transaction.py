"""
Transaction scope for a DataObject running in TRANSACTIONAL mode.
"""
import logging
from typing import TYPE_CHECKING, Any

from dataobject.exceptions import InvalidStateError
from dataobject.types import ConnectionMode

if TYPE_CHECKING:
    from dataobject.engine import DataObject

logger = logging.getLogger(__name__)


class Transaction:
    """Context manager committing the statements run inside it as one unit.

    The DataObject must be in TRANSACTIONAL mode. Nested transactions on the
    same DataObject are not supported.

    Examples
        with DataObject('app.db', ConnectionMode.TRANSACTIONAL) as do:
            with Transaction(do):
                do.set_sql('delete from orders where id = :id').add_in_parameter('id', 1).execute()
                do.set_sql('delete from items where order_id = :id').add_in_parameter('id', 1).execute()

        async with Transaction(do):
            await do.execute_async()
    """

    def __init__(self, data_object: 'DataObject') -> None:
        if data_object.mode is not ConnectionMode.TRANSACTIONAL:
            raise InvalidStateError(f'Transactions require TRANSACTIONAL mode, not {data_object.mode.value}')
        if data_object._in_transaction:
            raise InvalidStateError('Nested transactions are not supported')
        self.data_object = data_object

    def _begin(self) -> None:
        self.data_object._in_transaction = True
        logger.debug(f'Started transaction for {self.data_object!r}')

    def _end(self) -> None:
        self.data_object._in_transaction = False
        logger.debug(f'Transaction cleanup complete for {self.data_object!r}')

    def __enter__(self) -> 'Transaction':
        self._begin()
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if self.data_object.connection is None:
                logger.debug('No statement ran inside the transaction')
            elif exc_type is not None:
                self.data_object.rollback()
                logger.warning('Rolling back the current transaction')
            else:
                self.data_object.commit()
                logger.debug('Committed transaction')
        finally:
            self._end()

    async def __aenter__(self) -> 'Transaction':
        self._begin()
        return self

    async def __aexit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if self.data_object.connection is None:
                logger.debug('No statement ran inside the transaction')
            elif exc_type is not None:
                await self.data_object.rollback_async()
                logger.warning('Rolling back the current transaction')
            else:
                await self.data_object.commit_async()
                logger.debug('Committed transaction')
        finally:
            self._end()
