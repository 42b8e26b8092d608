"""
Low-level asyncio helpers with no internal dependencies beyond exceptions.
"""
import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from dataobject.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def check_cancelled(cancel: asyncio.Event | None) -> None:
    """Raise OperationCancelledError if the cancellation event is already set.
    """
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError('Operation cancelled')


async def cancellable(awaitable: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await `awaitable`, aborting it as soon as `cancel` is set.

    The in-flight operation is cancelled and OperationCancelledError raised
    in its place. Without an event this is a plain await.
    """
    if cancel is None:
        return await awaitable
    task = asyncio.ensure_future(awaitable)
    if cancel.is_set():
        task.cancel()
        raise OperationCancelledError('Operation cancelled')
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()
    if task.done():
        return task.result()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.debug('In-flight operation cancelled')
    raise OperationCancelledError('Operation cancelled')
