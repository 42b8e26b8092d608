"""
Constraint violation classification.

Providers report integrity failures with numeric error codes. The classifier
maps the codes configured for a provider onto ConstraintViolation, notifies
registered handlers, then raises ConstraintViolationError chained from the
provider exception.
"""
import logging
from collections.abc import Callable, Iterable
from typing import Any

from dataobject.exceptions import ConstraintViolationError
from dataobject.types import ConstraintViolation, ConstraintViolationEvent

logger = logging.getLogger(__name__)

ConstraintHandler = Callable[[Any, ConstraintViolationEvent], None]

VIOLATION_MESSAGES = {
    ConstraintViolation.DUPLICATE_KEY: 'Duplicate key violation: a row with the same unique key already exists',
    ConstraintViolation.FOREIGN_KEY: 'Foreign key violation: the referenced row does not exist or is still referenced',
    ConstraintViolation.PRIMARY_KEY: 'Primary key violation: a row with the same primary key already exists',
}


class ConstraintClassifier:
    """Map provider error codes to violation kinds.

    Codes are compared in order duplicate key, foreign key, primary key; a
    code configured as None never matches.
    """

    def __init__(self, duplicate_key_code: int | None = None,
                 foreign_key_code: int | None = None,
                 primary_key_code: int | None = None) -> None:
        self.duplicate_key_code = duplicate_key_code
        self.foreign_key_code = foreign_key_code
        self.primary_key_code = primary_key_code

    def __repr__(self) -> str:
        return (f'ConstraintClassifier(duplicate_key_code={self.duplicate_key_code}, '
                f'foreign_key_code={self.foreign_key_code}, '
                f'primary_key_code={self.primary_key_code})')

    def classify(self, code: int | None) -> ConstraintViolation:
        if code is None:
            return ConstraintViolation.NONE
        if code == self.duplicate_key_code:
            return ConstraintViolation.DUPLICATE_KEY
        if code == self.foreign_key_code:
            return ConstraintViolation.FOREIGN_KEY
        if code == self.primary_key_code:
            return ConstraintViolation.PRIMARY_KEY
        return ConstraintViolation.NONE

    def raise_for(self, sender: Any, exc: BaseException, code: int | None,
                  handlers: Iterable[ConstraintHandler] = ()) -> None:
        """Raise ConstraintViolationError for a classified code.

        Returns without raising when the code is not a configured violation,
        leaving the caller to propagate the provider exception.
        """
        violation = self.classify(code)
        if violation is ConstraintViolation.NONE:
            return
        event = ConstraintViolationEvent(violation, VIOLATION_MESSAGES[violation])
        logger.debug(f'Provider error code {code} classified as {violation.value}')
        for handler in list(handlers):
            handler(sender, event)
        raise ConstraintViolationError(violation, event.message) from exc
