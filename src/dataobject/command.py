"""
Command model and parameter validation.

A Command holds the statement text, its type, and the ordered parameters
bound to it. Validation helpers enforce naming, size and precision rules
before any parameter reaches a provider.
"""
import logging
from collections.abc import Iterator
from typing import Any

from dataobject.exceptions import ArgumentMissingError, InvalidStateError
from dataobject.exceptions import ParameterNotFoundError, ParameterRangeError
from dataobject.exceptions import UnsupportedOperationError
from dataobject.types import CommandType, Parameter

logger = logging.getLogger(__name__)


def check_name(name: str | None) -> None:
    """Raise ArgumentMissingError if the parameter name is empty.
    """
    if not name:
        raise ArgumentMissingError('Parameter name is required')


def check_size(name: str | None, size: int) -> None:
    """Validate name and a positive string size.
    """
    check_name(name)
    if size <= 0:
        raise ParameterRangeError(f'Size of parameter {name} must be greater than zero, got {size}')


def check_precision(name: str | None, precision: int, scale: int) -> None:
    """Validate name and non-negative decimal precision and scale.
    """
    check_name(name)
    if precision < 0:
        raise ParameterRangeError(f'Precision of parameter {name} cannot be negative, got {precision}')
    if scale < 0:
        raise ParameterRangeError(f'Scale of parameter {name} cannot be negative, got {scale}')


class Command:
    """The single active statement of a DataObject.
    """

    def __init__(self) -> None:
        self.text: str | None = None
        self.command_type = CommandType.TEXT
        self.prepared = False
        self.connection: Any = None
        self._parameters: dict[str, Parameter] = {}

    def __len__(self) -> int:
        return len(self._parameters)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters.values())

    def __contains__(self, name: str) -> bool:
        return name in self._parameters

    def __repr__(self) -> str:
        return f'Command({self.command_type.value}, {self.text!r}, parameters={list(self._parameters)})'

    def set(self, text: str, command_type: CommandType) -> None:
        """Replace the statement; previously bound parameters are cleared.
        """
        if not text:
            raise ArgumentMissingError('Command text is required')
        if command_type is CommandType.TABLE_DIRECT:
            raise UnsupportedOperationError('Table direct commands are not supported')
        self.text = text
        self.command_type = command_type
        self.prepared = False
        self._parameters.clear()
        logger.debug(f'Command set to {command_type.value}: {text}')

    def check(self) -> None:
        """Validate that the command can be executed.

        Text commands without parameters are refused so that ad hoc
        statements always go through parameter binding.
        """
        if not self.text:
            raise InvalidStateError('No command text set')
        if self.command_type is CommandType.TEXT and not self._parameters:
            raise InvalidStateError('Text commands require at least one parameter')

    def add(self, parameter: Parameter) -> None:
        if parameter.name in self._parameters:
            raise InvalidStateError(f'Parameter {parameter.name} is already bound')
        if parameter.is_return and self._parameters:
            raise InvalidStateError('Return parameter must be first')
        self._parameters[parameter.name] = parameter

    def get(self, name: str) -> Parameter:
        try:
            return self._parameters[name]
        except KeyError:
            raise ParameterNotFoundError(f'Parameter {name} is not bound to the command') from None

    def set_value(self, name: str, value: Any) -> Parameter:
        parameter = self.get(name)
        parameter.value = value
        return parameter

    @property
    def parameters(self) -> list[Parameter]:
        return list(self._parameters.values())

    @property
    def return_parameter(self) -> Parameter | None:
        return next((p for p in self._parameters.values() if p.is_return), None)

    @property
    def input_parameters(self) -> list[Parameter]:
        return [p for p in self._parameters.values() if p.is_input]

    @property
    def output_parameters(self) -> list[Parameter]:
        return [p for p in self._parameters.values() if p.is_output]

    def clear(self) -> None:
        self.text = None
        self.command_type = CommandType.TEXT
        self.prepared = False
        self._parameters.clear()
