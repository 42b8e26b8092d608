from dataclasses import dataclass

from dataobject.strategy import get_available_dialects, get_strategy
from dataobject.strategy import get_strategy_class, is_supported_dialect
from dataobject.types import VARIABLE_LENGTH_THRESHOLD, ConnectionMode

from libb import ConfigOptions

__all__ = ['DataObjectOptions']


@dataclass
class DataObjectOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    Either `connection_string` is given directly, or it is composed from
    the individual parts the driver requires (`database` for sqlite;
    `hostname`, `username`, `password`, `database` and `port` for
    postgresql).

    Constraint codes left as None fall back to the provider's defaults.
    """
    drivername: str = 'sqlite'
    connection_string: str = None
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    mode: ConnectionMode = ConnectionMode.NORMAL
    variable_length_threshold: int = VARIABLE_LENGTH_THRESHOLD
    duplicate_key_code: int = None
    foreign_key_code: int = None
    primary_key_code: int = None

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.mode = ConnectionMode(self.mode)
        if self.variable_length_threshold < 0:
            raise ValueError('variable_length_threshold cannot be negative')
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if not self.connection_string:
            self.connection_string = get_strategy(self.drivername).build_connection_string(self)
