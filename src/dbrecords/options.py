from dataclasses import dataclass

from dbrecords.exceptions import ValidationError
from dbrecords.strategy import get_available_dialects, get_strategy_class
from dbrecords.strategy import is_supported_dialect

__all__ = ['DatabaseOptions', 'DEFAULT_WRITE_TIMEOUT']

DEFAULT_WRITE_TIMEOUT = 5.0


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`

    write_timeout bounds every create/update/delete statement, in seconds.

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'sqlite'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    appname: str = None
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValidationError(f'drivername must be one of: {available}')
        if self.write_timeout is None or self.write_timeout <= 0:
            raise ValidationError('write_timeout must be a positive number of seconds')
        self.appname = self.appname or 'dbrecords'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
