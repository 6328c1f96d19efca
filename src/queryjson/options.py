import enum
import logging
import os
import sys
from dataclasses import dataclass, fields
from typing import Any

from queryjson.strategy import get_available_dialects, get_strategy_class
from queryjson.strategy import is_supported_dialect

__all__ = [
    'CommandType',
    'DatabaseOptions',
]

logger = logging.getLogger(__name__)


class CommandType(enum.Enum):
    """How the text handed to a query call is interpreted."""
    TEXT = 'text'
    STORED_PROCEDURE = 'stored_procedure'


def scriptname() -> str | None:
    """Name of the running script without extension."""
    argv0 = sys.argv[0] if sys.argv else ''
    if not argv0 or argv0 == '-c':
        return None
    return os.path.splitext(os.path.basename(argv0))[0] or None


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    `encoding` is the default text encoding for JSON output produced through
    a connection; None means the platform's preferred encoding.
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    encoding: str | None = None
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)

    def __str__(self) -> str:
        hidden = {'password'}
        parts = [f'{f.name}={getattr(self, f.name)!r}' for f in fields(self)
                 if f.name not in hidden]
        return f"DatabaseOptions({', '.join(parts)})"

    @classmethod
    def from_dict(cls, values: dict[str, Any], **kw: Any) -> 'DatabaseOptions':
        """Build options from a dictionary, ignoring unknown keys.

        Keyword arguments override dictionary entries.
        """
        known = {f.name for f in fields(cls)}
        merged = {**values, **kw}
        unknown = sorted(set(merged) - known)
        if unknown:
            logger.debug(f'Ignoring unknown options: {unknown}')
        return cls(**{k: v for k, v in merged.items() if k in known})
