"""
SQLite strategy.

SQLite has no stored routines and no server-side statement timeout. The
timeout is emulated with a progress handler that interrupts the running
statement once its deadline passes; the driver then raises
`sqlite3.OperationalError('interrupted')`.
"""
import datetime
import logging
import sqlite3
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import dateutil.parser
import sqlalchemy as sa
from queryjson.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from queryjson.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Number of SQLite VM instructions between deadline checks
PROGRESS_INTERVAL = 1000


def convert_date(val: bytes) -> datetime.date:
    """Parse a stored `date` column value."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Parse a stored `datetime` or `timestamp` column value."""
    return dateutil.parser.isoparse(val.decode())


def raw_sqlite_connection(sa_connection: sa.Connection) -> sqlite3.Connection:
    """Return the driver-level connection behind a SQLAlchemy connection."""
    return sa_connection.connection.dbapi_connection


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite over the standard library driver.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """File path (or `:memory:`) URL for the pysqlite driver."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Let the driver apply declared and `[type]` column converters."""
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        }

    def configure_connection(self, sa_connection: sa.Connection) -> None:
        """Register converters for declared date and datetime columns."""
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Only the database path is required."""
        return ['database']

    @contextmanager
    def statement_timeout(self, sa_connection: sa.Connection, seconds: float | None):
        """Interrupt statements that run past `seconds`.
        """
        if not seconds:
            yield
            return

        deadline = time.monotonic() + seconds
        raw_conn = raw_sqlite_connection(sa_connection)

        def check_deadline() -> int:
            return 1 if time.monotonic() > deadline else 0

        raw_conn.set_progress_handler(check_deadline, PROGRESS_INTERVAL)
        logger.debug(f'Installed {seconds}s statement deadline')
        try:
            yield
        finally:
            raw_conn.set_progress_handler(None, 0)
