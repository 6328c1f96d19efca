"""
PostgreSQL strategy.

Stored routines are invoked with named notation (`arg => :arg`), so the
parameter bag does not need to follow declaration order. Set-returning
functions are queried with `SELECT * FROM name(...)`; procedures run
through `CALL`.
"""
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import sqlalchemy as sa
from queryjson.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from queryjson.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL over psycopg 3.
    """

    @property
    def dialect_name(self) -> str:
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """psycopg URL carrying application_name and the connect timeout."""
        query = {'application_name': options.appname}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query
        )

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'database']

    def build_procedure_sql(self, name: str, param_names: list[str],
                            returns_rows: bool = True) -> str:
        """Build a routine invocation using named argument notation.
        """
        routine = self.quote_routine_name(name)
        arguments = ', '.join(f'{p} => :{p}' for p in param_names)
        if returns_rows:
            return f'SELECT * FROM {routine}({arguments})'
        return f'CALL {routine}({arguments})'

    @contextmanager
    def statement_timeout(self, sa_connection: sa.Connection, seconds: float | None):
        """Apply `statement_timeout` for the current transaction only.

        The setting is reset after a successful block. After a failure the
        transaction is aborted and the rollback discards it.
        """
        if not seconds:
            yield
            return

        millis = max(1, int(seconds * 1000))
        sa_connection.exec_driver_sql(f'SET LOCAL statement_timeout = {millis}')
        logger.debug(f'Set statement_timeout to {millis}ms')
        yield
        sa_connection.exec_driver_sql('SET LOCAL statement_timeout TO DEFAULT')
