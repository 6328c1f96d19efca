"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class, the row-producing query layer
3. Engine creation and management through a thread-safe registry

The ConnectionWrapper provides:
- query(sql, param, ...) - rows as a list, or a lazy iterator when unbuffered
- query_first(sql, param, ...) - first row, RowNotFoundError on none
- query_single(sql, param, ...) - exactly one row
- execute(sql, param, ...) - affected row count
- query_to_* / query_first_to_* - rows serialized as JSON or BSON
"""
import atexit
import dataclasses
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Self

import sqlalchemy as sa
from queryjson.cursor import dumpsql, fetch_rows, iter_rows
from queryjson.exceptions import MultipleRowsFoundError, QueryError
from queryjson.exceptions import RowNotFoundError
from queryjson.options import CommandType, DatabaseOptions
from queryjson.query import ResultSerializerMixin
from queryjson.row import Row
from queryjson.sql import bind_params, prepare_statement
from queryjson.strategy import DatabaseStrategy, get_db_strategy, get_strategy
from queryjson.transaction import Transaction
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

__all__ = [
    'ConnectionWrapper',
    'connect',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def get_engine_for_options(options: DatabaseOptions, engine_factory=sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = strategy.build_connection_url(options)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class ConnectionWrapper(ResultSerializerMixin):
    """Wraps a SQLAlchemy connection with the row query API.

    This class provides a thin layer over a SQLAlchemy connection that:
    1. Prepares `:name` / `@name` SQL and parameter bags for execution
    2. Materializes rows as `Row` mappings, buffered or lazily
    3. Commits each call outside an explicit `Transaction`
    4. Tracks query execution counts and timing
    5. Supports context manager protocol for explicit resource management

    Database errors propagate unchanged and are never retried.
    """

    def __init__(self, sa_connection: sa.Connection,
                 options: DatabaseOptions | None = None) -> None:
        """Initialize a connection wrapper
        """
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.calls = 0
        self.time = 0.0
        self.active_transaction: Transaction | None = None

    @classmethod
    def from_engine(cls, engine: Engine, options: DatabaseOptions | None = None) -> Self:
        """Open a connection on a caller-owned engine and wrap it."""
        sa_connection = engine.connect()
        get_db_strategy(sa_connection).configure_connection(sa_connection)
        return cls(sa_connection, options)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection when exiting the context manager
        """
        self.close()
        logger.debug('Closed connection via context manager')

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self.sa_connection.dialect.name

    @property
    def strategy(self) -> DatabaseStrategy:
        return get_db_strategy(self)

    @property
    def default_encoding(self) -> str | None:
        return self.options.encoding if self.options else None

    @property
    def in_transaction(self) -> bool:
        return self.active_transaction is not None

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def commit(self) -> None:
        self.sa_connection.commit()

    def rollback(self) -> None:
        self.sa_connection.rollback()

    def close(self) -> None:
        """Close the SQLAlchemy connection, committing first if no transaction is open
        """
        if self.sa_connection.closed:
            return
        if not self.in_transaction and self.sa_connection.in_transaction():
            self.sa_connection.commit()
        self.sa_connection.close()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    def transaction(self) -> Transaction:
        """Return a new `Transaction` on this connection."""
        return Transaction(self)

    def _check_transaction(self, transaction: Transaction | None) -> None:
        if transaction is None:
            return
        if not isinstance(transaction, Transaction) or transaction.cn is not self:
            raise ValueError('transaction does not belong to this connection')
        if transaction.finished or not transaction.is_active:
            raise QueryError('transaction is no longer active')

    @contextmanager
    def _implicit_transaction(self):
        """Commit on success and roll back on failure unless a `Transaction` is open.
        """
        if self.in_transaction:
            yield
            return
        try:
            yield
        except BaseException:
            if not self.sa_connection.closed:
                self.sa_connection.rollback()
            raise
        self.sa_connection.commit()

    @dumpsql
    def _run(self, statement: sa.TextClause, params: dict[str, Any] | list[dict[str, Any]],
             stream: bool = False) -> sa.CursorResult:
        execution_options = {}
        if stream and self.sa_connection.dialect.supports_server_side_cursors:
            execution_options['stream_results'] = True
        return self.sa_connection.execute(statement, params,
                                          execution_options=execution_options)

    def query(self, sql: str, param: Any = None, transaction: Transaction | None = None,
              buffered: bool = True, timeout: float | None = None,
              command_type: CommandType | None = CommandType.TEXT) -> list[Row] | Iterator[Row]:
        """Execute a query and return its rows.

        Args:
            sql: SQL text with `:name` or `@name` placeholders, or a routine
                name when `command_type` is STORED_PROCEDURE
            param: Named-parameter bag (mapping, dataclass, namedtuple or object)
            transaction: Active `Transaction` of this connection
            buffered: Fetch all rows now (list) or lazily (iterator)
            timeout: Statement timeout in seconds
            command_type: TEXT or STORED_PROCEDURE

        Returns
            List of rows, or an iterator of rows when `buffered` is False
        """
        self._check_transaction(transaction)
        statement, params = prepare_statement(sql, param, command_type, self.strategy)

        if not buffered:
            return self._iter_query(statement, params, timeout)

        with self._implicit_transaction():
            with self.strategy.statement_timeout(self.sa_connection, timeout):
                result = self._run(statement, params)
                rows = fetch_rows(result)
        logger.debug(f'Query returned {len(rows)} rows')
        return rows

    def _iter_query(self, statement: sa.TextClause, params: dict[str, Any],
                    timeout: float | None) -> Iterator[Row]:
        with self._implicit_transaction():
            with self.strategy.statement_timeout(self.sa_connection, timeout):
                result = self._run(statement, params, stream=True)
                try:
                    yield from iter_rows(result)
                finally:
                    result.close()

    def _query_head(self, sql: str, param: Any, transaction: Transaction | None,
                    timeout: float | None, command_type: CommandType | None,
                    count: int) -> list[Row]:
        self._check_transaction(transaction)
        statement, params = prepare_statement(sql, param, command_type, self.strategy)
        with self._implicit_transaction():
            with self.strategy.statement_timeout(self.sa_connection, timeout):
                result = self._run(statement, params)
                try:
                    rows = fetch_rows(result, count)
                finally:
                    result.close()
        return rows

    def query_first(self, sql: str, param: Any = None, transaction: Transaction | None = None,
                    timeout: float | None = None,
                    command_type: CommandType | None = CommandType.TEXT) -> Row:
        """Execute a query and return its first row.

        Raises
            RowNotFoundError: If the query returns no rows
        """
        rows = self._query_head(sql, param, transaction, timeout, command_type, 1)
        if not rows:
            raise RowNotFoundError()
        return rows[0]

    def query_single(self, sql: str, param: Any = None, transaction: Transaction | None = None,
                     timeout: float | None = None,
                     command_type: CommandType | None = CommandType.TEXT) -> Row:
        """Execute a query and return its only row.

        Raises
            RowNotFoundError: If the query returns no rows
            MultipleRowsFoundError: If the query returns more than one row
        """
        rows = self._query_head(sql, param, transaction, timeout, command_type, 2)
        if not rows:
            raise RowNotFoundError()
        if len(rows) > 1:
            raise MultipleRowsFoundError()
        return rows[0]

    def execute(self, sql: str, param: Any = None, transaction: Transaction | None = None,
                timeout: float | None = None,
                command_type: CommandType | None = CommandType.TEXT) -> int:
        """Execute a statement and return the affected row count.

        A list of parameter bags runs the statement once per bag.
        """
        self._check_transaction(transaction)
        many = isinstance(param, list)
        if many and not param:
            logger.debug('Skipping execute with empty parameter list')
            return 0

        statement, params = prepare_statement(sql, param[0] if many else param,
                                              command_type, self.strategy,
                                              returns_rows=False)
        if many:
            params = [bind_params(p) for p in param]

        with self._implicit_transaction():
            with self.strategy.statement_timeout(self.sa_connection, timeout):
                result = self._run(statement, params)
                rowcount = result.rowcount
                result.close()
        logger.debug(f'Statement affected {rowcount} rows')
        return rowcount


def connect(options: DatabaseOptions | dict[str, Any] | None = None,
            **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Connection pooling options:
        use_pool: Whether to use connection pooling (default: False)
        pool_max_connections: Maximum connections in pool (default: 5)
        pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
        pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    Returns
        ConnectionWrapper object for connecting to the database
    """
    if isinstance(options, DatabaseOptions):
        if kw:
            options = dataclasses.replace(options, **kw)
    else:
        options = DatabaseOptions.from_dict(options or {}, **kw)

    engine = get_engine_for_options(options)
    return ConnectionWrapper.from_engine(engine, options)
