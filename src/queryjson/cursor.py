"""
Statement execution helpers: SQL logging and chunked row iteration.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any

import sqlalchemy as sa
from queryjson.row import Row, RowFactory

logger = logging.getLogger(__name__)

# Rows fetched per round trip when iterating unbuffered results
CHUNK_SIZE = 5000


def _describe(params: dict[str, Any] | list[dict[str, Any]]) -> str:
    if isinstance(params, dict):
        return ', '.join(params) or 'none'
    return f'{len(params)} parameter sets'


def dumpsql(func):
    """Decorator for logging SQL statements, parameters and timing.

    The wrapped method receives the statement and bind dict as its first
    positional arguments after `self`, and `self` must provide `addcall`.
    """
    @wraps(func)
    def wrapper(self, statement: sa.TextClause, params: dict[str, Any] | list[dict[str, Any]],
                *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{statement.text}\nparams: {_describe(params)}')
        try:
            return func(self, statement, params, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{statement.text}\nparams: {_describe(params)}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


def fetch_rows(result: sa.CursorResult, limit: int | None = None) -> list[Row]:
    """Fetch the remaining rows of a result, or at most `limit`, as `Row` objects."""
    if not result.returns_rows:
        return []
    factory = RowFactory(list(result.keys()))
    data = result.fetchall() if limit is None else result.fetchmany(limit)
    return [factory(values) for values in data]


def iter_rows(result: sa.CursorResult, size: int = CHUNK_SIZE) -> Iterator[Row]:
    """Iterate through a result in chunks, yielding `Row` objects."""
    if not result.returns_rows:
        return
    factory = RowFactory(list(result.keys()))
    while True:
        chunk = result.fetchmany(size)
        if not chunk:
            break
        for values in chunk:
            yield factory(values)
