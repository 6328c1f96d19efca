"""
Dialect strategy lookup.

Strategies are looked up by SQLAlchemy dialect name, either directly
(`get_strategy('sqlite')`) or from anything that carries a dialect: a
`ConnectionWrapper`, a SQLAlchemy `Connection` or an `Engine`
(`get_db_strategy(cn)`). One instance per dialect is shared.
"""
from functools import lru_cache

from queryjson.strategy.base import _STRATEGY_REGISTRY
from queryjson.strategy.base import DatabaseStrategy as DatabaseStrategy
from queryjson.strategy.base import register_strategy as register_strategy
from queryjson.strategy.postgres import PostgresStrategy as PostgresStrategy
from queryjson.strategy.sqlite import SQLiteStrategy as SQLiteStrategy


def get_available_dialects() -> list[str]:
    return sorted(_STRATEGY_REGISTRY)


def is_supported_dialect(dialect: str) -> bool:
    return dialect in _STRATEGY_REGISTRY


def get_strategy_class(dialect: str) -> type[DatabaseStrategy]:
    """Registered strategy class for `dialect`.

    Raises
        ValueError: If no strategy is registered for the dialect
    """
    try:
        return _STRATEGY_REGISTRY[dialect]
    except KeyError:
        raise ValueError(
            f'Unsupported dialect: {dialect}. Available: {get_available_dialects()}'
        ) from None


@lru_cache(maxsize=8)
def get_strategy(dialect: str) -> DatabaseStrategy:
    """Shared strategy instance for a dialect name."""
    return get_strategy_class(dialect)()


def get_dialect_name(cn) -> str:
    """Dialect name of a wrapper, SQLAlchemy connection or engine."""
    dialect = getattr(cn, 'dialect', None)
    if isinstance(dialect, str):
        return dialect
    if hasattr(dialect, 'name'):
        return dialect.name
    engine = getattr(cn, 'engine', None)
    if engine is not None:
        return engine.dialect.name
    raise ValueError(f'Cannot determine dialect of {type(cn).__name__}')


def get_db_strategy(cn) -> DatabaseStrategy:
    """Shared strategy instance for a connection-like object."""
    return get_strategy(get_dialect_name(cn))
