"""
Base strategy interface for dialect-specific behavior.

The strategy pattern keeps connection URLs, engine arguments, routine
invocation and statement timeouts out of the query code. Each concrete
strategy registers itself for a SQLAlchemy dialect name and the rest of
the package looks it up through `get_strategy` / `get_db_strategy`.
"""
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from queryjson.exceptions import QueryError

if TYPE_CHECKING:
    from queryjson.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}

_ROUTINE_NAME = re.compile(r'^[A-Za-z_][\w$]*(\.[A-Za-z_][\w$]*)?$')


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


def quote_identifier(identifier: str) -> str:
    """Quote an identifier with standard SQL double-quote escaping.
    """
    return '"' + identifier.replace('"', '""') + '"'


class DatabaseStrategy(ABC):
    """Base class for database-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for these options.

        Args:
            options: Validated connection options

        Returns
            sqlalchemy.URL for `create_engine`
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return dialect-specific `create_engine` keyword arguments."""
        return {}

    def configure_connection(self, sa_connection: sa.Connection) -> None:
        """Apply per-connection settings after a connection is opened."""

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return names of options that must be set for this dialect."""

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Args:
            options: DatabaseOptions to validate

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    def quote_identifier(self, identifier: str) -> str:
        """Quote a database identifier.

        Override in subclasses if the database requires different quoting.
        """
        return quote_identifier(identifier)

    def quote_routine_name(self, name: str) -> str:
        """Quote a plain or schema-qualified routine name.

        Raises
            ValueError: If the name is not a valid identifier path
        """
        if not name or not _ROUTINE_NAME.match(name.strip()):
            raise ValueError(f'Invalid routine name: {name!r}')
        return '.'.join(self.quote_identifier(part) for part in name.strip().split('.'))

    def build_procedure_sql(self, name: str, param_names: list[str],
                            returns_rows: bool = True) -> str:
        """Build the statement that invokes a stored routine.

        Args:
            name: Routine name, optionally schema-qualified
            param_names: Bound parameter names, passed by name
            returns_rows: True when the call is expected to yield rows

        Raises
            QueryError: If the dialect has no stored routines
        """
        raise QueryError(f'{self.dialect_name} does not support stored procedures')

    @contextmanager
    def statement_timeout(self, sa_connection: sa.Connection, seconds: float | None):
        """Bound the execution time of statements run inside the block.

        The default implementation applies no limit.
        """
        yield
