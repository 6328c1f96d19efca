"""
Database and serialization exception classes.
"""
import sqlite3

import psycopg
import sqlalchemy.exc


class DatabaseError(Exception):
    """Base class for all queryjson errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class QueryError(DatabaseError):
    """Error in query preparation or execution.
    """


class TypeConversionError(DatabaseError):
    """Error converting types between Python and a target representation.
    """


class ValidationError(DatabaseError):
    """Error in input or result validation.
    """


class CardinalityError(ValidationError):
    """A single-row query did not yield exactly the rows it required.
    """

    def __init__(self, message: str, rowcount: int | None) -> None:
        super().__init__(message)
        self.rowcount = rowcount


class RowNotFoundError(CardinalityError):
    """A single-row query returned no rows.
    """

    def __init__(self, message: str = 'Expected one row, got 0') -> None:
        super().__init__(message, 0)


class MultipleRowsFoundError(CardinalityError):
    """A single-row query returned more than one row.
    """

    def __init__(self, rowcount: int | None = None) -> None:
        got = rowcount if rowcount is not None else 'more than one'
        super().__init__(f'Expected one row, got {got}', rowcount)


class EncodingError(TypeConversionError):
    """A value cannot be represented by the target encoding.
    """


# Anything the query layer can raise while producing rows. These are
# never wrapped, so callers catch the driver classes directly.
RowMaterializationError = (
    sqlalchemy.exc.DBAPIError,
    sqlalchemy.exc.StatementError,
    psycopg.Error,
    sqlite3.Error,
    ConnectionFailure,
    QueryError,
    )

DbConnectionError = (
    sqlalchemy.exc.OperationalError,
    sqlalchemy.exc.InterfaceError,
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    sqlalchemy.exc.IntegrityError,
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    sqlalchemy.exc.ProgrammingError,
    psycopg.ProgrammingError,
    sqlite3.ProgrammingError,
    QueryError,
    )

OperationalError = (
    sqlalchemy.exc.OperationalError,
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )
