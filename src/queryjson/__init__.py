"""
Query results as JSON and BSON, over SQLAlchemy, for PostgreSQL and SQLite.

All query operations can be called either as:
- Module functions: qj.query_to_json_string(cn, sql, param)
- ConnectionWrapper methods: cn.query_to_json_string(sql, param)

The module functions are facades over the methods.
"""
__version__ = '0.1.0'

from typing import Any, BinaryIO

from queryjson.connection import ConnectionWrapper, connect, dispose_all_engines
from queryjson.converters import BUILTIN_CONVERTERS, Converter, ConverterSet
from queryjson.converters import converter, register_converter
from queryjson.encoding import from_bson_base64, read_bson_array
from queryjson.encoding import read_bson_object, read_json
from queryjson.exceptions import CardinalityError, ConnectionFailure
from queryjson.exceptions import DatabaseError, DbConnectionError
from queryjson.exceptions import EncodingError, IntegrityError
from queryjson.exceptions import MultipleRowsFoundError, OperationalError
from queryjson.exceptions import ProgrammingError, QueryError
from queryjson.exceptions import RowMaterializationError, RowNotFoundError
from queryjson.exceptions import TypeConversionError, ValidationError
from queryjson.nodes import to_array_node, to_node
from queryjson.options import CommandType, DatabaseOptions
from queryjson.row import Row
from queryjson.transaction import Transaction as transaction


def execute(cn: ConnectionWrapper, sql: str, param: Any = None, **kwargs: Any) -> int:
    """Execute a statement and return the affected row count.
    """
    return cn.execute(sql, param, **kwargs)


def query(cn: ConnectionWrapper, sql: str, param: Any = None, **kwargs: Any) -> Any:
    """Execute a query and return its rows.
    """
    return cn.query(sql, param, **kwargs)


def query_first(cn: ConnectionWrapper, sql: str, param: Any = None, **kwargs: Any) -> Row:
    """Execute a query and return its first row.

    Raises RowNotFoundError if the query returns no rows.
    """
    return cn.query_first(sql, param, **kwargs)


def query_single(cn: ConnectionWrapper, sql: str, param: Any = None, **kwargs: Any) -> Row:
    """Execute a query and return its only row.

    Raises RowNotFoundError or MultipleRowsFoundError unless exactly one row is returned.
    """
    return cn.query_single(sql, param, **kwargs)


def query_to_objects(cn: ConnectionWrapper, sql: str, param: Any = None, **kwargs: Any) -> Any:
    """Execute a query and return an iterator of object nodes.
    """
    return cn.query_to_objects(sql, param, **kwargs)


def query_to_array(cn: ConnectionWrapper, sql: str, param: Any = None,
                   **kwargs: Any) -> list[dict[str, Any]]:
    """Execute a query and return an array node.
    """
    return cn.query_to_array(sql, param, **kwargs)


def query_to_json_stream(cn: ConnectionWrapper, sql: str, param: Any = None,
                         **kwargs: Any) -> BinaryIO:
    """Execute a query and return its rows as JSON in a rewound stream.
    """
    return cn.query_to_json_stream(sql, param, **kwargs)


def query_to_json_string(cn: ConnectionWrapper, sql: str, param: Any = None,
                         **kwargs: Any) -> str:
    """Execute a query and return its rows as a JSON string.
    """
    return cn.query_to_json_string(sql, param, **kwargs)


def query_to_bson_stream(cn: ConnectionWrapper, sql: str, param: Any = None,
                         **kwargs: Any) -> BinaryIO:
    """Execute a query and return its rows as BSON in a rewound stream.
    """
    return cn.query_to_bson_stream(sql, param, **kwargs)


def query_to_bson_bytes(cn: ConnectionWrapper, sql: str, param: Any = None,
                        **kwargs: Any) -> bytes:
    """Execute a query and return its rows as BSON bytes.
    """
    return cn.query_to_bson_bytes(sql, param, **kwargs)


def query_to_bson_base64(cn: ConnectionWrapper, sql: str, param: Any = None,
                         **kwargs: Any) -> str:
    """Execute a query and return its rows as Base64-encoded BSON.
    """
    return cn.query_to_bson_base64(sql, param, **kwargs)


def query_first_object(cn: ConnectionWrapper, sql: str, param: Any = None,
                       **kwargs: Any) -> dict[str, Any]:
    """Execute a query and return its first row as an object node.
    """
    return cn.query_first_object(sql, param, **kwargs)


def query_first_to_json_stream(cn: ConnectionWrapper, sql: str, param: Any = None,
                               **kwargs: Any) -> BinaryIO:
    """Execute a query and return its first row as JSON in a rewound stream.
    """
    return cn.query_first_to_json_stream(sql, param, **kwargs)


def query_first_to_json_string(cn: ConnectionWrapper, sql: str, param: Any = None,
                               **kwargs: Any) -> str:
    """Execute a query and return its first row as a JSON string.
    """
    return cn.query_first_to_json_string(sql, param, **kwargs)


def query_first_to_bson_stream(cn: ConnectionWrapper, sql: str, param: Any = None,
                               **kwargs: Any) -> BinaryIO:
    """Execute a query and return its first row as BSON in a rewound stream.
    """
    return cn.query_first_to_bson_stream(sql, param, **kwargs)


def query_first_to_bson_bytes(cn: ConnectionWrapper, sql: str, param: Any = None,
                              **kwargs: Any) -> bytes:
    """Execute a query and return its first row as BSON bytes.
    """
    return cn.query_first_to_bson_bytes(sql, param, **kwargs)


def query_first_to_bson_base64(cn: ConnectionWrapper, sql: str, param: Any = None,
                               **kwargs: Any) -> str:
    """Execute a query and return its first row as Base64-encoded BSON.
    """
    return cn.query_first_to_bson_base64(sql, param, **kwargs)


__all__ = [
    'connect',
    'dispose_all_engines',
    'ConnectionWrapper',
    'transaction',
    'DatabaseOptions',
    'CommandType',
    'Row',
    'execute',
    'query',
    'query_first',
    'query_single',
    'query_to_objects',
    'query_to_array',
    'query_to_json_stream',
    'query_to_json_string',
    'query_to_bson_stream',
    'query_to_bson_bytes',
    'query_to_bson_base64',
    'query_first_object',
    'query_first_to_json_stream',
    'query_first_to_json_string',
    'query_first_to_bson_stream',
    'query_first_to_bson_bytes',
    'query_first_to_bson_base64',
    'to_node',
    'to_array_node',
    'read_json',
    'read_bson_object',
    'read_bson_array',
    'from_bson_base64',
    'Converter',
    'ConverterSet',
    'BUILTIN_CONVERTERS',
    'converter',
    'register_converter',
    'DatabaseError',
    'ConnectionFailure',
    'QueryError',
    'ValidationError',
    'TypeConversionError',
    'CardinalityError',
    'RowNotFoundError',
    'MultipleRowsFoundError',
    'EncodingError',
    'RowMaterializationError',
    'DbConnectionError',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
]
