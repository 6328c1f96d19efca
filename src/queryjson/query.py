"""
Query-to-JSON/BSON entry points.

`ResultSerializerMixin` adds the serializing query methods to anything that
provides `query`, `query_first`, `query_single` and `default_encoding`
(`ConnectionWrapper` and `Transaction`). Each method runs the query
through the row layer, converts rows to tree nodes, then hands the node to
one output path of `queryjson.encoding`:

    query_to_objects       lazy object nodes
    query_to_array         array node
    query_to_json_stream   JSON bytes in a rewound stream
    query_to_json_string   JSON text
    query_to_bson_stream   BSON bytes in a rewound stream
    query_to_bson_bytes    BSON bytes
    query_to_bson_base64   BSON bytes as Base64 text

The `query_first_*` family does the same for a single row. By default the
first row is taken and zero rows raise `RowNotFoundError`; with
`single=True` more than one row also raises `MultipleRowsFoundError`.
"""
import logging
from collections.abc import Iterator
from typing import Any, BinaryIO

from queryjson import encoding as enc
from queryjson.converters import ConverterSet, ConverterSpec
from queryjson.nodes import ArrayNode, ObjectNode, to_array_node, to_node
from queryjson.options import CommandType

__all__ = ['ResultSerializerMixin']

logger = logging.getLogger(__name__)


class ResultSerializerMixin:
    """Serializing query methods over a row-producing `query` API."""

    default_encoding: str | None = None

    def _text_encoding(self, encoding: str | None) -> str:
        return enc.resolve_encoding(encoding or self.default_encoding)

    def _first_node(self, sql: str, param: Any, transaction: Any,
                    timeout: float | None, command_type: CommandType | None,
                    converters: ConverterSpec, single: bool) -> ObjectNode:
        fetch = self.query_single if single else self.query_first
        row = fetch(sql, param, transaction, timeout, command_type)
        return to_node(row, converters)

    def query_to_objects(self, sql: str, param: Any = None, transaction: Any = None,
                         buffered: bool = True, timeout: float | None = None,
                         command_type: CommandType | None = None,
                         converters: ConverterSpec = None) -> Iterator[ObjectNode]:
        """Return an iterator of object nodes, one per row.

        With `buffered=False` rows are fetched and converted as the
        iterator is consumed.
        """
        converter_set = ConverterSet.create(converters)
        rows = self.query(sql, param, transaction, buffered, timeout, command_type)
        return (to_node(row, converter_set) for row in rows)

    def query_to_array(self, sql: str, param: Any = None, transaction: Any = None,
                       buffered: bool = True, timeout: float | None = None,
                       command_type: CommandType | None = None,
                       converters: ConverterSpec = None) -> ArrayNode:
        """Return an array node with one object node per row.

        Zero rows give an empty list.
        """
        rows = self.query(sql, param, transaction, buffered, timeout, command_type)
        return to_array_node(rows, converters)

    def query_to_json_stream(self, sql: str, param: Any = None, transaction: Any = None,
                             buffered: bool = True, timeout: float | None = None,
                             command_type: CommandType | None = None,
                             encoding: str | None = None,
                             converters: ConverterSpec = None,
                             stream: BinaryIO | None = None) -> BinaryIO:
        """Return the rows as JSON text in a binary stream positioned at its start.

        Args:
            encoding: Text encoding, defaults to the connection's or the platform's
            stream: Binary stream to write into instead of a new `BytesIO`
        """
        node = self.query_to_array(sql, param, transaction, buffered, timeout,
                                   command_type, converters)
        return enc.to_json_stream(node, self._text_encoding(encoding), stream)

    def query_to_json_string(self, sql: str, param: Any = None, transaction: Any = None,
                             buffered: bool = True, timeout: float | None = None,
                             command_type: CommandType | None = None,
                             encoding: str | None = None,
                             converters: ConverterSpec = None) -> str:
        """Return the rows as a JSON array string."""
        node = self.query_to_array(sql, param, transaction, buffered, timeout,
                                   command_type, converters)
        return enc.to_json_string(node, self._text_encoding(encoding))

    def query_to_bson_stream(self, sql: str, param: Any = None, transaction: Any = None,
                             buffered: bool = True, timeout: float | None = None,
                             command_type: CommandType | None = None,
                             converters: ConverterSpec = None,
                             stream: BinaryIO | None = None) -> BinaryIO:
        """Return the rows as an index-keyed BSON document in a rewound stream."""
        node = self.query_to_array(sql, param, transaction, buffered, timeout,
                                   command_type, converters)
        return enc.to_bson_stream(node, stream)

    def query_to_bson_bytes(self, sql: str, param: Any = None, transaction: Any = None,
                            buffered: bool = True, timeout: float | None = None,
                            command_type: CommandType | None = None,
                            converters: ConverterSpec = None) -> bytes:
        node = self.query_to_array(sql, param, transaction, buffered, timeout,
                                   command_type, converters)
        return enc.to_bson_bytes(node)

    def query_to_bson_base64(self, sql: str, param: Any = None, transaction: Any = None,
                             buffered: bool = True, timeout: float | None = None,
                             command_type: CommandType | None = None,
                             converters: ConverterSpec = None) -> str:
        node = self.query_to_array(sql, param, transaction, buffered, timeout,
                                   command_type, converters)
        return enc.to_bson_base64(node)

    def query_first_object(self, sql: str, param: Any = None, transaction: Any = None,
                           timeout: float | None = None,
                           command_type: CommandType | None = None,
                           converters: ConverterSpec = None,
                           single: bool = False) -> ObjectNode:
        """Return the first row as an object node.

        Raises
            RowNotFoundError: If the query returns no rows
            MultipleRowsFoundError: If `single` and the query returns several rows
        """
        return self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)

    def query_first_to_json_stream(self, sql: str, param: Any = None, transaction: Any = None,
                                   timeout: float | None = None,
                                   command_type: CommandType | None = None,
                                   encoding: str | None = None,
                                   converters: ConverterSpec = None,
                                   single: bool = False,
                                   stream: BinaryIO | None = None) -> BinaryIO:
        node = self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)
        return enc.to_json_stream(node, self._text_encoding(encoding), stream)

    def query_first_to_json_string(self, sql: str, param: Any = None, transaction: Any = None,
                                   timeout: float | None = None,
                                   command_type: CommandType | None = None,
                                   encoding: str | None = None,
                                   converters: ConverterSpec = None,
                                   single: bool = False) -> str:
        node = self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)
        return enc.to_json_string(node, self._text_encoding(encoding))

    def query_first_to_bson_stream(self, sql: str, param: Any = None, transaction: Any = None,
                                   timeout: float | None = None,
                                   command_type: CommandType | None = None,
                                   converters: ConverterSpec = None,
                                   single: bool = False,
                                   stream: BinaryIO | None = None) -> BinaryIO:
        node = self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)
        return enc.to_bson_stream(node, stream)

    def query_first_to_bson_bytes(self, sql: str, param: Any = None, transaction: Any = None,
                                  timeout: float | None = None,
                                  command_type: CommandType | None = None,
                                  converters: ConverterSpec = None,
                                  single: bool = False) -> bytes:
        node = self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)
        return enc.to_bson_bytes(node)

    def query_first_to_bson_base64(self, sql: str, param: Any = None, transaction: Any = None,
                                   timeout: float | None = None,
                                   command_type: CommandType | None = None,
                                   converters: ConverterSpec = None,
                                   single: bool = False) -> str:
        node = self._first_node(sql, param, transaction, timeout, command_type,
                                converters, single)
        return enc.to_bson_base64(node)
