"""
Conversion of rows into tree nodes.

An object node is a `dict` of field name to node value and an array node is
a `list` of object nodes. Node values are restricted to what both JSON and
BSON represent natively (None, bool, int, float, str, nested dict/list), so
every encoder in `queryjson.encoding` writes the same content.

Conversion is a pure function of the row and the converter set.
"""
import base64
import datetime
import decimal
import enum
import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from queryjson.converters import ConverterSet, ConverterSpec
from queryjson.exceptions import EncodingError

__all__ = [
    'ObjectNode',
    'ArrayNode',
    'to_node',
    'to_array_node',
    'to_value',
]

logger = logging.getLogger(__name__)

ObjectNode = dict[str, Any]
ArrayNode = list[ObjectNode]


def to_node(row: Mapping[str, Any], converters: ConverterSpec = None) -> ObjectNode:
    """Convert one row into an object node with one field per column.

    Args:
        row: Column name to value mapping, usually a `queryjson.row.Row`
        converters: Converter set, or anything `ConverterSet.create` accepts

    Returns
        Object node with the row's column names as field names

    Raises
        EncodingError: If a value has no node representation
    """
    converters = ConverterSet.create(converters)
    return {name: to_value(value, converters, name) for name, value in row.items()}


def to_array_node(rows: Iterable[Mapping[str, Any]],
                  converters: ConverterSpec = None) -> ArrayNode:
    """Convert a row sequence into an array node, preserving order.

    An empty sequence gives an empty array.
    """
    converters = ConverterSet.create(converters)
    node = [to_node(row, converters) for row in rows]
    logger.debug(f'Converted {len(node)} rows with {len(converters)} converters')
    return node


def to_value(value: Any, converters: ConverterSet, path: str = '') -> Any:
    """Convert one column value into a node value.

    Nulls bypass converters. Other values pass through the first matching
    converter, then through the default scalar mapping.
    """
    if value is None:
        return None
    if converters:
        value = converters.convert(value)
        if value is None:
            return None
    return _default_value(value, converters, path)


def _default_value(value: Any, converters: ConverterSet, path: str) -> Any:
    if isinstance(value, enum.Enum):
        return to_value(value.value, converters, path)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return str(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, decimal.Decimal):
        return _decimal_value(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode('ascii')
    if isinstance(value, Mapping):
        nested = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f'Field {path!r} has a non-string key {key!r}')
            nested[key] = to_value(item, converters, f'{path}.{key}')
        return nested
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_value(item, converters, f'{path}[{i}]') for i, item in enumerate(value)]
    raise EncodingError(f'Cannot represent {type(value).__name__} value in field {path!r}')


def _decimal_value(value: decimal.Decimal) -> int | float:
    if value.is_finite() and value.as_tuple().exponent >= 0:
        return int(value)
    return float(value)
