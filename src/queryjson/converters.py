"""
Named value converters applied while rows are turned into tree nodes.

A converter is a named scalar transform with an optional type filter. A
`ConverterSet` is the ordered, possibly empty list handed to every
conversion call; for each non-null value the first converter whose types
match transforms it, and the result then goes through the default scalar
mapping in `queryjson.nodes`.

Converter sets can be given in several shapes:

    None                                    -> no converters
    {'upper': str.upper}                    -> applies to every non-null value
    [Converter('upper', str.upper, (str,))] -> applies to str values only
    ['upper_strings', 'decimal_string']     -> built-in converters by name
"""
import datetime
import decimal
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from queryjson.exceptions import EncodingError

__all__ = [
    'Converter',
    'ConverterSet',
    'BUILTIN_CONVERTERS',
    'converter',
    'register_converter',
    'get_converter',
]

logger = logging.getLogger(__name__)

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


@dataclass(frozen=True)
class Converter:
    """A named scalar transform.

    An empty `types` tuple matches every non-null value.
    """
    name: str
    func: Callable[[Any], Any]
    types: tuple[type, ...] = ()

    def can_convert(self, value: Any) -> bool:
        return not self.types or isinstance(value, self.types)

    def __call__(self, value: Any) -> Any:
        return self.func(value)


ConverterSpec = Union['ConverterSet', Converter, Mapping[str, Any], Iterable[Any], None]


class ConverterSet(Sequence):
    """Ordered collection of uniquely named converters."""

    def __init__(self, converters: Iterable[Converter] = ()) -> None:
        self._converters = tuple(converters)
        names = [c.name for c in self._converters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f'Duplicate converter names: {duplicates}')

    @classmethod
    def create(cls, spec: ConverterSpec = None) -> 'ConverterSet':
        """Build a converter set from any accepted shape.

        Raises
            ValueError: On unknown built-in names or duplicate names
            TypeError: On entries that are not converters
        """
        if spec is None:
            return EMPTY
        if isinstance(spec, ConverterSet):
            return spec
        if isinstance(spec, Converter):
            return cls((spec,))
        if isinstance(spec, Mapping):
            return cls(_from_pair(name, func) for name, func in spec.items())
        if isinstance(spec, str):
            return cls((get_converter(spec),))
        return cls(_from_entry(entry) for entry in spec)

    def __getitem__(self, index):
        return self._converters[index]

    def __len__(self) -> int:
        return len(self._converters)

    def __repr__(self) -> str:
        return f'ConverterSet({list(self.names)})'

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self._converters)

    def convert(self, value: Any) -> Any:
        """Pass a non-null value through the first matching converter.

        Raises
            EncodingError: If the converter rejects the value
        """
        for conv in self._converters:
            if conv.can_convert(value):
                try:
                    return conv(value)
                except (TypeError, ValueError, ArithmeticError) as exc:
                    raise EncodingError(
                        f'Converter {conv.name!r} failed on {type(value).__name__}: {exc}'
                    ) from exc
        return value


EMPTY = ConverterSet()


def _from_pair(name: str, func: Any) -> Converter:
    if isinstance(func, Converter):
        return Converter(name, func.func, func.types)
    if not callable(func):
        raise TypeError(f'Converter {name!r} is not callable')
    return Converter(name, func)


def _from_entry(entry: Any) -> Converter:
    if isinstance(entry, Converter):
        return entry
    if isinstance(entry, str):
        return get_converter(entry)
    if isinstance(entry, tuple) and len(entry) == 2:
        return _from_pair(*entry)
    raise TypeError(f'Not a converter: {entry!r}')


BUILTIN_CONVERTERS: dict[str, Converter] = {}


def register_converter(conv: Converter) -> Converter:
    """Register a converter so it can be selected by name."""
    if conv.name in BUILTIN_CONVERTERS:
        logger.debug(f'Replacing registered converter {conv.name!r}')
    BUILTIN_CONVERTERS[conv.name] = conv
    return conv


def get_converter(name: str) -> Converter:
    """Look up a registered converter by name.

    Raises
        ValueError: If no converter is registered under `name`
    """
    try:
        return BUILTIN_CONVERTERS[name]
    except KeyError:
        available = sorted(BUILTIN_CONVERTERS)
        raise ValueError(f'Unknown converter: {name!r}. Available: {available}') from None


def converter(name: str, *types: type, register: bool = False):
    """Decorator turning a function into a `Converter`.

    Usage:
        @converter('cents', decimal.Decimal)
        def cents(value):
            return int(value * 100)
    """
    def decorator(func: Callable[[Any], Any]) -> Converter:
        conv = Converter(name, func, tuple(types))
        if register:
            register_converter(conv)
        return conv
    return decorator


@converter('datetime_epoch_millis', datetime.datetime, register=True)
def datetime_epoch_millis(value: datetime.datetime) -> int:
    """Milliseconds since the Unix epoch; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return (value - EPOCH) // datetime.timedelta(milliseconds=1)


@converter('decimal_string', decimal.Decimal, register=True)
def decimal_string(value: decimal.Decimal) -> str:
    return str(value)


@converter('bytes_hex', bytes, bytearray, memoryview, register=True)
def bytes_hex(value: bytes) -> str:
    return bytes(value).hex()


@converter('strip_strings', str, register=True)
def strip_strings(value: str) -> str:
    return value.strip()


@converter('upper_strings', str, register=True)
def upper_strings(value: str) -> str:
    return value.upper()


@converter('lower_strings', str, register=True)
def lower_strings(value: str) -> str:
    return value.lower()
