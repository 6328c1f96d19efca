"""
Encoders and output paths for tree nodes.

Two encodings are supported:

- text JSON, written through a `TextIOWrapper` in a caller-selected text
  encoding (default: the platform's preferred encoding)
- binary BSON via the `bson` package; an array node is written as a
  document keyed "0", "1", ... which is how BSON represents a root array

Each output path is a deterministic function of the node:

    to_json_stream / to_json_string
    to_bson_stream / to_bson_bytes / to_bson_base64

The matching decoders (`read_json`, `read_bson_object`, `read_bson_array`,
`from_bson_base64`) restore an equal node.
"""
import base64
import codecs
import io
import json
import locale
import logging
from collections.abc import Mapping
from typing import IO, Any, BinaryIO

import bson
import bson.errors
from queryjson.exceptions import EncodingError

__all__ = [
    'EncodingBuffer',
    'default_encoding',
    'resolve_encoding',
    'write_json',
    'write_bson',
    'to_json_stream',
    'to_json_string',
    'to_bson_stream',
    'to_bson_bytes',
    'to_bson_base64',
    'read_json',
    'read_bson_object',
    'read_bson_array',
    'from_bson_base64',
]

logger = logging.getLogger(__name__)


def default_encoding() -> str:
    """Platform preferred text encoding."""
    return locale.getpreferredencoding(False)


def resolve_encoding(encoding: str | None = None) -> str:
    """Return the canonical codec name for `encoding`, or the platform default.

    Raises
        EncodingError: If the codec is unknown
    """
    name = encoding or default_encoding()
    try:
        return codecs.lookup(name).name
    except LookupError as exc:
        raise EncodingError(f'Unknown text encoding: {name!r}') from exc


class EncodingBuffer:
    """Byte sink for one encoding call.

    Wraps a caller-supplied binary stream, or a new `BytesIO` when none is
    given. On an exception inside the `with` block an owned buffer is
    closed, and a caller stream is truncated back to where writing started
    when it is seekable.
    """

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self.owned = stream is None
        self.stream = io.BytesIO() if self.owned else stream
        self.start = self.stream.tell() if self.stream.seekable() else None

    def __enter__(self) -> 'EncodingBuffer':
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None,
                 exc_tb: Any | None) -> None:
        if exc_type is not None:
            self.discard()

    def discard(self) -> None:
        """Drop whatever was written during this call."""
        if self.owned:
            self.stream.close()
        elif self.start is not None:
            self.stream.seek(self.start)
            self.stream.truncate()
        logger.debug('Discarded partially written buffer')

    def rewind(self) -> BinaryIO:
        """Position the stream where writing started, when it can seek."""
        if hasattr(self.stream, 'flush'):
            self.stream.flush()
        if self.start is not None:
            self.stream.seek(self.start)
        return self.stream


def write_json(node: Any, stream: BinaryIO, encoding: str | None = None) -> None:
    """Stream a node as compact JSON text into a binary stream.

    Raises
        EncodingError: On values JSON cannot carry (NaN, infinities, unknown
            types) or characters the text encoding cannot represent
    """
    codec = resolve_encoding(encoding)
    writer = io.TextIOWrapper(stream, encoding=codec, errors='strict',
                              newline='', write_through=True)
    try:
        json.dump(node, writer, ensure_ascii=False, allow_nan=False,
                  separators=(',', ':'))
        writer.flush()
    except (TypeError, ValueError) as exc:
        raise EncodingError(f'Cannot encode node as {codec} JSON: {exc}') from exc
    finally:
        writer.detach()


def array_document(node: list[Any]) -> dict[str, Any]:
    """Key an array node by element index, the BSON layout for arrays."""
    return {str(i): item for i, item in enumerate(node)}


def write_bson(node: Any, stream: BinaryIO) -> None:
    """Write a node as one BSON document into a binary stream.

    Raises
        EncodingError: On values BSON cannot carry (ints beyond 64 bits,
            NUL characters in field names, unknown types)
    """
    if isinstance(node, Mapping):
        document = node
    elif isinstance(node, list):
        document = array_document(node)
    else:
        raise EncodingError(f'BSON root must be an object or array, not {type(node).__name__}')
    try:
        data = bson.encode(document)
    except (bson.errors.InvalidDocument, OverflowError, TypeError, ValueError) as exc:
        raise EncodingError(f'Cannot encode node as BSON: {exc}') from exc
    stream.write(data)


def to_json_stream(node: Any, encoding: str | None = None,
                   stream: BinaryIO | None = None) -> BinaryIO:
    """Write JSON into `stream` (or a new buffer) and return it rewound."""
    with EncodingBuffer(stream) as buffer:
        write_json(node, buffer.stream, encoding)
        return buffer.rewind()


def to_json_string(node: Any, encoding: str | None = None) -> str:
    """Encode JSON through a buffer in `encoding` and decode it back to text."""
    codec = resolve_encoding(encoding)
    with io.BytesIO() as buffer:
        write_json(node, buffer, codec)
        return buffer.getvalue().decode(codec)


def to_bson_stream(node: Any, stream: BinaryIO | None = None) -> BinaryIO:
    """Write BSON into `stream` (or a new buffer) and return it rewound."""
    with EncodingBuffer(stream) as buffer:
        write_bson(node, buffer.stream)
        return buffer.rewind()


def to_bson_bytes(node: Any) -> bytes:
    with io.BytesIO() as buffer:
        write_bson(node, buffer)
        return buffer.getvalue()


def to_bson_base64(node: Any) -> str:
    """BSON bytes as standard Base64 text without line breaks."""
    return base64.b64encode(to_bson_bytes(node)).decode('ascii')


def _read_source(source: bytes | bytearray | memoryview | IO) -> bytes | str:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    return source.read()


def read_json(source: str | bytes | IO, encoding: str | None = None) -> Any:
    """Parse JSON text, bytes in `encoding`, or a stream of either."""
    data = source if isinstance(source, str) else _read_source(source)
    if isinstance(data, bytes):
        data = data.decode(resolve_encoding(encoding))
    return json.loads(data)


def read_bson_object(source: bytes | IO) -> dict[str, Any]:
    """Decode one BSON document into an object node."""
    return bson.decode(_read_source(source))


def read_bson_array(source: bytes | IO) -> list[Any]:
    """Decode an index-keyed BSON document into an array node."""
    document = read_bson_object(source)
    return [document[key] for key in sorted(document, key=int)]


def from_bson_base64(text: str, array: bool = False) -> dict[str, Any] | list[Any]:
    """Decode Base64 BSON text into an object node, or an array node."""
    data = base64.b64decode(text, validate=True)
    return read_bson_array(data) if array else read_bson_object(data)
