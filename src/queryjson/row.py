"""Row type and row factory for query results."""
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)


class Row(Mapping):
    """One database record as an ordered, read-only column mapping.

    Column lookup is case-insensitive and columns are also reachable as
    attributes (`row.Name`). Iteration yields column names in result order,
    spelled as the database reported them.

    >>> row = Row(('Name', 'Habitat'), ('Flint', None))
    >>> row['name'], row.Habitat
    ('Flint', None)
    """

    __slots__ = ('_columns', '_values', '_index')

    def __init__(self, columns: Sequence[str], values: Sequence[Any],
                 index: dict[str, int] | None = None) -> None:
        if len(columns) != len(values):
            raise ValueError(f'{len(columns)} columns but {len(values)} values')
        columns = tuple(columns)
        if index is None:
            index = {}
            for pos, name in enumerate(columns):
                key = name.lower()
                if key in index:
                    raise ValueError(f'Duplicate column name: {name!r}')
                index[key] = pos
        object.__setattr__(self, '_columns', columns)
        object.__setattr__(self, '_values', tuple(values))
        object.__setattr__(self, '_index', index)

    def __getitem__(self, key: str) -> Any:
        try:
            return self._values[self._index[key.lower()]]
        except (KeyError, AttributeError):
            raise KeyError(key) from None

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError('Row is read-only')

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __reduce__(self):
        return (Row, (self._columns, self._values))

    def __repr__(self) -> str:
        fields = ', '.join(f'{c}={v!r}' for c, v in zip(self._columns, self._values))
        return f'Row({fields})'

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names in result order."""
        return self._columns

    @property
    def values_tuple(self) -> tuple[Any, ...]:
        """Column values in result order."""
        return self._values


class RowFactory:
    """Build `Row` objects from raw result tuples.

    The factory is created once per result set from its column keys. When
    the result carries the same column name more than once (e.g. `SELECT *`
    over a join) the first occurrence wins and later ones are dropped.
    """

    def __init__(self, keys: Sequence[str]) -> None:
        """Initialize with the result's column keys.

        Args:
            keys: Column names as reported by the cursor
        """
        self.columns: list[str] = []
        self.positions: list[int] = []
        self.index: dict[str, int] = {}
        for pos, name in enumerate(keys):
            key = name.lower()
            if key in self.index:
                logger.debug(f'Dropping duplicate column {name!r} at position {pos}')
                continue
            self.index[key] = len(self.columns)
            self.columns.append(name)
            self.positions.append(pos)
        self._has_duplicates = len(self.positions) != len(keys)

    def __call__(self, values: Sequence[Any]) -> Row:
        """Convert a result tuple to a Row.

        Args:
            values: Tuple of column values from the cursor

        Returns
            Row mapping column names to values
        """
        if self._has_duplicates:
            values = [values[pos] for pos in self.positions]
        return Row(self.columns, values, self.index)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
