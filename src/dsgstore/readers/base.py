"""
Row and feature reader primitives.

Every reader is a forward-only Python iterator that raises ``EndOfData``
(a ``StopIteration``) when exhausted and releases its resources on
``close()``. Readers are not restartable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Sequence, Tuple

from ..core.exceptions import EndOfData, SchemaError


class VectorRow(NamedTuple):
    """One record: feature id, geometry, and attribute values in row order."""
    feature_id: Any
    geometry: Any
    values: Tuple[Any, ...]


@dataclass
class Feature:
    """A record as returned to callers."""
    feature_id: Any
    geometry: Any = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.attributes[name]


class RowReader(ABC):
    """Lazy, finite sequence of :class:`VectorRow`."""

    _finished = False

    def __iter__(self):
        return self

    def __next__(self) -> VectorRow:
        if self._finished:
            raise EndOfData()
        try:
            return self.read_next()
        except StopIteration:
            self._finished = True
            self.close()
            raise EndOfData() from None
        except Exception:
            self._finished = True
            self.close()
            raise

    @abstractmethod
    def read_next(self) -> VectorRow:
        """Return the next row, or raise ``StopIteration``."""

    def close(self) -> None:
        """Release resources. Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FeatureReader:
    """Turn rows into features carrying only the requested attributes.

    Parameters
    ----------
    rows : RowReader
        Source of rows.
    row_names : sequence of str
        Attribute name of each position in a row's values.
    output_names : sequence of str
        Attributes to emit, in order. Row positions not named here (such as
        an internally appended join key) are dropped.
    """

    def __init__(self, rows: RowReader, row_names: Sequence[str], output_names: Sequence[str]):
        positions = {name: i for i, name in enumerate(row_names)}
        missing = [name for name in output_names if name not in positions]
        if missing:
            raise SchemaError(f"Reader does not produce attributes {missing}")
        self._rows = rows
        self._positions = [(name, positions[name]) for name in output_names]
        self.output_names = tuple(output_names)

    def __iter__(self):
        return self

    def __next__(self) -> Feature:
        row = next(self._rows)
        return Feature(
            feature_id=row.feature_id,
            geometry=row.geometry,
            attributes={name: row.values[i] for name, i in self._positions},
        )

    def close(self) -> None:
        self._rows.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = ['EndOfData', 'Feature', 'FeatureReader', 'RowReader', 'VectorRow']
