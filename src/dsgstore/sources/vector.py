# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Vector record stores backed by geopandas.

A vector store exposes its attribute schema and opens row readers over a
projection. Rows carry the feature id, the geometry and the projected
attribute values in projection order.
"""

import logging
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import pyogrio

from ..core.constants import DEFAULT_ROW_CHUNK_SIZE
from ..core.exceptions import VectorSourceError, dsgstore_error_handler
from ..readers.base import RowReader, VectorRow
from ..schema.types import AttributeDescriptor, NameSet, value_type_for_dtype

logger = logging.getLogger(__name__)


def _python_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT or value is pd.NA:
        return None
    return value


def _geometry_name(frame) -> Optional[str]:
    if not isinstance(frame, gpd.GeoDataFrame):
        return None
    try:
        return frame.geometry.name
    except AttributeError:
        return None


def _attribute_columns(frame: gpd.GeoDataFrame) -> List[str]:
    geometry_name = _geometry_name(frame)
    return [c for c in frame.columns if c != geometry_name]


def _resolve_columns(attribute_names: Sequence[str], projection: Sequence[str]) -> List[str]:
    available = NameSet(attribute_names)
    columns = []
    for name in projection:
        column = available.canonical(name)
        if column is None:
            raise VectorSourceError(f"Attribute '{name}' not present in vector records")
        columns.append(column)
    return columns


def _frame_rows(frame: gpd.GeoDataFrame, columns: Sequence[str], offset: int = 0) -> Iterator[VectorRow]:
    geometry_name = _geometry_name(frame)
    geometries = frame[geometry_name].values if geometry_name is not None else None
    if columns:
        records = frame[list(columns)].itertuples(index=False, name=None)
    else:
        records = (() for _ in range(len(frame)))
    for position, values in enumerate(records):
        yield VectorRow(
            feature_id=offset + position,
            geometry=geometries[position] if geometries is not None else None,
            values=tuple(_python_value(v) for v in values),
        )


class VectorStore(ABC):
    """Source of vector records with a fixed attribute schema."""

    @abstractmethod
    def read_schema(self) -> List[AttributeDescriptor]:
        """Attribute descriptors in record order (geometry excluded)."""

    @abstractmethod
    def open_row_reader(self, projection: Sequence[str]) -> RowReader:
        """Rows carrying ``projection`` values in that order."""


class FrameRowReader(RowReader):
    """Rows of an in-memory GeoDataFrame."""

    def __init__(self, frame: gpd.GeoDataFrame, columns: Sequence[str]):
        self._rows = _frame_rows(frame, columns)

    def read_next(self) -> VectorRow:
        return next(self._rows)

    def close(self) -> None:
        self._rows.close()


class GeoDataFrameVectorStore(VectorStore):
    """Vector store over a GeoDataFrame already in memory."""

    def __init__(self, frame: gpd.GeoDataFrame):
        self.frame = frame

    def read_schema(self) -> List[AttributeDescriptor]:
        return [
            AttributeDescriptor(name=column, value_type=value_type_for_dtype(self.frame[column].dtype))
            for column in _attribute_columns(self.frame)
        ]

    def open_row_reader(self, projection: Sequence[str]) -> RowReader:
        return FrameRowReader(self.frame, _resolve_columns(_attribute_columns(self.frame), projection))


class ShapefileRowReader(RowReader):
    """Rows of a shapefile, read ``chunk_size`` records at a time."""

    def __init__(self, path: Path, projection: Sequence[str], chunk_size: int):
        self.path = path
        self.projection = list(projection)
        self.chunk_size = chunk_size
        self._offset = 0
        self._columns: Optional[List[str]] = None
        self._chunk: Iterator[VectorRow] = iter(())
        self._exhausted = False

    def _resolve(self) -> List[str]:
        with dsgstore_error_handler(f"reading fields of {self.path}", logger, error_type=VectorSourceError):
            fields = [str(name) for name in pyogrio.read_info(self.path)['fields']]
        return _resolve_columns(fields, self.projection)

    def _read_chunk(self) -> bool:
        if self._columns is None:
            self._columns = self._resolve()
        start = self._offset
        with dsgstore_error_handler(f"reading {self.path}", logger, error_type=VectorSourceError):
            frame = gpd.read_file(
                self.path,
                rows=slice(start, start + self.chunk_size),
                columns=list(dict.fromkeys(self._columns)),
                engine='pyogrio',
            )
        self._exhausted = len(frame) < self.chunk_size
        self._offset += len(frame)
        self._chunk = _frame_rows(frame, self._columns, offset=start)
        return len(frame) > 0

    def read_next(self) -> VectorRow:
        while True:
            row = next(self._chunk, None)
            if row is not None:
                return row
            if self._exhausted or not self._read_chunk():
                raise StopIteration

    def close(self) -> None:
        self._exhausted = True
        self._chunk = iter(())


class ShapefileVectorStore(VectorStore):
    """Vector store reading a shapefile (or any OGR source) from disk."""

    def __init__(self, path: Union[str, Path], chunk_size: int = DEFAULT_ROW_CHUNK_SIZE):
        self.path = Path(path)
        self.chunk_size = chunk_size

    def read_schema(self) -> List[AttributeDescriptor]:
        if not self.path.exists():
            raise VectorSourceError(f"Vector file not found: {self.path}")
        with dsgstore_error_handler(f"reading schema of {self.path}", logger, error_type=VectorSourceError):
            frame = gpd.read_file(self.path, rows=1, engine='pyogrio')
        return GeoDataFrameVectorStore(frame).read_schema()

    def open_row_reader(self, projection: Sequence[str]) -> RowReader:
        return ShapefileRowReader(self.path, projection, self.chunk_size)
