# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Readers answering queries from the external dataset alone.

Records follow the dataset's native order: station by station, and within a
station the selected time steps in axis order. The timestamp-only reader
touches nothing but the time axis.
"""

import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Iterator, Optional, Sequence

import pandas as pd

from ..core.constants import MissingTimestampPolicy
from ..query.timestamp import TimeWindow
from ..schema.types import AttributeDescriptor
from .base import RowReader, VectorRow

if TYPE_CHECKING:
    from ..sources.netcdf import StationDataset
    from ..sources.pool import DatasetPool

logger = logging.getLogger(__name__)


class _ExternalReader(RowReader):
    """Leases the dataset on first read and releases it exactly once."""

    def __init__(
        self,
        pool: 'DatasetPool',
        locator: str,
        descriptors: Sequence[AttributeDescriptor],
        timestamp: Optional[pd.Timestamp] = None,
        window: Optional[TimeWindow] = None,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
    ) -> None:
        self._pool = pool
        self._locator = locator
        self._descriptors = list(descriptors)
        self._timestamp = timestamp
        self._window = window
        self._policy = policy
        self._dataset: Optional['StationDataset'] = None
        self._records: Optional[Iterator[VectorRow]] = None
        self._closed = False

    def read_next(self) -> VectorRow:
        if self._closed:
            raise StopIteration
        if self._records is None:
            self._dataset = self._pool.acquire(self._locator)
            self._records = self._iterate(self._dataset)
        return next(self._records)

    def _selected_cells(self, dataset: 'StationDataset') -> Iterator:
        positions = dataset.time_positions(self._timestamp, self._window, self._policy)
        logger.debug("Reading %d time steps per station from %s", len(positions), self._locator)
        for station_position, station_key in enumerate(dataset.station_keys):
            for time_position in positions:
                yield station_position, station_key, time_position

    @abstractmethod
    def _iterate(self, dataset: 'StationDataset') -> Iterator[VectorRow]:
        """Generate rows from the leased dataset."""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._records is not None:
            self._records.close()
        if self._dataset is not None:
            dataset, self._dataset = self._dataset, None
            self._pool.release(dataset)


class ExternalOnlyReader(_ExternalReader):
    """Rows of external attributes for every selected station/time cell."""

    def _iterate(self, dataset: 'StationDataset') -> Iterator[VectorRow]:
        variables = [d.variable.name for d in self._descriptors]
        for station_position, station_key, time_position in self._selected_cells(dataset):
            sample = dataset.sample_at(station_position, time_position, variables)
            yield VectorRow(
                feature_id=f"{station_key}.{time_position}",
                geometry=None,
                values=tuple(d.extractor.extract(sample) for d in self._descriptors),
            )


class TimestampOnlyReader(_ExternalReader):
    """Rows holding only the time value; no variable payload is read."""

    def __init__(self, pool, locator, time_descriptor: AttributeDescriptor, **kwargs):
        super().__init__(pool, locator, [time_descriptor], **kwargs)

    def _iterate(self, dataset: 'StationDataset') -> Iterator[VectorRow]:
        descriptor = self._descriptors[0]
        name = descriptor.variable.name
        times = dataset.time_index
        for _, station_key, time_position in self._selected_cells(dataset):
            yield VectorRow(
                feature_id=f"{station_key}.{time_position}",
                geometry=None,
                values=(descriptor.extractor.extract({name: times[time_position]}),),
            )
