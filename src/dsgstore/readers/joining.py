# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Left join of vector rows with external station samples.

For each vector row the station key is read at a fixed position, the
external sample for that station at the requested time is fetched, and the
external attribute values are appended to the row. A missing station or
time step yields null external values; the vector row is always emitted.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

import pandas as pd

from ..core.constants import MissingTimestampPolicy
from ..core.exceptions import ExternalFetchMiss, JoinKeyMissing, require
from ..query.timestamp import TimeWindow
from ..schema.types import AttributeDescriptor
from .base import RowReader, VectorRow

if TYPE_CHECKING:
    from ..sources.netcdf import StationDataset
    from ..sources.pool import DatasetPool

logger = logging.getLogger(__name__)


class JoiningReader(RowReader):
    """Append external attribute values to each row of a vector reader.

    Parameters
    ----------
    rows : RowReader
        Vector rows; closed with this reader.
    pool : DatasetPool
        Pool the external dataset is leased from on first use.
    locator : str
        External dataset locator.
    station_key_index : int
        Position of the station key in ``rows`` values.
    external_descriptors : sequence of AttributeDescriptor
        External attributes to append, in merged-schema order.
    timestamp : pandas.Timestamp, optional
        Time step to join; the policy default when omitted.
    window : TimeWindow, optional
        Range the policy default is chosen from when ``timestamp`` is None.
        A window holding no time step yields null external values.
    policy : MissingTimestampPolicy
        Default time step used when ``timestamp`` is None.
    """

    def __init__(
        self,
        rows: RowReader,
        pool: 'DatasetPool',
        locator: str,
        station_key_index: int,
        external_descriptors: Sequence[AttributeDescriptor],
        timestamp: Optional[pd.Timestamp] = None,
        window: Optional[TimeWindow] = None,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
    ) -> None:
        require(
            station_key_index is not None and station_key_index >= 0,
            "Station key attribute is not among the vector row attributes",
            JoinKeyMissing,
        )
        self._rows = rows
        self._pool = pool
        self._locator = locator
        self._key_index = station_key_index
        self._descriptors = list(external_descriptors)
        self._variables = [d.variable.name for d in self._descriptors]
        self._timestamp = timestamp
        self._window = window
        self._policy = policy
        self._dataset: Optional['StationDataset'] = None
        self._closed = False
        self.misses = 0

    def _external_values(self, station_key) -> List:
        if not self._descriptors:
            return []
        if self._dataset is None:
            self._dataset = self._pool.acquire(self._locator)
        try:
            sample = self._dataset.fetch_sample(
                station_key, self._timestamp, self._policy, self._variables, self._window
            )
        except ExternalFetchMiss as e:
            self.misses += 1
            logger.debug("No external sample for station %r: %s", station_key, e)
            return [None] * len(self._descriptors)
        return [d.extractor.extract(sample) for d in self._descriptors]

    def read_next(self) -> VectorRow:
        row = next(self._rows)
        if self._key_index >= len(row.values):
            raise JoinKeyMissing(
                f"Row has {len(row.values)} values; station key expected at {self._key_index}"
            )
        station_key = row.values[self._key_index]
        return VectorRow(
            feature_id=row.feature_id,
            geometry=row.geometry,
            values=tuple(row.values) + tuple(self._external_values(station_key)),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._rows.close()
        finally:
            if self._dataset is not None:
                dataset, self._dataset = self._dataset, None
                self._pool.release(dataset)
