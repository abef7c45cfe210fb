# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
xarray-backed access to CF timeSeries station datasets.

A station dataset has a station dimension, identified through the variable
carrying ``cf_role = "timeseries_id"``, and a one-dimensional time axis.
Scalar variables are either shaped ``(station, time)`` (observations) or
``(station,)`` (fixed per-station values). Samples are read one
station/time cell at a time, so full arrays are never loaded.
"""

import logging
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from ..core.constants import CF_TIMESERIES_ID, MissingTimestampPolicy
from ..core.exceptions import (
    ExternalFetchMiss,
    ExternalSourceUnavailable,
    MissingTimestamp,
    SchemaError,
)
from ..query.timestamp import TimeWindow
from ..schema.types import VariableDescriptor, VariableKind, value_type_for_dtype

logger = logging.getLogger(__name__)


def normalize_station_key(value: Any) -> Optional[str]:
    """Station keys compare as trimmed strings.

    Integral floats lose their fraction, so a shapefile id stored as
    ``12.0`` matches station ``"12"``.
    """
    if isinstance(value, np.ndarray) and value.ndim == 0:
        value = value[()]
    if isinstance(value, np.generic):
        value = value.item()
    if value is None:
        return None
    if isinstance(value, float):
        if np.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    if isinstance(value, bytes):
        value = value.decode('utf-8')
    key = str(value).strip()
    return key or None


class StationDataset:
    """An open station time-series dataset.

    Parameters
    ----------
    dataset : xr.Dataset
        The opened dataset. Closed by :meth:`close`.
    locator : str
        Where the dataset came from; used as the pool key.
    station_id_variable : str, optional
        Name of the station identifier variable. Looked up through
        ``cf_role`` when omitted.
    time_variable : str, optional
        Name of the time axis. Looked up through ``standard_name``/``axis``
        when omitted.
    """

    def __init__(
        self,
        dataset: xr.Dataset,
        locator: str = '<memory>',
        station_id_variable: Optional[str] = None,
        time_variable: Optional[str] = None,
    ) -> None:
        self.locator = locator
        self._ds = dataset
        self._station_id_override = station_id_variable
        self._time_override = time_variable
        self.closed = False

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @cached_property
    def _time_name(self) -> str:
        variables = self._ds.variables
        if self._time_override is not None:
            if self._time_override not in variables or variables[self._time_override].ndim != 1:
                raise SchemaError(
                    f"Time variable '{self._time_override}' not found in {self.locator}"
                )
            return self._time_override
        for name, variable in variables.items():
            if variable.ndim != 1:
                continue
            if variable.attrs.get('standard_name') == 'time' or variable.attrs.get('axis') == 'T':
                return name
        if 'time' in variables and variables['time'].ndim == 1:
            return 'time'
        raise SchemaError(f"No time variable found in {self.locator}")

    @property
    def _time_dim(self) -> str:
        return self._ds.variables[self._time_name].dims[0]

    @cached_property
    def _station(self) -> Tuple[Optional[str], str]:
        """(station id variable name, station dimension name)"""
        variables = self._ds.variables
        if self._station_id_override is not None:
            variable = variables.get(self._station_id_override)
            if variable is None or variable.ndim != 1:
                raise SchemaError(
                    f"Station id variable '{self._station_id_override}' not found in {self.locator}"
                )
            return self._station_id_override, variable.dims[0]
        for name, variable in variables.items():
            if variable.attrs.get('cf_role') == CF_TIMESERIES_ID and variable.ndim == 1:
                return name, variable.dims[0]
        if 'station' in self._ds.dims:
            return ('station' if 'station' in variables else None), 'station'
        raise SchemaError(f"No station dimension found in {self.locator}")

    @property
    def _station_dim(self) -> str:
        return self._station[1]

    @cached_property
    def station_keys(self) -> List[Optional[str]]:
        """Normalized station keys in the dataset's native order."""
        id_name, dim = self._station
        if id_name is None:
            return [str(i) for i in range(self._ds.sizes[dim])]
        return [normalize_station_key(v) for v in self._ds[id_name].values]

    @cached_property
    def _station_index(self) -> Dict[str, int]:
        index: Dict[str, int] = {}
        for position, key in enumerate(self.station_keys):
            if key is not None:
                index.setdefault(key, position)
        return index

    @cached_property
    def time_index(self) -> pd.DatetimeIndex:
        values = self._ds[self._time_name].values
        if not np.issubdtype(values.dtype, np.datetime64):
            raise SchemaError(
                f"Time variable '{self._time_name}' in {self.locator} is not decoded to datetimes"
            )
        return pd.DatetimeIndex(values)

    def time_variable(self) -> VariableDescriptor:
        """Descriptor of the time axis.

        Raises:
            SchemaError: if no time axis can be located
        """
        variable = self._ds.variables[self._time_name]
        return VariableDescriptor(self._time_name, value_type_for_dtype(variable.dtype), VariableKind.TIME)

    def list_scalar_variables(self) -> List[VariableDescriptor]:
        """Time axis plus every scalar station variable, in dataset order."""
        time_name = self._time_name
        time_dim = self._time_dim
        id_name, station_dim = self._station

        descriptors: List[VariableDescriptor] = []
        for name, variable in self._ds.variables.items():
            if name in (id_name, station_dim):
                continue
            dims = set(variable.dims)
            if name == time_name:
                kind = VariableKind.TIME
            elif dims == {station_dim, time_dim}:
                kind = VariableKind.OBSERVATION
            elif dims == {station_dim}:
                kind = VariableKind.STATION
            else:
                continue
            descriptors.append(VariableDescriptor(name, value_type_for_dtype(variable.dtype), kind))
        return descriptors

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def station_position(self, station_key: Any) -> int:
        key = normalize_station_key(station_key)
        position = self._station_index.get(key) if key is not None else None
        if position is None:
            raise ExternalFetchMiss(f"Station {station_key!r} not in {self.locator}")
        return position

    def time_position(
        self,
        timestamp: Optional[pd.Timestamp] = None,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
        window: Optional[TimeWindow] = None,
    ) -> int:
        """Position of ``timestamp`` on the time axis, or the policy default.

        Without a timestamp, the policy picks among the steps inside
        ``window`` (the whole axis when there is no window). ``first`` takes
        the earliest step; ``latest`` and ``reject`` take the last one.

        Raises:
            ExternalFetchMiss: if the timestamp is not on the axis or the
                window holds no time step
            MissingTimestamp: if neither a timestamp nor a window is given
                and the policy rejects
        """
        index = self.time_index
        if timestamp is None and window is not None:
            candidates = np.flatnonzero(window.mask(index))
            if len(candidates) == 0:
                raise ExternalFetchMiss(f"No time step of {self.locator} in {window}")
            if policy is MissingTimestampPolicy.FIRST:
                return int(candidates[0])
            return int(candidates[-1])
        if timestamp is None:
            if policy is MissingTimestampPolicy.REJECT:
                raise MissingTimestamp(f"No timestamp given for {self.locator}")
            if len(index) == 0:
                raise ExternalFetchMiss(f"Empty time axis in {self.locator}")
            return len(index) - 1 if policy is MissingTimestampPolicy.LATEST else 0
        matches = np.flatnonzero(index == timestamp)
        if len(matches) == 0:
            raise ExternalFetchMiss(f"Time {timestamp} not in {self.locator}")
        return int(matches[0])

    def time_positions(
        self,
        timestamp: Optional[pd.Timestamp] = None,
        window: Optional[TimeWindow] = None,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
    ) -> List[int]:
        """Time positions selected by a point, a window, or the policy."""
        if timestamp is not None:
            return np.flatnonzero(self.time_index == timestamp).tolist()
        if window is not None:
            return np.flatnonzero(window.mask(self.time_index)).tolist()
        try:
            return [self.time_position(None, policy)]
        except ExternalFetchMiss:
            return []

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def sample_at(
        self,
        station_position: int,
        time_position: int,
        variables: Iterable[str],
    ) -> Dict[str, Any]:
        """Raw values of ``variables`` at one station/time cell.

        Raises:
            ExternalFetchMiss: if a variable is absent
        """
        station_dim = self._station_dim
        time_dim = self._time_dim
        sample: Dict[str, Any] = {}
        for name in variables:
            if name not in self._ds.variables:
                raise ExternalFetchMiss(f"Variable '{name}' not in {self.locator}")
            data = self._ds[name]
            indexers = {}
            if station_dim in data.dims:
                indexers[station_dim] = station_position
            if time_dim in data.dims:
                indexers[time_dim] = time_position
            sample[name] = data.isel(indexers).values
        return sample

    def fetch_sample(
        self,
        station_key: Any,
        timestamp: Optional[pd.Timestamp] = None,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
        variables: Optional[Iterable[str]] = None,
        window: Optional[TimeWindow] = None,
    ) -> Dict[str, Any]:
        """Raw sample for one station at ``timestamp`` (or the policy default,
        restricted to ``window`` when given).

        Raises:
            ExternalFetchMiss: if the station, time or a variable is absent
        """
        if variables is None:
            variables = [v.name for v in self.list_scalar_variables()]
        return self.sample_at(
            self.station_position(station_key),
            self.time_position(timestamp, policy, window),
            variables,
        )

    def close(self) -> None:
        if not self.closed:
            self._ds.close()
            self.closed = True

    def __repr__(self) -> str:
        return f"StationDataset({self.locator!r})"


def open_station_dataset(
    locator: Union[str, Path],
    station_id_variable: Optional[str] = None,
    time_variable: Optional[str] = None,
) -> StationDataset:
    """Open a netCDF station dataset with xarray.

    Raises:
        ExternalSourceUnavailable: if the dataset cannot be opened
    """
    try:
        dataset = xr.open_dataset(locator)
    except (OSError, ValueError, RuntimeError) as e:
        raise ExternalSourceUnavailable(f"Cannot open netCDF dataset {locator}: {e}") from e
    logger.debug("Opened station dataset %s", locator)
    return StationDataset(
        dataset,
        locator=str(locator),
        station_id_variable=station_id_variable,
        time_variable=time_variable,
    )
