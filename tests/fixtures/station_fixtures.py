"""
Synthetic station data for store tests.

Provides:
- station_dataset(): CF timeSeries dataset with a station id variable,
  a fixed per-station name and one observation variable
- station_frame(): station GeoDataFrame keyed by ``id``
- TrackingOpener: dataset opener counting opens and closes
- CountingVectorStore: vector store recording the projections it is asked for
"""

from typing import List, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import xarray as xr
from shapely.geometry import Point

from dsgstore.core.config import StoreConfig
from dsgstore.sources.netcdf import StationDataset
from dsgstore.sources.pool import DatasetPool
from dsgstore.sources.vector import GeoDataFrameVectorStore
from dsgstore.store import StationDataStore

TIMES = pd.date_range('2020-01-01', periods=3, freq='D')
T0 = TIMES[0]
LOCATOR = 'stations.nc'


def station_dataset(
    station_ids: Sequence[str] = ('A', 'B'),
    times: pd.DatetimeIndex = TIMES,
) -> xr.Dataset:
    """Temperature at station i, step j is ``10 * i + j``."""
    n_stations, n_times = len(station_ids), len(times)
    temperature = (10.0 * np.arange(n_stations)[:, None] + np.arange(n_times)[None, :])
    return xr.Dataset(
        data_vars={
            'station_id': (
                ('station',), np.array(station_ids, dtype=object), {'cf_role': 'timeseries_id'}
            ),
            'station_name': (
                ('station',), np.array([f'Station {s}' for s in station_ids], dtype=object)
            ),
            'temperature': (('station', 'time'), temperature, {'units': 'degC'}),
        },
        coords={'time': ('time', times, {'standard_name': 'time'})},
    )


def station_frame(ids: Sequence[str] = ('A', 'B', 'C')) -> gpd.GeoDataFrame:
    names = {'A': 'Alpha', 'B': 'Bravo', 'C': 'Charlie', 'D': 'Delta'}
    return gpd.GeoDataFrame(
        {
            'id': list(ids),
            'name': [names.get(i, i) for i in ids],
        },
        geometry=[Point(float(n), 50.0) for n in range(len(ids))],
        crs='EPSG:4326',
    )


class TrackedStationDataset(StationDataset):
    def __init__(self, dataset, locator, opener):
        super().__init__(dataset, locator=locator)
        self._opener = opener

    def close(self):
        if not self.closed:
            self._opener.closed += 1
        super().close()


class TrackingOpener:
    """Open the same in-memory dataset, counting opens and closes."""

    def __init__(self, dataset: xr.Dataset):
        self.dataset = dataset
        self.opened = 0
        self.closed = 0

    def __call__(self, locator: str) -> StationDataset:
        self.opened += 1
        return TrackedStationDataset(self.dataset, locator, self)

    @property
    def live(self) -> int:
        return self.opened - self.closed


class CountingVectorStore(GeoDataFrameVectorStore):
    def __init__(self, frame):
        super().__init__(frame)
        self.schema_reads = 0
        self.projections: List[List[str]] = []

    def read_schema(self):
        self.schema_reads += 1
        return super().read_schema()

    def open_row_reader(self, projection):
        self.projections.append(list(projection))
        return super().open_row_reader(projection)


@pytest.fixture
def station_xr():
    return station_dataset()


@pytest.fixture
def opener(station_xr):
    return TrackingOpener(station_xr)


@pytest.fixture
def pool(opener):
    """Pool that closes handles on release, so closes are observable."""
    pool = DatasetPool(opener=opener, max_idle_handles=0)
    yield pool
    pool.close()


@pytest.fixture
def vector_store():
    return CountingVectorStore(station_frame())


@pytest.fixture
def store_config():
    return StoreConfig(STATION_ATTRIBUTE='id')


@pytest.fixture
def store(vector_store, pool, store_config):
    store = StationDataStore(vector_store, LOCATOR, store_config, pool=pool)
    yield store
    store.dispose()


@pytest.fixture
def schema(store):
    return store.schema
