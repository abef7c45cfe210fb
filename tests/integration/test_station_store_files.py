"""End-to-end tests over a shapefile and a netCDF file on disk."""

import pytest

from dsgstore.core.config import StoreConfig
from dsgstore.core.exceptions import ExternalSourceUnavailable, VectorSourceError
from dsgstore.query.filters import between, equals
from dsgstore.query.query import Query
from dsgstore.store import StationDataStore

from fixtures.station_fixtures import T0, TIMES, station_dataset, station_frame

pytest.importorskip('netCDF4')

pytestmark = pytest.mark.integration


@pytest.fixture
def station_files(tmp_path):
    netcdf_path = tmp_path / 'gauges,2020.nc'
    station_dataset().to_netcdf(netcdf_path, engine='netcdf4')
    shapefile_path = tmp_path / 'stations.shp'
    station_frame().to_file(shapefile_path)
    return netcdf_path, shapefile_path


@pytest.fixture
def config(station_files):
    netcdf_path, shapefile_path = station_files
    return StoreConfig(
        NETCDF_PATH=str(netcdf_path),
        SHAPEFILE_PATH=str(shapefile_path),
        STATION_ATTRIBUTE='ID',
        ROW_CHUNK_SIZE=2,
    )


def test_type_name(config):
    with StationDataStore.from_config(config) as store:
        assert store.type_name == 'gauges_2020'


def test_schema(config):
    with StationDataStore.from_config(config) as store:
        assert store.schema.names == ['id', 'name', 'time', 'station_name', 'temperature']
        assert store.schema.time_attribute_name == 'time'


def test_joined_query_across_chunks(config):
    query = Query.select('name', 'temperature', filter=equals('time', T0))
    with StationDataStore.from_config(config) as store:
        features = list(store.read_features(query))
        assert store.pool.open_handles <= 1
    assert [f['name'] for f in features] == ['Alpha', 'Bravo', 'Charlie']
    assert [f['temperature'] for f in features] == [0.0, 10.0, None]
    assert [f.feature_id for f in features] == [0, 1, 2]


def test_external_only_range(config):
    query = Query.select('station_name', 'temperature', filter=between('time', TIMES[1], TIMES[2]))
    with StationDataStore.from_config(config) as store:
        frame = store.to_dataframe(query)
    assert list(frame.index) == ['A.1', 'A.2', 'B.1', 'B.2']
    assert list(frame['temperature']) == [1.0, 2.0, 11.0, 12.0]
    assert list(frame['station_name']) == ['Station A', 'Station A', 'Station B', 'Station B']


def test_missing_netcdf(config, tmp_path):
    config = config.model_copy(update={'netcdf_path': str(tmp_path / 'absent.nc')})
    with StationDataStore.from_config(config) as store:
        with pytest.raises(ExternalSourceUnavailable):
            store.schema


def test_missing_shapefile(config, tmp_path):
    config = config.model_copy(update={'shapefile_path': str(tmp_path / 'absent.shp')})
    with StationDataStore.from_config(config) as store:
        with pytest.raises(VectorSourceError):
            store.schema
