"""Tests for the station data store facade."""

import geopandas as gpd
import pandas as pd
import pytest

from dsgstore.core.config import StoreConfig
from dsgstore.core.exceptions import (
    ConfigurationError,
    DSGStoreError,
    ExternalSourceUnavailable,
    MissingTimestamp,
)
from dsgstore.query.filters import Comparison, all_of, between, equals
from dsgstore.query.query import Query
from dsgstore.readers.selector import ExecutionPath
from dsgstore.sources.pool import DatasetPool
from dsgstore.store import StationDataStore, feature_type_name

from fixtures.station_fixtures import (
    LOCATOR,
    T0,
    TIMES,
    TrackingOpener,
    station_dataset,
)

JOINED = Query.select('name', 'temperature', filter=equals('time', T0))


class FlakyOpener(TrackingOpener):
    """Fails the first open, then behaves."""

    def __init__(self, dataset):
        super().__init__(dataset)
        self.failed = False

    def __call__(self, locator):
        if not self.failed:
            self.failed = True
            raise ExternalSourceUnavailable(f"Cannot open {locator}")
        return super().__call__(locator)


class TestTypeName:

    @pytest.mark.parametrize('locator, expected', [
        ('stations.nc', 'stations'),
        ('/data/gauges,2020.nc', 'gauges_2020'),
        ('plain', 'plain'),
    ])
    def test_feature_type_name(self, locator, expected):
        assert feature_type_name(locator) == expected

    def test_store_type_name(self, store):
        assert store.type_name == 'stations'


class TestSchema:

    def test_schema_is_cached(self, store, vector_store, opener):
        first = store.schema
        assert store.schema is first
        assert vector_store.schema_reads == 1
        assert opener.opened == 1

    def test_failed_build_is_not_cached(self, vector_store, store_config):
        opener = FlakyOpener(station_dataset())
        pool = DatasetPool(opener=opener, max_idle_handles=0)
        with StationDataStore(vector_store, LOCATOR, store_config, pool=pool) as store:
            with pytest.raises(ExternalSourceUnavailable):
                store.schema
            assert pool.open_handles == 0
            assert 'temperature' in store.schema.names

    def test_schema_names(self, schema):
        assert schema.names == ['id', 'name', 'time', 'station_name', 'temperature']


class TestQueries:

    def test_joined_query(self, store, vector_store):
        features = list(store.read_features(JOINED))
        assert [f.attributes for f in features] == [
            {'name': 'Alpha', 'temperature': 0.0},
            {'name': 'Bravo', 'temperature': 10.0},
            {'name': 'Charlie', 'temperature': None},
        ]
        assert vector_store.projections[-1] == ['name', 'id']

    def test_joined_range_stays_inside_range(self, store):
        query = Query.select('name', 'time', 'temperature', filter=between('time', T0, TIMES[1]))
        features = list(store.read_features(query))
        assert [(f['name'], f['time'], f['temperature']) for f in features] == [
            ('Alpha', TIMES[1], 1.0),
            ('Bravo', TIMES[1], 11.0),
            ('Charlie', None, None),
        ]

    def test_joined_range_first_policy(self, vector_store, pool):
        config = StoreConfig(STATION_ATTRIBUTE='id', MISSING_TIMESTAMP_POLICY='first')
        query = Query.select('name', 'temperature', filter=Comparison('time', '>', T0))
        with StationDataStore(vector_store, LOCATOR, config, pool=pool) as store:
            features = list(store.read_features(query))
        assert [f['temperature'] for f in features] == [1.0, 11.0, None]

    def test_joined_contradictory_times_give_nulls(self, store):
        contradictory = all_of(equals('time', T0), equals('time', TIMES[1]))
        joined = list(store.read_features(
            Query.select('name', 'time', 'temperature', filter=contradictory)
        ))
        assert [f['name'] for f in joined] == ['Alpha', 'Bravo', 'Charlie']
        assert all(f['time'] is None and f['temperature'] is None for f in joined)
        assert list(store.read_features(Query.select('temperature', filter=contradictory))) == []

    def test_join_key_hidden_from_output(self, store):
        features = list(store.read_features(JOINED))
        assert all('id' not in f.attributes for f in features)

    def test_timestamp_only_query(self, store, vector_store):
        assert store.plan(Query.select('time')).path is ExecutionPath.TIMESTAMP_ONLY
        features = list(store.read_features(Query.select('time')))
        assert [f['time'] for f in features] == [TIMES[2], TIMES[2]]
        assert vector_store.projections == []

    def test_external_window_query(self, store, vector_store):
        query = Query.select('temperature', filter=between('time', TIMES[0], TIMES[1]))
        features = list(store.read_features(query))
        assert [f['temperature'] for f in features] == [0.0, 1.0, 10.0, 11.0]
        assert [f.feature_id for f in features] == ['A.0', 'A.1', 'B.0', 'B.1']
        assert vector_store.projections == []

    def test_vector_only_never_opens_dataset(self, store, opener):
        store.schema
        features = list(store.read_features(Query.select('name')))
        assert [f['name'] for f in features] == ['Alpha', 'Bravo', 'Charlie']
        assert opener.opened == 1

    def test_all_attributes(self, store):
        features = list(store.read_features())
        assert list(features[0].attributes) == store.schema.names
        assert features[0]['temperature'] == 2.0
        assert features[2]['station_name'] is None

    def test_empty_projection(self, store):
        features = list(store.read_features(Query.select()))
        assert len(features) == 3
        assert all(f.attributes == {} for f in features)
        assert features[0].geometry is not None

    def test_reject_policy(self, vector_store, pool):
        config = StoreConfig(STATION_ATTRIBUTE='id', MISSING_TIMESTAMP_POLICY='reject')
        with StationDataStore(vector_store, LOCATOR, config, pool=pool) as store:
            with pytest.raises(MissingTimestamp):
                store.get_feature_reader(Query.select('name', 'temperature'))
            assert len(list(store.read_features(JOINED))) == 3


class TestDataFrame:

    def test_joined_frame(self, store):
        frame = store.to_dataframe(JOINED)
        assert isinstance(frame, gpd.GeoDataFrame)
        assert list(frame.columns[:2]) == ['name', 'temperature']
        assert frame.index.name == 'feature_id'
        assert frame.loc[1, 'temperature'] == 10.0
        assert pd.isna(frame.loc[2, 'temperature'])

    def test_external_frame_has_no_geometry(self, store):
        frame = store.to_dataframe(Query.select('time', filter=equals('time', T0)))
        assert not isinstance(frame, gpd.GeoDataFrame)
        assert list(frame['time']) == [T0, T0]


class TestLifecycle:

    def test_partial_iteration_releases_once(self, store, opener):
        store.schema
        features = store.read_features(JOINED)
        next(features)
        features.close()
        assert opener.live == 0
        assert store.pool.open_handles == 0

    def test_reader_close_releases(self, store, opener):
        reader = store.get_feature_reader(JOINED)
        next(reader)
        reader.close()
        reader.close()
        assert opener.live == 0

    def test_dispose(self, vector_store, pool, store_config):
        store = StationDataStore(vector_store, LOCATOR, store_config, pool=pool)
        store.schema
        store.dispose()
        store.dispose()
        assert pool.closed
        with pytest.raises(DSGStoreError):
            store.schema
        with pytest.raises(DSGStoreError):
            store.get_feature_reader(JOINED)

    def test_context_manager_disposes(self, vector_store, pool, store_config):
        with StationDataStore(vector_store, LOCATOR, store_config, pool=pool) as store:
            list(store.read_features(JOINED))
        assert pool.closed

    def test_from_config_requires_paths(self):
        with pytest.raises(ConfigurationError):
            StationDataStore.from_config(StoreConfig(STATION_ATTRIBUTE='id'))

    def test_default_pool_built_from_config(self, vector_store):
        config = StoreConfig(STATION_ATTRIBUTE='id', POOL={'MAX_OPEN_HANDLES': 3})
        store = StationDataStore(vector_store, LOCATOR, config)
        assert store.pool.max_open_handles == 3
        store.dispose()
