"""Tests for the xarray-backed station dataset."""

import numpy as np
import pandas as pd
import pytest

from dsgstore.core.constants import MissingTimestampPolicy
from dsgstore.core.exceptions import (
    ExternalFetchMiss,
    ExternalSourceUnavailable,
    MissingTimestamp,
    SchemaError,
)
from dsgstore.query.timestamp import TimeWindow
from dsgstore.schema.types import ValueType, VariableKind
from dsgstore.sources.netcdf import StationDataset, normalize_station_key, open_station_dataset

from fixtures.station_fixtures import TIMES, T0, station_dataset


@pytest.fixture
def dataset():
    return StationDataset(station_dataset(), locator='stations.nc')


class TestNormalizeStationKey:

    @pytest.mark.parametrize('raw, expected', [
        ('A', 'A'),
        (b' A ', 'A'),
        (12, '12'),
        (12.0, '12'),
        (np.int64(7), '7'),
        (np.array('B', dtype=object), 'B'),
        (None, None),
        (float('nan'), None),
        ('  ', None),
    ])
    def test_normalization(self, raw, expected):
        assert normalize_station_key(raw) == expected


class TestStructure:

    def test_time_variable(self, dataset):
        variable = dataset.time_variable()
        assert variable.name == 'time'
        assert variable.kind is VariableKind.TIME
        assert variable.value_type is ValueType.TIMESTAMP

    def test_scalar_variables(self, dataset):
        variables = {v.name: v for v in dataset.list_scalar_variables()}
        assert set(variables) == {'time', 'station_name', 'temperature'}
        assert variables['temperature'].kind is VariableKind.OBSERVATION
        assert variables['station_name'].kind is VariableKind.STATION

    def test_station_keys_in_native_order(self, dataset):
        assert dataset.station_keys == ['A', 'B']

    def test_time_found_by_axis_attribute(self):
        ds = station_dataset().rename({'time': 'obs_time'})
        ds['obs_time'].attrs = {'axis': 'T'}
        assert StationDataset(ds).time_variable().name == 'obs_time'

    def test_time_override(self):
        ds = station_dataset().rename({'time': 'valid'})
        ds['valid'].attrs = {}
        assert StationDataset(ds, time_variable='valid').time_variable().name == 'valid'
        with pytest.raises(SchemaError):
            StationDataset(ds, time_variable='absent').time_variable()

    def test_no_time_variable(self):
        ds = station_dataset().drop_vars('time')
        with pytest.raises(SchemaError):
            StationDataset(ds).time_variable()

    def test_station_id_override(self):
        ds = station_dataset()
        ds['station_id'].attrs = {}
        dataset = StationDataset(ds, station_id_variable='station_name')
        assert dataset.station_keys == ['Station A', 'Station B']

    def test_station_dimension_fallback(self):
        ds = station_dataset().drop_vars('station_id')
        dataset = StationDataset(ds)
        assert dataset.station_keys == ['0', '1']

    def test_no_station_dimension(self):
        ds = station_dataset().drop_vars('station_id').rename_dims({'station': 'site'})
        with pytest.raises(SchemaError):
            StationDataset(ds).list_scalar_variables()


class TestPositions:

    def test_time_position_exact(self, dataset):
        assert dataset.time_position(TIMES[1]) == 1

    def test_time_position_miss(self, dataset):
        with pytest.raises(ExternalFetchMiss):
            dataset.time_position(pd.Timestamp('1999-01-01'))

    def test_time_position_policies(self, dataset):
        assert dataset.time_position(None, MissingTimestampPolicy.LATEST) == 2
        assert dataset.time_position(None, MissingTimestampPolicy.FIRST) == 0
        with pytest.raises(MissingTimestamp):
            dataset.time_position(None, MissingTimestampPolicy.REJECT)

    def test_time_position_in_window(self, dataset):
        window = TimeWindow(T0, TIMES[1])
        assert dataset.time_position(None, MissingTimestampPolicy.LATEST, window) == 1
        assert dataset.time_position(None, MissingTimestampPolicy.FIRST, window) == 0
        assert dataset.time_position(None, MissingTimestampPolicy.REJECT, window) == 1

    def test_time_position_empty_window(self, dataset):
        with pytest.raises(ExternalFetchMiss):
            dataset.time_position(window=TimeWindow(lower=TIMES[1], upper=T0))
        with pytest.raises(ExternalFetchMiss):
            dataset.time_position(window=TimeWindow(lower=TIMES[2], include_lower=False))

    def test_point_wins_over_window(self, dataset):
        assert dataset.time_position(TIMES[2], window=TimeWindow(T0, TIMES[1])) == 2

    def test_time_positions(self, dataset):
        assert dataset.time_positions(T0) == [0]
        assert dataset.time_positions(pd.Timestamp('1999-01-01')) == []
        assert dataset.time_positions(window=TimeWindow(lower=TIMES[1])) == [1, 2]
        assert dataset.time_positions() == [2]

    def test_station_position(self, dataset):
        assert dataset.station_position('B') == 1
        with pytest.raises(ExternalFetchMiss):
            dataset.station_position('Z')
        with pytest.raises(ExternalFetchMiss):
            dataset.station_position(None)


class TestFetchSample:

    def test_sample_values(self, dataset):
        sample = dataset.fetch_sample('B', TIMES[2])
        assert float(sample['temperature']) == 12.0
        assert sample['station_name'][()] == 'Station B'
        assert pd.Timestamp(sample['time'][()]) == TIMES[2]

    def test_selected_variables_only(self, dataset):
        sample = dataset.fetch_sample('A', T0, variables=['temperature'])
        assert list(sample) == ['temperature']

    def test_default_time_is_latest(self, dataset):
        sample = dataset.fetch_sample('A', variables=['temperature'])
        assert float(sample['temperature']) == 2.0

    def test_window_restricts_default_time(self, dataset):
        sample = dataset.fetch_sample(
            'B', variables=['temperature'], window=TimeWindow(upper=TIMES[1])
        )
        assert float(sample['temperature']) == 11.0

    def test_absent_variable(self, dataset):
        with pytest.raises(ExternalFetchMiss):
            dataset.fetch_sample('A', T0, variables=['salinity'])

    def test_close_is_idempotent(self, dataset):
        dataset.close()
        dataset.close()
        assert dataset.closed


class TestOpenStationDataset:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ExternalSourceUnavailable):
            open_station_dataset(tmp_path / 'absent.nc')

    def test_not_a_dataset(self, tmp_path):
        path = tmp_path / 'garbage.nc'
        path.write_text('this is not netCDF')
        with pytest.raises(ExternalSourceUnavailable):
            open_station_dataset(path)
