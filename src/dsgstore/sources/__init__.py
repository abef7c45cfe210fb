"""Data sources joined by the station store."""

from .netcdf import StationDataset, normalize_station_key, open_station_dataset
from .pool import DatasetPool
from .vector import GeoDataFrameVectorStore, ShapefileVectorStore, VectorStore

__all__ = [
    'DatasetPool',
    'GeoDataFrameVectorStore',
    'ShapefileVectorStore',
    'StationDataset',
    'VectorStore',
    'normalize_station_key',
    'open_station_dataset',
]
