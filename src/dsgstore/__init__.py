# src/dsgstore/__init__.py
"""
dsgstore - query station metadata and netCDF station time series as one
schema.
"""
try:
    from importlib.metadata import version, PackageNotFoundError
    __version__ = version("dsgstore")
except (ImportError, PackageNotFoundError):
    __version__ = "0.0.0"

from .core.config import PoolConfig, StoreConfig
from .core.constants import MissingTimestampPolicy
from .query import Query, between, equals
from .store import StationDataStore

__all__ = [
    "MissingTimestampPolicy",
    "PoolConfig",
    "Query",
    "StationDataStore",
    "StoreConfig",
    "__version__",
    "between",
    "equals",
]
