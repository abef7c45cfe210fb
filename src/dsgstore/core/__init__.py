"""Core configuration, constants and exceptions."""

from .config import PoolConfig, StoreConfig
from .constants import MissingTimestampPolicy, PoolDefaults
from .exceptions import (
    ConfigurationError,
    DSGStoreError,
    EndOfData,
    ExternalFetchMiss,
    ExternalSourceUnavailable,
    JoinKeyMissing,
    MissingTimestamp,
    SchemaError,
    VectorSourceError,
)

__all__ = [
    'PoolConfig',
    'StoreConfig',
    'MissingTimestampPolicy',
    'PoolDefaults',
    'ConfigurationError',
    'DSGStoreError',
    'EndOfData',
    'ExternalFetchMiss',
    'ExternalSourceUnavailable',
    'JoinKeyMissing',
    'MissingTimestamp',
    'SchemaError',
    'VectorSourceError',
]
