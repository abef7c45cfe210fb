"""Readers for each query execution path."""

from .base import Feature, FeatureReader, RowReader, VectorRow
from .external import ExternalOnlyReader, TimestampOnlyReader
from .joining import JoiningReader
from .selector import ExecutionPath, ReaderSelector, ReadPlan

__all__ = [
    'ExecutionPath',
    'ExternalOnlyReader',
    'Feature',
    'FeatureReader',
    'JoiningReader',
    'ReadPlan',
    'ReaderSelector',
    'RowReader',
    'TimestampOnlyReader',
    'VectorRow',
]
