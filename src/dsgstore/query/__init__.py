"""Queries, filters and the helpers that classify them."""

from .classifier import requires_attributes
from .filters import (
    And,
    Between,
    Comparison,
    Filter,
    Not,
    Or,
    all_of,
    any_of,
    between,
    equals,
    referenced_attributes,
)
from .query import ALL, Query
from .timestamp import TimeWindow, coerce_timestamp, extract_time_window, extract_timestamp

__all__ = [
    'ALL',
    'And',
    'Between',
    'Comparison',
    'Filter',
    'Not',
    'Or',
    'Query',
    'TimeWindow',
    'all_of',
    'any_of',
    'between',
    'coerce_timestamp',
    'equals',
    'extract_time_window',
    'extract_timestamp',
    'referenced_attributes',
    'requires_attributes',
]
