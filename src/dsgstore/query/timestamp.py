"""
Pull timestamp constraints out of a query filter.

A point timestamp comes from an equality on the time attribute, or from a
range whose bounds coincide. Any other bounds form a ``TimeWindow``. Only
conjunctive terms are considered.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd

from .filters import Between, Comparison, conjuncts
from .query import Query


def coerce_timestamp(value: Any) -> pd.Timestamp:
    """Convert a filter value to a naive UTC ``pandas.Timestamp``.

    Raises:
        ValueError: if the value cannot be read as a point in time
    """
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    timestamp = pd.Timestamp(value)
    if pd.isna(timestamp):
        raise ValueError(f"Not a timestamp: {value!r}")
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert('UTC').tz_localize(None)
    return timestamp


@dataclass(frozen=True)
class TimeWindow:
    """Bounds on the time attribute; ``None`` means unbounded."""
    lower: Optional[pd.Timestamp] = None
    upper: Optional[pd.Timestamp] = None
    include_lower: bool = True
    include_upper: bool = True

    @property
    def point(self) -> Optional[pd.Timestamp]:
        if (self.lower is not None and self.lower == self.upper
                and self.include_lower and self.include_upper):
            return self.lower
        return None

    def mask(self, index: pd.DatetimeIndex) -> np.ndarray:
        """Boolean mask of the index positions inside the window."""
        result = np.ones(len(index), dtype=bool)
        if self.lower is not None:
            result &= (index >= self.lower) if self.include_lower else (index > self.lower)
        if self.upper is not None:
            result &= (index <= self.upper) if self.include_upper else (index < self.upper)
        return result

    def narrow(self, other: 'TimeWindow') -> 'TimeWindow':
        lower, include_lower = self.lower, self.include_lower
        if other.lower is not None and (lower is None or other.lower > lower
                                        or (other.lower == lower and not other.include_lower)):
            lower, include_lower = other.lower, other.include_lower
        upper, include_upper = self.upper, self.include_upper
        if other.upper is not None and (upper is None or other.upper < upper
                                        or (other.upper == upper and not other.include_upper)):
            upper, include_upper = other.upper, other.include_upper
        return TimeWindow(lower, upper, include_lower, include_upper)


def _term_window(term) -> Optional[TimeWindow]:
    if isinstance(term, Between):
        return TimeWindow(coerce_timestamp(term.lower), coerce_timestamp(term.upper))
    value = coerce_timestamp(term.value)
    if term.op == '==':
        return TimeWindow(value, value)
    if term.op == '>=':
        return TimeWindow(lower=value)
    if term.op == '>':
        return TimeWindow(lower=value, include_lower=False)
    if term.op == '<=':
        return TimeWindow(upper=value)
    if term.op == '<':
        return TimeWindow(upper=value, include_upper=False)
    return None


def extract_time_window(query: Query, timestamp_attribute_name: str) -> Optional[TimeWindow]:
    """Combine every conjunctive bound on the time attribute, or None."""
    if query.filter is None:
        return None
    folded = timestamp_attribute_name.casefold()
    window = None
    for term in conjuncts(query.filter):
        if term.attribute.casefold() != folded:
            continue
        if isinstance(term, Comparison) and term.op == '!=':
            continue
        term_window = _term_window(term)
        window = term_window if window is None else window.narrow(term_window)
    return window


def extract_timestamp(query: Query, timestamp_attribute_name: str) -> Optional[pd.Timestamp]:
    """The single instant a query targets, or None if it names none."""
    window = extract_time_window(query, timestamp_attribute_name)
    if window is None:
        return None
    return window.point
