# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Extractors turning a raw external sample into attribute values.

A sample is the mapping ``variable name -> raw value`` fetched for one
station at one time step. There is one extractor per variable shape:
observations sampled per time step, fixed per-station (categorical) values,
and the raw time axis.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from .types import VariableDescriptor, VariableKind


def _to_python(value: Any) -> Any:
    """Unwrap a 0-d numpy value into a Python scalar."""
    if isinstance(value, np.ndarray):
        if value.ndim != 0:
            raise ValueError(f"Expected a scalar sample, got shape {value.shape}")
        value = value[()]
    if isinstance(value, np.generic):
        value = value.item()
    return value


class Extractor(ABC):
    """Produce one attribute value from a raw sample."""

    def __init__(self, variable_name: str):
        self.variable_name = variable_name

    def extract(self, sample: Mapping[str, Any]) -> Any:
        raw = sample.get(self.variable_name)
        if raw is None:
            return None
        return self.convert(raw)

    @abstractmethod
    def convert(self, raw: Any) -> Any:
        """Convert a raw value that is present in the sample."""

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.variable_name == other.variable_name

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.variable_name))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.variable_name!r})"


class ObservationExtractor(Extractor):
    """Scalar observed at each time step; NaN fill values become None."""

    def convert(self, raw: Any) -> Any:
        value = _to_python(raw)
        if isinstance(value, float) and math.isnan(value):
            return None
        if isinstance(value, bytes):
            return value.decode('utf-8').strip()
        return value


class CategoricalExtractor(Extractor):
    """Fixed per-station value such as a name or category code."""

    def convert(self, raw: Any) -> Any:
        value = _to_python(raw)
        if isinstance(value, bytes):
            value = value.decode('utf-8')
        if isinstance(value, str):
            value = value.strip()
            return value or None
        if isinstance(value, float) and math.isnan(value):
            return None
        return value


class TimeStampExtractor(Extractor):
    """Raw time axis value as a ``pandas.Timestamp``."""

    def convert(self, raw: Any) -> Optional[pd.Timestamp]:
        if isinstance(raw, np.ndarray):
            raw = raw[()]
        timestamp = pd.Timestamp(raw)
        if pd.isna(timestamp):
            return None
        return timestamp


def extractor_for_variable(variable: VariableDescriptor) -> Extractor:
    """Pick the extractor matching a variable's shape."""
    if variable.kind is VariableKind.TIME:
        return TimeStampExtractor(variable.name)
    if variable.kind is VariableKind.STATION:
        return CategoricalExtractor(variable.name)
    return ObservationExtractor(variable.name)
