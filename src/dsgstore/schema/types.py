# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Attribute and schema types for the merged station schema.

Each attribute carries an explicit origin: either the vector record store,
or an external variable together with the extractor that turns a raw
external sample into the attribute value.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pandas as pd

from ..core.exceptions import SchemaError


class ValueType(str, Enum):
    """Semantic type of an attribute value."""

    STRING = 'string'
    INTEGER = 'integer'
    FLOAT = 'float'
    BOOLEAN = 'boolean'
    TIMESTAMP = 'timestamp'
    OBJECT = 'object'


def value_type_for_dtype(dtype: Any) -> ValueType:
    """Map a numpy/pandas dtype to a ``ValueType``."""
    if pd.api.types.is_bool_dtype(dtype):
        return ValueType.BOOLEAN
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return ValueType.TIMESTAMP
    if pd.api.types.is_integer_dtype(dtype):
        return ValueType.INTEGER
    if pd.api.types.is_float_dtype(dtype):
        return ValueType.FLOAT
    if pd.api.types.is_string_dtype(dtype) or getattr(dtype, 'kind', None) in ('S', 'U'):
        return ValueType.STRING
    return ValueType.OBJECT


class VariableKind(str, Enum):
    """Shape of an external scalar variable."""

    TIME = 'time'
    """The time axis itself."""

    OBSERVATION = 'observation'
    """One value per station per time step."""

    STATION = 'station'
    """One fixed value per station (names, categories, elevations)."""


@dataclass(frozen=True)
class VariableDescriptor:
    """One scalar variable of the external dataset."""
    name: str
    value_type: ValueType
    kind: VariableKind


@dataclass(frozen=True)
class VectorOrigin:
    """Attribute read from the vector record store."""


@dataclass(frozen=True)
class ExternalOrigin:
    """Attribute derived from an external variable."""
    variable: VariableDescriptor
    extractor: Any


Origin = Union[VectorOrigin, ExternalOrigin]

VECTOR = VectorOrigin()


@dataclass(frozen=True)
class AttributeDescriptor:
    """A named, typed attribute of the merged schema."""
    name: str
    value_type: ValueType
    origin: Origin = VECTOR

    @property
    def is_external(self) -> bool:
        return isinstance(self.origin, ExternalOrigin)

    @property
    def variable(self) -> Optional[VariableDescriptor]:
        return self.origin.variable if self.is_external else None

    @property
    def extractor(self):
        return self.origin.extractor if self.is_external else None


class NameSet:
    """Set of attribute names compared case-insensitively.

    Remembers the first spelling seen for each name, so callers can map a
    query's spelling back to the schema's.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._canonical: Dict[str, str] = {}
        for name in names:
            self.add(name)

    def add(self, name: str) -> None:
        self._canonical.setdefault(name.casefold(), name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._canonical

    def __iter__(self) -> Iterator[str]:
        return iter(self._canonical.values())

    def __len__(self) -> int:
        return len(self._canonical)

    def canonical(self, name: str) -> Optional[str]:
        return self._canonical.get(name.casefold())

    def intersects(self, names: Iterable[str]) -> bool:
        return any(name in self for name in names)

    def __repr__(self) -> str:
        return f"NameSet({sorted(self._canonical.values())!r})"


@dataclass(frozen=True)
class MergedSchema:
    """Vector descriptors followed by externally derived descriptors.

    ``vector_attribute_names`` and ``external_attribute_names`` partition the
    schema for requirement classification. ``time_attribute_name`` is the
    name of the external time axis, used to find timestamps in filters.
    """
    descriptors: Tuple[AttributeDescriptor, ...]
    time_attribute_name: str
    vector_attribute_names: NameSet = field(init=False, repr=False, compare=False)
    external_attribute_names: NameSet = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        seen = NameSet()
        for descriptor in self.descriptors:
            if descriptor.name in seen:
                raise SchemaError(f"Duplicate attribute name in schema: {descriptor.name}")
            seen.add(descriptor.name)
        object.__setattr__(self, 'vector_attribute_names', NameSet(
            d.name for d in self.descriptors if not d.is_external
        ))
        object.__setattr__(self, 'external_attribute_names', NameSet(
            d.name for d in self.descriptors if d.is_external
        ))

    def __iter__(self) -> Iterator[AttributeDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None if isinstance(name, str) else False

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.descriptors]

    @property
    def vector_descriptors(self) -> List[AttributeDescriptor]:
        return [d for d in self.descriptors if not d.is_external]

    @property
    def external_descriptors(self) -> List[AttributeDescriptor]:
        return [d for d in self.descriptors if d.is_external]

    @property
    def time_descriptor(self) -> Optional[AttributeDescriptor]:
        """External descriptor of the time axis, if it survived merging."""
        descriptor = self.get(self.time_attribute_name)
        if descriptor is not None and descriptor.is_external:
            return descriptor
        return None

    def get(self, name: str) -> Optional[AttributeDescriptor]:
        folded = name.casefold()
        for descriptor in self.descriptors:
            if descriptor.name.casefold() == folded:
                return descriptor
        return None

    def resolve(self, names: Iterable[str]) -> List[str]:
        """Map names to their schema spelling, dropping repeats.

        Raises:
            SchemaError: if a name is not in the schema
        """
        resolved: List[str] = []
        for name in names:
            descriptor = self.get(name)
            if descriptor is None:
                raise SchemaError(f"Unknown attribute '{name}'")
            if descriptor.name not in resolved:
                resolved.append(descriptor.name)
        return resolved
