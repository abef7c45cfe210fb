"""Merged attribute schema of a station store."""

from .extractors import (
    CategoricalExtractor,
    Extractor,
    ObservationExtractor,
    TimeStampExtractor,
    extractor_for_variable,
)
from .merger import SchemaMerger, merge_schema
from .types import (
    AttributeDescriptor,
    ExternalOrigin,
    MergedSchema,
    NameSet,
    ValueType,
    VariableDescriptor,
    VariableKind,
    VectorOrigin,
)

__all__ = [
    'AttributeDescriptor',
    'CategoricalExtractor',
    'ExternalOrigin',
    'Extractor',
    'MergedSchema',
    'NameSet',
    'ObservationExtractor',
    'SchemaMerger',
    'TimeStampExtractor',
    'ValueType',
    'VariableDescriptor',
    'VariableKind',
    'VectorOrigin',
    'extractor_for_variable',
    'merge_schema',
]
