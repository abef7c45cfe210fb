# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Merge the vector schema with descriptors derived from external variables.

The merged schema lists vector attributes first, then the time axis, then
the remaining external scalar variables. An external variable whose name
already exists among the vector attributes (case-insensitively) is dropped.
"""

import logging
from typing import TYPE_CHECKING, List, Sequence

from .extractors import TimeStampExtractor, extractor_for_variable
from .types import (
    AttributeDescriptor,
    ExternalOrigin,
    MergedSchema,
    NameSet,
    ValueType,
    VariableDescriptor,
)

if TYPE_CHECKING:
    from ..sources.netcdf import StationDataset
    from ..sources.pool import DatasetPool

logger = logging.getLogger(__name__)


def derive_external_descriptors(
    dataset: 'StationDataset',
    vector_names: NameSet,
) -> List[AttributeDescriptor]:
    """Build descriptors for the external variables of an open dataset.

    The time axis always comes first. It is located separately from the
    variable enumeration and matched back to it by name.

    Raises:
        SchemaError: if the time variable cannot be located
    """
    observation_variables = list(dataset.list_scalar_variables())
    time_variable = dataset.time_variable()

    observation_variables = [
        variable for variable in observation_variables
        if variable.name != time_variable.name
    ]

    descriptors: List[AttributeDescriptor] = []
    if time_variable.name in vector_names:
        logger.warning(
            "Time variable '%s' collides with a vector attribute; "
            "the vector attribute is kept", time_variable.name
        )
    else:
        descriptors.append(AttributeDescriptor(
            name=time_variable.name,
            value_type=ValueType.TIMESTAMP,
            origin=ExternalOrigin(time_variable, TimeStampExtractor(time_variable.name)),
        ))

    for variable in observation_variables:
        if variable.name in vector_names:
            logger.warning(
                "External variable '%s' collides with a vector attribute; dropped",
                variable.name
            )
            continue
        descriptors.append(AttributeDescriptor(
            name=variable.name,
            value_type=variable.value_type,
            origin=ExternalOrigin(variable, extractor_for_variable(variable)),
        ))
    return descriptors


def merge_schema(
    vector_descriptors: Sequence[AttributeDescriptor],
    dataset: 'StationDataset',
) -> MergedSchema:
    """Merge vector descriptors with those derived from ``dataset``."""
    vector_names = NameSet(d.name for d in vector_descriptors)
    external = derive_external_descriptors(dataset, vector_names)
    time_variable: VariableDescriptor = dataset.time_variable()
    return MergedSchema(
        descriptors=tuple(vector_descriptors) + tuple(external),
        time_attribute_name=time_variable.name,
    )


class SchemaMerger:
    """Build merged schemas, opening the external dataset through a pool.

    Parameters
    ----------
    pool : DatasetPool
        Pool that opens (and closes) external dataset handles.
    """

    def __init__(self, pool: 'DatasetPool') -> None:
        self.pool = pool

    def build_schema(
        self,
        vector_descriptors: Sequence[AttributeDescriptor],
        locator: str,
    ) -> MergedSchema:
        """Merge ``vector_descriptors`` with the variables found at ``locator``.

        Raises:
            ExternalSourceUnavailable: if the dataset cannot be opened
            SchemaError: if the time variable cannot be located
        """
        with self.pool.dataset(locator) as dataset:
            schema = merge_schema(vector_descriptors, dataset)

        logger.info(
            "Merged schema for %s: %d vector + %d external attributes",
            locator,
            len(schema.vector_descriptors),
            len(schema.external_descriptors),
        )
        return schema
