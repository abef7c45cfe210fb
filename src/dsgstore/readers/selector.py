# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Choose how a query is answered.

Three paths exist: vector store only, external dataset only (with a
lightweight variant when only the timestamp is requested), or a join of
both. The choice depends on which attribute partitions the query projects
or filters on.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import pandas as pd

from ..core.constants import MissingTimestampPolicy
from ..core.exceptions import JoinKeyMissing, MissingTimestamp
from ..query.classifier import requires_attributes
from ..query.query import Query
from ..query.timestamp import TimeWindow, extract_time_window
from ..schema.types import MergedSchema

logger = logging.getLogger(__name__)


class ExecutionPath(str, Enum):
    VECTOR_ONLY = 'vector_only'
    JOIN = 'join'
    EXTERNAL_ONLY = 'external_only'
    TIMESTAMP_ONLY = 'timestamp_only'


@dataclass(frozen=True)
class ReadPlan:
    """Everything needed to open the reader for one query.

    ``vector_projection`` is what the vector store is asked for; on the join
    path it ends with the station key when the caller did not request it.
    ``external_names`` are the external attributes filled in, in merged
    schema order. ``output_names`` are what the caller gets back.
    """
    path: ExecutionPath
    output_names: Tuple[str, ...]
    vector_projection: Tuple[str, ...] = ()
    external_names: Tuple[str, ...] = ()
    station_key_index: Optional[int] = None
    timestamp: Optional[pd.Timestamp] = None
    window: Optional[TimeWindow] = None

    @property
    def row_names(self) -> Tuple[str, ...]:
        """Attribute name of each position in the rows the reader emits."""
        if self.path in (ExecutionPath.EXTERNAL_ONLY, ExecutionPath.TIMESTAMP_ONLY):
            return self.external_names
        return self.vector_projection + self.external_names


class ReaderSelector:
    """Plan queries against a merged schema.

    Parameters
    ----------
    schema : MergedSchema
        The store's merged schema.
    station_attribute : str
        Vector attribute holding the station key.
    policy : MissingTimestampPolicy
        Applied when a query needing external values names no timestamp.
    """

    def __init__(
        self,
        schema: MergedSchema,
        station_attribute: str,
        policy: MissingTimestampPolicy = MissingTimestampPolicy.LATEST,
    ) -> None:
        self.schema = schema
        self.station_attribute = station_attribute
        self.policy = policy

    def select(self, query: Query) -> ReadPlan:
        """Build the read plan for ``query``.

        Raises:
            SchemaError: if the projection names an unknown attribute
            JoinKeyMissing: if a join is needed but the station attribute
                is not a vector attribute
            MissingTimestamp: if external values are needed, no timestamp is
                given, and the policy rejects such queries
        """
        schema = self.schema
        if query.is_all:
            output_names = tuple(schema.names)
        else:
            output_names = tuple(schema.resolve(query.projection))

        if not query.is_all and not output_names:
            plan = ReadPlan(ExecutionPath.VECTOR_ONLY, output_names)
            logger.debug("Empty projection: vector-only read")
            return plan

        requested = set(output_names)
        vector_names = tuple(n for n in output_names if n in schema.vector_attribute_names)
        external_names = tuple(
            d.name for d in schema.external_descriptors if d.name in requested
        )

        needs_vector = requires_attributes(query, schema.vector_attribute_names)
        needs_external = requires_attributes(query, schema.external_attribute_names)

        if needs_vector and not needs_external:
            plan = ReadPlan(ExecutionPath.VECTOR_ONLY, output_names, vector_projection=vector_names)
        elif needs_vector:
            plan = self._join_plan(query, output_names, vector_names, external_names)
        else:
            plan = self._external_plan(query, output_names)

        logger.debug("Query %s -> %s", query, plan.path.value)
        return plan

    def _time_constraints(self, query: Query):
        window = extract_time_window(query, self.schema.time_attribute_name)
        timestamp = window.point if window is not None else None
        return timestamp, window

    def _join_plan(self, query, output_names, vector_names, external_names) -> ReadPlan:
        key = self.schema.vector_attribute_names.canonical(self.station_attribute)
        if key is None:
            raise JoinKeyMissing(
                f"Station attribute '{self.station_attribute}' is not a vector attribute"
            )
        if key not in vector_names:
            vector_names = vector_names + (key,)

        timestamp, window = self._time_constraints(query)
        if timestamp is not None:
            window = None
        if (timestamp is None and window is None and external_names
                and self.policy is MissingTimestampPolicy.REJECT):
            raise MissingTimestamp("Joined query names no timestamp")

        return ReadPlan(
            ExecutionPath.JOIN,
            output_names,
            vector_projection=vector_names,
            external_names=external_names,
            station_key_index=vector_names.index(key),
            timestamp=timestamp,
            window=window,
        )

    def _external_plan(self, query, output_names) -> ReadPlan:
        timestamp, window = self._time_constraints(query)
        if timestamp is not None:
            window = None
        if timestamp is None and window is None and self.policy is MissingTimestampPolicy.REJECT:
            raise MissingTimestamp("External-only query names no timestamp")

        time_descriptor = self.schema.time_descriptor
        path = ExecutionPath.EXTERNAL_ONLY
        if time_descriptor is not None and output_names == (time_descriptor.name,):
            path = ExecutionPath.TIMESTAMP_ONLY
        return ReadPlan(
            path,
            output_names,
            external_names=output_names,
            timestamp=timestamp,
            window=window,
        )
