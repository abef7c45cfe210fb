# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Station data store: one queryable schema over a vector store and a netCDF
station dataset.

The merged schema is built on first use and cached until the store is
disposed. Each query is planned by :class:`ReaderSelector` and answered by
the matching reader; the external dataset is only opened when the plan
needs it.
"""

import logging
from functools import partial
from pathlib import Path
from typing import Iterator, Optional, Union

import geopandas as gpd
import pandas as pd

from .core.config import StoreConfig
from .core.exceptions import DSGStoreError, require_not_none
from .query.query import ALL, Query
from .readers.base import Feature, FeatureReader, RowReader
from .readers.external import ExternalOnlyReader, TimestampOnlyReader
from .readers.joining import JoiningReader
from .readers.selector import ExecutionPath, ReaderSelector, ReadPlan
from .schema.merger import SchemaMerger
from .schema.types import MergedSchema
from .sources.netcdf import open_station_dataset
from .sources.pool import DatasetPool
from .sources.vector import ShapefileVectorStore, VectorStore

logger = logging.getLogger(__name__)


def feature_type_name(locator: Union[str, Path]) -> str:
    """Feature type name derived from the netCDF file name.

    ``/data/gauges,2020.nc`` becomes ``gauges_2020``.
    """
    name = Path(str(locator)).name
    suffix_index = name.rfind('.nc')
    if suffix_index > 0:
        name = name[:suffix_index]
    return name.replace(',', '_')


class StationDataStore:
    """Federated view over vector records and external station samples.

    Parameters
    ----------
    vector_store : VectorStore
        Station metadata and geometry.
    netcdf_locator : str or Path
        Location of the external station dataset.
    config : StoreConfig
        Join attribute, timestamp policy and pool sizing.
    pool : DatasetPool, optional
        Handle pool for the external dataset. Built from ``config.pool``
        when omitted. The store closes it on :meth:`dispose` either way.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        netcdf_locator: Union[str, Path],
        config: StoreConfig,
        pool: Optional[DatasetPool] = None,
    ) -> None:
        self.vector_store = vector_store
        self.netcdf_locator = str(netcdf_locator)
        self.config = config
        if pool is None:
            opener = partial(
                open_station_dataset,
                station_id_variable=config.station_id_variable,
                time_variable=config.time_variable,
            )
            pool = DatasetPool.from_config(config.pool, opener=opener)
        self.pool = pool
        self._schema: Optional[MergedSchema] = None
        self._disposed = False

    @classmethod
    def from_config(cls, config: StoreConfig) -> 'StationDataStore':
        """Store over the shapefile and netCDF file named in ``config``."""
        netcdf_path = require_not_none(config.netcdf_path, 'NETCDF_PATH')
        shapefile_path = require_not_none(config.shapefile_path, 'SHAPEFILE_PATH')
        vector_store = ShapefileVectorStore(shapefile_path, chunk_size=config.row_chunk_size)
        return cls(vector_store, netcdf_path, config)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @property
    def type_name(self) -> str:
        return feature_type_name(self.netcdf_locator)

    @property
    def schema(self) -> MergedSchema:
        """Merged schema, built on first access.

        Raises:
            ExternalSourceUnavailable: if the netCDF dataset cannot be opened
            SchemaError: if its time variable cannot be located
        """
        self._check_open()
        if self._schema is None:
            vector_descriptors = self.vector_store.read_schema()
            self._schema = SchemaMerger(self.pool).build_schema(
                vector_descriptors, self.netcdf_locator
            )
        return self._schema

    def selector(self) -> ReaderSelector:
        return ReaderSelector(
            self.schema,
            self.config.station_attribute,
            self.config.missing_timestamp_policy,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def plan(self, query: Query = ALL) -> ReadPlan:
        return self.selector().select(query)

    def get_feature_reader(self, query: Query = ALL) -> FeatureReader:
        """Open a reader of features answering ``query``.

        The caller must close the reader (or exhaust it).
        """
        plan = self.plan(query)
        return FeatureReader(self._open_rows(plan), plan.row_names, plan.output_names)

    def _open_rows(self, plan: ReadPlan) -> RowReader:
        schema = self.schema
        policy = self.config.missing_timestamp_policy

        if plan.path is ExecutionPath.VECTOR_ONLY:
            return self.vector_store.open_row_reader(plan.vector_projection)

        if plan.path is ExecutionPath.JOIN:
            rows = self.vector_store.open_row_reader(plan.vector_projection)
            return JoiningReader(
                rows,
                self.pool,
                self.netcdf_locator,
                plan.station_key_index,
                [schema.get(name) for name in plan.external_names],
                timestamp=plan.timestamp,
                window=plan.window,
                policy=policy,
            )

        if plan.path is ExecutionPath.TIMESTAMP_ONLY:
            return TimestampOnlyReader(
                self.pool,
                self.netcdf_locator,
                schema.time_descriptor,
                timestamp=plan.timestamp,
                window=plan.window,
                policy=policy,
            )

        return ExternalOnlyReader(
            self.pool,
            self.netcdf_locator,
            [schema.get(name) for name in plan.external_names],
            timestamp=plan.timestamp,
            window=plan.window,
            policy=policy,
        )

    def read_features(self, query: Query = ALL) -> Iterator[Feature]:
        """Yield the features answering ``query``; the reader is always closed."""
        with self.get_feature_reader(query) as reader:
            yield from reader

    def to_dataframe(self, query: Query = ALL) -> pd.DataFrame:
        """Materialize a query as a frame indexed by feature id.

        Returns a GeoDataFrame when any feature has a geometry.
        """
        with self.get_feature_reader(query) as reader:
            features = list(reader)
            columns = list(reader.output_names)
        frame = pd.DataFrame(
            [f.attributes for f in features],
            columns=columns,
            index=pd.Index([f.feature_id for f in features], name='feature_id'),
        )
        geometries = [f.geometry for f in features]
        if any(g is not None for g in geometries):
            return gpd.GeoDataFrame(frame, geometry=geometries)
        return frame

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._disposed:
            raise DSGStoreError(f"Store {self.type_name} has been disposed")

    def dispose(self) -> None:
        """Drop the cached schema and close the dataset pool."""
        if self._disposed:
            return
        self._disposed = True
        self._schema = None
        self.pool.close()
        logger.info("Disposed station store %s", self.type_name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()

    def __repr__(self) -> str:
        return f"StationDataStore({self.type_name!r}, station_attribute={self.config.station_attribute!r})"


__all__ = ['StationDataStore', 'feature_type_name']
