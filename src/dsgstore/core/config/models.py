# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Store configuration models.

Contains StoreConfig for locating the two data sources and naming the join
attribute, and PoolConfig for sizing the external dataset handle pool.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..constants import DEFAULT_ROW_CHUNK_SIZE, MissingTimestampPolicy, PoolDefaults
from ..exceptions import ConfigurationError
from .base import FROZEN_CONFIG


class PoolConfig(BaseModel):
    """Sizing of the external dataset handle pool"""
    model_config = FROZEN_CONFIG

    max_open_handles: int = Field(default=PoolDefaults.MAX_OPEN_HANDLES, alias='MAX_OPEN_HANDLES', ge=1)
    max_idle_handles: int = Field(default=PoolDefaults.MAX_IDLE_HANDLES, alias='MAX_IDLE_HANDLES', ge=0)
    idle_timeout: float = Field(default=PoolDefaults.IDLE_TIMEOUT, alias='IDLE_TIMEOUT', ge=0)


class StoreConfig(BaseModel):
    """Configuration for a station data store"""
    model_config = FROZEN_CONFIG

    # Locators
    netcdf_path: Optional[str] = Field(default=None, alias='NETCDF_PATH')
    shapefile_path: Optional[str] = Field(default=None, alias='SHAPEFILE_PATH')

    # Join
    station_attribute: str = Field(alias='STATION_ATTRIBUTE')
    station_id_variable: Optional[str] = Field(default=None, alias='STATION_ID_VARIABLE')
    time_variable: Optional[str] = Field(default=None, alias='TIME_VARIABLE')
    missing_timestamp_policy: MissingTimestampPolicy = Field(
        default=MissingTimestampPolicy.LATEST, alias='MISSING_TIMESTAMP_POLICY'
    )

    # Reading
    row_chunk_size: int = Field(default=DEFAULT_ROW_CHUNK_SIZE, alias='ROW_CHUNK_SIZE', ge=1)
    pool: PoolConfig = Field(default_factory=PoolConfig, alias='POOL')

    @field_validator('station_attribute')
    @classmethod
    def validate_station_attribute(cls, v):
        """Reject blank join attribute names"""
        v = v.strip()
        if not v:
            raise ValueError("STATION_ATTRIBUTE must not be empty")
        return v

    @field_validator('missing_timestamp_policy', mode='before')
    @classmethod
    def normalize_policy(cls, v):
        """Accept policy names in any case"""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> 'StoreConfig':
        """Build a config from a plain dict, converting validation failures."""
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid store configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'StoreConfig':
        """Load a config from a YAML file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                values = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load configuration from {path}: {e}") from e
        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return cls.from_mapping(values)
