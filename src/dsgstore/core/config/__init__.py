"""Typed configuration for dsgstore."""

from .models import PoolConfig, StoreConfig

__all__ = ['PoolConfig', 'StoreConfig']
