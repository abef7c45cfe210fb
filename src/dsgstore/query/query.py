"""Queries: a projection plus an optional filter."""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from .filters import Filter


@dataclass(frozen=True)
class Query:
    """Attributes to return and the filter they are read under.

    ``projection=None`` requests every attribute of the schema. An empty
    projection requests no data attributes (geometry and ids only).
    """
    projection: Optional[Tuple[str, ...]] = None
    filter: Optional[Filter] = None

    def __post_init__(self):
        if self.projection is not None and not isinstance(self.projection, tuple):
            object.__setattr__(self, 'projection', tuple(self.projection))

    @classmethod
    def select(cls, *names: str, filter: Optional[Filter] = None) -> 'Query':
        return cls(projection=tuple(names), filter=filter)

    @property
    def is_all(self) -> bool:
        return self.projection is None

    def with_projection(self, projection: Optional[Sequence[str]]) -> 'Query':
        return replace(self, projection=None if projection is None else tuple(projection))


ALL = Query()
