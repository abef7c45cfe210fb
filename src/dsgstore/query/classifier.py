"""Decide whether a query touches a given set of attribute names."""

from typing import Iterable

from ..schema.types import NameSet
from .filters import referenced_attributes
from .query import Query


def requires_attributes(query: Query, attribute_names: Iterable[str]) -> bool:
    """True if the query projects or filters on any of ``attribute_names``.

    A query projecting "all" attributes requires every set. Names compare
    case-insensitively.
    """
    names = attribute_names if isinstance(attribute_names, NameSet) else NameSet(attribute_names)
    if query.is_all:
        return True
    if names.intersects(query.projection):
        return True
    if query.filter is not None and names.intersects(referenced_attributes(query.filter)):
        return True
    return False
