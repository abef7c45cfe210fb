"""
Filter expression tree for station queries.

Only comparisons, ranges and boolean combinations are supported. Filters are
used to classify which attributes a query touches and to constrain the
timestamp attribute; they are not a general predicate language.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Tuple, Union

COMPARISON_OPERATORS = frozenset({'==', '!=', '<', '<=', '>', '>='})


@dataclass(frozen=True)
class Comparison:
    """``attribute <op> value``"""
    attribute: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")


@dataclass(frozen=True)
class Between:
    """``lower <= attribute <= upper``"""
    attribute: str
    lower: Any
    upper: Any


@dataclass(frozen=True)
class And:
    children: Tuple['Filter', ...]


@dataclass(frozen=True)
class Or:
    children: Tuple['Filter', ...]


@dataclass(frozen=True)
class Not:
    child: 'Filter'


Filter = Union[Comparison, Between, And, Or, Not]


def equals(attribute: str, value: Any) -> Comparison:
    return Comparison(attribute, '==', value)


def between(attribute: str, lower: Any, upper: Any) -> Between:
    return Between(attribute, lower, upper)


def all_of(*filters: Filter) -> Filter:
    """Conjunction of ``filters``; a single filter is returned as-is."""
    if len(filters) == 1:
        return filters[0]
    return And(tuple(filters))


def any_of(*filters: Filter) -> Filter:
    if len(filters) == 1:
        return filters[0]
    return Or(tuple(filters))


def referenced_attributes(expr: Filter) -> List[str]:
    """Every attribute name the expression mentions, in first-seen order."""
    names: List[str] = []
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, (Comparison, Between)):
            if node.attribute not in names:
                names.append(node.attribute)
        elif isinstance(node, (And, Or)):
            stack.extend(reversed(node.children))
        elif isinstance(node, Not):
            stack.append(node.child)
        else:
            raise TypeError(f"Not a filter expression: {node!r}")
    return names


def conjuncts(expr: Filter) -> Iterator[Union[Comparison, Between]]:
    """Leaf terms that must all hold for the expression to hold.

    Terms under ``Or`` or ``Not`` are skipped: they do not constrain the
    attribute on their own.
    """
    if isinstance(expr, (Comparison, Between)):
        yield expr
    elif isinstance(expr, And):
        for child in expr.children:
            yield from conjuncts(child)
