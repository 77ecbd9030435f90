"""Least-common-value synthesis for composite resources.

A port-channel reports one value per member interface for attributes such
as duplex or speed. The representative value is the *least* common one, so
that the minority configuration surfaces and the outlier members get
reconciled toward the declared value.
"""
from collections import Counter
from typing import Hashable, Sequence, TypeVar

from .errors import EmptyAggregationError

V = TypeVar("V", bound=Hashable)


def synthesize(values: Sequence[V]) -> V:
    """Return the least common value in ``values``.

    Ties are broken by first occurrence in ``values``.

    Raises:
        EmptyAggregationError: If ``values`` is empty
    """
    if not values:
        raise EmptyAggregationError("Cannot synthesize an aggregate value from zero members")

    # Counter keeps first-encountered order; min() returns the first minimum
    counts = Counter(values)
    return min(counts, key=counts.__getitem__)
