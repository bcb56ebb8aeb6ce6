from __future__ import annotations

from enum import Enum
from typing import MutableSequence

from strided.errors import InvalidShape


class BoundaryConditions(Enum):
    """
    How indices past the edges of a dimension are brought back inside it.

    e.g. for a dimension of 7 elements:
        build_index(7, -1, NORMAL)   -> [0, 0, 1, 2, 3, 4, 5]
        build_index(7, -2, PERIODIC) -> [5, 6, 0, 1, 2, 3, 4]
        build_index(7, -2, MIRROR)   -> [2, 1, 0, 1, 2, 3, 4]
    """

    NORMAL = 0
    CLAMP = 0
    PERIODIC = 1
    MIRROR = 2

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    def __str__(self) -> str:
        return self.description

    def resolve(self, index: int, length: int) -> int:
        if self is BoundaryConditions.PERIODIC:
            return index % length
        if self is BoundaryConditions.MIRROR:
            period = 2 * length
            k = abs(index) % period
            return period - 1 - k if k >= length else k
        return max(0, min(length - 1, index))


_DESCRIPTIONS = {
    BoundaryConditions.NORMAL: "propagate leftmost or rightmost value",
    BoundaryConditions.PERIODIC: "periodic boundary conditions",
    BoundaryConditions.MIRROR: "mirror boundary conditions",
}


def fill_index(
    index: MutableSequence[int],
    offset: int,
    condition: BoundaryConditions = BoundaryConditions.NORMAL,
) -> MutableSequence[int]:
    # index[j] = f(j + offset) with f mapping into [0, len(index))
    length = len(index)
    if length < 1:
        raise InvalidShape("index table must have at least one element")
    for j in range(length):
        index[j] = condition.resolve(j + offset, length)
    return index


def build_index(
    length: int,
    offset: int,
    condition: BoundaryConditions = BoundaryConditions.NORMAL,
) -> list[int]:
    if length < 1:
        raise InvalidShape(f"dimension length must be at least 1, got {length}")
    return fill_index([0] * length, offset, condition)
