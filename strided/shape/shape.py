from __future__ import annotations

import numbers
from math import prod
from typing import Iterator

from strided.errors import InvalidShape


class Shape:
    """
    Immutable list of dimension lengths.

    e.g. Shape((3, 4)) describes 3x4 arrays with 12 elements, Shape(()) is
    the shape of a scalar.
    """

    __slots__ = ("_dims", "_number")

    def __init__(self, dims: "Shape" | tuple[int, ...] | list[int], min_rank: int = 0):
        dims = tuple(dims)
        if len(dims) < min_rank:
            raise InvalidShape(
                f"expecting at least {min_rank} dimension(s), got {len(dims)}"
            )
        for dim in dims:
            if not isinstance(dim, numbers.Integral) or isinstance(dim, bool):
                raise InvalidShape(f"dimensions must be integers, got {dim!r}")
            if dim < 1:
                raise InvalidShape(f"dimensions must be at least 1, got {dims}")
        dims = tuple(int(dim) for dim in dims)
        self._dims = dims
        self._number = prod(dims)

    @staticmethod
    def of(*dims: int | tuple[int, ...], min_rank: int = 0) -> "Shape":
        if len(dims) == 1 and isinstance(dims[0], (tuple, list, Shape)):
            dims = dims[0]
        return Shape(dims, min_rank=min_rank)

    @property
    def rank(self) -> int:
        return len(self._dims)

    @property
    def number(self) -> int:
        return self._number

    @property
    def dims(self) -> tuple[int, ...]:
        return self._dims

    def dimension(self, k: int) -> int:
        if k < 0:
            raise IndexError(f"invalid dimension index {k}")
        return self._dims[k] if k < len(self._dims) else 1

    def __len__(self) -> int:
        return len(self._dims)

    def __iter__(self) -> Iterator[int]:
        return iter(self._dims)

    def __getitem__(self, k):
        return self._dims[k]

    def __eq__(self, other) -> bool:
        if isinstance(other, Shape):
            return self._dims == other._dims
        if isinstance(other, tuple):
            return self._dims == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._dims)

    def __str__(self) -> str:
        return "[" + ",".join(str(dim) for dim in self._dims) + "]"

    def __repr__(self) -> str:
        return f"Shape({self._dims})"
