from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import IntEnum
from math import prod
from typing import Iterator, Optional, Sequence

from strided.errors import InvalidShape, RangeOutOfBounds, ViewOutOfBounds
from strided.helpers import dprint
from strided.shape.range import CompiledRange, Range


class Order(IntEnum):
    NONSPECIFIC = 0
    COLUMN_MAJOR = 1
    ROW_MAJOR = 2


def strides_for_shape(
    shape: tuple[int, ...], order: Order = Order.COLUMN_MAJOR
) -> tuple[int, ...]:
    strides = []
    st = 1
    dims = reversed(shape) if order == Order.ROW_MAJOR else shape
    for sh in dims:
        strides.append(st)
        st *= sh
    return tuple(reversed(strides)) if order == Order.ROW_MAJOR else tuple(strides)


def classify_order(shape: Sequence[int], strides: Sequence[int]) -> Order:
    """
    Tell which dimension should vary fastest when walking a strided view.

    Column-major means stride magnitudes increase with the dimension, row-major
    that they decrease. A stride must also reach at least the last element of
    the dimension it steps over, e.g. strides (2, 3) on a 3x4 view interleave
    the columns and are non-specific. Equal strides are column-major.
    Dimensions of length 1 are ignored as their stride is never used.
    """
    pairs = [(sh, abs(st)) for sh, st in zip(shape, strides) if sh != 1]
    if len({st for _, st in pairs}) <= 1:
        return Order.COLUMN_MAJOR
    consecutive = list(zip(pairs, pairs[1:]))
    if all(s2 >= s1 * (d1 - 1) for (d1, s1), (_, s2) in consecutive):
        return Order.COLUMN_MAJOR
    if all(s1 >= s2 * (d2 - 1) for (_, s1), (d2, s2) in consecutive):
        return Order.ROW_MAJOR
    return Order.NONSPECIFIC


def check_view_strides(
    number: int, offset: int, strides: Sequence[int], shape: Sequence[int]
) -> Order:
    """
    Check that a view with the given offset and strides only touches
    positions of a buffer of `number` elements and return its order.
    """
    if len(strides) != len(shape):
        raise InvalidShape(
            f"there must be as many strides as dimensions, got {len(strides)} for {len(shape)}"
        )
    imin = imax = offset
    for sh, st in zip(shape, strides):
        extent = (sh - 1) * st
        if extent >= 0:
            imax += extent
        else:
            imin += extent
    if imin < 0 or imax >= number:
        raise ViewOutOfBounds(
            f"{len(shape)}D view spans [{imin}, {imax}] outside buffer of {number} elements"
        )
    order = classify_order(shape, strides)
    dprint(
        f"check_view_strides: shape={tuple(shape)} strides={tuple(strides)} "
        f"offset={offset} number={number} -> {order.name}",
        level=2,
    )
    return order


def iterate_indices(
    shape: Sequence[int], order: Order = Order.COLUMN_MAJOR
) -> Iterator[tuple[int, ...]]:
    # itertools.product varies its last argument fastest
    if order == Order.ROW_MAJOR:
        yield from itertools.product(*(range(sh) for sh in shape))
    else:
        for idx in itertools.product(*(range(sh) for sh in reversed(shape))):
            yield idx[::-1]


def fix_index(index: int, length: int) -> int:
    if index < 0:
        index += length
    if index < 0 or index >= length:
        raise RangeOutOfBounds(f"index {index} out of bounds for dimension of {length}")
    return index


def fix_dim(dim: int, ndim: int) -> int:
    if dim < 0:
        dim += ndim
    if dim < 0 or dim >= ndim:
        raise IndexError(f"dimension {dim} out of bounds for rank {ndim}")
    return dim


def permutation(axes: tuple, ndim: int) -> tuple[int, ...]:
    # transpose(), transpose((1, 0)) and transpose(1, 0) are all accepted
    if len(axes) == 1 and isinstance(axes[0], (tuple, list)):
        axes = tuple(axes[0])
    if len(axes) == 0:
        return tuple(range(ndim)[::-1])
    if sorted(axes) != list(range(ndim)):
        raise ValueError("axes don't match array")
    return tuple(axes)


@dataclass(frozen=True)
class View:
    shape: tuple[int, ...]
    strides: tuple[int, ...]
    offset: int

    @staticmethod
    def create(shape: tuple[int, ...], order: Order = Order.COLUMN_MAJOR) -> "View":
        return View(tuple(shape), strides_for_shape(tuple(shape), order), 0)

    def get_index(self, indices: tuple[int, ...]) -> int:
        return self.offset + sum(st * i for st, i in zip(self.strides, indices))

    def get_indices(self, index: int) -> tuple[int, ...]:
        """
        Inverse of get_index for a contiguous column-major view.
        e.g. shape: (2, 3)
        [[0, 2, 4],
         [1, 3, 5]]
        """
        indices = []
        index -= self.offset
        for sh in self.shape:
            indices.append(index % sh)
            index = index // sh
        return tuple(indices)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return prod(self.shape)

    @property
    def order(self) -> Order:
        return classify_order(self.shape, self.strides)

    @property
    def contiguous(self) -> bool:
        return self.offset == 0 and self.strides == strides_for_shape(self.shape)

    def validate(self, number: int) -> Order:
        return check_view_strides(number, self.offset, self.strides, self.shape)

    def transpose(self, *axes: int) -> "View":
        axes = permutation(axes, self.ndim)
        shape = tuple(self.shape[ax] for ax in axes)
        strides = tuple(self.strides[ax] for ax in axes)
        return View(shape, strides, self.offset)

    def slice(self, idx: int, dim: int = -1) -> "View":
        if self.ndim == 0:
            raise InvalidShape("cannot slice a scalar")
        dim = fix_dim(dim, self.ndim)
        idx = fix_index(idx, self.shape[dim])
        return View(
            self.shape[:dim] + self.shape[dim + 1 :],
            self.strides[:dim] + self.strides[dim + 1 :],
            self.offset + self.strides[dim] * idx,
        )

    def view(self, *ranges: Optional[Range]) -> "View":
        if len(ranges) != self.ndim:
            raise IndexError(f"expecting {self.ndim} range(s), got {len(ranges)}")
        compiled = [
            CompiledRange.compile(rng, sh, 0, st)
            for rng, sh, st in zip(ranges, self.shape, self.strides)
        ]
        if all(cr.trivial for cr in compiled):
            return self
        return View(
            tuple(cr.count for cr in compiled),
            tuple(cr.stride for cr in compiled),
            self.offset + sum(cr.offset for cr in compiled),
        )

    def select(self, *selections: Optional[Sequence[int]]) -> list[list[int]]:
        """
        Buffer contributions of the selected indices along each dimension,
        the offset is not included.
        """
        if len(selections) != self.ndim:
            raise IndexError(f"expecting {self.ndim} selection(s), got {len(selections)}")
        out = []
        for sel, sh, st in zip(selections, self.shape, self.strides):
            if sel is None:
                out.append([st * i for i in range(sh)])
                continue
            if len(sel) == 0:
                raise InvalidShape("empty selection")
            out.append([st * fix_index(i, sh) for i in sel])
        return out
