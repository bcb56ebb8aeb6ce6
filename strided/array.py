from __future__ import annotations

import array
import numbers
import operator
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Iterator, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from strided.errors import (
    InvalidShape,
    NonConformableShape,
    UnsupportedElementKind,
    ViewOutOfBounds,
)
from strided.helpers import dprint
from strided.kind import Kind, cast_buffer
from strided.shape.range import CompiledRange, Range
from strided.shape.shape import Shape
from strided.shape.view import (
    Order,
    View,
    check_view_strides,
    fix_dim,
    fix_index,
    iterate_indices,
    permutation,
    strides_for_shape,
)


@dataclass(frozen=True, eq=False)
class Flat:
    """Contiguous column-major buffer."""

    data: memoryview


@dataclass(frozen=True, eq=False)
class Strided:
    """Shared buffer addressed as offset + sum(strides[k] * i_k)."""

    data: memoryview
    offset: int
    strides: tuple[int, ...]


@dataclass(frozen=True, eq=False)
class Nested:
    """Nested sequences, element (i1, ..., iR) is data[iR]...[i2][i1]."""

    data: Sequence


@dataclass(frozen=True, eq=False)
class Selected:
    """Shared buffer addressed as offset + sum(indices[k][i_k])."""

    data: memoryview
    offset: int
    indices: tuple[tuple[int, ...], ...]


Layout = Flat | Strided | Nested | Selected


def as_buffer(data: Any, kind: Optional[Kind] = None) -> memoryview:
    if isinstance(data, np.ndarray):
        if not (data.flags.c_contiguous or data.flags.f_contiguous):
            raise ValueError(
                "non-contiguous array has no flat buffer, use ShapedArray.from_numpy"
            )
        # Memory order, never a copy
        data = data.ravel(order="K")
    if isinstance(data, (list, tuple)):
        if kind is None:
            raise UnsupportedElementKind("element kind must be given to wrap a list")
        return Kind.of(kind).from_values(data)
    mv = memoryview(data)
    buffer_kind = Kind.of(mv.format)
    if kind is not None and buffer_kind != Kind.of(kind):
        raise UnsupportedElementKind(
            f"buffer of format {mv.format!r} cannot hold {Kind.of(kind).name} elements"
        )
    # Ensure the memoryview is 1D
    return mv.cast("B").cast(mv.format)


def _numpy_base(data: NDArray) -> Optional[tuple[memoryview, int, tuple[int, ...]]]:
    """
    Buffer, element offset and element strides addressing `data` inside the
    contiguous array it was derived from, or None when there is no such
    array or its bytes cannot be split into elements of `data`.
    """
    base = data
    while isinstance(base.base, np.ndarray):
        base = base.base
    if not (base.flags.c_contiguous or base.flags.f_contiguous):
        return None
    itemsize = data.itemsize
    start = data.__array_interface__["data"][0] - base.__array_interface__["data"][0]
    if start % itemsize or base.nbytes % itemsize:
        return None
    if any(st % itemsize for st in data.strides):
        return None
    flat = base.ravel(order="K").view(np.uint8).view(data.dtype)
    strides = tuple(st // itemsize for st in data.strides)
    return memoryview(flat), start // itemsize, strides


def _nested_dims(data: Any) -> tuple[int, ...]:
    # Outermost sequence first
    dims = []
    node = data
    while not isinstance(node, numbers.Number):
        if isinstance(node, (str, bytes)) or not hasattr(node, "__len__"):
            raise InvalidShape(f"unexpected {type(node).__name__} in nested array")
        if len(node) == 0:
            raise InvalidShape("nested array has an empty dimension")
        dims.append(len(node))
        node = node[0]
    return tuple(dims)


def _check_nested(node: Any, dims: tuple[int, ...]) -> None:
    if isinstance(node, numbers.Number) or len(node) != dims[0]:
        raise InvalidShape("nested array is not rectangular")
    if len(dims) > 1:
        for sub in node:
            _check_nested(sub, dims[1:])


def _nested_leaves(node: Any, depth: int) -> Iterator[Any]:
    if depth == 0:
        yield node
        return
    for sub in node:
        yield from _nested_leaves(sub, depth - 1)


def _leaf_kind(leaf: Any) -> Optional[Kind]:
    # None for plain Python sequences, which hold anything
    if isinstance(leaf, array.array):
        return Kind.of(leaf.typecode)
    if isinstance(leaf, memoryview):
        return Kind.of(leaf.format)
    if isinstance(leaf, np.ndarray):
        return Kind.of(leaf.dtype)
    return None


def _as_range(r: Any, length: int) -> Optional[Range]:
    if r is None or isinstance(r, Range):
        return r
    if isinstance(r, slice):
        return Range.from_slice(r, length)
    if isinstance(r, tuple):
        return Range(*r)
    raise TypeError(f"expecting a Range, a slice or None, got {type(r).__name__}")


class ShapedArray:
    """
    Multi-dimensional array of numbers of a given Kind.

    Elements live in one of four layouts (Flat, Strided, Nested, Selected)
    which all follow the same get/set contract. Views derived from an array
    share its buffer: writing through one view is visible through the
    others. Concurrent writes to overlapping views are not synchronized.
    """

    def __init__(
        self,
        layout: Layout,
        shape: Shape | tuple[int, ...],
        kind: Kind | str | None = None,
    ):
        view = None
        coerce_reads = False
        if isinstance(layout, Nested):
            shape = Shape.of(shape, min_rank=1)
            _check_nested(layout.data, shape.dims[::-1])
            leaves = _nested_leaves(layout.data, shape.rank - 1)
            leaf_kinds = {_leaf_kind(leaf) for leaf in leaves}
            typed = leaf_kinds - {None}
            kind = Kind.of(kind) if kind is not None else next(iter(typed), Kind.FLOAT64)
            if typed - {kind}:
                raise UnsupportedElementKind(
                    f"nested buffers of {sorted(k.name for k in typed)} cannot hold {kind.name} elements"
                )
            # Plain lists may hold values of any type
            coerce_reads = None in leaf_kinds
            order = Order.COLUMN_MAJOR
        elif isinstance(layout, (Flat, Strided, Selected)):
            shape = Shape.of(shape)
            buffer_kind = Kind.of(layout.data.format)
            kind = buffer_kind if kind is None else Kind.of(kind)
            if kind != buffer_kind:
                raise UnsupportedElementKind(
                    f"buffer of format {layout.data.format!r} cannot hold {kind.name} elements"
                )
            number = len(layout.data)
            if isinstance(layout, Flat):
                if number != shape.number:
                    raise NonConformableShape(
                        f"buffer of {number} elements cannot have shape {shape}"
                    )
                view = View.create(shape.dims)
                order = Order.COLUMN_MAJOR
            elif isinstance(layout, Strided):
                order = check_view_strides(number, layout.offset, layout.strides, shape.dims)
                view = View(shape.dims, tuple(layout.strides), layout.offset)
            else:
                if len(layout.indices) != shape.rank or any(
                    len(ind) != sh for ind, sh in zip(layout.indices, shape)
                ):
                    raise InvalidShape(f"selection does not match shape {shape}")
                imin = layout.offset + sum(min(ind) for ind in layout.indices)
                imax = layout.offset + sum(max(ind) for ind in layout.indices)
                if imin < 0 or imax >= number:
                    raise ViewOutOfBounds(
                        f"selection spans [{imin}, {imax}] outside buffer of {number} elements"
                    )
                order = Order.COLUMN_MAJOR
        else:
            raise TypeError(f"Unsupported layout: {type(layout)}")
        dprint(
            f"ShapedArray: {type(layout).__name__} shape={shape} kind={kind.name} order={order.name}"
        )
        self.layout = layout
        self._shape = shape
        self._kind = kind
        self._order = order
        self._view = view
        self._coerce_reads = coerce_reads

    # ----------------------------------------------------------------------
    # Construction

    @staticmethod
    def zeros(*shape: int | tuple[int, ...], kind: Kind | str = Kind.FLOAT64) -> "ShapedArray":
        shape = Shape.of(*shape)
        kind = Kind.of(kind)
        return ShapedArray(Flat(kind.allocate(shape.number)), shape, kind)

    @staticmethod
    def zeros_like(a: "ShapedArray") -> "ShapedArray":
        return ShapedArray.zeros(a.shape, kind=a.kind)

    @staticmethod
    def wrap(
        data: Any, shape: Shape | tuple[int, ...], kind: Kind | str | None = None
    ) -> "ShapedArray":
        return ShapedArray(Flat(as_buffer(data, kind)), shape, kind)

    @staticmethod
    def wrap_strided(
        data: Any,
        shape: Shape | tuple[int, ...],
        offset: int,
        strides: Sequence[int],
        kind: Kind | str | None = None,
    ) -> "ShapedArray":
        return ShapedArray(
            Strided(as_buffer(data, kind), offset, tuple(strides)), shape, kind
        )

    @staticmethod
    def wrap_nested(data: Sequence, kind: Kind | str | None = None) -> "ShapedArray":
        return ShapedArray(Nested(data), _nested_dims(data)[::-1], kind)

    @staticmethod
    def from_numpy(data: NDArray) -> "ShapedArray":
        """Strided array sharing the memory of `data`, through its own strides."""
        kind = Kind.of(data.dtype)
        based = _numpy_base(data)
        if based is None:
            dprint(f"ShapedArray.from_numpy: copying array with strides {data.strides}")
            data = np.array(data, order="C")
            based = _numpy_base(data)
        buffer, offset, strides = based
        return ShapedArray(Strided(buffer, offset, strides), data.shape, kind)

    @staticmethod
    def from_list(data: Sequence, kind: Kind | str | None = None) -> "ShapedArray":
        """Copy nested lists indexed as data[i1][i2]... (numpy convention)."""
        npdata = np.array(data) if kind is None else np.array(data, dtype=Kind.of(kind).dtype)
        kind = Kind.of(npdata.dtype)
        return ShapedArray(
            Flat(kind.from_bytes(npdata.tobytes(order="F"))), npdata.shape, kind
        )

    # ----------------------------------------------------------------------
    # Properties

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def rank(self) -> int:
        return self._shape.rank

    @property
    def ndim(self) -> int:
        return self._shape.rank

    @property
    def number(self) -> int:
        return self._shape.number

    @property
    def size(self) -> int:
        return self._shape.number

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def order(self) -> Order:
        return self._order

    @property
    def npdata(self) -> NDArray:
        layout = self.layout
        if isinstance(layout, (Flat, Strided)):
            itemsize = self._kind.itemsize
            np_strides = tuple(s * itemsize for s in self._view.strides)
            base = np.frombuffer(layout.data, dtype=self._kind.dtype)
            return np.lib.stride_tricks.as_strided(
                base[self._view.offset :], self._shape.dims, np_strides
            )
        return np.array(self.tolist(), dtype=self._kind.dtype)

    # ----------------------------------------------------------------------
    # Element access

    def _fix_indices(self, idx: tuple[int, ...]) -> tuple[int, ...]:
        if len(idx) != self.rank:
            raise IndexError(f"expecting {self.rank} indices, got {len(idx)}")
        return tuple(fix_index(i, sh) for i, sh in zip(idx, self._shape))

    def _locate(self, idx: tuple[int, ...]) -> tuple[Any, int]:
        layout = self.layout
        if isinstance(layout, Nested):
            node = layout.data
            for i in reversed(idx[1:]):
                node = node[i]
            return node, idx[0]
        if isinstance(layout, Selected):
            return layout.data, layout.offset + sum(
                ind[i] for ind, i in zip(layout.indices, idx)
            )
        return layout.data, self._view.get_index(idx)

    def _cells(self, order: Optional[Order] = None) -> Iterator[tuple[Any, int]]:
        for idx in iterate_indices(self._shape.dims, self._order if order is None else order):
            yield self._locate(idx)

    def _read(self, data: Any, pos: int) -> Any:
        if self._coerce_reads:
            return self._kind.coerce(data[pos])
        return data[pos]

    def _values(self, order: Optional[Order] = None) -> Iterator[Any]:
        for data, pos in self._cells(order):
            yield self._read(data, pos)

    def get(self, *idx: int) -> Any:
        data, pos = self._locate(self._fix_indices(idx))
        return self._read(data, pos)

    def set(self, *args: Any) -> None:
        *idx, value = args
        data, pos = self._locate(self._fix_indices(tuple(idx)))
        data[pos] = self._kind.coerce(value)

    def _normalize_key(self, key: Any) -> tuple:
        # One int or slice per dimension, missing trailing ones are full slices
        if not isinstance(key, tuple):
            key = (key,)
        if len(key) > self.rank:
            raise IndexError("Too many indices for array")
        for k in key:
            if not isinstance(k, (slice, numbers.Integral)):
                raise TypeError("Only integer and slice indexing is supported")
        return key + (slice(None),) * (self.rank - len(key))

    def __getitem__(self, key: Any) -> Any:
        key = self._normalize_key(key)
        if all(isinstance(k, numbers.Integral) for k in key):
            return self.get(*key)
        ranges = []
        for k, sh in zip(key, self._shape):
            if isinstance(k, slice):
                ranges.append(Range.from_slice(k, sh))
            else:
                i = fix_index(int(k), sh)
                ranges.append(Range(i, i))
        out = self.view(*ranges)
        for dim in reversed([d for d, k in enumerate(key) if isinstance(k, numbers.Integral)]):
            out = out.slice(0, dim)
        return out

    def __setitem__(self, key: Any, value: Any) -> None:
        key = self._normalize_key(key)
        if all(isinstance(k, numbers.Integral) for k in key):
            self.set(*key, value)
            return
        if isinstance(self.layout, Nested):
            self._assign_nested(key, value)
            return
        target = self[key]
        if isinstance(value, (ShapedArray, np.ndarray, list, tuple)):
            target.assign(value)
        else:
            target.fill(value)

    def _assign_nested(self, key: tuple, value: Any) -> None:
        """Write a sub-array in place, views of nested arrays being copies."""
        picks = []
        for k, sh in zip(key, self._shape):
            if isinstance(k, slice):
                picks.append(Range.from_slice(k, sh).compile(sh).indices())
            else:
                picks.append([fix_index(int(k), sh)])
        kept = [d for d, k in enumerate(key) if isinstance(k, slice)]
        shape = tuple(len(picks[d]) for d in kept)
        cells = []
        for sub in iterate_indices(shape):
            idx = [p[0] for p in picks]
            for d, i in zip(kept, sub):
                idx[d] = picks[d][i]
            cells.append(self._locate(tuple(idx)))
        if isinstance(value, (ShapedArray, np.ndarray, list, tuple)):
            other = _as_array(value)
            if other.shape != shape:
                raise NonConformableShape(
                    f"cannot assign array of shape {other.shape} to sub-array of shape {list(shape)}"
                )
            values = list(other._values(Order.COLUMN_MAJOR))
        else:
            values = [value] * len(cells)
        coerce = self._kind.coerce
        for (data, pos), v in zip(cells, values):
            data[pos] = coerce(v)

    def tolist(self) -> Any:
        def build_list(shape: tuple[int, ...], index_prefix: tuple[int, ...] = ()):
            if len(shape) == 0:
                return self.get(*index_prefix)
            return [build_list(shape[1:], index_prefix + (i,)) for i in range(shape[0])]

        return build_list(self._shape.dims)

    def __repr__(self) -> str:
        return (
            f"ShapedArray(data={self.tolist()}, shape={self._shape}, "
            f"kind={self._kind.name}, layout={type(self.layout).__name__})"
        )

    # ----------------------------------------------------------------------
    # Bulk operations, all walking the elements in the array's order

    def fill(self, value: Any) -> "ShapedArray":
        """Set every element to `value`, or to successive results of calling it."""
        coerce = self._kind.coerce
        if callable(value):
            for data, pos in self._cells():
                data[pos] = coerce(value())
        else:
            v = coerce(value)
            for data, pos in self._cells():
                data[pos] = v
        return self

    def map(self, func: Callable[[Any], Any]) -> "ShapedArray":
        coerce = self._kind.coerce
        for data, pos in self._cells():
            data[pos] = coerce(func(self._read(data, pos)))
        return self

    def increment(self, value: Any) -> "ShapedArray":
        return self.map(lambda a: a + value)

    def decrement(self, value: Any) -> "ShapedArray":
        return self.map(lambda a: a - value)

    def scale(self, value: Any) -> "ShapedArray":
        return self.map(lambda a: a * value)

    def scan(self, func: Callable[[Any, Any], Any]) -> Any:
        """Left fold starting from the first element visited."""
        return reduce(func, self._values())

    def min(self) -> Any:
        return self.scan(min)

    def max(self) -> Any:
        return self.scan(max)

    def min_and_max(self) -> tuple[Any, Any]:
        values = self._values()
        lo = hi = next(values)
        for v in values:
            if v < lo:
                lo = v
            elif v > hi:
                hi = v
        return lo, hi

    def sum(self) -> Any:
        return self.scan(operator.add)

    def average(self) -> float:
        return self.sum() / self.number

    def assign(self, other: "ShapedArray" | NDArray | Sequence) -> "ShapedArray":
        other = _as_array(other)
        if other.shape != self._shape:
            raise NonConformableShape(
                f"cannot assign array of shape {other.shape} to array of shape {self._shape}"
            )
        dprint(f"ShapedArray.assign: shape={self._shape} from {type(other.layout).__name__}")
        # Read everything first, the two arrays may share their buffer
        values = list(other._values(self._order))
        coerce = self._kind.coerce
        for (data, pos), v in zip(self._cells(), values):
            data[pos] = coerce(v)
        return self

    # ----------------------------------------------------------------------
    # Flattening and conversion

    def _is_flat(self) -> bool:
        layout = self.layout
        if isinstance(layout, Flat):
            return True
        return (
            isinstance(layout, Strided)
            and self._view.contiguous
            and len(layout.data) == self.number
        )

    def _gather(self, order: Order) -> memoryview:
        if order == Order.COLUMN_MAJOR and self._is_flat():
            return self._kind.from_bytes(self.layout.data.tobytes())
        return self._kind.from_values(self._values(order))

    def flatten(self, force_copy: bool = False) -> memoryview:
        """
        Elements in column-major order. The backing buffer itself is returned
        when it already has that layout, unless `force_copy` is set.
        """
        if not force_copy and self._is_flat():
            return self.layout.data
        return self._gather(Order.COLUMN_MAJOR)

    def copy(self) -> "ShapedArray":
        return ShapedArray(Flat(self.flatten(True)), self._shape, self._kind)

    def as_1d(self) -> "ShapedArray":
        return ShapedArray(Flat(self.flatten()), (self.number,), self._kind)

    def to_kind(self, kind: Kind | str) -> "ShapedArray":
        kind = Kind.of(kind)
        if kind == self._kind:
            return self
        dprint(f"ShapedArray.to_kind: {self._kind.name} -> {kind.name} shape={self._shape}")
        if self._order == Order.ROW_MAJOR:
            data = cast_buffer(self._gather(Order.ROW_MAJOR), self._kind, kind)
            strides = strides_for_shape(self._shape.dims, Order.ROW_MAJOR)
            return ShapedArray(Strided(data, 0, strides), self._shape, kind)
        data = cast_buffer(self.flatten(), self._kind, kind)
        return ShapedArray(Flat(data), self._shape, kind)

    def to_int8(self) -> "ShapedArray":
        return self.to_kind(Kind.INT8)

    def to_int16(self) -> "ShapedArray":
        return self.to_kind(Kind.INT16)

    def to_int32(self) -> "ShapedArray":
        return self.to_kind(Kind.INT32)

    def to_int64(self) -> "ShapedArray":
        return self.to_kind(Kind.INT64)

    def to_float32(self) -> "ShapedArray":
        return self.to_kind(Kind.FLOAT32)

    def to_float64(self) -> "ShapedArray":
        return self.to_kind(Kind.FLOAT64)

    # ----------------------------------------------------------------------
    # Views sharing the buffer

    def _base(self) -> "ShapedArray":
        if isinstance(self.layout, Nested):
            dprint("ShapedArray: views of a nested array are taken on a flat copy")
            return ShapedArray(Flat(self.flatten()), self._shape, self._kind)
        return self

    def _from_view(self, view: View) -> "ShapedArray":
        return ShapedArray(
            Strided(self.layout.data, view.offset, view.strides), view.shape, self._kind
        )

    def view(self, *ranges: Range | slice | tuple | None) -> "ShapedArray":
        """One range (or None for the whole dimension) per dimension."""
        if len(ranges) != self.rank:
            raise IndexError(f"expecting {self.rank} range(s), got {len(ranges)}")
        base = self._base()
        ranges = tuple(_as_range(r, sh) for r, sh in zip(ranges, self._shape))
        layout = base.layout
        if isinstance(layout, Selected):
            compiled = [
                CompiledRange.compile(rng, len(ind)) for rng, ind in zip(ranges, layout.indices)
            ]
            if all(cr.trivial for cr in compiled):
                return base
            indices = tuple(
                tuple(ind[p] for p in cr.indices())
                for cr, ind in zip(compiled, layout.indices)
            )
            return ShapedArray(
                Selected(layout.data, layout.offset, indices),
                tuple(len(ind) for ind in indices),
                self._kind,
            )
        view = base._view.view(*ranges)
        if view is base._view:
            return base
        return base._from_view(view)

    def slice(self, idx: int, dim: int = -1) -> "ShapedArray":
        """Sub-array of rank R-1 obtained by fixing index `idx` along `dim`."""
        if self.rank == 0:
            raise InvalidShape("cannot slice a scalar")
        base = self._base()
        layout = base.layout
        if isinstance(layout, Selected):
            dim = fix_dim(dim, self.rank)
            idx = fix_index(idx, self._shape[dim])
            indices = layout.indices[:dim] + layout.indices[dim + 1 :]
            return ShapedArray(
                Selected(layout.data, layout.offset + layout.indices[dim][idx], indices),
                self._shape.dims[:dim] + self._shape.dims[dim + 1 :],
                self._kind,
            )
        return base._from_view(base._view.slice(idx, dim))

    def select(self, *selections: Optional[Sequence[int]]) -> "ShapedArray":
        """View made of arbitrary lists of indices (or None for all) per dimension."""
        base = self._base()
        layout = base.layout
        if isinstance(layout, Selected):
            if len(selections) != self.rank:
                raise IndexError(
                    f"expecting {self.rank} selection(s), got {len(selections)}"
                )
            indices = []
            for sel, ind in zip(selections, layout.indices):
                if sel is None:
                    indices.append(ind)
                elif len(sel) == 0:
                    raise InvalidShape("empty selection")
                else:
                    indices.append(tuple(ind[fix_index(i, len(ind))] for i in sel))
            offset = layout.offset
        else:
            indices = [tuple(ind) for ind in base._view.select(*selections)]
            offset = base._view.offset
        return ShapedArray(
            Selected(layout.data, offset, tuple(indices)),
            tuple(len(ind) for ind in indices),
            self._kind,
        )

    def transpose(self, *axes: int) -> "ShapedArray":
        base = self._base()
        layout = base.layout
        if isinstance(layout, Selected):
            perm = permutation(axes, self.rank)
            return ShapedArray(
                Selected(layout.data, layout.offset, tuple(layout.indices[ax] for ax in perm)),
                tuple(self._shape.dims[ax] for ax in perm),
                self._kind,
            )
        return base._from_view(base._view.transpose(*axes))

    @property
    def T(self) -> "ShapedArray":
        return self.transpose()


def _as_array(other: Any) -> ShapedArray:
    if isinstance(other, np.ndarray):
        return ShapedArray.from_numpy(other)
    if isinstance(other, (list, tuple)):
        return ShapedArray.from_list(other)
    if not isinstance(other, ShapedArray):
        raise TypeError(f"Unsupported data type: {type(other)}")
    return other
