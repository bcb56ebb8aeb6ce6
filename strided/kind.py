from __future__ import annotations

import array
import math
import numbers
from enum import Enum
from typing import Any

import numpy as np

from strided.errors import UnsupportedElementKind
from strided.helpers import dprint


class Kind(Enum):
    INT8 = "b"
    INT16 = "h"
    INT32 = "i"
    INT64 = "q"
    FLOAT32 = "f"
    FLOAT64 = "d"

    @property
    def typecode(self) -> str:
        return self.value

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return self.dtype.kind == "i"

    @staticmethod
    def of(x: Any) -> "Kind":
        if isinstance(x, Kind):
            return x
        if x is None:
            raise UnsupportedElementKind("element kind must be given")
        try:
            dtype = np.dtype(x)
        except TypeError as e:
            raise UnsupportedElementKind(f"unsupported element kind {x!r}") from e
        for kind in Kind:
            if kind.dtype == dtype:
                return kind
        raise UnsupportedElementKind(f"unsupported element kind {x!r}")

    def coerce(self, value: Any) -> int | float:
        """
        Store `value` as an element of this kind. Integers narrow by wrapping,
        e.g. INT8.coerce(200) == -56. Floats truncate toward zero and saturate
        at the bounds of the kind, NaN becomes 0.
        """
        if not self.is_integer:
            return float(value)
        bits = 8 * self.itemsize
        lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        if not isinstance(value, numbers.Integral):
            value = float(value)
            if math.isnan(value):
                return 0
            if value <= lo:
                return lo
            if value >= hi:
                return hi
            return math.trunc(value)
        return (int(value) - lo) % (1 << bits) + lo

    def allocate(self, number: int) -> memoryview:
        return memoryview(array.array(self.typecode, bytes(number * self.itemsize)))

    def from_bytes(self, raw: bytes) -> memoryview:
        return memoryview(array.array(self.typecode, raw))

    def from_values(self, values) -> memoryview:
        return memoryview(array.array(self.typecode, (self.coerce(v) for v in values)))


def cast_buffer(data: memoryview, src: Kind, dst: Kind) -> memoryview:
    """
    Convert a contiguous buffer of `src` elements into a new buffer of `dst`
    elements, with the same rules as Kind.coerce: integers are narrowed by
    wrapping, floats are truncated toward zero and saturated when converted
    to integers.
    """
    src, dst = Kind.of(src), Kind.of(dst)
    dprint(f"cast_buffer: {len(data)} elements {src.name} -> {dst.name}")
    values = np.frombuffer(data, dtype=src.dtype)
    if src.is_integer or not dst.is_integer:
        out = values.astype(dst.dtype)
    else:
        info = np.iinfo(dst.dtype)
        lo, hi = float(info.min), float(info.max)
        values = np.trunc(np.nan_to_num(values, nan=0.0))
        low, high = values <= lo, values >= hi
        out = np.where(low | high, 0, values).astype(dst.dtype)
        out[low] = info.min
        out[high] = info.max
    return dst.from_bytes(out.tobytes())
