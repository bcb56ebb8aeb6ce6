from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from strided.errors import IllegalRangeDirection, InvalidShape, RangeOutOfBounds
from strided.helpers import dprint


@dataclass(frozen=True)
class Range:
    """
    Sub-selection along one dimension, `first` and `last` both inclusive.

    Negative `first`/`last` count from the end of the dimension (-1 is the
    last element) and are only resolved when the range is compiled against
    a concrete length. A `step` of 0 means +1 or -1 depending on whether
    `first <= last`.
    """

    first: int = 0
    last: int = -1
    step: int = 0

    ALL: ClassVar["Range"]
    REVERSE: ClassVar["Range"]

    @staticmethod
    def resolve(index: int, length: int) -> int:
        return index if index >= 0 else length + index

    @staticmethod
    def from_slice(s: slice, length: int) -> "Range":
        # Python slices exclude `stop`, ranges include `last`
        start, stop, step = s.indices(length)
        count = len(range(start, stop, step))
        if count == 0:
            raise RangeOutOfBounds(f"empty selection {s} along dimension of {length}")
        return Range(start, start + (count - 1) * step, step)

    def compile(self, length: int, offset: int = 0, stride: int = 1) -> "CompiledRange":
        return CompiledRange.compile(self, length, offset, stride)


Range.ALL = Range(0, -1, 1)
Range.REVERSE = Range(-1, 0, -1)


@dataclass(frozen=True)
class CompiledRange:
    offset: int
    stride: int
    count: int
    trivial: bool

    @staticmethod
    def compile(
        rng: Range | None, length: int, offset: int = 0, stride: int = 1
    ) -> "CompiledRange":
        """
        Resolve `rng` against a dimension of `length` elements.

        The result addresses buffer positions `offset + first*stride`,
        `offset + (first + step)*stride`, ... so that compiling against the
        (offset, stride) of an existing view yields the nested view directly.
        `None` stands for the whole dimension.
        """
        if length < 1:
            raise InvalidShape(f"dimension length must be at least 1, got {length}")
        if rng is None:
            rng = Range.ALL
        first = Range.resolve(rng.first, length)
        last = Range.resolve(rng.last, length)
        step = rng.step
        if first == last:
            # Single element: any step direction is accepted.
            if first < 0 or first >= length:
                raise RangeOutOfBounds(
                    f"range {rng} out of bounds for dimension of {length}"
                )
            step = step if step != 0 else 1
            count = 1
        elif first < last:
            if first < 0 or last >= length:
                raise RangeOutOfBounds(
                    f"range {rng} out of bounds for dimension of {length}"
                )
            if step == 0:
                step = 1
            elif step < 0:
                raise IllegalRangeDirection(f"range {rng} has wrong step direction")
            count = (last - first) // step + 1
        else:
            if first >= length or last < 0:
                raise RangeOutOfBounds(
                    f"range {rng} out of bounds for dimension of {length}"
                )
            if step == 0:
                step = -1
            elif step > 0:
                raise IllegalRangeDirection(f"range {rng} has wrong step direction")
            count = (first - last) // (-step) + 1
        trivial = first == 0 and count == length and (step == 1 or length == 1)
        out = CompiledRange(offset + first * stride, step * stride, count, trivial)
        dprint(f"CompiledRange.compile: {rng} length={length} -> {out}", level=2)
        return out

    def indices(self) -> list[int]:
        return [self.offset + self.stride * i for i in range(self.count)]
