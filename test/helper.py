from itertools import product

import numpy as np

from strided import CompiledRange, Range, ShapedArray

"""
ComparableArray pairs a numpy array with a strided ShapedArray holding the same
logical contents (ref[i1, ..., iR] == arr.get(i1, ..., iR)). Views taken on the
pair are taken on both sides so their results can be checked against each other.
"""


class ComparableArray:
    def __init__(self, *args, **kwargs):
        if len(args) == 2 and isinstance(args[1], ShapedArray):
            self.a, self.b = args
            return
        self.a = np.array(*args, **kwargs)
        self.b = ShapedArray.from_list(self.a.tolist(), kind=self.a.dtype)

    @property
    def numpy(self):
        return self.a

    @property
    def strided(self):
        return self.b

    @property
    def shape(self):
        assert self.b.shape == self.a.shape
        return self.a.shape

    def __repr__(self):
        return f"<numpy {self.a.tolist()}>\n<strided {self.b.tolist()}>"

    def view(self, *ranges):
        keys = []
        for rng, sh in zip(ranges, self.a.shape):
            keys.append(CompiledRange.compile(rng, sh).indices())
        return ComparableArray(self.a[np.ix_(*keys)], self.b.view(*ranges))

    def slice(self, idx, dim=-1):
        return ComparableArray(np.take(self.a, idx, axis=dim), self.b.slice(idx, dim))

    def select(self, *selections):
        keys = [
            list(range(sh)) if sel is None else list(sel)
            for sel, sh in zip(selections, self.a.shape)
        ]
        return ComparableArray(self.a[np.ix_(*keys)], self.b.select(*selections))

    def transpose(self, *axes):
        return ComparableArray(self.a.transpose(*axes), self.b.transpose(*axes))

    def __getitem__(self, key):
        a, b = self.a[key], self.b[key]
        if isinstance(b, ShapedArray):
            return ComparableArray(np.asarray(a), b)
        return a, b

    def assert_all(self):
        assert self.b.shape == self.a.shape
        for idx in product(*(range(sh) for sh in self.a.shape)):
            assert self.a[idx] == self.b.get(*idx)
        assert self.b.tolist() == self.a.tolist()
        self.assert_flatten_equal()

    def assert_flatten_equal(self):
        np.testing.assert_array_equal(
            np.asarray(self.b.flatten()), self.a.ravel(order="F")
        )


def full_range(length):
    return Range(0, length - 1, 1)
