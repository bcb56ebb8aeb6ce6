import numpy as np
import pytest

from strided import Kind, ShapedArray, UnsupportedElementKind, cast_buffer


def test_of():
    assert Kind.of("b") == Kind.INT8
    assert Kind.of("int16") == Kind.INT16
    assert Kind.of(np.int32) == Kind.INT32
    assert Kind.of(np.dtype("int64")) == Kind.INT64
    assert Kind.of("f") == Kind.FLOAT32
    assert Kind.of(float) == Kind.FLOAT64
    assert Kind.of(Kind.FLOAT32) is Kind.FLOAT32
    for kind in Kind:
        assert Kind.of(kind.typecode) == kind
        assert Kind.of(kind.dtype) == kind
        assert kind.itemsize == kind.dtype.itemsize


def test_unsupported():
    for x in [bool, object, np.uint8, "complex128", None]:
        with pytest.raises(UnsupportedElementKind):
            Kind.of(x)
    # UnsupportedElementKind is also a TypeError
    with pytest.raises(TypeError):
        Kind.of(np.float16)


def test_coerce():
    assert Kind.INT8.coerce(200) == -56
    assert Kind.INT8.coerce(-129) == 127
    assert Kind.INT16.coerce(1 << 16) == 0
    assert Kind.INT32.coerce(-3.7) == -3
    assert Kind.INT64.coerce(2.9) == 2
    assert Kind.FLOAT32.coerce(1) == 1.0
    assert isinstance(Kind.FLOAT64.coerce(np.int32(3)), float)


def test_allocate():
    for kind in Kind:
        buf = kind.allocate(5)
        assert len(buf) == 5
        assert list(buf) == [0] * 5
        assert buf.format == kind.typecode


def test_cast_buffer():
    src = Kind.FLOAT64.from_values([1.5, -2.7, 0.0, 3e9])
    out = cast_buffer(src, Kind.FLOAT64, Kind.INT32)
    assert out.format == "i"
    assert list(out) == [1, -2, 0, (1 << 31) - 1]

    src = Kind.INT16.from_values([300, -1, 127])
    assert list(cast_buffer(src, Kind.INT16, Kind.INT8)) == [44, -1, 127]
    assert list(cast_buffer(src, Kind.INT16, Kind.FLOAT32)) == [300.0, -1.0, 127.0]


def test_to_kind():
    a = ShapedArray.from_list([[1.5, -2.5], [3.25, 4.0]], kind=Kind.FLOAT64)
    assert a.to_kind(Kind.FLOAT64) is a
    assert a.to_float64() is a
    b = a.to_int32()
    assert b.kind == Kind.INT32
    assert b.shape == a.shape
    assert b.tolist() == [[1, -2], [3, 4]]
    # The cast is a copy
    b.set(0, 0, 10)
    assert a.get(0, 0) == 1.5

    c = ShapedArray.zeros(2, 3, kind=Kind.INT16).fill(300).to_int8()
    assert c.tolist() == [[44] * 3] * 2


def test_to_kind_keeps_order():
    ref = np.arange(12, dtype=np.int64).reshape(3, 4)
    a = ShapedArray.from_numpy(ref)
    b = a.to_float32()
    assert b.order == a.order
    assert b.tolist() == ref.astype(np.float32).tolist()
    t = a.T.to_int16()
    assert t.tolist() == ref.T.tolist()


def test_float_to_integer_saturates():
    values = [float("nan"), float("inf"), float("-inf"), 1e30, -1e30, 2.5, -2.5, 0.0]
    for src in (Kind.FLOAT32, Kind.FLOAT64):
        buf = src.from_values(values)
        for dst in (Kind.INT8, Kind.INT16, Kind.INT32, Kind.INT64):
            lo, hi = np.iinfo(dst.dtype).min, np.iinfo(dst.dtype).max
            expected = [0, hi, lo, hi, lo, 2, -2, 0]
            assert [dst.coerce(v) for v in buf] == expected
            assert list(cast_buffer(buf, src, dst)) == expected


def test_to_kind_agrees_with_set():
    a = ShapedArray.from_list([[1e10, -1e10], [float("nan"), 7.9]])
    b = a.to_int16()
    c = ShapedArray.zeros(2, 2, kind=Kind.INT16)
    for i in range(2):
        for j in range(2):
            c.set(i, j, a.get(i, j))
    assert b.tolist() == c.tolist() == [[32767, -32768], [0, 7]]
