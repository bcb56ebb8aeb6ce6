import array

import pytest

from strided import BoundaryConditions, InvalidShape, build_index, fill_index


def test_build_index():
    assert build_index(7, -1, BoundaryConditions.NORMAL) == [0, 0, 1, 2, 3, 4, 5]
    assert build_index(7, -2, BoundaryConditions.PERIODIC) == [5, 6, 0, 1, 2, 3, 4]
    assert build_index(7, -2, BoundaryConditions.MIRROR) == [2, 1, 0, 1, 2, 3, 4]
    assert build_index(7, 0) == list(range(7))


def test_past_the_end():
    assert build_index(4, 2, BoundaryConditions.NORMAL) == [2, 3, 3, 3]
    assert build_index(4, 2, BoundaryConditions.PERIODIC) == [2, 3, 0, 1]
    assert build_index(4, 2, BoundaryConditions.MIRROR) == [2, 3, 3, 2]
    # Offsets larger than the period
    assert build_index(3, 7, BoundaryConditions.PERIODIC) == [1, 2, 0]
    assert build_index(3, -7, BoundaryConditions.PERIODIC) == [2, 0, 1]
    assert build_index(3, 6, BoundaryConditions.MIRROR) == [0, 1, 2]
    assert build_index(3, -9, BoundaryConditions.MIRROR) == [2, 2, 1]


def test_in_range():
    for condition in BoundaryConditions:
        for length in range(1, 9):
            for offset in range(-20, 20):
                idx = build_index(length, offset, condition)
                assert len(idx) == length
                assert all(0 <= i < length for i in idx)


def test_fill_index():
    index = [0] * 7
    out = fill_index(index, -2, BoundaryConditions.MIRROR)
    assert out is index
    assert index == [2, 1, 0, 1, 2, 3, 4]
    index = array.array("i", [9] * 5)
    fill_index(index, 1, BoundaryConditions.PERIODIC)
    assert list(index) == [1, 2, 3, 4, 0]
    with pytest.raises(InvalidShape):
        fill_index([], 0)


def test_invalid_length():
    with pytest.raises(InvalidShape):
        build_index(0, 0)


def test_description():
    assert BoundaryConditions.CLAMP is BoundaryConditions.NORMAL
    assert list(BoundaryConditions) == [
        BoundaryConditions.NORMAL,
        BoundaryConditions.PERIODIC,
        BoundaryConditions.MIRROR,
    ]
    assert str(BoundaryConditions.NORMAL) == "propagate leftmost or rightmost value"
    assert BoundaryConditions.PERIODIC.description == "periodic boundary conditions"
    assert BoundaryConditions.MIRROR.description == "mirror boundary conditions"
