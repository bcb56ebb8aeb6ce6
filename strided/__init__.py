from strided.errors import (
    StridedError,
    InvalidShape,
    RangeOutOfBounds,
    IllegalRangeDirection,
    ViewOutOfBounds,
    NonConformableShape,
    UnsupportedElementKind,
)
from strided.kind import Kind, cast_buffer
from strided.shape import (
    Shape,
    Range,
    CompiledRange,
    Order,
    View,
    check_view_strides,
    classify_order,
    iterate_indices,
    strides_for_shape,
    BoundaryConditions,
    build_index,
    fill_index,
)
from strided.array import ShapedArray, Flat, Strided, Nested, Selected
