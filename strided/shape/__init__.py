from strided.shape.shape import Shape
from strided.shape.range import Range, CompiledRange
from strided.shape.view import (
    Order,
    View,
    check_view_strides,
    classify_order,
    iterate_indices,
    strides_for_shape,
)
from strided.shape.boundary import BoundaryConditions, build_index, fill_index
