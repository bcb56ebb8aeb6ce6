class StridedError(Exception):
    """Base class of every error raised by the shape/stride engine."""


class InvalidShape(StridedError, ValueError):
    pass


class RangeOutOfBounds(StridedError, IndexError):
    pass


class IllegalRangeDirection(StridedError, ValueError):
    pass


class ViewOutOfBounds(StridedError, IndexError):
    pass


class NonConformableShape(StridedError, ValueError):
    pass


class UnsupportedElementKind(StridedError, TypeError):
    pass
