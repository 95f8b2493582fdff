from __future__ import annotations


class PostProcessError(ValueError):
    """
    Base class for failures while turning raw model outputs into detections.

    Every error is fatal to the call: no partial detection list is returned.
    """


class InvalidOutputCount(PostProcessError):
    pass


class UnsupportedQuantType(PostProcessError):
    pass


class UnsupportedDflLength(PostProcessError):
    pass


class InvalidTensorShape(PostProcessError):
    pass


class IndexOutOfRange(PostProcessError, IndexError):
    pass
