"""Element types and type descriptors shared by array sets and datasets.

A `TypeDescriptor` is the contract every stored object has to obey: the
element type (an `ElementType`) and the shape of the value. Scalars are
described with the shape `(1,)`, so every descriptor has a rank between 1 and
`MAX_RANK`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple

import numpy as np

from .config import MAX_RANK
from .errors import InvalidRankError, UnsupportedTypeError

SCALAR_SHAPE: Tuple[int, ...] = (1,)
"""Shape used to describe a single value."""


class ElementType(Enum):
    """Supported element kinds, the value is the numpy type name."""

    bool = "bool"
    int8 = "int8"
    int16 = "int16"
    int32 = "int32"
    int64 = "int64"
    uint8 = "uint8"
    uint16 = "uint16"
    uint32 = "uint32"
    uint64 = "uint64"
    float32 = "float32"
    float64 = "float64"
    complex64 = "complex64"
    complex128 = "complex128"

    @property
    def dtype(self) -> np.dtype:
        """Numpy dtype (in native byte order) for this element type."""
        return np.dtype(self.value)

    @classmethod
    def from_dtype(cls, dtype: Any) -> ElementType:
        """Return element type of a numpy dtype (or anything numpy accepts as one).

        Byte order is ignored, the type name must match one of the members.
        """
        try:
            dt = np.dtype(dtype)
        except TypeError as e:
            raise UnsupportedTypeError(f"Not a valid element type: {dtype!r}") from e
        if dt.fields is not None or dt.subdtype is not None:
            raise UnsupportedTypeError(f"Unsupported structured element type: {dt}")
        try:
            return cls(dt.name)
        except ValueError:
            raise UnsupportedTypeError(f"Unsupported element type: {dt}")


def _to_element_type(obj: Any) -> ElementType:
    if isinstance(obj, ElementType):
        return obj
    if isinstance(obj, (np.dtype, str)) or (
        isinstance(obj, type) and issubclass(obj, (np.generic, bool, int, float, complex))
    ):
        return ElementType.from_dtype(obj)
    # a value, e.g. 1.0 or np.int32(5)
    return ElementType.from_dtype(np.asarray(obj).dtype)


@dataclass(frozen=True)
class TypeDescriptor:
    """Element type and shape of an array (or a scalar, with shape `(1,)`)."""

    element_type: ElementType
    shape: Tuple[int, ...]

    def __post_init__(self):
        if not isinstance(self.element_type, ElementType):
            object.__setattr__(self, "element_type", _to_element_type(self.element_type))
        shape = tuple(int(x) for x in self.shape)
        if shape != tuple(self.shape):
            raise ValueError(f"Extents must be integers, got shape {tuple(self.shape)}")
        object.__setattr__(self, "shape", shape)
        if not (1 <= len(shape) <= MAX_RANK):
            msg = f"Rank must be between 1 and {MAX_RANK}, got shape {shape}"
            raise InvalidRankError(msg)
        if any(x <= 0 for x in shape):
            raise ValueError(f"Extents must be positive, got shape {shape}")

    @classmethod
    def scalar(cls, kind: Any) -> TypeDescriptor:
        """Return descriptor of a single value.

        Args:
            kind: element type, numpy dtype or type, or an example value
        """
        return cls(_to_element_type(kind), SCALAR_SHAPE)

    @classmethod
    def from_array(cls, buffer: Any) -> TypeDescriptor:
        """Return descriptor of a numpy array (0-dimensional arrays are scalars)."""
        arr = np.asarray(buffer)
        shape = arr.shape or SCALAR_SHAPE
        return cls(ElementType.from_dtype(arr.dtype), shape)

    @property
    def rank(self) -> int:
        return len(self.shape)

    @property
    def dtype(self) -> np.dtype:
        return self.element_type.dtype

    @property
    def is_scalar(self) -> bool:
        return self.shape == SCALAR_SHAPE

    def matches_with_leading_dim(self, other: TypeDescriptor) -> bool:
        """Return whether `other` is this type with one extra leading extent.

        A 1D type of the same element type is also considered a list of scalars.
        """
        if self.element_type != other.element_type:
            return False
        if other.shape[1:] == self.shape:
            return True
        return self.is_scalar and other.rank == 1

    def is_compatible(self, other: TypeDescriptor) -> bool:
        """Return whether both types address the same data.

        This is the case if they are equal or one of them has an extra leading
        (index) dimension.
        """
        return (
            self == other
            or self.matches_with_leading_dim(other)
            or other.matches_with_leading_dim(self)
        )

    def with_leading_dim(self, extent: int) -> TypeDescriptor:
        """Return this type with an extra leading extent prepended."""
        return TypeDescriptor(self.element_type, (extent,) + self.shape)

    def __str__(self) -> str:
        return f"{self.element_type.value}[{','.join(map(str, self.shape))}]"
