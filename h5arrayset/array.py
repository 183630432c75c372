"""Typed in-memory arrays carrying an id, the members of an `ArraySet`."""
from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from .types import ElementType, TypeDescriptor


class Array:
    """A C-contiguous numpy buffer with an element type check and an id.

    An id of 0 means that no id was assigned yet.
    """

    __slots__ = ("_data", "_type", "id")

    def __init__(self, data: Any, id: int = 0):
        if isinstance(data, Array):
            data = data.data
        arr = np.ascontiguousarray(data)
        # validates element type and rank
        self._type = TypeDescriptor.from_array(arr)
        self._data = arr
        if id < 0:
            raise ValueError(f"Array id must be non-negative, got {id}")
        self.id: int = id

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def type(self) -> TypeDescriptor:
        return self._type

    @property
    def element_type(self) -> ElementType:
        return self._type.element_type

    @property
    def ndim(self) -> int:
        return self._type.rank

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._type.shape

    def copy(self) -> Array:
        """Return a deep copy (with the same id)."""
        return Array(self._data.copy(), self.id)

    def __eq__(self, o) -> bool:
        if not isinstance(o, Array):
            return NotImplemented
        return self.id == o.id and self._type == o._type and np.array_equal(self._data, o._data)

    __hash__ = None  # type: ignore

    def __repr__(self):
        return f"<Array id={self.id} {self._type}>"


def as_array(obj: Any) -> Array:
    """Return `obj` if it is an `Array`, otherwise wrap it into one with id 0."""
    return obj if isinstance(obj, Array) else Array(obj)
