"""In-memory collections of equally typed arrays, addressed by id.

An `ArraySet` starts out untyped. The first array that is added fixes the
element type and shape, all later additions must conform to it.

Ids are positive integers, unique within a set. Arrays with id 0 get the
smallest free id assigned on insertion:

```python
s = ArraySet()
s.add(np.zeros((2, 2)))  # -> 1
s.add(np.ones((2, 2)))   # -> 2
s.remove(1)
s.next_free_id()         # -> 1
s.consolidate_ids()      # the remaining array now has id 1
```
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .array import Array, as_array
from .errors import ArrayIdError, DuplicateIdError, IncompatibleTypeError
from .types import ElementType, TypeDescriptor


class ArraySet:
    """Ordered set of arrays sharing one `TypeDescriptor`.

    Iteration yields the arrays in insertion order. The arrays are either
    private copies or shared references, depending on the `share` flag used
    when inserting them (removing an array only drops the reference held by
    the set).
    """

    _type: Optional[TypeDescriptor]
    _index: Dict[int, Array]  # insertion ordered

    def __init__(self, arrays: Iterable[Any] = (), *, share: bool = False):
        """Create a set, filling it through `overwrite` with the given arrays.

        Members of another `ArraySet` are always shared, not copied.
        """
        self._type = None
        self._index = {}
        if isinstance(arrays, ArraySet):
            self._type = arrays._type
            share = True
        for array in arrays:
            self.overwrite(array, share=share)

    def __copy__(self) -> ArraySet:
        # a copy gets an extra reference to the same arrays
        ret = type(self).__new__(type(self))
        ret._type = self._type
        ret._index = dict(self._index)
        return ret

    # ---- typing ----

    @property
    def type(self) -> Optional[TypeDescriptor]:
        """Type of all arrays in the set (None until the first insertion)."""
        return self._type

    @property
    def element_type(self) -> Optional[ElementType]:
        return self._type.element_type if self._type else None

    @property
    def ndim(self) -> int:
        return self._type.rank if self._type else 0

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._type.shape if self._type else ()

    @property
    def n_samples(self) -> int:
        return len(self._index)

    def _check_compatibility(self, array: Array):
        if self._type is not None and array.type != self._type:
            msg = f"Array of type {array.type} does not fit into set of type {self._type}"
            raise IncompatibleTypeError(msg)

    def _update_typing(self, array: Array):
        """Fix the type of this set, iff it is not set yet."""
        if self._type is None:
            self._type = array.type

    # ---- access ----

    @property
    def index(self) -> Mapping[int, Array]:
        """Read-only mapping from id to array."""
        return MappingProxyType(self._index)

    @property
    def arrays(self) -> List[Array]:
        """Arrays in the order they were inserted."""
        return list(self._index.values())

    @property
    def ids(self) -> List[int]:
        return list(self._index.keys())

    def __getitem__(self, id: int) -> Array:
        try:
            return self._index[id]
        except KeyError:
            raise ArrayIdError(f"No array with id {id} in set!") from None

    def get(self, id: int) -> Optional[Array]:
        """Return array with given id, or None."""
        return self._index.get(id)

    def __contains__(self, id: object) -> bool:
        return id in self._index

    def __iter__(self) -> Iterator[Array]:
        return iter(list(self._index.values()))

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self):
        typ = self._type or "untyped"
        return f"<ArraySet {typ} ids={self.ids}>"

    # ---- modification ----

    def _insert(self, array: Any, share: bool, replace: bool) -> int:
        arr = as_array(array)
        self._check_compatibility(arr)
        if arr.id != 0 and arr.id in self._index and not replace:
            raise DuplicateIdError(f"Array id {arr.id} is already taken!")

        stored = arr if share else arr.copy()
        if stored.id == 0:
            stored.id = self.next_free_id()
        self._update_typing(stored)
        self._index[stored.id] = stored  # replacing keeps the position
        return stored.id

    def add(self, array: Any, *, share: bool = False) -> int:
        """Add an array to the set and return its id.

        If the array has id 0, the next free id is assigned. A non-zero id
        that is already taken raises `DuplicateIdError`.

        Args:
            array: `Array` (or anything numpy can turn into an array)
            share: store the passed `Array` itself instead of a copy

        Returns:
            Id of the array inside of the set.
        """
        return self._insert(array, share, replace=False)

    def overwrite(self, array: Any, *, share: bool = False) -> int:
        """Like `add`, but silently replaces an array with the same id."""
        return self._insert(array, share, replace=True)

    def remove(self, id: Union[int, Array]) -> None:
        """Remove the array with given id (or the id of the given array).

        Removing an id that is not present does nothing.
        """
        key = id.id if isinstance(id, Array) else id
        self._index.pop(key, None)

    def next_free_id(self) -> int:
        """Return the smallest positive id not in use."""
        used = self._index.keys()
        for candidate in range(1, len(used) + 1):
            if candidate not in used:
                return candidate
        return len(used) + 1

    def consolidate_ids(self) -> None:
        """Renumber the arrays with ids 1..N in insertion order.

        The ids are changed on the arrays themselves, so other sets sharing
        some of these arrays end up with stale keys for them.
        """
        arrays = list(self._index.values())
        self._index = {}
        for i, arr in enumerate(arrays, start=1):
            arr.id = i
            self._index[i] = arr
