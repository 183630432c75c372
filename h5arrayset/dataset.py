r"""
Typed, indexed access to the datasets inside of a storage file.

The same stored object can usually be addressed in more than one way. An HDF5
dataset of shape `(n, 2, 2)` is one `float64[n,2,2]` array, but it is also a
list of `n` arrays of type `float64[2,2]`. A 1D dataset of shape `(n,)` is a
list of `n` scalars. A `Dataset` computes this *representation vector* once
when it is bound to the stored object, and each read or write request is
resolved by looking up the requested type in it:

```python
with StorageFile("data.h5", "w") as f:
    ds = f.create_dataset("values", TypeDescriptor.scalar("float64"))
    ds.add(3.14)
    ds.add(2.71)
    assert ds.size() == 2 and ds.read(1) == 2.71
    ds.replace(0, 9.0)
```

There is no implicit conversion of element types, the caller must request
exactly the stored element type (only the byte order is translated).

Datasets created as lists (the default) are stored chunked with an unlimited
leading dimension and can be extended one item at a time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple

import h5py
import numpy as np

from .config import MAX_COMPRESSION, MAX_RANK
from .errors import (
    ClosedStorageError,
    DatasetIndexError,
    IncompatibleTypeError,
    NotExtensibleError,
    ObjectNotFoundError,
    UnsupportedTypeError,
)
from .types import SCALAR_SHAPE, ElementType, TypeDescriptor

if TYPE_CHECKING:
    from .storage import StorageFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Representation:
    """One way to address a stored object.

    The stored object is seen as `count` objects of type `type`.
    Item `i` is located in the hyperslab starting at `offset` (with the first
    component replaced by `i`) that spans `shape` elements of the file space.
    """

    type: TypeDescriptor
    count: int
    extensible: bool
    offset: Tuple[int, ...]
    shape: Tuple[int, ...]
    dtype: np.dtype
    """Element type used for transfers from and to memory."""

    def hyperslab(self, index: int) -> Tuple[slice, ...]:
        """Return selection of the item with given index in the file space."""
        start = (index,) + self.offset[1:] if self.offset else ()
        return tuple(slice(o, o + c) for o, c in zip(start, self.shape))


@dataclass(frozen=True)
class Selection:
    """Validated target of one transfer."""

    representation: Representation
    index: int
    hyperslab: Tuple[slice, ...]


def _descriptor(element_type: ElementType, shape: Tuple[int, ...]) -> TypeDescriptor:
    try:
        return TypeDescriptor(element_type, shape)
    except ValueError as e:
        raise UnsupportedTypeError(str(e)) from e


def _is_growable(node: h5py.Dataset) -> bool:
    """Return whether the leading dimension of the dataset can be extended."""
    return (
        node.chunks is not None
        and node.maxshape is not None
        and len(node.maxshape) > 0
        and node.maxshape[0] is None
    )


def introspect(node: h5py.Dataset) -> Tuple[Representation, ...]:
    """Return all representations of a stored dataset.

    The first one is the default representation (the most fine-grained one).
    """
    element_type = ElementType.from_dtype(node.dtype)
    dtype = element_type.dtype
    shape = node.shape
    if shape is None:
        raise UnsupportedTypeError(f"{node.name}: dataset without dataspace")

    if len(shape) == 0:  # HDF5 scalar dataspace
        scalar = _descriptor(element_type, SCALAR_SHAPE)
        return (Representation(scalar, 1, False, (), (), dtype),)

    n = shape[0]
    zeros = (0,) * len(shape)
    item_shape = shape[1:] or SCALAR_SHAPE
    if len(item_shape) > MAX_RANK:
        raise UnsupportedTypeError(f"{node.name}: too many dimensions: {shape}")

    item = _descriptor(element_type, item_shape)
    ret = [Representation(item, n, _is_growable(node), zeros, (1,) + shape[1:], dtype)]

    # the whole object, unless it is empty or the same as the only item
    if n > 0 and len(shape) <= MAX_RANK and shape != SCALAR_SHAPE:
        whole = _descriptor(element_type, shape)
        ret.append(Representation(whole, 1, False, zeros, shape, dtype))
    return tuple(ret)


def _as_source(buffer: Any, dest_type: TypeDescriptor) -> np.ndarray:
    """Return buffer as contiguous array after checking it is of the given type."""
    arr = np.ascontiguousarray(buffer)
    if TypeDescriptor.from_array(arr) != dest_type:
        msg = f"Buffer of type {TypeDescriptor.from_array(arr)} does not match {dest_type}"
        raise IncompatibleTypeError(msg)
    return arr


def _check_target(buffer: Any, dest_type: TypeDescriptor):
    if not isinstance(buffer, np.ndarray):
        raise TypeError(f"Expected numpy array as output buffer, got {type(buffer)}")
    if not buffer.flags.c_contiguous or not buffer.flags.writeable:
        raise ValueError("Output buffer must be a writable C-contiguous array!")
    if TypeDescriptor.from_array(buffer) != dest_type:
        msg = f"Buffer of type {TypeDescriptor.from_array(buffer)} does not match {dest_type}"
        raise IncompatibleTypeError(msg)


_NOTHING = object()


class Dataset:
    """A stored array object, bound to a path inside of a `StorageFile`.

    The dataset does not own the file, it must not be used after the file
    was closed.
    """

    _file: StorageFile
    _generation: int
    _path: str
    _h5obj: h5py.Dataset
    _representations: Tuple[Representation, ...]

    def __init__(self, file: StorageFile, path: str):
        """Bind to an existing dataset, inferring its representations."""
        node = file.h5file.get(path)
        if node is None:
            raise ObjectNotFoundError(f"{file.filename}: no object at '{path}'")
        if not isinstance(node, h5py.Dataset):
            raise UnsupportedTypeError(f"{file.filename}: '{path}' is not a dataset")

        self._file = file
        self._generation = file.generation
        self._path = node.name
        self._h5obj = node
        self._representations = introspect(node)
        logger.debug("attached %s:%s as %s", file.filename, self._path, self.type)

    @classmethod
    def create(
        cls,
        file: StorageFile,
        path: str,
        type: TypeDescriptor,
        list: bool = True,
        compression: Optional[int] = None,
    ) -> Dataset:
        """Create a new dataset for objects of the given type.

        With `list` set (the default), the dataset is created chunked (one
        chunk per item) with an extra leading dimension and initially no items,
        so items can be appended with `extend`. Otherwise, it is created with
        exactly the given shape and can not grow.

        Missing intermediate groups are created. If an object already exists
        at the path, the new dataset attaches to it, provided that the given
        type is one of its representations.

        Args:
            file: writable storage file
            path: location of the dataset in the file
            type: type of one item
            list: whether to create an extensible list of items
            compression: gzip level (0-9), defaults to the setting of the file
        """
        file._expect_writable()
        if path in file.h5file:
            ret = cls(file, path)
            if ret._find(type) is None:
                msg = f"existing object of type {ret.native_type} is not compatible with {type}"
                raise IncompatibleTypeError(f"{file.filename}:{ret.path}: {msg}")
            return ret

        if compression is None:
            compression = file.creation_properties.compression
        if not (0 <= compression <= MAX_COMPRESSION):
            raise ValueError(f"Invalid compression level: {compression}")
        kwargs = {}
        if compression:
            kwargs.update(compression="gzip", compression_opts=compression)

        if list:
            file.h5file.create_dataset(
                path,
                shape=(0,) + type.shape,
                maxshape=(None,) + type.shape,
                chunks=(1,) + type.shape,
                dtype=type.dtype,
                **kwargs,
            )
            return cls(file, path)

        file.h5file.create_dataset(path, shape=type.shape, dtype=type.dtype, **kwargs)
        ret = cls(file, path)
        # only the object as a whole, as declared
        zeros = (0,) * type.rank
        ret._representations = (
            Representation(type, 1, False, zeros, type.shape, type.dtype),
        )
        return ret

    # ---- state ----

    def _guard_open(self):
        if self._file.closed or self._file.generation != self._generation:
            raise ClosedStorageError(f"{self._path}: storage file was closed!")

    @property
    def _node(self) -> h5py.Dataset:
        self._guard_open()
        node = self._file.h5file.get(self._path)
        # must still be the object that was introspected
        if not isinstance(node, h5py.Dataset) or node != self._h5obj:
            raise ObjectNotFoundError(f"{self._file.filename}: no dataset at '{self._path}'")
        return node

    @property
    def path(self) -> str:
        return self._path

    @property
    def file(self) -> StorageFile:
        return self._file

    @property
    def representations(self) -> Tuple[Representation, ...]:
        return self._representations

    @property
    def type(self) -> TypeDescriptor:
        """Type of the default representation."""
        return self._representations[0].type

    @property
    def native_type(self) -> Optional[TypeDescriptor]:
        """Type of the whole stored object (None if it has no items)."""
        shape = self._node.shape or SCALAR_SHAPE
        try:
            return TypeDescriptor(self.type.element_type, shape)
        except ValueError:
            return None

    @property
    def extensible(self) -> bool:
        return any(rep.extensible for rep in self._representations)

    def __repr__(self):
        return f"<Dataset {self._path} {self.type} x{self._representations[0].count}>"

    def _find(self, dest_type: TypeDescriptor) -> Optional[Representation]:
        for rep in self._representations:
            if rep.type == dest_type:
                return rep
        return None

    def _expect_type(self, dest_type: TypeDescriptor) -> Representation:
        rep = self._find(dest_type)
        if rep is None:
            available = ", ".join(str(r.type) for r in self._representations)
            msg = f"cannot address as {dest_type} (available: {available})"
            raise IncompatibleTypeError(f"{self._path}: {msg}")
        return rep

    # ---- core operations ----

    def size(self, type: Optional[TypeDescriptor] = None) -> int:
        """Return number of objects, as seen through the given (or default) type."""
        if type is None:
            return self._representations[0].count
        return self._expect_type(type).count

    def __len__(self) -> int:
        return self.size()

    def select(self, index: int, dest_type: TypeDescriptor) -> Selection:
        """Resolve type and position of the next transfer.

        Raises an `IncompatibleTypeError` if the type is not one of the
        representations, and a `DatasetIndexError` if the position does not exist.
        """
        self._guard_open()
        rep = self._expect_type(dest_type)
        if not (0 <= index < rep.count):
            msg = f"index {index} out of range for {rep.count} objects of type {dest_type}"
            raise DatasetIndexError(f"{self._path}: {msg}")
        return Selection(rep, index, rep.hyperslab(index))

    def read_into(self, index: int, dest_type: TypeDescriptor, buffer: np.ndarray) -> np.ndarray:
        """Read object at given position into a C-contiguous array of type `dest_type`."""
        sel = self.select(index, dest_type)
        _check_target(buffer, dest_type)
        data = self._node[sel.hyperslab]
        # only byte order may differ
        np.copyto(buffer, np.reshape(data, buffer.shape), casting="equiv")
        return buffer

    def write(self, index: int, dest_type: TypeDescriptor, buffer: Any) -> None:
        """Overwrite the object at an existing position."""
        self._file._expect_writable()
        sel = self.select(index, dest_type)
        data = _as_source(buffer, dest_type)
        self._node[sel.hyperslab] = np.reshape(data, sel.representation.shape)

    def extend(self, dest_type: TypeDescriptor, buffer: Any) -> None:
        """Append an object, growing the leading dimension by one."""
        self._guard_open()
        self._file._expect_writable()
        rep = self._expect_type(dest_type)
        if not rep.extensible:
            raise NotExtensibleError(f"{self._path}: cannot append {dest_type}, not a list")
        data = _as_source(buffer, dest_type)

        node = self._node
        n = node.shape[0]
        node.resize(n + 1, axis=0)
        try:
            node[n : n + 1] = np.reshape(data, (1,) + node.shape[1:])
        except Exception:
            node.resize(n, axis=0)
            raise
        self._representations = introspect(node)
        logger.debug("%s: appended item %d", self._path, n)

    # ---- convenience ----

    def read(self, index: int = 0, element_type: Any = None) -> Any:
        """Read a scalar (defaults to the stored element type)."""
        dest = TypeDescriptor.scalar(element_type or self.type.element_type)
        buffer = np.empty(dest.shape, dtype=dest.dtype)
        return self.read_into(index, dest, buffer)[0]

    def read_array(
        self, index: int = 0, out: Optional[np.ndarray] = None, ndim: Optional[int] = None
    ) -> np.ndarray:
        """Read an array.

        Args:
            index: position of the array in the dataset
            out: array to read into, determines the requested type
            ndim: if `out` is not given, read the representation with this
                number of dimensions (instead of the default one)
        """
        if out is not None:
            return self.read_into(index, TypeDescriptor.from_array(out), out)

        if ndim is None:
            rep = self._representations[0]
        else:
            matching = [r for r in self._representations if r.type.rank == ndim]
            if not matching:
                raise IncompatibleTypeError(f"{self._path}: no representation with {ndim} dims")
            rep = matching[0]
        buffer = np.empty(rep.type.shape, dtype=rep.dtype)
        return self.read_into(index, rep.type, buffer)

    def replace(self, index: Any, value: Any = _NOTHING) -> None:
        """Replace a value: `replace(index, value)`, or `replace(value)` for index 0."""
        if value is _NOTHING:
            index, value = 0, index
        self.write(index, TypeDescriptor.from_array(value), value)

    def replace_array(self, index: Any, array: Any = _NOTHING) -> None:
        """Replace an array: `replace_array(index, array)` or `replace_array(array)`."""
        if array is _NOTHING:
            index, array = 0, index
        arr = np.ascontiguousarray(array)
        self.write(index, TypeDescriptor.from_array(arr), arr)

    def add(self, value: Any) -> None:
        """Append a value to a list dataset."""
        self.extend(TypeDescriptor.from_array(value), value)

    def add_array(self, array: Any) -> None:
        """Append an array to a list dataset."""
        arr = np.ascontiguousarray(array)
        self.extend(TypeDescriptor.from_array(arr), arr)
