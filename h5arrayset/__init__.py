"""Typed N-dimensional array storage, in memory and in HDF5 files.

**In memory**, an `ArraySet` holds a collection of arrays that all have the
same element type and shape, addressed by positive integer ids.

**On disk**, a `StorageFile` wraps an HDF5 file and provides `Dataset`s,
which read, replace and append typed values and arrays at indexed positions:

| h5arrayset    | h5py         |
| ------------- | ------------ |
| `StorageFile` | [h5py.File](https://docs.h5py.org/en/latest/high/file.html) |
| `Dataset`     | [h5py.Dataset](https://docs.h5py.org/en/latest/high/dataset.html) |

## Getting Started

```python
import numpy as np
from h5arrayset import StorageFile, TypeDescriptor

with StorageFile("data.h5", "w") as f:
    ds = f.create_dataset("images", TypeDescriptor.from_array(np.zeros((2, 2))))
    ds.add_array(np.eye(2))
    ds.add_array(np.ones((2, 2)))

with StorageFile("data.h5") as f:
    datasets = f.index()
    assert datasets["/images"].size() == 2
    first = datasets["/images"].read_array(0)
```

Element types are never converted implicitly, the requested type must match
the stored one exactly.
"""
from .array import Array
from .arrayset import ArraySet
from .config import MAX_RANK, CreationProperties
from .dataset import Dataset, Representation, Selection
from .errors import (
    ArrayIdError,
    ClosedStorageError,
    DatasetIndexError,
    DuplicateIdError,
    H5ArraysetError,
    IncompatibleTypeError,
    InvalidRankError,
    NotExtensibleError,
    ObjectNotFoundError,
    StorageExistsError,
    StorageIOError,
    StorageNotFoundError,
    UnsupportedTypeError,
)
from .indexer import index
from .storage import OpenMode, StorageFile
from .types import ElementType, TypeDescriptor

__version__ = "0.1.0"
