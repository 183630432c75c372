"""
HDF5 storage files.

A `StorageFile` exclusively owns one open `h5py.File`. Datasets created from it
only keep a back-reference to the storage file and refuse to work after it was
closed.

Besides access to the datasets, a storage file supports a few structural
operations on the container:

* unlinking objects (the space is not reclaimed, HDF5 cannot do that in-place),
* renaming (moving) objects, creating missing intermediate groups,
* raw access to the user block, a reserved region at the beginning of the file.
"""
from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union, get_args

import h5py
from typing_extensions import Literal

from .config import CreationProperties
from .errors import (
    ClosedStorageError,
    ObjectNotFoundError,
    StorageExistsError,
    StorageIOError,
    StorageNotFoundError,
)

if TYPE_CHECKING:
    from .dataset import Dataset
    from .types import TypeDescriptor

logger = logging.getLogger(__name__)

OpenMode = Literal["r", "r+", "a", "w", "w-", "x"]
"""Open modes, same semantics as for h5py.File."""

_OPEN_MODES = list(get_args(OpenMode))
_CREATE_MODES = ["w", "w-", "x"]


class StorageFile:
    """An open HDF5 container file.

    Instances can not be copied, there is no safe way to duplicate a live handle.
    Use it as a context manager or call `close()` when done.
    """

    _file: Optional[h5py.File]
    _generation: int  # incremented on close, checked by datasets

    def __init__(
        self,
        path: Union[str, Path],
        mode: OpenMode = "r",
        userblock_size: int = 0,
        *,
        compression: int = 0,
    ):
        """Open or create a storage file.

        Args:
            path: location of the file
            mode: one of `r` (read-only), `r+` (read-write), `a` (read-write,
                create if missing), `w` (create or truncate), `w-`/`x` (create,
                fail if the file exists)
            userblock_size: bytes to reserve at the beginning of a new file
                (0 or a power of 2 >= 512), ignored when opening an existing file
            compression: default gzip level of datasets created in this file
        """
        if mode not in _OPEN_MODES:
            raise ValueError(f"Unknown file open mode: {mode}")
        self._path = Path(path)
        self._mode = mode
        self._file = None
        self._generation = 0
        self._props = CreationProperties(
            userblock_size=userblock_size, compression=compression
        )

        exists = self._path.exists()
        if mode in ("r", "r+") and not exists:
            raise StorageNotFoundError(f"{self._path}: no such file")
        if mode in ("w-", "x") and exists:
            raise StorageExistsError(f"{self._path}: file exists")

        kwargs: Dict[str, Any] = {}
        creating = mode in _CREATE_MODES or (mode == "a" and not exists)
        if creating and self._props.userblock_size:
            kwargs["userblock_size"] = self._props.userblock_size

        try:
            self._file = h5py.File(self._path, mode, **kwargs)
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"{self._path}: {e}") from e
        except FileExistsError as e:
            raise StorageExistsError(f"{self._path}: {e}") from e
        except OSError as e:
            raise StorageIOError(f"{self._path}: {e}") from e
        logger.debug("opened %s (mode %s)", self._path, mode)

    @classmethod
    def open(
        cls, path: Union[str, Path], mode: OpenMode = "r", userblock_size: int = 0, **kwargs
    ) -> StorageFile:
        """Open or create a storage file (same as the constructor)."""
        return cls(path, mode, userblock_size, **kwargs)

    # ---- no copies ----

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} can not be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} can not be copied")

    def __reduce__(self):
        raise TypeError(f"{type(self).__name__} can not be pickled")

    # ---- state ----

    @property
    def filename(self) -> Path:
        return self._path

    @property
    def mode(self) -> Literal["r", "r+"]:
        """Return 'r' if the file is read-only, otherwise 'r+'."""
        return "r" if self._mode == "r" else "r+"

    @property
    def closed(self) -> bool:
        return self._file is None

    def __bool__(self) -> bool:
        return not self.closed

    @property
    def generation(self) -> int:
        """Counter that changes whenever the file is closed."""
        return self._generation

    @property
    def creation_properties(self) -> CreationProperties:
        return self._props

    @property
    def userblock_size(self) -> int:
        """Size of the reserved region at the beginning of the file in bytes."""
        return self.h5file.userblock_size

    @property
    def h5file(self) -> h5py.File:
        """The wrapped `h5py.File`."""
        self._expect_open()
        assert self._file is not None
        return self._file

    def _expect_open(self):
        if self._file is None:
            raise ClosedStorageError(f"{self._path}: storage file is not open!")

    def _expect_writable(self):
        self._expect_open()
        if self.mode == "r":
            raise ValueError(f"{self._path}: storage file is opened as read-only!")

    def close(self) -> None:
        """Close the file. Datasets of this file cannot be used afterwards."""
        if self._file is None:
            return
        self._file.close()
        self._file = None
        self._generation += 1
        logger.debug("closed %s", self._path)

    def flush(self) -> None:
        self.h5file.flush()

    def __enter__(self):
        return self

    def __exit__(self, ex_type, ex_value, ex_traceback):
        self.close()

    def __repr__(self):
        state = "closed" if self.closed else f"mode {self.mode}"
        return f"<StorageFile {self._path} ({state})>"

    # ---- structure ----

    def __contains__(self, path: str) -> bool:
        return path in self.h5file

    def unlink(self, path: str) -> None:
        """Remove the object at the given path from the hierarchy.

        The data is not erased from the file. To reclaim the space, the
        contents must be copied into a new file.
        """
        self._expect_writable()
        if path not in self.h5file:
            raise ObjectNotFoundError(f"{self._path}: no object at '{path}'")
        del self.h5file[path]
        logger.debug("%s: unlinked %s", self._path, path)

    def rename(self, src: str, dst: str) -> None:
        """Move the object at `src` to `dst`, creating missing groups on the way."""
        self._expect_writable()
        if src not in self.h5file:
            raise ObjectNotFoundError(f"{self._path}: no object at '{src}'")
        parent = posixpath.dirname(dst.rstrip("/"))
        if parent not in ("", "/"):
            self.h5file.require_group(parent)
        self.h5file.move(src, dst)
        logger.debug("%s: renamed %s -> %s", self._path, src, dst)

    # ---- user block ----

    def read_userblock(self) -> bytes:
        """Return the raw content of the user block."""
        size = self.userblock_size
        with open(self._path, "rb") as f:
            return f.read(size)

    def write_userblock(self, data: bytes) -> None:
        """Overwrite the user block with the given bytes (padded with NUL bytes)."""
        self._expect_writable()
        size = self.userblock_size
        if size == 0:
            raise ValueError(f"{self._path}: no user block reserved, can't write!")
        if len(data) > size:
            raise ValueError(f"{self._path}: {len(data)} bytes do not fit into user block of {size}")
        self.flush()
        with open(self._path, "r+b") as f:
            # HDF5 never touches the user block after creation
            f.seek(0)
            f.write(data)
            f.write(b"\x00" * (size - len(data)))

    # ---- datasets ----

    def dataset(self, path: str) -> Dataset:
        """Return dataset bound to an existing object in this file."""
        from .dataset import Dataset

        return Dataset(self, path)

    def create_dataset(
        self,
        path: str,
        type: TypeDescriptor,
        list: bool = True,
        compression: Optional[int] = None,
    ) -> Dataset:
        """Create a new dataset (or attach to a compatible existing one).

        See `Dataset.create`.
        """
        from .dataset import Dataset

        return Dataset.create(self, path, type, list=list, compression=compression)

    def index(self) -> Dict[str, Dataset]:
        """Return all datasets in this file by absolute path."""
        from .indexer import index

        return index(self)
