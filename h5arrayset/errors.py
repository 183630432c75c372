"""Exceptions raised by h5arrayset.

Every exception derives from the matching builtin exception, so callers that
do not care about the details can just catch `TypeError`, `IndexError`,
`KeyError`, `ValueError` or `OSError`.
"""


class H5ArraysetError(Exception):
    """Common base class of all errors raised by this package."""


class IncompatibleTypeError(H5ArraysetError, TypeError):
    """Requested element type or shape does not match the stored one."""


class UnsupportedTypeError(IncompatibleTypeError):
    """Element type or dimensionality that cannot be represented at all."""


class InvalidRankError(H5ArraysetError, ValueError):
    """Shape with more dimensions than supported (or none at all)."""


class DatasetIndexError(H5ArraysetError, IndexError):
    """Position beyond the current number of objects in a dataset."""


class ArrayIdError(H5ArraysetError, IndexError):
    """Array id not present in an array set."""


class DuplicateIdError(H5ArraysetError, ValueError):
    """Array id already taken in an array set."""


class NotExtensibleError(H5ArraysetError, ValueError):
    """Append requested on a dataset that was not created as a list."""


class ObjectNotFoundError(H5ArraysetError, KeyError):
    """No object at the given path inside a container."""


class ClosedStorageError(H5ArraysetError, ValueError):
    """Storage file was closed, objects bound to it cannot be used anymore."""


class StorageIOError(H5ArraysetError, OSError):
    """Container file could not be opened or created."""


class StorageNotFoundError(StorageIOError, FileNotFoundError):
    """Container file does not exist."""


class StorageExistsError(StorageIOError, FileExistsError):
    """Container file exists, but exclusive creation was requested."""
