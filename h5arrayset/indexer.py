"""Discovery of all datasets contained in a storage file."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict

import h5py

from .dataset import Dataset
from .errors import UnsupportedTypeError

if TYPE_CHECKING:
    from .storage import StorageFile

logger = logging.getLogger(__name__)


def index(file: StorageFile) -> Dict[str, Dataset]:
    """Return mapping from absolute path to dataset, for all datasets in the file.

    The hierarchy is traversed depth-first. Datasets that can not be
    represented (e.g. strings or compound types) are skipped.
    """
    ret: Dict[str, Dataset] = {}

    def add_dataset(_, node):
        if not isinstance(node, h5py.Dataset):
            return
        try:
            ret[node.name] = Dataset(file, node.name)
        except UnsupportedTypeError as e:
            logger.debug("%s: skipping %s: %s", file.filename, node.name, e)

    file.h5file.visititems(add_dataset)
    return ret
