import secrets
from pathlib import Path

import numpy as np
import pytest

from h5arrayset import StorageFile


@pytest.fixture(scope="session")
def h5_dir(tmpdir_factory):
    """Create a fresh temporary directory for files created in the tests."""
    return Path(tmpdir_factory.mktemp("h5arrayset_tests"))


@pytest.fixture
def tmp_h5_path_factory(h5_dir):
    """Return a file name generator to be used for creating storage files.

    All files will be cleaned up after completing the test.
    """
    paths = []

    def fresh_path() -> Path:
        path = h5_dir / f"{secrets.token_hex(4)}.h5"
        paths.append(path)
        return path

    yield fresh_path

    # clean up
    for path in paths:
        if path.is_file():
            path.unlink()


@pytest.fixture
def tmp_h5_path(tmp_h5_path_factory):
    """Generate a file name to be used for a storage file."""
    return tmp_h5_path_factory()


@pytest.fixture
def storage(tmp_h5_path):
    """Writable storage file, closed after the test."""
    with StorageFile(tmp_h5_path, "w") as f:
        yield f


@pytest.fixture
def matrix():
    return np.arange(4, dtype=np.float64).reshape(2, 2)
