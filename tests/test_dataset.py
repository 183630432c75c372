"""Test typed dataset access."""
import h5py
import numpy as np
import pytest

from h5arrayset import Dataset, StorageFile
from h5arrayset.errors import (
    ClosedStorageError,
    DatasetIndexError,
    IncompatibleTypeError,
    NotExtensibleError,
    ObjectNotFoundError,
    UnsupportedTypeError,
)
from h5arrayset.types import ElementType, TypeDescriptor

F64 = TypeDescriptor.scalar("float64")


def test_scalar_list_scenario(storage):
    ds = storage.create_dataset("values", F64)
    assert ds.size() == 0
    ds.add(3.14)
    ds.add(2.71)
    assert ds.size() == 2
    assert len(ds) == 2
    assert ds.read(0) == 3.14
    assert ds.read(1) == 2.71
    ds.replace(0, 9.0)
    assert ds.read(0) == 9.0
    assert ds.read(1) == 2.71


def test_extend_then_read_last(storage):
    ds = storage.create_dataset("values", F64)
    for i in range(5):
        ds.extend(F64, np.array([i * 0.5]))
        assert ds.size() == i + 1
        assert ds.read(ds.size() - 1) == i * 0.5


def test_create_list_layout(storage):
    t = TypeDescriptor(ElementType.int32, (2, 3))
    ds = storage.create_dataset("grp/arrays", t)
    node = storage.h5file["grp/arrays"]
    assert node.shape == (0, 2, 3)
    assert node.maxshape == (None, 2, 3)
    assert node.chunks == (1, 2, 3)
    assert ds.path == "/grp/arrays"
    assert ds.type == t
    assert ds.extensible
    assert ds.native_type is None  # no items yet
    assert [r.type for r in ds.representations] == [t]


def test_create_fixed_layout(storage, matrix):
    t = TypeDescriptor.from_array(matrix)
    ds = storage.create_dataset("fixed", t, list=False)
    assert storage.h5file["fixed"].shape == (2, 2)
    assert len(ds.representations) == 1
    assert ds.size() == 1
    assert not ds.extensible
    assert ds.native_type == t

    ds.replace_array(matrix)
    assert np.array_equal(ds.read_array(), matrix)

    with pytest.raises(NotExtensibleError):
        ds.add_array(matrix)
    assert ds.size() == 1


def test_fixed_scalar_not_extensible(storage):
    ds = storage.create_dataset("one", F64, list=False)
    ds.replace(1.5)
    assert ds.read() == 1.5
    with pytest.raises(NotExtensibleError):
        ds.add(2.5)
    assert ds.size() == 1


def test_array_list(storage, matrix):
    t = TypeDescriptor.from_array(matrix)
    ds = storage.create_dataset("arrays", t)
    ds.add_array(matrix)
    ds.add_array(matrix * 2)
    ds.add_array(matrix * 3)
    assert ds.size() == 3
    assert ds.size(t) == 3
    whole = TypeDescriptor(ElementType.float64, (3, 2, 2))
    assert ds.size(whole) == 1
    assert ds.native_type == whole

    assert np.array_equal(ds.read_array(1), matrix * 2)
    # read everything at once
    assert np.array_equal(ds.read_array(ndim=3), np.stack([matrix, matrix * 2, matrix * 3]))

    out = np.empty((2, 2))
    assert ds.read_array(2, out=out) is out
    assert np.array_equal(out, matrix * 3)


def test_replace_only_touches_target(storage, matrix):
    ds = storage.create_dataset("arrays", TypeDescriptor.from_array(matrix))
    for i in range(3):
        ds.add_array(matrix + i)
    ds.replace_array(1, -matrix)
    assert np.array_equal(ds.read_array(0), matrix)
    assert np.array_equal(ds.read_array(1), -matrix)
    assert np.array_equal(ds.read_array(2), matrix + 2)


def test_replace_out_of_range(storage):
    ds = storage.create_dataset("values", F64)
    ds.add(1.0)
    with pytest.raises(DatasetIndexError):
        ds.replace(1, 2.0)
    with pytest.raises(IndexError):
        ds.write(5, F64, np.array([2.0]))
    with pytest.raises(DatasetIndexError):
        ds.read(1)
    with pytest.raises(DatasetIndexError):
        ds.read(-1)
    assert ds.size() == 1
    assert ds.read(0) == 1.0


def test_no_type_coercion(storage):
    ds = storage.create_dataset("values", F64)
    with pytest.raises(IncompatibleTypeError):
        ds.add(np.float32(1.0))
    with pytest.raises(IncompatibleTypeError):
        ds.add(1)  # integer
    ds.add(1.0)
    with pytest.raises(IncompatibleTypeError):
        ds.read(0, ElementType.float32)
    with pytest.raises(TypeError):
        ds.read_into(0, F64, np.empty(1, dtype=np.float32))
    with pytest.raises(IncompatibleTypeError):
        ds.add_array(np.zeros(2))
    assert ds.size() == 1


def test_size_of_unknown_type(storage):
    ds = storage.create_dataset("values", F64)
    with pytest.raises(IncompatibleTypeError):
        ds.size(TypeDescriptor.scalar("int8"))


def test_select(storage, matrix):
    t = TypeDescriptor.from_array(matrix)
    ds = storage.create_dataset("arrays", t)
    ds.add_array(matrix)
    ds.add_array(matrix)

    sel = ds.select(1, t)
    assert sel.index == 1
    assert sel.representation.type == t
    assert sel.hyperslab == (slice(1, 2), slice(0, 2), slice(0, 2))

    whole = TypeDescriptor(ElementType.float64, (2, 2, 2))
    assert ds.select(0, whole).hyperslab == (slice(0, 2), slice(0, 2), slice(0, 2))
    with pytest.raises(DatasetIndexError):
        ds.select(1, whole)
    with pytest.raises(IncompatibleTypeError):
        ds.select(0, TypeDescriptor(ElementType.float64, (2,)))


def test_read_into_checks_buffer(storage, matrix):
    t = TypeDescriptor.from_array(matrix)
    ds = storage.create_dataset("arrays", t)
    ds.add_array(matrix)
    with pytest.raises(TypeError):
        ds.read_into(0, t, [[0, 0], [0, 0]])  # type: ignore
    with pytest.raises(ValueError):
        ds.read_into(0, t, np.empty((2, 2), order="F"))
    ro = np.empty((2, 2))
    ro.flags.writeable = False
    with pytest.raises(ValueError):
        ds.read_into(0, t, ro)


def test_non_contiguous_write(storage):
    data = np.arange(16, dtype=np.float64).reshape(4, 4)
    view = data[::2, ::2]
    ds = storage.create_dataset("arrays", TypeDescriptor.from_array(view))
    ds.add_array(view)
    ds.replace_array(0, view.T)
    assert np.array_equal(ds.read_array(0), view.T)


def test_attach_existing(storage, matrix):
    t = TypeDescriptor.from_array(matrix)
    ds = storage.create_dataset("arrays", t)
    ds.add_array(matrix)

    # compatible: attach to the existing object
    again = storage.create_dataset("arrays", t)
    assert again.size() == 1
    again.add_array(matrix)
    assert Dataset(storage, "arrays").size() == 2

    # incompatible: fail without changes
    with pytest.raises(IncompatibleTypeError):
        storage.create_dataset("arrays", TypeDescriptor(ElementType.int64, (2, 2)))
    with pytest.raises(IncompatibleTypeError):
        storage.create_dataset("arrays", TypeDescriptor(ElementType.float64, (3, 3)))
    assert storage.h5file["arrays"].shape == (2, 2, 2)


def test_attach_missing(storage):
    with pytest.raises(ObjectNotFoundError):
        Dataset(storage, "missing")
    storage.h5file.create_group("grp")
    with pytest.raises(UnsupportedTypeError):
        Dataset(storage, "grp")


def test_introspect_1d(storage):
    storage.h5file["plain"] = np.arange(5, dtype=np.int16)
    ds = Dataset(storage, "plain")
    scalar = TypeDescriptor.scalar("int16")
    assert [(r.type, r.count, r.extensible) for r in ds.representations] == [
        (scalar, 5, False),
        (TypeDescriptor(ElementType.int16, (5,)), 1, False),
    ]
    assert ds.read(3) == 3
    with pytest.raises(NotExtensibleError):
        ds.add(np.int16(5))


def test_introspect_growable_1d(storage):
    storage.h5file.create_dataset("grow", shape=(2,), maxshape=(None,), dtype="uint8")
    ds = Dataset(storage, "grow")
    assert ds.extensible
    ds.add(np.uint8(7))
    assert ds.size() == 3
    assert ds.read(2) == 7
    assert storage.h5file["grow"].shape == (3,)


def test_introspect_scalar_dataspace(storage):
    storage.h5file["answer"] = np.int64(42)
    ds = Dataset(storage, "answer")
    assert ds.type == TypeDescriptor.scalar("int64")
    assert ds.size() == 1
    assert ds.read() == 42
    ds.replace(np.int64(43))
    assert storage.h5file["answer"][()] == 43


def test_introspect_big_endian(storage):
    storage.h5file["be"] = np.array([1.5, 2.5], dtype=">f8")
    ds = Dataset(storage, "be")
    assert ds.type == F64
    assert ds.read(1) == 2.5


def test_introspect_unsupported(storage):
    storage.h5file["text"] = "hello"
    with pytest.raises(UnsupportedTypeError):
        Dataset(storage, "text")
    storage.h5file.create_dataset("empty", data=h5py.Empty("f8"))
    with pytest.raises(UnsupportedTypeError):
        Dataset(storage, "empty")


def test_compression(tmp_h5_path, matrix):
    with StorageFile(tmp_h5_path, "w", compression=4) as f:
        ds = f.create_dataset("arrays", TypeDescriptor.from_array(matrix))
        ds.add_array(matrix)
        assert f.h5file["arrays"].compression == "gzip"
        assert f.h5file["arrays"].compression_opts == 4

        f.create_dataset("raw", TypeDescriptor.from_array(matrix), compression=0)
        assert f.h5file["raw"].compression is None

        with pytest.raises(ValueError):
            f.create_dataset("bad", TypeDescriptor.from_array(matrix), compression=10)


def test_persistence(tmp_h5_path, matrix):
    with StorageFile(tmp_h5_path, "w") as f:
        ds = f.create_dataset("a/b/values", F64)
        ds.add(1.0)
        ds.add(2.0)
    with StorageFile(tmp_h5_path, "r") as f:
        ds = Dataset(f, "/a/b/values")
        assert ds.size() == 2
        assert ds.read(1) == 2.0
        with pytest.raises(ValueError):  # read-only
            ds.add(3.0)
        with pytest.raises(ValueError):
            ds.replace(0, 3.0)
    with StorageFile(tmp_h5_path, "r+") as f:
        ds = Dataset(f, "/a/b/values")
        ds.add(3.0)
        assert ds.size() == 3


def test_use_after_close(tmp_h5_path):
    f = StorageFile(tmp_h5_path, "w")
    ds = f.create_dataset("values", F64)
    ds.add(1.0)
    f.close()
    with pytest.raises(ClosedStorageError):
        ds.read(0)
    with pytest.raises(ClosedStorageError):
        ds.add(2.0)
    with pytest.raises(ClosedStorageError):
        ds.select(0, F64)


def test_unlinked_dataset(storage):
    ds = storage.create_dataset("values", F64)
    ds.add(1.0)
    storage.unlink("values")
    with pytest.raises(ObjectNotFoundError):
        ds.read(0)


def test_replaced_object_is_not_written(storage):
    ds = storage.create_dataset("values", F64)
    ds.add(1.0)
    ds.add(2.0)
    storage.unlink("values")
    storage.h5file.create_dataset("values", data=np.zeros((2, 1), dtype=np.int8))
    with pytest.raises(ObjectNotFoundError):
        ds.replace(0, 9.75)
    with pytest.raises(ObjectNotFoundError):
        ds.add(3.0)
    with pytest.raises(ObjectNotFoundError):
        ds.read(0)
    assert np.array_equal(storage.h5file["values"][()], np.zeros((2, 1), dtype=np.int8))
    # a fresh binding sees the new object
    assert Dataset(storage, "values").type == TypeDescriptor.scalar("int8")


def test_renamed_object_is_not_followed(storage):
    ds = storage.create_dataset("values", F64)
    ds.add(1.0)
    storage.rename("values", "moved/values")
    with pytest.raises(ObjectNotFoundError):
        ds.read(0)
    assert Dataset(storage, "moved/values").read(0) == 1.0
