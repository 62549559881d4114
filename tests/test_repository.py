"""Tests for the matrix repository and the decomposition cache."""
import threading

import numpy as np
import pytest

from ccamec.errors import (CapacityError, DegenerateInputError,
                           DimensionMismatchError, ErrorKind, NotFoundError)
from ccamec.repository import (MatrixDescriptor, MatrixRepository,
                               as_descriptor)


class TestAllocateFetch:

    def test_roundtrip(self, repository, rng):
        M = rng.standard_normal((7, 3))
        handle = repository.allocate(M)
        np.testing.assert_allclose(repository.fetch(handle), M)

    def test_flat_buffer_is_row_major(self, repository):
        handle = repository.allocate([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], rows=2, cols=3)
        np.testing.assert_array_equal(repository.fetch(handle), [[1, 2, 3], [4, 5, 6]])

    def test_buffer_size_mismatch(self, repository):
        with pytest.raises(DimensionMismatchError):
            repository.allocate([1.0, 2.0, 3.0], rows=2, cols=2)

    def test_allocation_copies_caller_data(self, repository):
        M = np.ones((3, 2))
        handle = repository.allocate(M)
        M[:] = 5.0
        np.testing.assert_array_equal(repository.fetch(handle), np.ones((3, 2)))

    def test_fetch_returns_copy(self, repository):
        handle = repository.allocate(np.zeros((2, 2)))
        repository.fetch(handle)[0, 0] = 9.0
        assert repository.fetch(handle)[0, 0] == 0.0

    def test_fetch_missing(self, repository):
        with pytest.raises(NotFoundError) as info:
            repository.fetch(12)
        assert info.value.kind is ErrorKind.NOT_FOUND
        assert isinstance(info.value, KeyError)
        assert "12" in str(info.value)

    def test_non_finite_rejected(self, repository):
        with pytest.raises(DegenerateInputError):
            repository.allocate(np.array([[1.0, np.nan]]))
        assert len(repository) == 0

    def test_allocate_rejects_stored_descriptor(self, repository):
        with pytest.raises(TypeError):
            repository.allocate(MatrixDescriptor.stored(3))


class TestHandleLifecycle:

    def test_handles_increase_from_one(self, repository):
        handles = [repository.allocate(np.eye(2)) for _ in range(3)]
        assert handles == [1, 2, 3]
        assert repository.handles() == [1, 2, 3]

    def test_delete_is_idempotent(self, repository):
        handle = repository.allocate(np.eye(2))
        repository.delete(handle)
        repository.delete(handle)
        repository.delete(999)
        assert handle not in repository

    def test_ids_not_reused_within_epoch(self, repository):
        first = repository.allocate(np.eye(2))
        repository.delete(first)
        assert repository.allocate(np.eye(2)) == first + 1

    def test_clear_restarts_numbering(self, repository):
        start = repository.allocate(np.eye(2))
        repository.allocate(np.eye(2))
        repository.clear()
        assert len(repository) == 0
        assert repository.allocate(np.eye(2)) == start

    def test_wraparound_skips_live_ids(self):
        repo = MatrixRepository(max_handle=3)
        assert [repo.allocate(np.eye(1)) for _ in range(3)] == [1, 2, 3]
        repo.delete(2)
        assert repo.allocate(np.eye(1)) == 2

    def test_full_repository(self):
        repo = MatrixRepository(max_handle=2)
        repo.allocate(np.eye(1))
        repo.allocate(np.eye(1))
        with pytest.raises(CapacityError):
            repo.allocate(np.eye(1))

    def test_concurrent_allocations_are_unique(self, repository):
        results = [[] for _ in range(8)]

        def worker(out):
            for _ in range(50):
                out.append(repository.allocate(np.ones((2, 2))))

        threads = [threading.Thread(target=worker, args=(out,)) for out in results]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        flat = [h for out in results for h in out]
        assert len(set(flat)) == 400
        assert 0 not in flat
        for out in results:
            assert out == sorted(out)


class TestDecompositionCache:

    def test_put_get(self, repository):
        handle = repository.allocate(np.eye(3))
        assert repository.cache.get(handle) is None
        assert repository.cache.put(handle, np.eye(3))
        assert handle in repository.cache
        np.testing.assert_array_equal(repository.cache.get(handle), np.eye(3))

    def test_put_for_absent_handle_is_dropped(self, repository):
        assert not repository.cache.put(5, np.eye(2))
        assert len(repository.cache) == 0

    def test_delete_invalidates(self, repository):
        handle = repository.allocate(np.eye(3))
        repository.cache.put(handle, np.eye(3))
        repository.delete(handle)
        assert handle not in repository.cache
        assert len(repository.cache) == 0

    def test_clear_invalidates(self, repository):
        for _ in range(3):
            h = repository.allocate(np.eye(2))
            repository.cache.put(h, np.eye(2))
        repository.clear()
        assert len(repository.cache) == 0

    def test_stale_write_after_clear_is_dropped(self, repository):
        handle = repository.allocate(np.eye(2))
        _, serial = repository.fetch_tagged(handle)
        repository.clear()
        recycled = repository.allocate(np.ones((2, 2)))
        assert recycled == handle
        assert not repository.cache.put(handle, np.eye(2), serial)
        assert repository.cache.get(recycled) is None

    def test_cached_copy_is_private(self, repository):
        handle = repository.allocate(np.eye(2))
        q = np.eye(2)
        repository.cache.put(handle, q)
        q[0, 0] = 7.0
        repository.cache.get(handle)[1, 1] = 7.0
        np.testing.assert_array_equal(repository.cache.get(handle), np.eye(2))


class TestDescriptors:

    def test_inline_from_2d(self):
        d = MatrixDescriptor.inline(np.zeros((4, 3)))
        assert d.is_inline
        assert (d.rows, d.cols) == (4, 3)

    def test_inline_flat_needs_both_dims(self):
        with pytest.raises(DimensionMismatchError):
            MatrixDescriptor.inline([1.0, 2.0], rows=2)

    def test_inline_to_matrix_copies(self):
        data = np.arange(6, dtype=float)
        mat = MatrixDescriptor.inline(data, rows=3, cols=2).to_matrix()
        mat[:] = 0.0
        assert data[5] == 5.0

    def test_stored_rejects_reserved_handle(self):
        with pytest.raises(NotFoundError):
            MatrixDescriptor.stored(0)

    def test_stored_rejects_bool(self):
        with pytest.raises(TypeError):
            MatrixDescriptor.stored(True)

    def test_as_descriptor(self):
        assert as_descriptor(4).handle == 4
        assert as_descriptor([1.0, 2.0, 3.0]).rows == 3
        d = MatrixDescriptor.stored(2)
        assert as_descriptor(d) is d

    def test_resolve_shape(self, repository):
        handle = repository.allocate(np.zeros((5, 2)))
        assert repository.resolve_shape(MatrixDescriptor.stored(handle)) == (5, 2)
        assert repository.resolve_shape(MatrixDescriptor.inline(np.zeros((3, 1)))) == (3, 1)
