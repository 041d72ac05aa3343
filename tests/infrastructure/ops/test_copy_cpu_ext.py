import logging
import os
import unittest
from unittest import mock

import numpy as np

from stridecast.domain import (
    ALL_DTYPES,
    CopyPreconditionError,
    CopyType,
    Dtype,
    DtypeCategory,
    IndexWidth,
    MissingStorageError,
)
from stridecast.infrastructure._config import reload_config
from stridecast.infrastructure._dtypes import to_numpy_dtype
from stridecast.infrastructure.array import Array
from stridecast.infrastructure.ops.copy_cpu_ext import (
    CopyKernels,
    choose_copy_type,
    copy,
    copy_inplace,
    copy_inplace_strided,
    copy_strategies,
    copy_type_pairs,
)

EXT_LOGGER = "stridecast.infrastructure.ops.copy_cpu_ext"


def _as_comparable(x: np.ndarray) -> np.ndarray:
    return x if np.iscomplexobj(x) else x.astype(np.float32)


def _typed(values, dtype: Dtype) -> np.ndarray:
    return np.asarray(values, dtype=np.float32).astype(to_numpy_dtype(dtype))


def _reference_cast(x: np.ndarray, src: Dtype, dst: Dtype) -> np.ndarray:
    # complex sources keep their real part; 16-bit floats widen to float32 first
    if src.is_complex() and not dst.is_complex():
        x = x.real
    if src.is_reduced_precision() or dst.is_reduced_precision():
        x = x.astype(np.float32)
    return x.astype(to_numpy_dtype(dst))


class TestDispatchTables(unittest.TestCase):
    def test_every_type_pair_is_registered(self) -> None:
        states = copy_type_pairs.states()
        self.assertEqual(len(states), 169)
        # source is the outer level
        self.assertEqual([s for s, _ in states[:13]], [Dtype.bool_] * 13)
        self.assertEqual([d for _, d in states[:13]], list(ALL_DTYPES))

        for src in ALL_DTYPES:
            for dst in ALL_DTYPES:
                kernels = copy_type_pairs.resolve(src, dst)
                self.assertIsInstance(kernels, CopyKernels)
                self.assertEqual((kernels.src_dtype, kernels.dst_dtype), (src, dst))
                self.assertEqual(kernels.dst_np, to_numpy_dtype(dst))

    def test_every_strategy_is_registered(self) -> None:
        self.assertEqual(set(copy_strategies.states()), set(CopyType))

    def test_unknown_strategy_raises(self) -> None:
        src = Array.from_numpy(np.zeros(2, dtype=np.float32))
        dst = Array.from_numpy(np.zeros(2, dtype=np.float32))
        with self.assertRaises(NotImplementedError):
            copy_inplace(src, dst, "bogus")  # type: ignore[arg-type]


class TestAllPairsAllStrategies(unittest.TestCase):
    values = [[0, 1, 1], [0, 0, 1]]
    fractional = [[3.9, 7.5, 100.25], [-3.9, -7.5, 0.0]]

    def test_every_pair_under_every_strategy(self) -> None:
        for src_t in ALL_DTYPES:
            for dst_t in ALL_DTYPES:
                with self.subTest(src=src_t, dst=dst_t):
                    self._check_pair(src_t, dst_t)

    def test_every_pair_matches_target_conversion(self) -> None:
        for src_t in ALL_DTYPES:
            for dst_t in ALL_DTYPES:
                with self.subTest(src=src_t, dst=dst_t):
                    self._check_conversion(src_t, dst_t)

    def _check_pair(self, src_t: Dtype, dst_t: Dtype) -> None:
        expected = _as_comparable(_typed(self.values, dst_t))
        src = Array.from_numpy(_typed(self.values, src_t))

        # Vector into a fresh buffer
        out = Array((2, 3), dst_t)
        copy(src, out, CopyType.Vector)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected)

        # General from a transposed source
        out = Array((3, 2), dst_t)
        copy(src.transpose(), out, CopyType.General)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected.T)

        # GeneralGeneral into a transposed destination
        holder = Array.from_numpy(np.zeros((3, 2), dtype=to_numpy_dtype(dst_t)))
        out = holder.transpose()
        copy_inplace(src, out, CopyType.GeneralGeneral)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected)

        # Scalar from a broadcast single element
        one = Array.from_numpy(_typed([1], src_t)).broadcast_to((2, 3))
        out = Array((2, 3), dst_t)
        copy(one, out, CopyType.Scalar)
        np.testing.assert_array_equal(
            _as_comparable(out.to_numpy()), _as_comparable(_typed(np.ones((2, 3)), dst_t))
        )

    def _check_conversion(self, src_t: Dtype, dst_t: Dtype) -> None:
        signed = DtypeCategory.UNSIGNED not in (src_t.category, dst_t.category)
        rows = self.fractional if signed else self.fractional[:1]
        x = _typed(rows, src_t)
        expected = _as_comparable(_reference_cast(x, src_t, dst_t))
        src = Array.from_numpy(x)

        out = Array(src.shape, dst_t)
        copy(src, out, CopyType.Vector)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected)

        out = Array(src.shape[::-1], dst_t)
        copy(src.transpose(), out, CopyType.General)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected.T)

        holder = Array.from_numpy(np.zeros(src.shape[::-1], dtype=to_numpy_dtype(dst_t)))
        out = holder.transpose()
        copy_inplace(src, out, CopyType.GeneralGeneral)
        np.testing.assert_array_equal(_as_comparable(out.to_numpy()), expected)

        out = Array(src.shape, dst_t)
        copy(src.as_strided(src.shape, (0, 0)), out, CopyType.Scalar)
        np.testing.assert_array_equal(
            _as_comparable(out.to_numpy()), np.full(src.shape, expected[0, 0])
        )


class TestConversions(unittest.TestCase):
    def _convert(self, values: np.ndarray, dst_t: Dtype) -> np.ndarray:
        src = Array.from_numpy(values)
        out = Array(src.shape, dst_t)
        copy(src, out, CopyType.Vector)
        return out.to_numpy()

    def test_float_to_int_truncates(self) -> None:
        out = self._convert(np.array([3.9, -3.9], dtype=np.float32), Dtype.int32)
        np.testing.assert_array_equal(out, np.array([3, -3], dtype=np.int32))

    def test_bool_to_float(self) -> None:
        out = self._convert(np.array([True, False]), Dtype.float32)
        np.testing.assert_array_equal(out, np.array([1.0, 0.0], dtype=np.float32))

    def test_complex_to_real(self) -> None:
        out = self._convert(np.array([1.5 + 2.0j], dtype=np.complex64), Dtype.float32)
        np.testing.assert_array_equal(out, np.array([1.5], dtype=np.float32))

    def test_same_type_copy_is_bit_exact_for_every_type(self) -> None:
        rng = np.random.default_rng(0)
        for dtype in ALL_DTYPES:
            with self.subTest(dtype=dtype):
                np_dtype = to_numpy_dtype(dtype)
                if dtype is Dtype.bool_:
                    x = rng.integers(0, 2, size=(3, 4)).astype(np.bool_)
                else:
                    raw = rng.integers(0, 256, size=12 * np_dtype.itemsize, dtype=np.uint8)
                    x = raw.view(np_dtype).reshape(3, 4)
                src = Array.from_numpy(x)

                out = Array((3, 4), dtype)
                copy(src, out, CopyType.Vector)
                self.assertEqual(out.to_numpy().tobytes(), x.tobytes())

                out = Array((4, 3), dtype)
                copy(src.transpose(), out, CopyType.General)
                self.assertEqual(out.to_numpy().tobytes(), np.ascontiguousarray(x.T).tobytes())

                holder = Array.from_numpy(np.zeros((4, 3), dtype=np_dtype))
                out = holder.transpose()
                copy_inplace(src, out, CopyType.GeneralGeneral)
                self.assertEqual(out.to_numpy().tobytes(), x.tobytes())

                out = Array((3, 4), dtype)
                copy(src.as_strided((3, 4), (0, 0), offset=5), out, CopyType.Scalar)
                self.assertEqual(
                    out.to_numpy().tobytes(), np.full((3, 4), x.ravel()[5], dtype=np_dtype).tobytes()
                )

    def test_round_trip_is_bit_exact_for_every_strategy(self) -> None:
        rng = np.random.default_rng(0)
        bits = rng.integers(0, 2**32, size=(3, 4), dtype=np.uint64).astype(np.uint32)
        x = bits.view(np.float32)  # includes NaN payloads and denormals
        src = Array.from_numpy(x)

        for ctype in (CopyType.Vector, CopyType.General, CopyType.GeneralGeneral):
            out = Array((3, 4), Dtype.float32)
            copy(src, out, ctype)
            np.testing.assert_array_equal(out.to_numpy().view(np.uint32), bits)

        out = Array((4, 3), Dtype.float32)
        copy(src.transpose(), out, CopyType.General)
        np.testing.assert_array_equal(out.to_numpy().view(np.uint32), bits.T)

        scalar = src.as_strided((3, 4), (0, 0), offset=5)
        out = Array((3, 4), Dtype.float32)
        copy(scalar, out, CopyType.Scalar)
        np.testing.assert_array_equal(
            out.to_numpy().view(np.uint32), np.full((3, 4), bits.ravel()[5])
        )


class TestCopyProvisioning(unittest.TestCase):
    def test_broadcast_scalar(self) -> None:
        src = Array.from_numpy(np.array([5.0], dtype=np.float32)).broadcast_to((4, 4))
        self.assertIs(choose_copy_type(src), CopyType.Scalar)
        out = Array((4, 4), Dtype.int32)
        copy(src, out, CopyType.Scalar)
        self.assertTrue(out.flags.row_contiguous)
        self.assertEqual(out.storage.nbytes, 64)
        np.testing.assert_array_equal(out.to_numpy(), np.full((4, 4), 5, dtype=np.int32))

    def test_donation_reuses_source_storage(self) -> None:
        x = np.array([[1.5, 2.5, 3.5], [4.5, 5.5, 6.5]], dtype=np.float32)
        src = Array.from_numpy(x, donatable=True)
        out = Array((2, 3), Dtype.int32)
        copy(src, out, CopyType.Vector)

        self.assertIs(out.storage, src.storage)
        self.assertEqual(src.storage.refcount, 2)
        np.testing.assert_array_equal(out.to_numpy(), x.astype(np.int32))

    def test_non_donatable_gets_independent_storage(self) -> None:
        x = np.array([[1.5, 2.5, 3.5], [4.5, 5.5, 6.5]], dtype=np.float32)
        src = Array.from_numpy(x)
        out = Array((2, 3), Dtype.int32)
        copy(src, out, CopyType.Vector)

        self.assertIsNot(out.storage, src.storage)
        self.assertEqual(src.storage.refcount, 1)
        np.testing.assert_array_equal(out.to_numpy(), x.astype(np.int32))
        np.testing.assert_array_equal(src.to_numpy(), x)

    def test_donation_requires_equal_itemsize(self) -> None:
        src = Array.from_numpy(np.arange(4, dtype=np.float32), donatable=True)
        out = Array((4,), Dtype.int8)
        copy(src, out, CopyType.Vector)
        self.assertIsNot(out.storage, src.storage)
        self.assertEqual(out.storage.nbytes, 4)
        np.testing.assert_array_equal(out.to_numpy(), np.arange(4, dtype=np.int8))

    def test_vector_mirrors_source_layout(self) -> None:
        x = np.arange(6, dtype=np.int16).reshape(2, 3)
        src = Array.from_numpy(x).transpose()
        out = Array((3, 2), Dtype.float32)
        copy(src, out, CopyType.Vector)
        self.assertEqual(out.strides, src.strides)
        self.assertTrue(out.flags.col_contiguous)
        self.assertEqual(out.storage.nbytes, 24)
        np.testing.assert_array_equal(out.to_numpy(), x.T.astype(np.float32))

    def test_general_general_is_downgraded_after_allocation(self) -> None:
        x = np.arange(12, dtype=np.uint8).reshape(3, 4)
        src = Array.from_numpy(x).transpose()
        out = Array((4, 3), Dtype.uint16)
        with self.assertLogs(EXT_LOGGER, logging.DEBUG) as logs:
            copy(src, out, CopyType.GeneralGeneral)
        self.assertTrue(out.flags.row_contiguous)
        self.assertTrue(any("copy General " in line for line in logs.output))
        np.testing.assert_array_equal(out.to_numpy(), x.T.astype(np.uint16))

    def test_end_to_end_contiguous_collapses_to_one_axis(self) -> None:
        x = np.arange(6, dtype=np.float32).reshape(2, 3) + 0.25
        src = Array.from_numpy(x)
        self.assertIs(choose_copy_type(src), CopyType.Vector)

        out = Array((2, 3), Dtype.int32)
        with self.assertLogs(EXT_LOGGER, logging.DEBUG) as logs:
            copy(src, out, CopyType.Vector)
        self.assertTrue(any("iterated=(6,)" in line for line in logs.output))
        np.testing.assert_array_equal(out.to_numpy(), x.astype(np.int32))

        out = Array((2, 3), Dtype.int32)
        with self.assertLogs(EXT_LOGGER, logging.DEBUG) as logs:
            copy(src, out, CopyType.General)
        self.assertTrue(any("iterated=(6,)" in line for line in logs.output))
        np.testing.assert_array_equal(out.to_numpy(), x.astype(np.int32))

    def test_astype_uses_the_engine(self) -> None:
        x = np.arange(24, dtype=np.int32).reshape(2, 3, 4)
        src = Array.from_numpy(x).transpose(2, 0, 1)
        out = src.astype(Dtype.bfloat16)
        self.assertIs(out.dtype, Dtype.bfloat16)
        np.testing.assert_array_equal(
            out.to_numpy().astype(np.float32), x.transpose(2, 0, 1).astype(np.float32)
        )


class TestCopyInplace(unittest.TestCase):
    def test_general_general_into_strided_slice(self) -> None:
        holder = Array.from_numpy(np.zeros((4, 6), dtype=np.int64))
        dst = holder.as_strided((2, 3), (12, 2), offset=1)  # rows 0,2 ; cols 1,3,5
        src = Array.from_numpy(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        copy_inplace(src, dst, CopyType.GeneralGeneral)

        expected = np.zeros((4, 6), dtype=np.int64)
        expected[::2, 1::2] = [[1, 2, 3], [4, 5, 6]]
        np.testing.assert_array_equal(holder.to_numpy(), expected)

    def test_negative_strides_read_reversed(self) -> None:
        x = np.arange(10, dtype=np.float32)
        src = Array.from_numpy(x).as_strided((5,), (-2,), offset=9)
        out = Array((5,), Dtype.float32)
        copy(src, out, choose_copy_type(src))
        np.testing.assert_array_equal(out.to_numpy(), x[::-2])

    def test_vector_copies_min_data_size(self) -> None:
        src = Array.from_numpy(np.arange(6, dtype=np.int32))
        dst = Array.from_numpy(np.full(4, -1, dtype=np.int32))
        copy_inplace(src, dst, CopyType.Vector)
        np.testing.assert_array_equal(dst.to_numpy(), [0, 1, 2, 3])

    def test_missing_storage(self) -> None:
        src = Array.from_numpy(np.zeros(2, dtype=np.float32))
        with self.assertRaises(MissingStorageError):
            copy_inplace(src, Array((2,), Dtype.float32), CopyType.Vector)
        with self.assertRaises(MissingStorageError):
            copy_inplace(Array((2,), Dtype.float32), src, CopyType.Vector)

    def test_index_width(self) -> None:
        x = np.arange(24, dtype=np.float32).reshape(4, 6)
        src = Array.from_numpy(x).transpose()
        for width in IndexWidth:
            out = Array((6, 4), Dtype.float32)
            copy(src, out, CopyType.General, index_width=width)
            np.testing.assert_array_equal(out.to_numpy(), x.T)

    def test_default_width_overflow_raises(self) -> None:
        src = Array.from_numpy(np.zeros(4, dtype=np.float32)).as_strided((2,), (2**31,))
        dst = Array.from_numpy(np.zeros(2, dtype=np.float32))
        with self.assertRaises(OverflowError):
            copy_inplace(src, dst, CopyType.General, index_width=IndexWidth.DEFAULT)


class TestCopyInplaceStrided(unittest.TestCase):
    def setUp(self) -> None:
        self.x = np.arange(20, dtype=np.int32)
        self.src = Array.from_numpy(self.x)

    def test_general_honors_both_offsets(self) -> None:
        dst = Array.from_numpy(np.zeros(10, dtype=np.float32))
        copy_inplace_strided(
            self.src, dst, (2, 3), (5, 2), (0, 0), 1, 4, CopyType.General
        )
        expected = np.zeros(10, dtype=np.float32)
        expected[4:10] = [1, 3, 5, 6, 8, 10]
        np.testing.assert_array_equal(dst.to_numpy(), expected)

    def test_general_general_with_explicit_layout(self) -> None:
        dst = Array.from_numpy(np.zeros(12, dtype=np.int32))
        copy_inplace_strided(
            self.src, dst, (2, 3), (5, 2), (1, 2), 1, 5, CopyType.GeneralGeneral
        )
        expected = np.zeros(12, dtype=np.int32)
        # dst index 5 + i + 2j  <-  src index 1 + 5i + 2j
        for i in range(2):
            for j in range(3):
                expected[5 + i + 2 * j] = 1 + 5 * i + 2 * j
        np.testing.assert_array_equal(dst.to_numpy(), expected)

    def test_scalar_and_vector_ignore_explicit_layout(self) -> None:
        dst = Array.from_numpy(np.zeros(20, dtype=np.int32))
        copy_inplace_strided(self.src, dst, (2,), (7,), (3,), 4, 4, CopyType.Vector)
        np.testing.assert_array_equal(dst.to_numpy(), self.x)

        dst = Array.from_numpy(np.full(3, -1, dtype=np.int32))
        copy_inplace_strided(self.src, dst, (2,), (7,), (3,), 4, 4, CopyType.Scalar)
        np.testing.assert_array_equal(dst.to_numpy(), [0, 0, 0])


class TestDebugChecks(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {"STRIDECAST_DEBUG_CHECKS": "1"})
        self.addCleanup(reload_config)
        patcher.start()
        self.addCleanup(patcher.stop)
        reload_config()

    def test_out_of_bounds_source_is_rejected(self) -> None:
        src = Array.from_numpy(np.zeros(4, dtype=np.float32)).as_strided((3,), (2,))
        dst = Array.from_numpy(np.zeros(3, dtype=np.float32))
        with self.assertRaises(CopyPreconditionError) as ctx:
            copy_inplace(src, dst, CopyType.General)
        self.assertIn("source", ctx.exception.reason)

    def test_out_of_bounds_destination_is_rejected(self) -> None:
        src = Array.from_numpy(np.zeros(4, dtype=np.float32))
        dst = Array.from_numpy(np.zeros(4, dtype=np.float32))
        with self.assertRaises(CopyPreconditionError):
            copy_inplace_strided(src, dst, (4,), (1,), (2,), 0, 0, CopyType.GeneralGeneral)
        with self.assertRaises(CopyPreconditionError):
            copy_inplace_strided(src, dst, (4,), (1,), (1,), 0, 1, CopyType.General)

    def test_rank_mismatch_is_rejected(self) -> None:
        src = Array.from_numpy(np.zeros(4, dtype=np.float32))
        dst = Array.from_numpy(np.zeros(4, dtype=np.float32))
        with self.assertRaises(CopyPreconditionError):
            copy_inplace_strided(src, dst, (2, 2), (1,), (2, 1), 0, 0, CopyType.General)

    def test_valid_copies_pass(self) -> None:
        x = np.arange(6, dtype=np.float32).reshape(2, 3)
        src = Array.from_numpy(x).transpose()
        out = Array((3, 2), Dtype.float32)
        copy(src, out, CopyType.General)
        np.testing.assert_array_equal(out.to_numpy(), x.T)

        empty = Array.from_numpy(np.zeros((0, 3), dtype=np.float32))
        out = Array((0, 3), Dtype.int8)
        copy(empty, out, CopyType.General)
        self.assertEqual(out.to_numpy().shape, (0, 3))


class TestChooseCopyType(unittest.TestCase):
    def setUp(self) -> None:
        self.x = Array.from_numpy(np.arange(12, dtype=np.float32).reshape(3, 4))

    def test_fresh_destination(self) -> None:
        self.assertIs(choose_copy_type(self.x), CopyType.Vector)
        self.assertIs(choose_copy_type(self.x.transpose()), CopyType.Vector)
        self.assertIs(
            choose_copy_type(self.x.as_strided((3, 2), (4, 2))), CopyType.General
        )
        self.assertIs(
            choose_copy_type(self.x.as_strided((5,), (0,), offset=3)), CopyType.Scalar
        )

    def test_existing_destination(self) -> None:
        row = Array.from_numpy(np.zeros((3, 4), dtype=np.int32))
        col = Array.from_numpy(np.zeros((4, 3), dtype=np.int32)).transpose()
        self.assertIs(choose_copy_type(self.x, row), CopyType.Vector)
        self.assertIs(choose_copy_type(self.x.transpose(), Array((4, 3), Dtype.int32)), CopyType.General)
        self.assertIs(choose_copy_type(self.x, col), CopyType.GeneralGeneral)


if __name__ == "__main__":
    unittest.main()
