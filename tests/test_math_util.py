import numpy as np
import pytest

from scenegraph.math_util import (
    block_mean,
    block_sum,
    mean,
    normalize,
    points_stddev,
    stddev,
)
from scenegraph.memory import DataType, MemoryBlock


def _block(rows):
    return MemoryBlock.wrap(np.array(rows, dtype=np.float32))


def test_block_sum_of_single_record_is_that_record():
    data = _block([4.0, 5.0, 6.0, 9.0])
    result = block_sum(data, 1, 4, 3)
    assert result.array.tolist() == [4.0, 5.0, 6.0]
    assert result.dtype is DataType.FLOAT


def test_block_mean_is_sum_over_size():
    data = _block(np.arange(12, dtype=np.float32))
    total = block_sum(data, 4, 3, 3).array
    avg = block_mean(data, 4, 3, 3).array
    np.testing.assert_allclose(avg * 4, total)


def test_mean_of_identical_rows():
    points = _block([[1.0, 2.0, 3.0, 8.0]] * 5)
    assert mean(points, 3).array.tolist() == [1.0, 2.0, 3.0]


def test_mean_respects_dim():
    points = _block([[1.0, 2.0, 3.0], [3.0, 2.0, 1.0]])
    assert len(mean(points, 2)) == 2


def test_stddev_of_constant_records_is_zero():
    data = _block([[2.0, 4.0, 6.0]] * 4)
    assert stddev(data, 4, 3, 3).array.tolist() == [0.0, 0.0, 0.0]


def test_stddev_two_points():
    data = _block([[0.0, 0.0, 0.0], [2.0, 4.0, 0.0]])
    np.testing.assert_allclose(stddev(data, 2, 3, 3).array, [1.0, 2.0, 0.0])


def test_stddev_out_of_range():
    data = _block([1.0, 2.0, 3.0])
    with pytest.raises(IndexError):
        stddev(data, 2, 3, 3)


def test_points_stddev_agrees_with_stddev():
    rng = np.random.default_rng(3)
    pts = rng.normal(size=(20, 3)).astype(np.float32)
    block = MemoryBlock.wrap(pts.copy())
    np.testing.assert_allclose(
        points_stddev(pts), stddev(block, 20, 3, 3).array, rtol=1e-5
    )


def test_points_stddev_shape_check():
    with pytest.raises(ValueError):
        points_stddev(np.zeros((4, 2)))


def test_normalize_centres_and_scales():
    rng = np.random.default_rng(7)
    block = MemoryBlock.wrap(rng.normal(size=(30, 3)).astype(np.float32) * 10 + 5)
    normalize(block, 3)
    np.testing.assert_allclose(block.array.mean(axis=0), 0.0, atol=1e-5)
    norms = np.linalg.norm(block.array, axis=1)
    assert norms.max() == pytest.approx(1.0, rel=1e-5)


def test_normalize_leaves_extra_columns():
    block = _block([[0.0, 0.0, 0.0, 9.0], [2.0, 0.0, 0.0, 9.0]])
    normalize(block, 3)
    assert block.array[:, 3].tolist() == [9.0, 9.0]
    assert block.array[:, 0].tolist() == [-1.0, 1.0]