"""Sums, means, deviations and normalisation over point blocks."""

from __future__ import annotations

import numpy as np

from scenegraph.memory import DataType, MemoryBlock


def _as_block(data) -> MemoryBlock:
    if isinstance(data, MemoryBlock):
        return data
    array = np.asarray(data)
    if array.dtype.kind == "f" and array.dtype != np.float32:
        array = array.astype(np.float32)
    elif array.dtype.kind in "iu" and array.dtype not in (np.int32, np.int64):
        array = array.astype(np.int64)
    return MemoryBlock.wrap(array)


def _gather(block: MemoryBlock, size: int, stride: int, dim: int) -> np.ndarray:
    flat = block.array.reshape(-1)
    index = np.arange(size)[:, None] * stride + np.arange(dim)[None, :]
    if index.size and int(index.max()) >= flat.size:
        raise IndexError("out of range.")
    return flat[index]


def _result(values: np.ndarray, dtype: DataType) -> MemoryBlock:
    out = MemoryBlock(dtype, values.shape[0])
    out.array[:] = values
    return out


def block_sum(data, size: int, stride: int, dim: int) -> MemoryBlock:
    """Sum the first ``dim`` values of each of ``size`` records ``stride`` apart."""
    block = _as_block(data)
    values = _gather(block, size, stride, dim)
    return _result(values.sum(axis=0, dtype=np.float64), block.dtype)


def block_mean(data, size: int, stride: int, dim: int) -> MemoryBlock:
    """Mean of the first ``dim`` values of each of ``size`` records."""
    total = block_sum(data, size, stride, dim)
    with np.errstate(divide="ignore", invalid="ignore"):
        total.array[:] = total.array / size
    return total


def mean(points, dim: int = 3) -> MemoryBlock:
    """Column means of the first ``dim`` columns of a two-dimensional block."""
    block = _as_block(points)
    if block.ndim != 2:
        raise ValueError("mean needs a two-dimensional block")
    rows, cols = block.shape
    return block_mean(block, rows, cols, dim)


def stddev(data, size: int, stride: int, dim: int) -> MemoryBlock:
    """Population standard deviation of the first ``dim`` values of each record."""
    block = _as_block(data)
    centre = block_mean(block, size, stride, dim).array.astype(np.float64)
    values = _gather(block, size, stride, dim).astype(np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        variance = ((values - centre) ** 2).sum(axis=0) / size
    return _result(np.sqrt(variance), block.dtype)


def points_stddev(points) -> np.ndarray:
    """Population standard deviation per axis of an (N, 3) point array."""
    array = np.asarray(points, dtype=np.float32)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError("points must have shape (N, 3)")
    with np.errstate(divide="ignore", invalid="ignore"):
        return array.astype(np.float64).std(axis=0).astype(np.float32)


def normalize(points, dim: int = 3) -> None:
    """Centre the first ``dim`` columns in place and scale them into the unit ball."""
    block = _as_block(points)
    if block.ndim != 2:
        raise ValueError("normalize needs a two-dimensional block")
    centre = mean(block, dim).array
    columns = block.array[:, :dim]
    columns -= centre
    squared = (columns.astype(np.float64) ** 2).sum(axis=1)
    max_dist = np.sqrt(squared.max()) if squared.size else 0.0
    with np.errstate(divide="ignore", invalid="ignore"):
        columns /= np.float32(max_dist)