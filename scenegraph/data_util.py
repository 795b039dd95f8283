"""Geometric descriptors and gather/scatter helpers for graph network inputs."""

from __future__ import annotations

import enum
from typing import Optional

import numpy as np

from scenegraph import math_util
from scenegraph.memory import DataType, MemoryBlock


class AggrMode(enum.IntEnum):
    """How values sent to the same index are combined."""

    ADD = 0
    MAX = 1
    MEAN = 2


def _values(data) -> np.ndarray:
    if isinstance(data, MemoryBlock):
        return data.array
    return np.asarray(data)


def _points(points) -> np.ndarray:
    array = _values(points)
    if array.ndim != 2 or array.shape[1] < 3:
        raise ValueError("points must be a two-dimensional block with at least 3 columns")
    if array.shape[0] == 0:
        raise IndexError("exceed")
    return array


def _indices(edge, bound: int) -> np.ndarray:
    idx = np.asarray(edge, dtype=np.int64).reshape(-1)
    if idx.size and (idx.min() < 0 or idx.max() >= bound):
        raise IndexError("index out of range")
    return idx


def compute_bbox(points) -> np.ndarray:
    """Return ``[min_x, min_y, min_z, max_x, max_y, max_z]`` of the first three columns."""
    xyz = _points(points)[:, :3].astype(np.float32)
    return np.concatenate([xyz.min(axis=0), xyz.max(axis=0)])


def compute_dims(points) -> np.ndarray:
    """Extent of the bounding box along each axis."""
    bbox = compute_bbox(points)
    return bbox[3:] - bbox[:3]


def compute_descriptor(points) -> np.ndarray:
    """Eleven values: centroid, standard deviation, extent, volume and longest side."""
    array = _points(points).astype(np.float32)
    rows, cols = array.shape
    centre = math_util.mean(array, 3).array
    spread = math_util.stddev(array, rows, cols, 3).array
    dims = compute_dims(array)
    descriptor = np.zeros(11, dtype=np.float32)
    descriptor[0:3] = centre
    descriptor[3:6] = spread
    descriptor[6:9] = dims
    descriptor[9] = np.prod(dims, dtype=np.float32)
    descriptor[10] = dims.max()
    return descriptor


def collect(data, edge, stride: int = 1, num_edge: Optional[int] = None) -> np.ndarray:
    """Gather a record of ``stride`` values from ``data`` for each index in ``edge``."""
    flat = _values(data).reshape(-1)
    idx = np.asarray(edge, dtype=np.int64).reshape(-1)
    if num_edge is None:
        num_edge = idx.size
    if num_edge > idx.size:
        raise IndexError("not enough edge indices")
    idx = idx[:num_edge]
    positions = idx[:, None] * stride + np.arange(stride)[None, :]
    if positions.size and (positions.min() < 0 or positions.max() >= flat.size):
        raise IndexError("index out of range")
    return flat[positions].reshape(-1)


def collect_rows(data, edge) -> MemoryBlock:
    """Gather whole rows of a two-dimensional block."""
    array = _values(data)
    if array.ndim != 2:
        raise ValueError("collect_rows needs a two-dimensional block")
    idx = _indices(edge, array.shape[0])
    dtype = data.dtype if isinstance(data, MemoryBlock) else DataType.from_numpy(array.dtype)
    out = MemoryBlock(dtype, (idx.size, array.shape[1]))
    out.array[:] = array[idx]
    return out


def index_aggr(
    data, edge, stride: int, num_edge: int, num: int, mode: AggrMode = AggrMode.ADD
) -> np.ndarray:
    """Scatter ``num_edge`` records into ``num`` slots, combining them by ``mode``."""
    mode = AggrMode(mode)
    flat = _values(data).reshape(-1)
    if flat.size < num_edge * stride:
        raise IndexError("not enough data")
    records = flat[: num_edge * stride].reshape(num_edge, stride)
    targets = np.asarray(edge, dtype=np.int64).reshape(-1)
    if targets.size < num_edge:
        raise IndexError("not enough edge indices")
    out = np.zeros((num, stride), dtype=records.dtype)
    counts: dict[int, int] = {}
    for record, target in zip(records, targets[:num_edge].tolist()):
        if not 0 <= target < num:
            raise IndexError("index out of range")
        seen = counts.get(target, 0)
        if seen == 0:
            out[target] = record
        elif mode is AggrMode.MAX:
            np.maximum(out[target], record, out=out[target])
        else:
            out[target] += record
        counts[target] = seen + 1
    if mode is AggrMode.MEAN:
        for target, count in counts.items():
            out[target] = (out[target] / count).astype(out.dtype)
    return out.reshape(-1)


def concat(
    data1,
    data2,
    num: int,
    count1: int,
    count2: int,
    stride1: int,
    stride2: int,
    offset1: int = 0,
    offset2: int = 0,
) -> np.ndarray:
    """Join ``count1`` values of each record of ``data1`` with ``count2`` of ``data2``."""
    if not (offset1 < stride1 and offset2 < stride2):
        raise ValueError("offset must be smaller than stride")
    if offset1 + count1 > stride1 or offset2 + count2 > stride2:
        raise ValueError("count and offset exceed the stride")
    first = _values(data1).reshape(-1)
    second = _values(data2).reshape(-1)
    rows = np.arange(num)[:, None]
    pos1 = rows * stride1 + offset1 + np.arange(count1)[None, :]
    pos2 = rows * stride2 + offset2 + np.arange(count2)[None, :]
    if (pos1.size and pos1.max() >= first.size) or (pos2.size and pos2.max() >= second.size):
        raise IndexError("index out of range")
    out = np.empty((num, count1 + count2), dtype=np.result_type(first, second))
    out[:, :count1] = first[pos1]
    out[:, count1:] = second[pos2]
    return out.reshape(-1)


def relu(data) -> np.ndarray:
    """Clamp negative values to zero; arrays and blocks are changed in place."""
    if isinstance(data, (MemoryBlock, np.ndarray)):
        array = _values(data)
        np.maximum(array, 0, out=array)
        return array
    return np.maximum(np.asarray(data, dtype=np.float32), 0)


def get_multi_prediction(
    prob, num_cls: int, num: int, threshold: float = 0.5
) -> list[list[int]]:
    """For each of ``num`` rows, the classes whose score is not below ``threshold``."""
    flat = _values(prob).reshape(-1)
    if flat.size < num * num_cls:
        raise IndexError("not enough scores")
    table = flat[: num * num_cls].reshape(num, num_cls)
    return [np.flatnonzero(~(row < threshold)).tolist() for row in table]


def compute_edge_descriptor(data, edge_index, source_to_target: bool = False) -> MemoryBlock:
    """Relative descriptor of every edge: offsets of centroid and spread, log size ratios."""
    nodes = _values(data)
    edges = _values(edge_index)
    if nodes.ndim != 2 or nodes.shape[1] < 11:
        raise ValueError("node descriptors need at least 11 columns")
    if edges.ndim != 2 or edges.shape[0] != 2:
        raise ValueError("edge index must have two rows")
    src_row, dst_row = (1, 0) if source_to_target else (0, 1)
    idx_i = _indices(edges[src_row], nodes.shape[0])
    idx_j = _indices(edges[dst_row], nodes.shape[0])
    data_i = nodes[idx_i].astype(np.float32)
    data_j = nodes[idx_j].astype(np.float32)
    out = MemoryBlock(DataType.FLOAT, (idx_i.size, nodes.shape[1]))
    out.array[:, 0:6] = data_i[:, 0:6] - data_j[:, 0:6]
    with np.errstate(divide="ignore", invalid="ignore"):
        out.array[:, 6:11] = np.log(data_i[:, 6:11] / data_j[:, 6:11])
    return out