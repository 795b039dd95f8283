"""Short text renderings of tensor shapes and matrices for diagnostics."""

from __future__ import annotations

from typing import Iterable

import numpy as np

_SHOWN_PER_SIDE = 3


def total_size(dims: Iterable[int]) -> int:
    """Number of elements of a tensor with the given dimensions."""
    size = 1
    for dim in dims:
        size *= int(dim)
    return size


def format_shape(name: str, shape: Iterable[int]) -> str:
    """Render ``name shape: d0, d1, ...``."""
    return f"{name} shape: " + "".join(f"{int(v)}, " for v in shape)


def _format_value(value) -> str:
    if isinstance(value, (float, np.floating)):
        return f"{float(value):.3g}"
    return str(value)


def _join(values) -> str:
    return "".join(f"{_format_value(v)} " for v in values)


def format_vector(name: str, data, dims) -> str:
    """Render a row-major matrix, eliding middle rows and columns of large ones."""
    dims = [int(d) for d in dims]
    if len(dims) != 2:
        raise ValueError("dims must have exactly two entries")
    rows, cols = dims
    values = np.asarray(data).reshape(-1)
    if values.size < rows * cols:
        raise IndexError("not enough data for the given dims")
    lines = [f"=={name}=="]
    for i in range(rows):
        if rows > 10:
            if i == 3:
                lines.append("...")
                continue
            if 3 < i < rows - 3:
                continue
        row = values[i * cols:(i + 1) * cols].tolist()
        if cols > 7:
            lines.append(_join(row[:_SHOWN_PER_SIDE]) + "... " + _join(row[-_SHOWN_PER_SIDE:]))
        else:
            lines.append(_join(row))
    return "\n".join(lines) + "\n"