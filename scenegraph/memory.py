"""Typed, shaped numeric storage backed by numpy arrays."""

from __future__ import annotations

import enum
from typing import Iterable, Union

import numpy as np

Shape = Union[int, Iterable[int]]


class DataType(enum.Enum):
    """Element types a memory block can hold."""

    FLOAT = "float32"
    INT = "int32"
    INT64_T = "int64"
    NONE = "none"

    @property
    def numpy_dtype(self) -> np.dtype:
        if self is DataType.NONE:
            raise RuntimeError("not initialized yet.")
        return np.dtype(self.value)

    @classmethod
    def from_numpy(cls, dtype: np.dtype) -> "DataType":
        for member in (cls.FLOAT, cls.INT, cls.INT64_T):
            if np.dtype(dtype) == np.dtype(member.value):
                return member
        raise ValueError(f"unsupported element type: {dtype}")


def _normalize_shape(shape: Shape) -> tuple[int, ...]:
    if isinstance(shape, (int, np.integer)):
        dims = (int(shape),)
    else:
        dims = tuple(int(d) for d in shape)
    if not 1 <= len(dims) <= 3:
        raise ValueError("a block has one, two or three dimensions")
    if any(d < 0 for d in dims):
        raise ValueError("dimensions must not be negative")
    return dims


class MemoryBlock:
    """A typed array of one to three dimensions with bounds-checked access."""

    def __init__(self, dtype: DataType = DataType.NONE, shape: Shape = 0) -> None:
        self.dtype = DataType.NONE
        self.array = np.empty(0, dtype=np.float32)
        self._allocate(dtype, _normalize_shape(shape))

    @classmethod
    def wrap(cls, array: np.ndarray) -> "MemoryBlock":
        """Wrap an existing array without copying it."""
        if not isinstance(array, np.ndarray):
            raise TypeError("wrap expects a numpy array")
        dtype = DataType.from_numpy(array.dtype)
        _normalize_shape(array.shape)
        block = cls.__new__(cls)
        block.dtype = dtype
        block.array = array
        return block

    def _allocate(self, dtype: DataType, dims: tuple[int, ...]) -> None:
        size = int(np.prod(dims))
        if dtype is DataType.NONE:
            if size:
                raise RuntimeError("not initialized yet.")
            self.dtype = DataType.NONE
            self.array = np.empty(dims, dtype=np.float32)
            return
        self.dtype = dtype
        self.array = np.zeros(dims, dtype=dtype.numpy_dtype)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.array.shape

    @property
    def ndim(self) -> int:
        return self.array.ndim

    def clear(self) -> None:
        """Set every element to zero."""
        if self.dtype is DataType.NONE:
            raise RuntimeError("not initialized yet.")
        self.array[...] = 0

    def resize(self, dtype: DataType, shape: Shape) -> None:
        """Reallocate; the contents are kept only when type and size are unchanged."""
        dims = _normalize_shape(shape)
        if dtype is self.dtype and int(np.prod(dims)) == self.array.size:
            self.array = self.array.reshape(dims)
            return
        self._allocate(dtype, dims)

    def conservative_resize(self, dtype: DataType, size: int) -> None:
        """Resize to a flat block of ``size`` elements, keeping the leading contents."""
        if dtype is not self.dtype:
            raise ValueError("type must be the same")
        if size < 0:
            raise ValueError("size must not be negative")
        old = self.array.reshape(-1)
        new = np.zeros(size, dtype=dtype.numpy_dtype)
        keep = min(size, old.size)
        new[:keep] = old[:keep]
        self.array = new

    def at(self, *args: int):
        """Return one element by flat index or by one index per dimension."""
        if len(args) == 1:
            (x,) = args
            if not 0 <= x < self.array.size:
                raise IndexError("out of range.")
            return self.array.reshape(-1)[x].item()
        if len(args) == self.array.ndim:
            for index, bound in zip(args, self.array.shape):
                if not 0 <= index < bound:
                    raise IndexError("exceed")
            return self.array[tuple(args)].item()
        raise TypeError(f"expected 1 or {self.array.ndim} indices, got {len(args)}")

    def _require_2d(self) -> None:
        if self.array.ndim != 2:
            raise ValueError("row and column access needs a two-dimensional block")

    def row(self, x: int) -> np.ndarray:
        """Return a writable view of row ``x``."""
        self._require_2d()
        if not 0 <= x < self.array.shape[0]:
            raise IndexError("exceed")
        return self.array[x]

    def col(self, y: int) -> np.ndarray:
        """Return a writable view of column ``y``."""
        self._require_2d()
        if not 0 <= y < self.array.shape[1]:
            raise IndexError("exceed")
        return self.array[:, y]

    def __getitem__(self, index):
        return self.array[index]

    def __setitem__(self, index, value) -> None:
        self.array[index] = value

    def __len__(self) -> int:
        return int(self.array.size)

    @staticmethod
    def _format(value) -> str:
        if isinstance(value, float):
            return f"{value:g}"
        return str(value)

    def __str__(self) -> str:
        if self.dtype is DataType.NONE:
            return ""
        if self.array.ndim == 2:
            return "".join(
                "".join(f"{self._format(v)} " for v in row.tolist()) + "\n"
                for row in self.array
            )
        flat = self.array.reshape(-1).tolist()
        return "".join(f"{self._format(v)} " for v in flat) + "\n"