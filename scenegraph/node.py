"""Segment node of a scene graph: surfel membership, geometry and class predictions."""

from __future__ import annotations

import logging
import math
import random
import threading
from collections import deque
from typing import Any, Hashable, Mapping, Protocol, Sequence

import numpy as np

_log = logging.getLogger(__name__)

_MAX_WEIGHT = 100.0
_NEW_WEIGHT = 1.0
_THRESHOLD_SIZE = 0.1
_THRESHOLD_TIME = 60


class _Surfel(Protocol):
    label: int
    pos: Sequence[float]
    normal: Sequence[float]
    color: Sequence[int]
    is_stable: bool
    is_valid: bool


def _vec(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float32).reshape(3).copy()


def _zeros() -> np.ndarray:
    return np.zeros(3, dtype=np.float32)


class Node:
    """A segment holding surfels, its bounding box, neighbours and class scores.

    Surfels are any objects with ``label``, ``pos``, ``normal``, ``color``,
    ``is_stable`` and ``is_valid`` attributes.
    """

    UNKNOWN = "unknown"

    def __init__(self, label: int) -> None:
        self.idx = label
        self.instance_idx = label
        self.debug = False
        self.time_stamp = 0

        self.surfels: dict[int, _Surfel] = {}
        self.edges: set[Hashable] = set()

        self.selected_surfels: list[_Surfel] = []
        self.feature_centroid = _zeros()
        self.feature_std = _zeros()
        self.feature_bbox_min = _zeros()
        self.feature_bbox_max = _zeros()
        self.last_update_property_size = 0
        self.need_update_node_feature = False

        self.centroid = _zeros()
        self.pos_sum = _zeros()
        self.bbox_max = _zeros()
        self.bbox_min = _zeros()

        self.neighbors: set[int] = set()
        self.features: dict[str, Any] = {}
        self.need_check_neighbor = False

        self.cls_prob: dict[str, float] = {}
        self.cls_weight: dict[str, float] = {}
        self.size_and_edge: dict[str, tuple[int, int]] = {}

        self.rng = random.Random()

        self._free_indices: deque[int] = deque()
        self._idx_counter = 0
        self._last_class_predicted = self.UNKNOWN

        self._node_lock = threading.Lock()
        self._surfel_lock = threading.Lock()
        self._edge_lock = threading.Lock()
        self._nn_lock = threading.Lock()
        self._selected_lock = threading.Lock()
        self._pred_lock = threading.Lock()
        self._label_lock = threading.Lock()

    def add(self, surfel: _Surfel) -> int:
        """Add a surfel of this segment and return the index it is stored under."""
        if surfel.label != self.idx:
            raise ValueError(f"surfel label {surfel.label} does not match node {self.idx}")
        with self._node_lock:
            if self._free_indices:
                index = self._free_indices.popleft()
            else:
                index = self._idx_counter
                self._idx_counter += 1

        with self._surfel_lock:
            self.surfels[index] = surfel
            size = len(self.surfels)

        pos = _vec(surfel.pos)
        with self._node_lock:
            self.pos_sum = self.pos_sum + pos
            self.centroid = self.pos_sum / np.float32(size)
            if size == 1:
                self.bbox_min = pos.copy()
                self.bbox_max = pos.copy()
            else:
                if np.any(pos > self.bbox_max):
                    self.need_check_neighbor = True
                    self.bbox_max = np.maximum(self.bbox_max, pos)
                if np.any(pos < self.bbox_min):
                    self.need_check_neighbor = True
                    self.bbox_min = np.minimum(self.bbox_min, pos)
        return index

    def remove(self, index: int) -> None:
        """Remove the surfel stored under ``index``; the index is reused later."""
        with self._surfel_lock:
            if index not in self.surfels:
                raise KeyError("Trying to remove surfel but it doesn't exist.")
            surfel = self.surfels.pop(index)
            remaining = list(self.surfels.values())

        pos = _vec(surfel.pos)
        with self._node_lock:
            self.pos_sum = self.pos_sum - pos
            count = len(remaining)
            self.centroid = self.pos_sum / np.float32(count) if count else _zeros()
            need_recal = bool(
                np.array_equal(pos, self.bbox_min) or np.array_equal(pos, self.bbox_max)
            )
            self._free_indices.append(index)
            if need_recal:
                if remaining:
                    points = np.stack([_vec(s.pos) for s in remaining])
                    self.bbox_min = points.min(axis=0)
                    self.bbox_max = points.max(axis=0)
                else:
                    self.bbox_min = _zeros()
                    self.bbox_max = _zeros()
                self.need_check_neighbor = True

    def remove_edge(self, edge: Hashable) -> None:
        """Forget an edge; unknown edges are ignored."""
        with self._edge_lock:
            self.edges.discard(edge)

    def update_prediction(
        self,
        pd: Mapping[str, float],
        size_and_edge: Mapping[str, tuple[int, int]],
        fusion: bool,
    ) -> None:
        """Merge new class scores and choose the most probable class as the label."""
        with self._pred_lock:
            for name, value in sorted(pd.items()):
                value = float(value)
                if name not in self.cls_prob:
                    self.cls_prob[name] = value
                    if name not in size_and_edge:
                        _log.error("cannot find %s in sizeAndEdge", name)
                        raise KeyError(f"cannot find {name} in size_and_edge")
                    self.size_and_edge[name] = tuple(size_and_edge[name])
                    self.cls_weight[name] = 1.0
                elif fusion:
                    old_value = self.cls_prob[name]
                    old_weight = self.cls_weight[name]
                    self.cls_prob[name] = (old_value * old_weight + value * _NEW_WEIGHT) / (
                        old_weight + _NEW_WEIGHT
                    )
                    self.cls_weight[name] = min(_MAX_WEIGHT, old_weight + _NEW_WEIGHT)
                else:
                    self.cls_prob[name] = value

            if not self.cls_prob:
                return
            ordered = sorted(self.cls_prob.items())
            max_value = ordered[0][1]
            max_label = self.label()
            for name, value in ordered:
                if value >= max_value:
                    max_value = value
                    max_label = name
            with self._label_lock:
                self._last_class_predicted = max_label

    def check_connectivity(self, other: "Node", margin: float, modify: bool) -> bool:
        """Whether the bounding boxes, grown by ``margin``, overlap.

        With ``modify`` the neighbour sets of both nodes are updated accordingly.
        """
        if self.idx == other.idx:
            return True
        with self._node_lock:
            has_out = bool(
                np.any(self.bbox_min - margin > other.bbox_max + margin)
                or np.any(other.bbox_min - margin > self.bbox_max + margin)
            )
            if modify:
                self.need_check_neighbor = False
                other.need_check_neighbor = False
        if not modify:
            return not has_out

        with self._nn_lock:
            if has_out:
                self.neighbors.discard(other.idx)
                other.neighbors.discard(self.idx)
            else:
                self.neighbors.add(other.idx)
                other.neighbors.add(self.idx)
        return not has_out

    def label(self) -> str:
        """The most recently predicted class name."""
        with self._label_lock:
            return self._last_class_predicted

    def point_size(self) -> int:
        """Number of surfels in the node."""
        with self._surfel_lock:
            return len(self.surfels)

    def update_selected_node(
        self, time: int, filter_size: int, num_pts: int, force: bool
    ) -> None:
        """Sample ``num_pts`` stable surfels and recompute the node's shape statistics.

        Runs only when forced, when the size changed by at least a tenth, or when
        more than 60 time units passed since the last update.
        """
        if self.need_update_node_feature:
            return
        last_size = self.last_update_property_size
        with self._surfel_lock:
            new_size = len(self.surfels)

        if new_size:
            changes = abs(float(new_size) - float(last_size)) / float(new_size)
        else:
            changes = math.inf if last_size else math.nan
        should_update = changes >= _THRESHOLD_SIZE
        should_update |= time < self.time_stamp or (time - self.time_stamp) > _THRESHOLD_TIME
        if force:
            should_update = True
        if not should_update:
            return

        with self._selected_lock:
            self.selected_surfels = []
            if len(self.surfels) < filter_size:
                return
            valid_pts = 0
            if self.debug:
                candidates = list(self.surfels.values())
            else:
                order = list(range(len(self.surfels)))
                self.rng.shuffle(order)
                candidates = [self.surfels[i] for i in order if i in self.surfels]
            for surfel in candidates:
                if not surfel.is_stable or not surfel.is_valid:
                    continue
                valid_pts += 1
                if len(self.selected_surfels) < num_pts:
                    self.selected_surfels.append(surfel)
                if valid_pts >= filter_size and len(self.selected_surfels) == num_pts:
                    break
            if valid_pts < filter_size or len(self.selected_surfels) != num_pts:
                self.selected_surfels = []
                return
            selected = list(self.selected_surfels)

        if self.debug and selected:
            first = selected[0]
            color = [float(first.color[c]) / 255 * 2.0 - 1 for c in (2, 1, 0)]
            _log.debug("%s %s %s", list(first.pos), color, list(first.normal))

        points = np.stack([_vec(s.pos) for s in selected])
        self.feature_centroid = points.mean(axis=0, dtype=np.float64).astype(np.float32)
        self.feature_bbox_min = points.min(axis=0)
        self.feature_bbox_max = points.max(axis=0)
        squared = ((points.astype(np.float64) - self.feature_centroid) ** 2).sum(axis=0)
        with np.errstate(divide="ignore", invalid="ignore"):
            self.feature_std = np.sqrt(squared / (len(selected) - 1.0)).astype(np.float32)

        self.need_update_node_feature = True
        self.last_update_property_size = new_size
        self.time_stamp = time