"""Reader for the scan index that links reference scans to their rescans."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import numpy as np


def _identity() -> np.ndarray:
    return np.eye(4, dtype=np.float32)


@dataclass
class MovedObject:
    """A rigid object that moved between a reference scan and a rescan."""

    id: int
    symmetry: int = 0
    transformation: np.ndarray = field(default_factory=_identity)


@dataclass
class Ambiguity:
    """Two instances that look alike; ``transformation`` aligns source to target."""

    instance_source: int
    instance_target: int
    transformation: np.ndarray = field(default_factory=_identity)


@dataclass
class ScanInfo:
    """A scan: as a reference it has ambiguities and rescans, as a rescan a transform."""

    scan_id: str
    type: str = ""
    ambiguities: dict[int, list[Ambiguity]] = field(default_factory=dict)
    rescans: dict[str, "ScanInfo"] = field(default_factory=dict)
    transformation: np.ndarray = field(default_factory=_identity)
    moved_rigid_objects: dict[int, MovedObject] = field(default_factory=dict)


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return 0


def _number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _items(value: Any) -> list:
    return value if isinstance(value, list) else []


def _read_matrix(values: Any) -> np.ndarray:
    """Fill an identity matrix from a flat list in column-major order."""
    elements = [_number(v) for v in _items(values)]
    if len(elements) > 16:
        raise ValueError("a transformation has at most 16 elements")
    flat = _identity().reshape(-1, order="F")
    flat[: len(elements)] = elements
    return flat.reshape(4, 4, order="F")


class Scan3RLoader:
    """Loads reference scans, their rescans, transformations and moved objects."""

    def __init__(self, path: str) -> None:
        self.rescan_to_reference: dict[str, str] = {}
        self.reference_to_rescans: dict[str, list[str]] = {}
        self.scaninfos: dict[str, ScanInfo] = {}
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
        self._load(document)

    def is_rescan(self, scan_id: str) -> bool:
        """True for any scan that is not a reference scan with rescans."""
        return scan_id not in self.reference_to_rescans

    def is_reference(self, scan_id: str) -> bool:
        """True for a reference scan that has rescans."""
        return scan_id in self.reference_to_rescans

    def _load(self, document: Any) -> None:
        for entry in _items(document):
            reference_id = _string(_get(entry, "reference"))
            ref_info = ScanInfo(reference_id, type=_string(_get(entry, "type")))
            self.scaninfos[reference_id] = ref_info

            for item in _items(_get(entry, "ambiguity")):
                source = _int(_get(item, "instance_source"))
                target = _int(_get(item, "instance_target"))
                ambiguity = Ambiguity(source, target, _read_matrix(_get(item, "transform")))
                ref_info.ambiguities.setdefault(source, []).append(ambiguity)

            for scan in _items(_get(entry, "scans")):
                scan_id = _string(_get(scan, "reference"))
                self.rescan_to_reference[scan_id] = reference_id
                self.reference_to_rescans.setdefault(reference_id, []).append(scan_id)

                scan_info = ScanInfo(scan_id, transformation=_read_matrix(_get(scan, "transform")))
                ref_info.rescans[scan_id] = scan_info

                for rigid in _items(_get(scan, "rigid")):
                    instance_id = _int(_get(rigid, "instance_reference"))
                    # stored as reference-to-rescan; keep the inverse
                    matrix = _read_matrix(_get(rigid, "transform"))
                    scan_info.moved_rigid_objects[instance_id] = MovedObject(
                        instance_id,
                        transformation=np.linalg.inv(matrix).astype(np.float32),
                    )