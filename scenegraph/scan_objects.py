"""Scene object tables, mesh locations and per-pixel instance lookup for rendered scans."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_HEX_PREFIX = re.compile(r"\s*(?:0[xX])?([0-9a-fA-F]+)")


class MeshRenderType(enum.Enum):
    """Which dataset layout a scan folder follows."""

    SCANNET = "scannet"
    SCAN3R = "3rscan"
    DETECT = "detect"


@dataclass
class SceneObjects:
    """Instances of one scan, keyed by their label colour and by their id."""

    color_to_instance: dict[int, int] = field(default_factory=dict)
    instance_to_label: dict[int, str] = field(default_factory=dict)
    instance_to_color: dict[int, int] = field(default_factory=dict)


def detect_render_type(
    folder: str, scan_id: str, render_type: MeshRenderType = MeshRenderType.DETECT
) -> MeshRenderType:
    """Resolve ``DETECT`` from the folder and scan names; other types are returned as given."""
    render_type = MeshRenderType(render_type)
    if render_type is not MeshRenderType.DETECT:
        return render_type
    folder_lower = folder.lower()
    if "scene" in scan_id or "scannet" in folder_lower:
        return MeshRenderType.SCANNET
    if "3rscan" in folder_lower:
        return MeshRenderType.SCAN3R
    raise ValueError("unable to detect type.")


def mesh_paths(
    folder: str, scan_id: str, render_type: MeshRenderType = MeshRenderType.DETECT
) -> dict[str, str]:
    """Mesh files of a scan: ``rgb`` always, and ``label`` for annotated 3RScan meshes."""
    resolved = detect_render_type(folder, scan_id, render_type)
    base = folder + "/" + scan_id + "/"
    if resolved is MeshRenderType.SCANNET:
        return {"rgb": base + scan_id + "_vh_clean_2.ply"}
    return {
        "label": base + "labels.instances.annotated.v2.ply",
        "rgb": base + "mesh.refined.v2.obj",
    }


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _items(value: Any) -> list:
    return value if isinstance(value, list) else []


def _parse_id(text: str) -> int:
    match = _INT_PREFIX.match(text)
    if not match:
        raise ValueError(f"invalid instance id: {text!r}")
    return int(match.group(1))


def _parse_color(text: str) -> int:
    if not text:
        raise ValueError("empty colour string")
    match = _HEX_PREFIX.match(text[1:])
    if not match:
        raise ValueError(f"invalid colour: {text!r}")
    return int(match.group(1), 16)


def load_objects(path: str, scan_id: str) -> SceneObjects:
    """Read the objects of ``scan_id`` from an ``objects.json`` file.

    Raises ``ValueError`` when the file cannot be read or parsed, or holds no
    object of that scan.
    """
    try:
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
    except (OSError, json.JSONDecodeError) as error:
        raise ValueError(f"didn't find objects.json at {path}") from error

    objects = SceneObjects()
    for scan in _items(_get(document, "scans")):
        if _string(_get(scan, "scan")) != scan_id:
            continue
        for obj in _items(_get(scan, "objects")):
            instance = _parse_id(_string(_get(obj, "id")))
            color = _parse_color(_string(_get(obj, "ply_color")))
            objects.color_to_instance[color] = instance
            objects.instance_to_label[instance] = _string(_get(obj, "label"))
            objects.instance_to_color[instance] = color
    if not objects.color_to_instance:
        raise ValueError("unable to load object data!")
    return objects


def rgb_to_hex(r, g, b):
    """Pack three 8-bit channels into one ``0xRRGGBB`` value; works on ints and arrays."""
    return ((r & 0xFF) << 16) + ((g & 0xFF) << 8) + (b & 0xFF)


def linearize_depth(depth, near: float, far: float) -> np.ndarray:
    """Turn depth-buffer values into distances in millimetres; 0 and 1 become -1."""
    buffer = np.asarray(depth, dtype=np.float32)
    near = np.float32(near)
    far = np.float32(far)
    zn = buffer * np.float32(2) - np.float32(1)
    with np.errstate(divide="ignore", invalid="ignore"):
        ze = np.float32(2.0) * near * far / (far + near - zn * (far - near))
    out = (ze * np.float32(1000)).astype(np.float32)
    out[(buffer == 1) | (buffer == 0)] = -1
    return out


def _label_image(label_img) -> np.ndarray:
    image = np.asarray(label_img)
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError("label image must have shape (height, width, 3)")
    return image[..., :3].astype(np.int64)


def _lookup(codes: np.ndarray, color_to_instance: Mapping[int, int]):
    uniq, inverse = np.unique(codes, return_inverse=True)
    inverse = inverse.reshape(codes.shape)
    ids = np.array([int(color_to_instance.get(int(c), 0)) for c in uniq], dtype=np.int64)
    known = np.array([int(c) in color_to_instance for c in uniq], dtype=bool)
    if uniq.size == 0:
        empty = np.zeros(codes.shape, dtype=np.int64)
        return empty, empty.astype(bool)
    return ids[inverse], known[inverse]


def label_to_instance(label_img, color_to_instance: Mapping[int, int]) -> np.ndarray:
    """Map each pixel's label colour to its instance id, 0 for unknown colours.

    Pixel channels are read in blue, green, red order.
    """
    image = _label_image(label_img)
    codes = rgb_to_hex(image[..., 2], image[..., 1], image[..., 0])
    ids, _ = _lookup(codes, color_to_instance)
    return (ids & 0xFFFF).astype(np.uint16)


def instance_bounding_boxes(
    label_img, color_to_instance: Mapping[int, int]
) -> tuple[np.ndarray, dict[int, tuple[int, int, int, int]]]:
    """Instance image and each instance's box ``(min_x, min_y, max_x, max_y)`` in pixels.

    Pixel channels are read in red, green, blue order.
    """
    image = _label_image(label_img)
    codes = rgb_to_hex(image[..., 0], image[..., 1], image[..., 2])
    ids, known = _lookup(codes, color_to_instance)
    boxes: dict[int, tuple[int, int, int, int]] = {}
    for instance in np.unique(ids[known]).tolist():
        rows, cols = np.nonzero(known & (ids == instance))
        boxes[int(instance)] = (
            int(cols.min()),
            int(rows.min()),
            int(cols.max()),
            int(rows.max()),
        )
    return (ids & 0xFFFF).astype(np.uint16), boxes