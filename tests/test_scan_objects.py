import json

import numpy as np
import pytest

from scenegraph.scan_objects import (
    MeshRenderType,
    SceneObjects,
    detect_render_type,
    instance_bounding_boxes,
    label_to_instance,
    linearize_depth,
    load_objects,
    mesh_paths,
    rgb_to_hex,
)


def _write_objects(tmp_path, scans):
    path = tmp_path / "objects.json"
    path.write_text(json.dumps({"scans": scans}), encoding="utf-8")
    return str(path)


@pytest.mark.parametrize(
    "folder, scan_id, expected",
    [
        ("/data/ScanNet", "abc", MeshRenderType.SCANNET),
        ("/data/any", "scene0000_00", MeshRenderType.SCANNET),
        ("/data/3RScan", "abc", MeshRenderType.SCAN3R),
        ("/DATA/3rscan/files", "xyz", MeshRenderType.SCAN3R),
    ],
)
def test_detect_render_type(folder, scan_id, expected):
    assert detect_render_type(folder, scan_id) is expected


def test_detect_keeps_explicit_type():
    assert detect_render_type("/nowhere", "x", MeshRenderType.SCAN3R) is MeshRenderType.SCAN3R


def test_detect_fails_for_unknown_folder():
    with pytest.raises(ValueError):
        detect_render_type("/data/other", "abc")


def test_mesh_paths_scannet():
    paths = mesh_paths("/d", "scene0001_00", MeshRenderType.SCANNET)
    assert paths == {"rgb": "/d/scene0001_00/scene0001_00_vh_clean_2.ply"}


def test_mesh_paths_3rscan():
    paths = mesh_paths("/d/3RScan", "abc")
    assert paths["label"] == "/d/3RScan/abc/labels.instances.annotated.v2.ply"
    assert paths["rgb"] == "/d/3RScan/abc/mesh.refined.v2.obj"


def test_load_objects_selects_scan(tmp_path):
    path = _write_objects(
        tmp_path,
        [
            {"scan": "other", "objects": [{"id": "9", "ply_color": "#000001", "label": "x"}]},
            {
                "scan": "mine",
                "objects": [
                    {"id": "3", "ply_color": "#aec7e8", "label": "chair"},
                    {"id": "4", "ply_color": "#000010", "label": "table"},
                ],
            },
        ],
    )
    objects = load_objects(path, "mine")
    assert objects.instance_to_label == {3: "chair", 4: "table"}
    assert objects.color_to_instance == {int("aec7e8", 16): 3, int("000010", 16): 4}
    assert objects.instance_to_color == {3: int("aec7e8", 16), 4: int("000010", 16)}
    assert 9 not in objects.instance_to_label


def test_load_objects_no_match_raises(tmp_path):
    path = _write_objects(tmp_path, [{"scan": "other", "objects": []}])
    with pytest.raises(ValueError):
        load_objects(path, "mine")


def test_load_objects_missing_file_raises(tmp_path):
    with pytest.raises(ValueError):
        load_objects(str(tmp_path / "absent.json"), "mine")


def test_load_objects_bad_json_raises(tmp_path):
    path = tmp_path / "objects.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_objects(str(path), "mine")


def test_rgb_to_hex_packs_channels():
    assert rgb_to_hex(0xAE, 0xC7, 0xE8) == int("aec7e8", 16)
    assert rgb_to_hex(0x1FF, 0, 0) == rgb_to_hex(0xFF, 0, 0)


def test_rgb_to_hex_on_arrays():
    r = np.array([1, 2])
    g = np.array([3, 4])
    b = np.array([5, 6])
    packed = rgb_to_hex(r, g, b)
    assert packed.tolist() == [rgb_to_hex(1, 3, 5), rgb_to_hex(2, 4, 6)]


def test_linearize_depth_marks_empty_pixels():
    out = linearize_depth(np.array([0.0, 1.0]), 0.1, 10.0)
    assert out.tolist() == [-1.0, -1.0]


def test_linearize_depth_in_range_and_monotonic():
    near, far = 0.1, 10.0
    values = np.linspace(0.05, 0.95, 10, dtype=np.float32)
    out = linearize_depth(values, near, far)
    assert out.shape == (10,)
    assert bool((np.diff(out) > 0).all())
    assert float(out.min()) >= near * 1000 * 0.999
    assert float(out.max()) <= far * 1000 * 1.001


def test_linearize_depth_equal_planes():
    out = linearize_depth(np.array([[0.3, 0.7]]), 1.0, 1.0)
    assert out.shape == (1, 2)
    assert np.allclose(out, 1000.0)


def test_label_to_instance_reads_bgr():
    image = np.zeros((2, 3, 3), dtype=np.uint8)
    image[0, 1] = (30, 20, 10)  # blue, green, red
    image[1, 2] = (5, 5, 5)
    table = {rgb_to_hex(10, 20, 30): 7}
    out = label_to_instance(image, table)
    assert out.dtype == np.uint16
    assert out[0, 1] == 7
    assert int(out.sum()) == 7


def test_label_to_instance_rejects_bad_shape():
    with pytest.raises(ValueError):
        label_to_instance(np.zeros((4, 4)), {})


def test_instance_bounding_boxes():
    image = np.zeros((5, 6, 3), dtype=np.uint8)
    color = (10, 20, 30)  # red, green, blue
    for row, col in [(1, 2), (3, 4), (2, 1)]:
        image[row, col] = color
    table = {rgb_to_hex(*color): 5}
    instances, boxes = instance_bounding_boxes(image, table)
    assert boxes == {5: (1, 1, 4, 3)}
    assert int((instances == 5).sum()) == 3
    assert int(instances[0, 0]) == 0


def test_instance_bounding_boxes_keeps_instance_zero():
    image = np.zeros((3, 3, 3), dtype=np.uint8)
    image[2, 2] = (1, 1, 1)
    instances, boxes = instance_bounding_boxes(image, {rgb_to_hex(1, 1, 1): 0})
    assert boxes == {0: (2, 2, 2, 2)}
    assert int(instances.max()) == 0


def test_scene_objects_defaults_are_independent():
    first = SceneObjects()
    second = SceneObjects()
    first.color_to_instance[1] = 2
    assert second.color_to_instance == {}