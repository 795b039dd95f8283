import json

import numpy as np
import pytest

from scenegraph.scan3r import Scan3RLoader

TRANSLATION = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 2, 3, 4, 1]
RIGID = [0, 1, 0, 0, -1, 0, 0, 0, 0, 0, 1, 0, 5, 6, 7, 1]

DOCUMENT = [
    {
        "reference": "ref-a",
        "type": "train",
        "ambiguity": [
            {"instance_source": 3, "instance_target": 4, "transform": TRANSLATION},
            {"instance_source": 3, "instance_target": 9, "transform": []},
        ],
        "scans": [
            {
                "reference": "rescan-a1",
                "transform": TRANSLATION,
                "rigid": [{"instance_reference": 12, "transform": RIGID}],
            },
            {"reference": "rescan-a2", "transform": TRANSLATION[:4]},
        ],
    },
    {"reference": "ref-b", "type": "test", "scans": []},
]


@pytest.fixture
def loader(tmp_path):
    path = tmp_path / "scans.json"
    path.write_text(json.dumps(DOCUMENT), encoding="utf-8")
    return Scan3RLoader(str(path))


def test_reference_mapping(loader):
    assert loader.reference_to_rescans == {"ref-a": ["rescan-a1", "rescan-a2"]}
    assert loader.rescan_to_reference == {"rescan-a1": "ref-a", "rescan-a2": "ref-a"}
    assert set(loader.scaninfos) == {"ref-a", "ref-b"}
    assert loader.scaninfos["ref-b"].type == "test"


def test_is_reference_and_rescan(loader):
    assert loader.is_reference("ref-a")
    assert not loader.is_rescan("ref-a")
    assert loader.is_rescan("rescan-a1")
    assert loader.is_rescan("ref-b")
    assert loader.is_rescan("unknown-scan")


def test_column_major_transform(loader):
    info = loader.scaninfos["ref-a"].rescans["rescan-a1"]
    np.testing.assert_array_equal(info.transformation[:3, 3], [2, 3, 4])
    np.testing.assert_array_equal(info.transformation[:3, :3], np.eye(3))


def test_short_transform_keeps_identity(loader):
    info = loader.scaninfos["ref-a"].rescans["rescan-a2"]
    np.testing.assert_array_equal(info.transformation, np.eye(4))


def test_ambiguities_grouped_by_source(loader):
    ambiguities = loader.scaninfos["ref-a"].ambiguities
    assert list(ambiguities) == [3]
    assert [a.instance_target for a in ambiguities[3]] == [4, 9]
    np.testing.assert_array_equal(ambiguities[3][0].transformation[:3, 3], [2, 3, 4])
    np.testing.assert_array_equal(ambiguities[3][1].transformation, np.eye(4))


def test_rigid_transform_is_inverted(loader):
    moved = loader.scaninfos["ref-a"].rescans["rescan-a1"].moved_rigid_objects[12]
    assert moved.id == 12
    assert moved.symmetry == 0
    original = np.array(RIGID, dtype=np.float32).reshape(4, 4, order="F")
    np.testing.assert_allclose(moved.transformation @ original, np.eye(4), atol=1e-6)


def test_rescans_are_not_top_level(loader):
    assert "rescan-a1" not in loader.scaninfos
    assert loader.scaninfos["ref-a"].rescans["rescan-a1"].scan_id == "rescan-a1"


def test_too_long_transform_raises(tmp_path):
    path = tmp_path / "bad.json"
    doc = [{"reference": "r", "scans": [{"reference": "s", "transform": [0] * 17}]}]
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError):
        Scan3RLoader(str(path))


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Scan3RLoader(str(tmp_path / "absent.json"))