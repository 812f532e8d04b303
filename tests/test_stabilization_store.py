"""
Test del salvataggio/caricamento dei dati di stabilizzazione (protobuf).
"""

import math
import os
import stat
import time

import pytest

from stabilization.data_types import CamTrajectory, TransformParam
from stabilization.stabilization_store import (
    load_stabilized_data,
    save_stabilized_data,
    stabilization_message_class,
)
from stabilization.trajectory_smoothing import TrajectoryFilter, compute_frames_trajectory
from stabilization.transform_synthesis import generate_new_cam_position


def _sample_data():
    trajectory = {i: CamTrajectory(i * 1.25, -i * 0.5, 0.001 * i) for i in range(10)}
    transforms = {i: TransformParam(0.1 * i, math.sin(i), -0.002 * i) for i in range(10)}
    return trajectory, transforms


def _assert_tables_close(actual, expected):
    assert sorted(actual) == sorted(expected)
    for key in expected:
        assert tuple(actual[key]) == pytest.approx(tuple(expected[key]), rel=1e-6, abs=1e-6)


def test_round_trip(tmp_path):
    trajectory, transforms = _sample_data()
    path = tmp_path / "clip.data"

    assert save_stabilized_data(path, trajectory, transforms) is True
    loaded = load_stabilized_data(path)

    assert loaded is not None
    loaded_trajectory, loaded_transforms = loaded
    _assert_tables_close(loaded_trajectory, trajectory)
    _assert_tables_close(loaded_transforms, transforms)
    assert isinstance(loaded_trajectory[3], CamTrajectory)
    assert isinstance(loaded_transforms[3], TransformParam)


def test_persisted_corrections_match_recomputation(tmp_path):
    motions = [
        TransformParam(1.5 + 2.0 * math.sin(i * 0.9), 0.3 + math.cos(i * 1.4), 0.003 * math.sin(i * 0.6))
        for i in range(49)
    ]
    trajectory = compute_frames_trajectory(motions)
    smoothed = TrajectoryFilter(30).smooth(trajectory)
    transforms = generate_new_cam_position(motions, smoothed)
    path = tmp_path / "drift.data"

    assert save_stabilized_data(path, smoothed, transforms)
    _, loaded_transforms = load_stabilized_data(path)

    for i, motion in enumerate(motions):
        expected_dx = motion.dx + (smoothed[i].x - trajectory[i].x)
        assert loaded_transforms[i].dx == pytest.approx(expected_dx, rel=1e-5, abs=1e-4)


def test_records_are_keyed_by_id(tmp_path):
    trajectory = {9: CamTrajectory(9, 0, 0), 2: CamTrajectory(2, 0, 0), 5: CamTrajectory(5, 0, 0)}
    transforms = {5: TransformParam(0, 5, 0), 9: TransformParam(0, 9, 0), 2: TransformParam(0, 2, 0)}
    path = tmp_path / "sparse.data"

    assert save_stabilized_data(path, trajectory, transforms)
    loaded_trajectory, loaded_transforms = load_stabilized_data(path)

    assert sorted(loaded_trajectory) == [2, 5, 9]
    assert loaded_trajectory[9].x == 9.0
    assert loaded_transforms[2].dy == 2.0


def test_timestamp_is_written(tmp_path):
    trajectory, transforms = _sample_data()
    path = tmp_path / "clip.data"
    before = int(time.time())

    save_stabilized_data(path, trajectory, transforms)

    message = stabilization_message_class()()
    message.ParseFromString(path.read_bytes())
    assert message.HasField('last_updated')
    assert before <= message.last_updated.seconds <= int(time.time())
    assert [frame.id for frame in message.frame] == list(range(10))


def test_save_overwrites_existing_file(tmp_path):
    path = tmp_path / "clip.data"
    trajectory, transforms = _sample_data()
    save_stabilized_data(path, trajectory, transforms)

    assert save_stabilized_data(path, {0: CamTrajectory(1, 1, 1)}, {0: TransformParam(2, 2, 2)})

    loaded_trajectory, loaded_transforms = load_stabilized_data(path)
    assert list(loaded_trajectory) == [0]
    assert tuple(loaded_transforms[0]) == (2.0, 2.0, 2.0)
    assert os.listdir(tmp_path) == ["clip.data"]


def test_empty_tables_round_trip(tmp_path):
    path = tmp_path / "empty.data"
    assert save_stabilized_data(path, {}, {})
    assert load_stabilized_data(path) == ({}, {})


def test_mismatched_keys_are_not_saved(tmp_path):
    path = tmp_path / "bad.data"
    trajectory, transforms = _sample_data()
    del transforms[4]

    assert save_stabilized_data(path, trajectory, transforms) is False
    assert not path.exists()


def test_save_into_missing_directory_fails(tmp_path):
    trajectory, transforms = _sample_data()
    missing = tmp_path / "missing"

    assert save_stabilized_data(missing / "clip.data", trajectory, transforms) is False
    assert not missing.exists()


def test_load_missing_file_fails(tmp_path):
    assert load_stabilized_data(tmp_path / "nope.data") is None


def test_load_truncated_file_fails(tmp_path):
    path = tmp_path / "broken.data"
    # Campo 1 di lunghezza 5 con un solo byte disponibile
    path.write_bytes(b"\x0a\x05\x01")
    assert load_stabilized_data(path) is None


def test_unknown_fields_are_ignored(tmp_path):
    trajectory, transforms = _sample_data()
    path = tmp_path / "clip.data"
    save_stabilized_data(path, trajectory, transforms)

    # Campo 15 (varint) sconosciuto allo schema
    path.write_bytes(path.read_bytes() + b"\x78\x01")

    loaded = load_stabilized_data(path)
    assert loaded is not None
    _assert_tables_close(loaded[0], trajectory)


def test_saved_file_respects_umask(tmp_path):
    trajectory, transforms = _sample_data()
    path = tmp_path / "clip.data"

    previous = os.umask(0o022)
    try:
        assert save_stabilized_data(path, trajectory, transforms)
    finally:
        os.umask(previous)

    assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_overwrite_keeps_existing_mode(tmp_path):
    trajectory, transforms = _sample_data()
    path = tmp_path / "clip.data"
    path.write_bytes(b"")
    os.chmod(path, 0o640)

    assert save_stabilized_data(path, trajectory, transforms)

    assert stat.S_IMODE(path.stat().st_mode) == 0o640
    assert load_stabilized_data(path) is not None


@pytest.mark.parametrize("bad_key", [-1, 2.5, "3"])
def test_invalid_frame_keys_are_not_saved(tmp_path, bad_key):
    path = tmp_path / "bad.data"
    trajectory = {0: CamTrajectory(0, 0, 0), bad_key: CamTrajectory(1, 1, 1)}
    transforms = {0: TransformParam(0, 0, 0), bad_key: TransformParam(1, 1, 1)}

    assert save_stabilized_data(path, trajectory, transforms) is False
    assert not path.exists()
