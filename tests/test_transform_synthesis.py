"""
Test della sintesi delle trasformazioni correttive.
"""

import math

import pytest

from stabilization.data_types import CamTrajectory, TransformParam
from stabilization.trajectory_smoothing import TrajectoryFilter, compute_frames_trajectory
from stabilization.transform_synthesis import generate_new_cam_position


def test_end_to_end_scenario():
    motions = [TransformParam(1, 0, 0), TransformParam(1, 0, 0),
               TransformParam(-1, 0, 0), TransformParam(1, 0, 0)]

    trajectory = compute_frames_trajectory(motions)
    assert [trajectory[i].x for i in range(4)] == [1, 2, 1, 2]

    smoothed = TrajectoryFilter(1).smooth(trajectory)
    assert smoothed[1].x == pytest.approx(4.0 / 3.0)

    transforms = generate_new_cam_position(motions, smoothed)
    assert transforms[1].dx == pytest.approx(1.0 / 3.0)
    assert transforms[1].dy == pytest.approx(0.0)
    assert transforms[1].da == pytest.approx(0.0)


def test_correction_formula_on_drift_with_jitter():
    motions = [
        TransformParam(2.0 + 1.5 * math.sin(i * 0.8), 0.5 + math.cos(i * 1.1), 0.002 * math.sin(i * 0.5))
        for i in range(50)
    ]
    trajectory = compute_frames_trajectory(motions)
    smoothed = TrajectoryFilter(30).smooth(trajectory)
    transforms = generate_new_cam_position(motions, smoothed)

    assert sorted(transforms) == sorted(trajectory) == sorted(smoothed)
    for i in range(50):
        assert transforms[i].dx == pytest.approx(motions[i].dx + smoothed[i].x - trajectory[i].x)
        assert transforms[i].dy == pytest.approx(motions[i].dy + smoothed[i].y - trajectory[i].y)
        assert transforms[i].da == pytest.approx(motions[i].da + smoothed[i].a - trajectory[i].a)


def test_identity_smoothing_gives_raw_motion():
    motions = [TransformParam(float(i), -float(i), 0.1) for i in range(8)]
    smoothed = TrajectoryFilter(0).smooth(compute_frames_trajectory(motions))
    transforms = generate_new_cam_position(motions, smoothed)
    for i in range(8):
        assert transforms[i] == pytest.approx(tuple(motions[i]))


def test_missing_smoothed_index_raises():
    motions = [TransformParam(1, 0, 0)] * 3
    smoothed = {0: CamTrajectory(1, 0, 0), 1: CamTrajectory(2, 0, 0)}
    with pytest.raises(KeyError, match="indice 2"):
        generate_new_cam_position(motions, smoothed)


def test_no_motion_gives_no_transforms():
    assert generate_new_cam_position([], {}) == {}
