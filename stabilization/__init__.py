"""
Video Stabilization System
Calcolo, salvataggio e applicazione dei dati di stabilizzazione di una clip
"""

__version__ = "1.0.0"
__author__ = "Multimedia Project"

from .data_types import CamTrajectory, TransformParam
from .frame_tracking import FrameTracker, TrackerState, freeze_last_transform
from .trajectory_smoothing import TrajectoryFilter, compute_frames_trajectory
from .transform_synthesis import generate_new_cam_position
from .stabilization_store import load_stabilized_data, save_stabilized_data
from .motion_compensation import MotionCompensator
from .video_stabilizer import ClipStabilizer
from .stabilizer_effect import StabilizerEffect

__all__ = [
    'CamTrajectory',
    'TransformParam',
    'FrameTracker',
    'TrackerState',
    'freeze_last_transform',
    'TrajectoryFilter',
    'compute_frames_trajectory',
    'generate_new_cam_position',
    'load_stabilized_data',
    'save_stabilized_data',
    'MotionCompensator',
    'ClipStabilizer',
    'StabilizerEffect'
]
