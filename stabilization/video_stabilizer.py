"""
Video Stabilizer - Passata di Analisi
Integra tracking, accumulo, smoothing e sintesi delle trasformazioni per una clip
"""

import logging
import time
from typing import Dict, List, Optional

import cv2
import numpy as np

from .config_loader import DEFAULT_CONFIG
from .data_types import CamTrajectory, TransformParam
from .frame_tracking import FrameTracker
from .stabilization_store import load_stabilized_data, save_stabilized_data
from .trajectory_smoothing import TrajectoryFilter, compute_frames_trajectory
from .transform_synthesis import generate_new_cam_position


logger = logging.getLogger(__name__)


def to_gray(frame: np.ndarray) -> np.ndarray:
    """Converte un frame BGR in scala di grigi (i frame grayscale passano invariati)."""
    if frame.ndim == 2:
        return frame
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class ClipStabilizer:
    """
    Passata di analisi della stabilizzazione.

    Fasi:
    1. Tracking del movimento tra frame consecutivi (optical flow)
    2. Accumulo della traiettoria assoluta della camera
    3. Smoothing della traiettoria (media mobile)
    4. Sintesi delle trasformazioni correttive

    Il risultato (traiettoria smussata + trasformazioni) può essere salvato
    su disco e riletto da un processo diverso per il rendering.
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Inizializza il Clip Stabilizer con la configurazione fornita.

        Args:
            config: Dizionario di configurazione (opzionale)
        """
        config = config or {}

        ft_config = {**DEFAULT_CONFIG['feature_tracking'], **(config.get('feature_tracking') or {})}
        ts_config = {**DEFAULT_CONFIG['trajectory_smoothing'], **(config.get('trajectory_smoothing') or {})}

        self.frame_tracker = FrameTracker(
            max_corners=ft_config['max_corners'],
            quality_level=ft_config['quality_level'],
            min_distance=ft_config['min_distance'],
            min_correspondences=ft_config['min_correspondences'],
            win_size=ft_config['win_size'],
            max_level=ft_config['max_level'],
            ransac_reproj_threshold=ft_config['ransac_reproj_threshold'],
        )

        self.trajectory_filter = TrajectoryFilter(
            smoothing_window=ts_config['smoothing_window']
        )

        # Dati di stabilizzazione: questi sono gli unici salvati su disco
        self.trajectory_data: Dict[int, CamTrajectory] = {}
        self.transformation_data: Dict[int, TransformParam] = {}

        # Movimenti grezzi e traiettoria assoluta dell'ultima analisi
        self.raw_motion: List[TransformParam] = []
        self.raw_trajectory: Dict[int, CamTrajectory] = {}
        self.frame_times: List[float] = []

        logger.info("Configurazione caricata:")
        logger.info(
            f"   Feature Tracking: max_corners={ft_config['max_corners']}, "
            f"quality_level={ft_config['quality_level']}, "
            f"min_distance={ft_config['min_distance']}, "
            f"min_correspondences={ft_config['min_correspondences']}"
        )
        logger.info(f"   Trajectory Smoothing: window={self.trajectory_filter.smoothing_window}")

    def process_clip(self, frame_source, show_progress: bool = True, progress_callback=None) -> bool:
        """
        Analizza tutti i frame della sorgente e calcola i dati di stabilizzazione.

        Args:
            frame_source: Oggetto con frames() e len() (vedi frame_source.py)
            show_progress: Se True, mostra il progresso nel log
            progress_callback: callable(float 0→1) chiamato ad ogni step di avanzamento

        Returns:
            success: True a fine analisi (una clip di un solo frame produce tabelle vuote)
        """
        total_frames = len(frame_source)
        logger.info(f"Fase 1: Stima del movimento su {total_frames} frames...")

        self.raw_motion = []
        self.frame_times = []

        state = self.frame_tracker.initial_state()
        total_motion_x = 0.0
        total_motion_y = 0.0
        total_rotation = 0.0

        frame_idx = 0
        for frame in frame_source.frames():
            start_time = time.time()
            state, motion = self.frame_tracker.track(state, to_gray(frame))
            frame_idx += 1

            if motion is not None:
                self.raw_motion.append(motion)
                self.frame_times.append(time.time() - start_time)
                total_motion_x += abs(motion.dx)
                total_motion_y += abs(motion.dy)
                total_rotation += abs(motion.da)

            if frame_idx % 10 == 0 and progress_callback is not None:
                progress_callback(frame_idx / max(total_frames, 1))
            if show_progress and frame_idx % 30 == 0 and self.raw_motion:
                n_motion = len(self.raw_motion)
                logger.info(
                    f"Progresso: {frame_idx}/{total_frames} - "
                    f"Movimento medio: ({total_motion_x / n_motion:.2f}, "
                    f"{total_motion_y / n_motion:.2f}) px, {total_rotation / n_motion:.4f} rad"
                )

        if progress_callback is not None:
            progress_callback(1.0)

        logger.info(f"Fase 2: Traiettoria, smoothing e trasformazioni ({len(self.raw_motion)} movimenti)")
        self.raw_trajectory = compute_frames_trajectory(self.raw_motion)
        self.trajectory_data = self.trajectory_filter.smooth(self.raw_trajectory)
        self.transformation_data = generate_new_cam_position(self.raw_motion, self.trajectory_data)

        logger.info(f"✅ Analisi completata: {frame_idx} frames letti, "
                    f"{len(self.transformation_data)} trasformazioni")
        return True

    def save_stabilized_data(self, output_path) -> bool:
        """Salva traiettoria smussata e trasformazioni correttive su disco."""
        return save_stabilized_data(output_path, self.trajectory_data, self.transformation_data)

    def load_stabilized_data(self, input_path) -> bool:
        """
        Carica i dati di stabilizzazione da disco.

        Le tabelle in memoria vengono sostituite solo se il caricamento riesce.
        """
        loaded = load_stabilized_data(input_path)
        if loaded is None:
            return False
        self.trajectory_data, self.transformation_data = loaded
        return True

    def get_metrics(self) -> dict:
        """
        Restituisce le metriche raccolte durante l'ultima analisi.

        Returns:
            dict: Dizionario contenente:
                - raw_motion: Lista di tuple (dx, dy, da) moto incrementale stimato
                - raw_trajectory: Lista di tuple (x, y, a) traiettoria assoluta
                - smoothed_trajectory: Lista di tuple (x, y, a) traiettoria smussata
                - rms_dx, rms_dy, rms_angle: Root Mean Square del moto incrementale
                - jitter_reduction_x/y/angle: Riduzione jitter per asse (%)
                - max_offset_x/y: Massima correzione applicata (px)
                - avg_frame_time, total_processing_time: Tempi di tracking (s)
                - num_frames: Numero di trasformazioni calcolate
                - smoothing_window: Semi-ampiezza della finestra usata
        """
        if not self.raw_motion:
            return {'error': 'Nessuna metrica raccolta. Esegui prima process_clip()'}

        motion = np.array(self.raw_motion, dtype=np.float64)
        raw_traj = np.array([self.raw_trajectory[i] for i in sorted(self.raw_trajectory)])
        # Ricalcolata: trajectory_data può essere stata sostituita da un caricamento
        smoothed = self.trajectory_filter.smooth(self.raw_trajectory)
        smooth_traj = np.array([smoothed[i] for i in sorted(self.raw_trajectory)])

        rms = np.sqrt(np.mean(motion ** 2, axis=0))

        # Riduzione jitter: varianza dei passi per-frame, raw vs smoothed
        jitter_reduction = np.zeros(3)
        if len(raw_traj) >= 3:
            raw_var = np.var(np.diff(raw_traj, axis=0), axis=0)
            smooth_var = np.var(np.diff(smooth_traj, axis=0), axis=0)
            for i in range(3):
                if raw_var[i] > 0:
                    jitter_reduction[i] = (1.0 - smooth_var[i] / raw_var[i]) * 100.0

        offsets = smooth_traj - raw_traj

        return {
            'raw_motion': [tuple(float(v) for v in m) for m in self.raw_motion],
            'raw_trajectory': [tuple(float(v) for v in t) for t in raw_traj],
            'smoothed_trajectory': [tuple(float(v) for v in t) for t in smooth_traj],
            'rms_dx': float(rms[0]),
            'rms_dy': float(rms[1]),
            'rms_angle': float(rms[2]),
            'jitter_reduction_x': float(jitter_reduction[0]),
            'jitter_reduction_y': float(jitter_reduction[1]),
            'jitter_reduction_angle': float(jitter_reduction[2]),
            'max_offset_x': float(np.max(np.abs(offsets[:, 0]))),
            'max_offset_y': float(np.max(np.abs(offsets[:, 1]))),
            'avg_frame_time': float(np.mean(self.frame_times)),
            'total_processing_time': float(np.sum(self.frame_times)),
            'num_frames': len(self.transformation_data),
            'smoothing_window': self.trajectory_filter.smoothing_window,
        }
