"""
Trajectory Smoothing Module
Accumulo della traiettoria della camera e filtraggio a media mobile
"""

from typing import Dict, Sequence

import numpy as np

from .data_types import CamTrajectory, TransformParam


def compute_frames_trajectory(motions: Sequence[TransformParam]) -> Dict[int, CamTrajectory]:
    """
    Integra i movimenti incrementali in una traiettoria assoluta.

    Il frame 0 è l'origine implicita: l'indice i della traiettoria contiene
    la somma dei movimenti 0..i inclusi. L'angolo non viene normalizzato.

    Args:
        motions: Movimenti (dx, dy, da) tra frame consecutivi

    Returns:
        trajectory: Dizionario indice -> CamTrajectory
    """
    x = 0.0
    y = 0.0
    a = 0.0

    trajectory = {}
    for i, motion in enumerate(motions):
        x += motion.dx
        y += motion.dy
        a += motion.da
        trajectory[i] = CamTrajectory(x, y, a)

    return trajectory


class TrajectoryFilter:
    """
    Filtro temporale a media mobile sulla traiettoria della camera.
    Separa il movimento intenzionale dal jitter.
    """

    def __init__(self, smoothing_window: int = 30):
        """
        Inizializza il Trajectory Filter.

        Args:
            smoothing_window: Semi-ampiezza W della finestra: la media del
                frame i usa gli indici [i - W, i + W] presenti nella traiettoria
        """
        if smoothing_window is None or int(smoothing_window) < 0:
            raise ValueError(f"smoothing_window deve essere >= 0, ricevuto {smoothing_window}")
        self.smoothing_window = int(smoothing_window)

    def smooth(self, trajectory: Dict[int, CamTrajectory]) -> Dict[int, CamTrajectory]:
        """
        Restituisce la traiettoria smussata.

        Ai bordi la finestra viene troncata: il divisore è il numero di
        vicini effettivamente presenti, non 2W + 1.

        Args:
            trajectory: Dizionario indice -> CamTrajectory

        Returns:
            smoothed: Dizionario indice -> CamTrajectory con le stesse chiavi
        """
        if not trajectory:
            return {}

        indices = np.array(sorted(trajectory), dtype=np.int64)
        values = np.array([trajectory[i] for i in indices], dtype=np.float64)

        # Somme cumulative con uno zero iniziale: la somma di values[s:e]
        # vale cumulative[e] - cumulative[s]
        cumulative = np.vstack([np.zeros((1, 3)), np.cumsum(values, axis=0)])

        # Per ogni indice, limiti della finestra tra le chiavi esistenti
        start = np.searchsorted(indices, indices - self.smoothing_window, side='left')
        end = np.searchsorted(indices, indices + self.smoothing_window, side='right')
        counts = (end - start).astype(np.float64)

        means = (cumulative[end] - cumulative[start]) / counts[:, None]
        if self.smoothing_window == 0:
            # Identità esatta, senza errori di arrotondamento delle somme
            means = values

        return {
            int(i): CamTrajectory(float(m[0]), float(m[1]), float(m[2]))
            for i, m in zip(indices, means)
        }
