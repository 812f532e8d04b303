"""
Frame Tracking Module
Stima del movimento rigido tra frame consecutivi tramite optical flow
"""

import logging
import math
from typing import Callable, NamedTuple, Optional, Tuple

import cv2
import numpy as np

from .data_types import TransformParam


logger = logging.getLogger(__name__)

# Matrice 2x3 usata come "ultima trasformazione valida" prima della prima stima
IDENTITY_TRANSFORM = np.array([[1.0, 0.0, 0.0],
                               [0.0, 1.0, 0.0]])

# estimator(prev_points, curr_points) -> matrice 2x3 oppure None
TransformEstimator = Callable[[np.ndarray, np.ndarray], Optional[np.ndarray]]


class TrackerState(NamedTuple):
    """
    Stato passato da una chiamata di tracking alla successiva.

    prev_gray: frame precedente in scala di grigi (None prima del primo frame)
    last_transform: ultima matrice 2x3 stimata con successo
    """
    prev_gray: Optional[np.ndarray] = None
    last_transform: np.ndarray = IDENTITY_TRANSFORM


def freeze_last_transform(state: TrackerState) -> np.ndarray:
    """
    Politica di fallback quando la stima non è possibile.

    Riusa l'ultima trasformazione valida così com'è: il movimento viene
    "congelato" invece di sollevare un errore.
    """
    return np.array(state.last_transform, dtype=np.float64, copy=True)


class FrameTracker:
    """
    Stima il movimento (dx, dy, da) tra due frame consecutivi.

    Shi-Tomasi corners sul frame precedente, Lucas-Kanade per seguirli nel
    frame corrente, quindi stima robusta (RANSAC) della trasformazione
    rigida. Il tracker non ha stato interno: lo stato viaggia in TrackerState.
    """

    def __init__(self,
                 max_corners: int = 200,
                 quality_level: float = 0.01,
                 min_distance: float = 30.0,
                 min_correspondences: int = 3,
                 win_size: int = 21,
                 max_level: int = 3,
                 ransac_reproj_threshold: float = 3.0,
                 estimator: Optional[TransformEstimator] = None):
        """
        Inizializza il Frame Tracker.

        Args:
            max_corners: Numero massimo di feature rilevate per frame
            quality_level: Qualità minima relativa dei corner (Shi-Tomasi)
            min_distance: Distanza minima tra i corner (pixel)
            min_correspondences: Corrispondenze minime per tentare la stima
            win_size: Finestra di ricerca di Lucas-Kanade
            max_level: Livelli della piramide di Lucas-Kanade
            ransac_reproj_threshold: Soglia di riproiezione per RANSAC (pixel)
            estimator: Stimatore alternativo della trasformazione (opzionale)
        """
        if max_corners < 1:
            raise ValueError(f"max_corners deve essere >= 1, ricevuto {max_corners}")
        if min_correspondences < 2:
            raise ValueError(
                f"min_correspondences deve essere >= 2, ricevuto {min_correspondences}"
            )
        if not (0.0 < quality_level < 1.0):
            raise ValueError(f"quality_level deve essere in (0, 1), ricevuto {quality_level}")
        if win_size <= 2:
            raise ValueError(f"win_size deve essere > 2, ricevuto {win_size}")
        if max_level < 0:
            raise ValueError(f"max_level deve essere >= 0, ricevuto {max_level}")

        self.max_corners = int(max_corners)
        self.quality_level = float(quality_level)
        self.min_distance = float(min_distance)
        self.min_correspondences = int(min_correspondences)
        self.win_size = int(win_size)
        self.max_level = int(max_level)
        self.ransac_reproj_threshold = float(ransac_reproj_threshold)
        self.estimator = estimator or self._estimate_rigid_transform

    @staticmethod
    def initial_state() -> TrackerState:
        """Stato iniziale: nessun frame precedente, trasformazione identità."""
        return TrackerState()

    def track(self,
              state: TrackerState,
              curr_gray: np.ndarray) -> Tuple[TrackerState, Optional[TransformParam]]:
        """
        Stima il movimento dal frame in state al frame corrente.

        Args:
            state: Stato restituito dalla chiamata precedente
            curr_gray: Frame corrente in scala di grigi

        Returns:
            new_state: Stato da passare alla chiamata successiva
            motion: Movimento stimato, None al primo frame
        """
        # Primo frame: nessuna coppia da confrontare
        if state.prev_gray is None:
            return TrackerState(curr_gray, state.last_transform), None

        p0_good, p1_good = self._extract_lk_matches(state.prev_gray, curr_gray)
        n_good = 0 if p0_good is None else len(p0_good)
        logger.debug(f"Good optical flow: {n_good} corrispondenze")

        T = None
        if n_good >= self.min_correspondences:
            T = self.estimator(p0_good, p1_good)

        if T is None:
            logger.warning(
                f"Stima fallita ({n_good} corrispondenze), riuso l'ultima trasformazione valida"
            )
            T = freeze_last_transform(state)

        motion = self.decompose_transform(T)
        return TrackerState(curr_gray, T), motion

    @staticmethod
    def decompose_transform(T: np.ndarray) -> TransformParam:
        """
        Scompone una matrice affine 2x3 in (dx, dy, da).

        L'eventuale scala uniforme viene ignorata: l'angolo dipende solo
        dal rapporto tra le componenti seno e coseno.
        """
        dx = float(T[0, 2])
        dy = float(T[1, 2])
        da = math.atan2(float(T[1, 0]), float(T[0, 0]))
        return TransformParam(dx, dy, da)

    def _extract_lk_matches(self,
                            prev_gray: np.ndarray,
                            curr_gray: np.ndarray) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
        """Estrae corrispondenze usando Shi-Tomasi corners + Lucas-Kanade optical flow."""
        p0 = cv2.goodFeaturesToTrack(
            prev_gray,
            maxCorners=self.max_corners,
            qualityLevel=self.quality_level,
            minDistance=self.min_distance,
        )

        if p0 is None or len(p0) == 0:
            return None, None

        criteria = (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, 30, 0.01)

        p1, st, _err = cv2.calcOpticalFlowPyrLK(
            prev_gray,
            curr_gray,
            p0,
            None,
            winSize=(self.win_size, self.win_size),
            maxLevel=self.max_level,
            criteria=criteria,
        )

        if p1 is None or st is None:
            return None, None

        # Scarta le feature non tracciate
        st = st.reshape(-1) == 1
        p0_good = p0.reshape(-1, 2)[st]
        p1_good = p1.reshape(-1, 2)[st]

        return p0_good, p1_good

    def _estimate_rigid_transform(self,
                                  p0_good: np.ndarray,
                                  p1_good: np.ndarray) -> Optional[np.ndarray]:
        """Stima rotazione + traslazione (4 parametri) con RANSAC."""
        M, _inliers = cv2.estimateAffinePartial2D(
            p0_good,
            p1_good,
            method=cv2.RANSAC,
            ransacReprojThreshold=self.ransac_reproj_threshold,
        )
        return M
