"""
Motion Compensation Module
Applicazione della trasformazione correttiva e dello zoom fisso ad un frame
"""

import numpy as np
import cv2

from .data_types import TransformParam


class MotionCompensator:
    """
    Classe per la compensazione del movimento di un singolo frame.
    """

    def __init__(self,
                 zoom: float = 1.04,
                 border_mode: str = 'constant'):
        """
        Inizializza il Motion Compensator.

        Args:
            zoom: Zoom uniforme attorno al centro per nascondere i bordi neri
            border_mode: Modalità di gestione bordi ('constant', 'replicate', 'reflect')
        """
        self._border_mode_map = {
            'replicate': cv2.BORDER_REPLICATE,
            'reflect': cv2.BORDER_REFLECT,
            'constant': cv2.BORDER_CONSTANT
        }
        if zoom is None or float(zoom) <= 0:
            raise ValueError(f"zoom deve essere > 0, ricevuto {zoom}")
        if border_mode not in self._border_mode_map:
            raise ValueError(f"Unknown border mode: {border_mode}")

        self.zoom = float(zoom)
        self.border_mode = border_mode

    def compensate_frame(self, frame: np.ndarray, transform: TransformParam) -> np.ndarray:
        """
        Applica la trasformazione correttiva e lo zoom fisso.

        Args:
            frame: Frame da stabilizzare (grayscale o BGR)
            transform: Correzione (dx, dy, da) per questo frame

        Returns:
            stabilized_frame: Frame stabilizzato, stesse dimensioni dell'input
        """
        h, w = frame.shape[:2]

        # Fase 1: rotazione di da + traslazione (dx, dy)
        stabilized = self.apply_transform(frame, transform)

        # Fase 2: zoom attorno al centro, senza rotazione, per eliminare i bordi
        T_scale = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), 0, self.zoom)
        return self._warp(stabilized, T_scale)

    def apply_transform(self, frame: np.ndarray, transform: TransformParam) -> np.ndarray:
        """Applica solo la trasformazione correttiva, senza zoom."""
        return self._warp(frame, self.create_affine_matrix(transform))

    @staticmethod
    def create_affine_matrix(transform: TransformParam) -> np.ndarray:
        """
        Crea la matrice 2x3 di rotazione + traslazione.

        Args:
            transform: Correzione con angolo in radianti

        Returns:
            T: Matrice di trasformazione 2x3
        """
        cos_a = np.cos(transform.da)
        sin_a = np.sin(transform.da)
        return np.array([
            [cos_a, -sin_a, transform.dx],
            [sin_a, cos_a, transform.dy]
        ], dtype=np.float64)

    def _warp(self, frame: np.ndarray, M: np.ndarray) -> np.ndarray:
        h, w = frame.shape[:2]

        # Adatta borderValue al numero di canali del frame
        if len(frame.shape) == 2:
            border_value = 0
        else:
            border_value = (0,) * frame.shape[2]

        return cv2.warpAffine(
            frame,
            M,
            (w, h),
            flags=cv2.INTER_LINEAR,
            borderMode=self._border_mode_map[self.border_mode],
            borderValue=border_value
        )
