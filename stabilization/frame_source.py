"""
Frame Source Module
Sorgenti di frame per la passata di analisi e per il rendering
"""

from typing import Iterator, List, Tuple

import cv2
import numpy as np


class VideoFileSource:
    """Legge i frame (BGR) di un file video tramite OpenCV."""

    def __init__(self, path):
        self.path = str(path)
        cap = self._open()
        try:
            self.fps = cap.get(cv2.CAP_PROP_FPS)
            self.width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            self.height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            self.frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        finally:
            cap.release()

        # Fallback a 30 fps se il valore letto è invalido
        if self.fps <= 0 or self.fps > 240:
            self.fps = 30.0

    @property
    def frame_size(self) -> Tuple[int, int]:
        return self.width, self.height

    def __len__(self) -> int:
        return self.frame_count

    def frames(self) -> Iterator[np.ndarray]:
        """Restituisce i frame in ordine, rilasciando il video alla fine."""
        cap = self._open()
        try:
            while True:
                ret, frame = cap.read()
                if not ret:
                    break
                yield frame
        finally:
            cap.release()

    def _open(self):
        cap = cv2.VideoCapture(self.path)
        if not cap.isOpened():
            raise IOError(f"Impossibile aprire il video: {self.path}")
        return cap


class ArrayFrameSource:
    """Sorgente di frame già in memoria (lista di array BGR o grayscale)."""

    def __init__(self, frames: List[np.ndarray], fps: float = 30.0):
        self._frames = list(frames)
        self.fps = fps

    @property
    def frame_size(self) -> Tuple[int, int]:
        if not self._frames:
            return 0, 0
        h, w = self._frames[0].shape[:2]
        return w, h

    def __len__(self) -> int:
        return len(self._frames)

    def frames(self) -> Iterator[np.ndarray]:
        return iter(self._frames)
