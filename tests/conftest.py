"""
Fixture condivise per i test della stabilizzazione.
"""

import matplotlib
matplotlib.use("Agg")

import cv2
import numpy as np
import pytest


MARGIN = 20


def _base_texture(size, seed=7):
    rng = np.random.default_rng(seed)
    noise = rng.integers(0, 256, size=(size[1] + 2 * MARGIN, size[0] + 2 * MARGIN), dtype=np.uint8)
    return cv2.GaussianBlur(noise, (7, 7), 2.0)


def _crop_shifted(base, size, offset):
    """Ritaglio tale che il contenuto risulti spostato di offset=(dx, dy)."""
    dx, dy = offset
    x0 = MARGIN - dx
    y0 = MARGIN - dy
    return base[y0:y0 + size[1], x0:x0 + size[0]].copy()


@pytest.fixture
def textured_frames():
    """
    Factory: restituisce frame grayscale con contenuto spostato delle
    posizioni cumulative indicate (interi, in pixel).
    """
    def _make(positions, size=(200, 160)):
        base = _base_texture(size)
        return [_crop_shifted(base, size, pos) for pos in positions]
    return _make
