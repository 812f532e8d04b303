"""
Data Types Module
Strutture dati condivise tra analisi e rendering della stabilizzazione
"""

from typing import NamedTuple


class TransformParam(NamedTuple):
    """
    Trasformazione rigida 2D tra due frame (o correzione per un frame).

    dx, dy sono in pixel, da in radianti.
    """
    dx: float
    dy: float
    da: float


class CamTrajectory(NamedTuple):
    """
    Posizione assoluta (cumulativa) della camera ad un indice di frame.

    L'angolo non viene mai normalizzato: può crescere senza limiti
    su clip lunghe.
    """
    x: float
    y: float
    a: float
