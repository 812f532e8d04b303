"""
Stabilizer Effect - Passata di Rendering
Applica ad ogni frame la trasformazione correttiva caricata da disco
"""

import logging
from typing import Dict, Optional

import numpy as np

from .config_loader import DEFAULT_CONFIG
from .data_types import CamTrajectory, TransformParam
from .motion_compensation import MotionCompensator
from .stabilization_store import load_stabilized_data


logger = logging.getLogger(__name__)


class StabilizerEffect:
    """
    Effetto di stabilizzazione lato rendering.

    Non esegue tracking: usa solo i dati prodotti da ClipStabilizer e
    salvati con save_stabilized_data(). Dopo il caricamento la lettura è
    in sola lettura, quindi get_frame() può essere chiamato in parallelo
    su frame diversi.
    """

    def __init__(self, data_path=None, config: Optional[dict] = None):
        """
        Inizializza l'effetto.

        Args:
            data_path: File con i dati di stabilizzazione da caricare subito (opzionale)
            config: Dizionario di configurazione (opzionale)
        """
        config = config or {}
        mc_config = {**DEFAULT_CONFIG['motion_compensation'], **(config.get('motion_compensation') or {})}

        self.motion_compensator = MotionCompensator(
            zoom=mc_config['zoom'],
            border_mode=mc_config['border_mode']
        )

        self.trajectory_data: Dict[int, CamTrajectory] = {}
        self.transformation_data: Dict[int, TransformParam] = {}

        if data_path is not None and not self.load_stabilized_data(data_path):
            logger.error(f"Dati di stabilizzazione non caricati: {data_path}")

    def load_stabilized_data(self, input_path) -> bool:
        """
        Carica i dati di stabilizzazione.

        Le tabelle vengono sostituite solo se il caricamento riesce.
        """
        loaded = load_stabilized_data(input_path)
        if loaded is None:
            return False
        self.trajectory_data, self.transformation_data = loaded
        return True

    def get_frame(self, frame: np.ndarray, frame_number: int) -> np.ndarray:
        """
        Restituisce il frame stabilizzato.

        Args:
            frame: Pixel del frame (grayscale o BGR)
            frame_number: Indice del frame nei dati di stabilizzazione

        Returns:
            stabilized_frame: Frame trasformato, stesse dimensioni dell'input

        Raises:
            KeyError: se non esiste una trasformazione per frame_number
        """
        transform = self.transformation_data.get(frame_number)
        if transform is None:
            raise KeyError(
                f"Nessuna trasformazione per il frame {frame_number} "
                f"({len(self.transformation_data)} frames caricati)"
            )
        return self.motion_compensator.compensate_frame(frame, transform)
