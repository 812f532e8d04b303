"""Caricamento della configurazione YAML e valori di default"""
import copy
from pathlib import Path

import yaml


DEFAULT_CONFIG = {
    'feature_tracking': {
        'max_corners': 200,
        'quality_level': 0.01,
        'min_distance': 30,
        'min_correspondences': 3,
        'win_size': 21,
        'max_level': 3,
        'ransac_reproj_threshold': 3.0,
    },
    'trajectory_smoothing': {
        'smoothing_window': 30,
    },
    'motion_compensation': {
        'zoom': 1.04,
        'border_mode': 'constant',
    },
    'save_metrics': False,
}


def _merge(base, override):
    """Sovrascrive ricorsivamente i valori di base con quelli di override."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path=None):
    """
    Carica il file YAML di configurazione e lo completa con i default.

    Args:
        config_path: Path al file YAML. Se None usa solo DEFAULT_CONFIG.

    Returns:
        dict con le sezioni feature_tracking, trajectory_smoothing,
        motion_compensation e la chiave save_metrics
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"File di configurazione non trovato: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f)

    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"Configurazione non valida in {config_path}: atteso un dizionario")

    return _merge(DEFAULT_CONFIG, raw)
