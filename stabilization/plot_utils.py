"""Funzioni di plotting per i dati di stabilizzazione"""
import numpy as np
import matplotlib.pyplot as plt


def create_stabilization_plot(trajectory_data, transformation_data):
    """Crea grafico della traiettoria smussata e delle correzioni per frame"""
    if not trajectory_data:
        return None

    indices = sorted(trajectory_data)
    smooth = np.array([trajectory_data[i] for i in indices])
    transforms = np.array([transformation_data[i] for i in indices])

    fig, axes = plt.subplots(2, 1, figsize=(10, 6), sharex=True)

    axes[0].plot(indices, smooth[:, 0], label='Smoothed X', linewidth=2)
    axes[0].plot(indices, smooth[:, 1], label='Smoothed Y', linewidth=2)
    axes[0].set_ylabel('Posizione (px)')
    axes[0].set_title('Traiettoria smussata')
    axes[0].legend()
    axes[0].grid(True, alpha=0.3)

    axes[1].plot(indices, transforms[:, 0], label='dx', alpha=0.7, linewidth=1)
    axes[1].plot(indices, transforms[:, 1], label='dy', alpha=0.7, linewidth=1)
    axes[1].plot(indices, np.degrees(transforms[:, 2]), label='da (gradi)', alpha=0.7, linewidth=1)
    axes[1].set_xlabel('Frame')
    axes[1].set_title('Trasformazioni correttive')
    axes[1].legend()
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    return fig
