"""
Script per visualizzare un file di dati di stabilizzazione.
Disegna la traiettoria smussata e le trasformazioni correttive per frame.

Usage:
    python scripts/plot_stabilization_data.py clip.mp4.stabilization.data [output.png]
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stabilization.plot_utils import create_stabilization_plot  # noqa: E402
from stabilization.stabilization_store import load_stabilized_data  # noqa: E402


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    data_path = Path(sys.argv[1])
    output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else data_path.with_suffix('.png')

    loaded = load_stabilized_data(data_path)
    if loaded is None:
        print(f"❌ Impossibile leggere: {data_path}")
        return 1

    trajectory_data, transformation_data = loaded
    fig = create_stabilization_plot(trajectory_data, transformation_data)
    if fig is None:
        print("Nessun frame nei dati di stabilizzazione")
        return 1

    fig.savefig(output_path, dpi=150)
    print(f"✅ Grafico salvato in: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
