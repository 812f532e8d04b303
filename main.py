"""
Script principale per eseguire la stabilizzazione video
Analisi (tracking + dati su disco) e rendering (applicazione dei dati salvati)
"""

import sys
import json
import logging
import argparse
from pathlib import Path

import cv2

from stabilization.config_loader import load_config
from stabilization.data_types import TransformParam
from stabilization.frame_source import VideoFileSource
from stabilization.stabilizer_effect import StabilizerEffect
from stabilization.video_stabilizer import ClipStabilizer


logger = logging.getLogger(__name__)


def build_parser():
    """Costruisce il parser degli argomenti da linea di comando."""
    parser = argparse.ArgumentParser(description='Video Stabilization System')
    parser.add_argument('--config', type=str, default=None,
                        help='Path al file di configurazione YAML (default: valori predefiniti)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Analizza la clip e salva i dati di stabilizzazione')
    analyze.add_argument('--input', type=str, required=True, help='Path al video di input')
    analyze.add_argument('--data', type=str, default=None,
                         help='Path del file dati (default: <input>.stabilization.data)')

    render = subparsers.add_parser('render', help='Applica i dati di stabilizzazione salvati')
    render.add_argument('--input', type=str, required=True, help='Path al video di input')
    render.add_argument('--data', type=str, default=None,
                        help='Path del file dati (default: <input>.stabilization.data)')
    render.add_argument('--output', type=str, required=True, help='Path al video di output')

    stabilize = subparsers.add_parser('stabilize', help='Analisi, salvataggio e rendering in sequenza')
    stabilize.add_argument('--input', type=str, required=True, help='Path al video di input')
    stabilize.add_argument('--data', type=str, default=None,
                           help='Path del file dati (default: <input>.stabilization.data)')
    stabilize.add_argument('--output', type=str, required=True, help='Path al video di output')

    return parser


def default_data_path(input_path):
    input_path = Path(input_path)
    return input_path.with_name(input_path.name + '.stabilization.data')


def run_analysis(config, input_path, data_path):
    """Prima passata: tracking della clip e salvataggio dei dati."""
    source = VideoFileSource(input_path)
    logger.info(f"Video: {source.width}x{source.height} @ {source.fps:.1f}fps, {len(source)} frames")

    stabilizer = ClipStabilizer(config)
    stabilizer.process_clip(source)

    if not stabilizer.save_stabilized_data(data_path):
        return False
    print(f"✅ Dati di stabilizzazione salvati in: {data_path}")

    if config.get('save_metrics', False):
        metrics = stabilizer.get_metrics()
        metrics_path = Path(data_path).with_suffix('.metrics.json')
        with open(metrics_path, 'w', encoding='utf-8') as f:
            json.dump(metrics, f, indent=2, ensure_ascii=False)
        print(f"✅ Metriche salvate in: {metrics_path}")

    return True


def render_video(config, input_path, data_path, output_path):
    """
    Seconda passata: applica i dati salvati ad ogni frame.

    Le trasformazioni sono indicizzate per movimento: la chiave k corregge
    il frame k + 1 del video. Il frame 0 è l'origine e riceve solo lo zoom.
    """
    effect = StabilizerEffect(config=config)
    if not effect.load_stabilized_data(data_path):
        return False

    source = VideoFileSource(input_path)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    codec = 'MJPG' if output_path.suffix.lower() == '.avi' else 'mp4v'
    fourcc = cv2.VideoWriter_fourcc(*codec)
    out = cv2.VideoWriter(str(output_path), fourcc, source.fps, source.frame_size)

    if not out.isOpened():
        logger.error(f"Impossibile creare il video di output: {output_path}")
        return False

    try:
        for frame_idx, frame in enumerate(source.frames()):
            if frame_idx == 0:
                stabilized = effect.motion_compensator.compensate_frame(frame, TransformParam(0.0, 0.0, 0.0))
            else:
                stabilized = effect.get_frame(frame, frame_idx - 1)
            out.write(stabilized)
    finally:
        out.release()

    print(f"✅ Video stabilizzato salvato in: {output_path}")
    return True


def main(argv=None):
    """
    Funzione principale per eseguire la stabilizzazione video.

    Returns:
        exit_code: 0 in caso di successo, 1 altrimenti
    """
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"❌ Configurazione non valida: {e}")
        return 1

    data_path = Path(args.data) if args.data else default_data_path(args.input)

    try:
        if args.command in ('analyze', 'stabilize'):
            if not run_analysis(config, args.input, data_path):
                print("❌ Errore durante l'analisi della clip")
                return 1

        if args.command in ('render', 'stabilize'):
            if not render_video(config, args.input, data_path, args.output):
                print("❌ Errore durante il rendering della clip")
                return 1
    except (OSError, ValueError, KeyError) as e:
        print(f"❌ Errore: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
