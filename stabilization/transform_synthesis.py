"""
Transform Synthesis Module
Calcolo delle trasformazioni correttive che portano ogni frame sulla traiettoria smussata
"""

from typing import Dict, Sequence

from .data_types import CamTrajectory, TransformParam


def generate_new_cam_position(motions: Sequence[TransformParam],
                              smoothed_trajectory: Dict[int, CamTrajectory]) -> Dict[int, TransformParam]:
    """
    Genera le trasformazioni correttive per seguire la traiettoria smussata.

    Per ogni indice i:
        correzione[i] = movimento[i] + (smussata[i] - traiettoria[i])
    dove traiettoria[i] è la somma cumulativa dei movimenti fino a i.

    Args:
        motions: Movimenti grezzi tra frame consecutivi
        smoothed_trajectory: Traiettoria smussata indicizzata per frame

    Returns:
        transforms: Dizionario indice -> TransformParam correttiva

    Raises:
        KeyError: se la traiettoria smussata non copre un indice dei movimenti
    """
    x = 0.0
    y = 0.0
    a = 0.0

    transforms = {}
    for i, motion in enumerate(motions):
        x += motion.dx
        y += motion.dy
        a += motion.da

        if i not in smoothed_trajectory:
            raise KeyError(
                f"Traiettoria smussata incompleta: manca l'indice {i} "
                f"({len(motions)} movimenti, {len(smoothed_trajectory)} voci smussate)"
            )
        target = smoothed_trajectory[i]

        # target - posizione corrente
        diff_x = target.x - x
        diff_y = target.y - y
        diff_a = target.a - a

        transforms[i] = TransformParam(motion.dx + diff_x,
                                       motion.dy + diff_y,
                                       motion.da + diff_a)

    return transforms
