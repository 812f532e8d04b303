"""
Stabilization Store Module
Salvataggio e caricamento dei dati di stabilizzazione in formato protobuf
"""

import functools
import logging
import numbers
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, timestamp_pb2
from google.protobuf.message import DecodeError

from .data_types import CamTrajectory, TransformParam


logger = logging.getLogger(__name__)

PROTO_PACKAGE = 'libopenshotstabilize'

# Ordine dei campi float del messaggio Frame (numeri di campo 2..7)
FRAME_FLOAT_FIELDS = ('x', 'y', 'a', 'dx', 'dy', 'da')

StabilizationData = Tuple[Dict[int, CamTrajectory], Dict[int, TransformParam]]


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Costruisce il descrittore equivalente a stabilizedata.proto."""
    field_proto = descriptor_pb2.FieldDescriptorProto

    file_proto = descriptor_pb2.FileDescriptorProto(
        name='stabilizedata.proto',
        package=PROTO_PACKAGE,
        syntax='proto3',
        dependency=['google/protobuf/timestamp.proto'],
    )

    frame = file_proto.message_type.add(name='Frame')
    frame.field.add(name='id', number=1,
                    type=field_proto.TYPE_UINT64, label=field_proto.LABEL_OPTIONAL)
    for number, name in enumerate(FRAME_FLOAT_FIELDS, start=2):
        frame.field.add(name=name, number=number,
                        type=field_proto.TYPE_FLOAT, label=field_proto.LABEL_OPTIONAL)

    stabilization = file_proto.message_type.add(name='Stabilization')
    stabilization.field.add(name='frame', number=1,
                            type=field_proto.TYPE_MESSAGE, label=field_proto.LABEL_REPEATED,
                            type_name=f'.{PROTO_PACKAGE}.Frame')
    stabilization.field.add(name='last_updated', number=2,
                            type=field_proto.TYPE_MESSAGE, label=field_proto.LABEL_OPTIONAL,
                            type_name='.google.protobuf.Timestamp')
    return file_proto


@functools.lru_cache(maxsize=None)
def stabilization_message_class():
    """
    Restituisce la classe del messaggio Stabilization.

    Il descrittore viene registrato una sola volta per processo in un pool
    privato; non esiste uno shutdown per chiamata.
    """
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(timestamp_pb2.DESCRIPTOR.serialized_pb)
    pool.AddSerializedFile(_build_file_descriptor().SerializeToString())
    descriptor = pool.FindMessageTypeByName(f'{PROTO_PACKAGE}.Stabilization')
    return message_factory.GetMessageClass(descriptor)


def _file_mode(path: Path) -> int:
    """Permessi del file salvato: quelli del file esistente, altrimenti 0666 meno la umask."""
    if path.exists():
        return path.stat().st_mode & 0o777
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def save_stabilized_data(output_path,
                         trajectory_data: Dict[int, CamTrajectory],
                         transformation_data: Dict[int, TransformParam]) -> bool:
    """
    Salva traiettoria smussata e trasformazioni correttive su disco.

    Il messaggio viene costruito interamente in memoria, scritto in un file
    temporaneo nella stessa cartella e poi sostituito al file di destinazione.

    Args:
        output_path: Path del file di output
        trajectory_data: Traiettoria smussata indicizzata per frame
        transformation_data: Trasformazioni correttive indicizzate per frame

    Returns:
        success: True se il file è stato scritto
    """
    if set(trajectory_data) != set(transformation_data):
        logger.error(
            f"Indici incoerenti: {len(trajectory_data)} voci di traiettoria, "
            f"{len(transformation_data)} trasformazioni"
        )
        return False

    invalid = [k for k in trajectory_data
               if isinstance(k, bool) or not isinstance(k, numbers.Integral) or k < 0]
    if invalid:
        logger.error(f"Indici di frame non validi (attesi interi >= 0): {invalid[:5]}")
        return False

    message = stabilization_message_class()()
    for frame_number in sorted(trajectory_data):
        traj = trajectory_data[frame_number]
        trans = transformation_data[frame_number]
        message.frame.add(
            id=int(frame_number),
            x=traj.x, y=traj.y, a=traj.a,
            dx=trans.dx, dy=trans.dy, da=trans.da,
        )
    message.last_updated.seconds = int(time.time())
    payload = message.SerializeToString()

    output_path = Path(output_path)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=output_path.parent, prefix=f'.{output_path.name}.', suffix='.tmp'
        )
        with os.fdopen(fd, 'wb') as f:
            f.write(payload)
        os.chmod(tmp_path, _file_mode(output_path))
        os.replace(tmp_path, output_path)
        tmp_path = None
    except OSError as e:
        logger.error(f"Impossibile scrivere i dati di stabilizzazione in {output_path}: {e}")
        return False
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    logger.info(f"Dati di stabilizzazione salvati: {output_path} ({len(message.frame)} frames)")
    return True


def load_stabilized_data(input_path) -> Optional[StabilizationData]:
    """
    Carica i dati di stabilizzazione salvati da save_stabilized_data().

    I record sono indicizzati dal loro campo id, l'ordine nel file è
    irrilevante.

    Args:
        input_path: Path del file da leggere

    Returns:
        (trajectory_data, transformation_data), oppure None se il file non
        può essere aperto o non è un messaggio valido
    """
    message = stabilization_message_class()()
    try:
        with open(input_path, 'rb') as f:
            message.ParseFromString(f.read())
    except OSError as e:
        logger.warning(f"Impossibile aprire i dati di stabilizzazione {input_path}: {e}")
        return None
    except DecodeError as e:
        logger.warning(f"Dati di stabilizzazione non validi in {input_path}: {e}")
        return None

    trajectory_data = {}
    transformation_data = {}
    for frame in message.frame:
        trajectory_data[frame.id] = CamTrajectory(frame.x, frame.y, frame.a)
        transformation_data[frame.id] = TransformParam(frame.dx, frame.dy, frame.da)

    if message.HasField('last_updated'):
        saved_at = datetime.fromtimestamp(message.last_updated.seconds, tz=timezone.utc)
        logger.info(
            f"Dati caricati: {len(trajectory_data)} frames. "
            f"Timestamp salvataggio: {saved_at.isoformat()}"
        )

    return trajectory_data, transformation_data
