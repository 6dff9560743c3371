"""
checkpoint.py
~~~~~~~~~~~~~

JSON snapshots of a network plus the training metadata needed to resume.

File layout::

    {
      "metadata": {"example": "xor", "epoch": 100, "total_epochs": 100,
                   "learning_rate": 0.5},
      "network": {"layers": [...], "weights": [...], "biases": [...],
                  "activation": "sigmoid", "learning_rate": 0.5}
    }

Writes go through a temporary file in the target directory followed by
``os.replace``, so a reader sees either the previous checkpoint or the new
one, never a partial file.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from .errors import CheckpointFormatError, CheckpointIOError
from .matrix import _is_int, _is_number
from .network import Network

logger = logging.getLogger(__name__)

DEFAULT_EXAMPLE_NAME = 'custom'


class NetworkEncoder(json.JSONEncoder):
    """JSON encoder that also accepts numpy scalars and arrays."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        return super().default(obj)


@dataclass
class CheckpointMetadata:
    """Training metadata stored next to the network."""

    example: str
    epoch: int
    total_epochs: int
    learning_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'example': self.example,
            'epoch': self.epoch,
            'total_epochs': self.total_epochs,
            'learning_rate': self.learning_rate,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'CheckpointMetadata':
        if not isinstance(payload, dict):
            raise CheckpointFormatError("Checkpoint metadata must be an object")

        missing = [
            key for key in ('example', 'epoch', 'total_epochs', 'learning_rate')
            if key not in payload
        ]
        if missing:
            raise CheckpointFormatError(
                f"Checkpoint metadata is missing field(s): {', '.join(missing)}"
            )
        if not isinstance(payload['example'], str):
            raise CheckpointFormatError("metadata.example must be a string")
        for key in ('epoch', 'total_epochs'):
            if not _is_int(payload[key]) or payload[key] < 0:
                raise CheckpointFormatError(
                    f"metadata.{key} must be a non-negative integer, "
                    f"got {payload[key]!r}"
                )
        if not _is_number(payload['learning_rate']):
            raise CheckpointFormatError(
                "metadata.learning_rate must be a number, "
                f"got {payload['learning_rate']!r}"
            )

        return cls(
            example=payload['example'],
            epoch=payload['epoch'],
            total_epochs=payload['total_epochs'],
            learning_rate=float(payload['learning_rate']),
        )


@dataclass
class Checkpoint:
    """A network snapshot plus the metadata of the run that produced it."""

    metadata: CheckpointMetadata
    network: Network

    @classmethod
    def capture(
        cls,
        network: Network,
        epoch: int,
        total_epochs: int,
        example: str = DEFAULT_EXAMPLE_NAME
    ) -> 'Checkpoint':
        """Snapshot ``network`` by value; later training does not alter it."""
        return cls(
            metadata=CheckpointMetadata(
                example=example,
                epoch=epoch,
                total_epochs=total_epochs,
                learning_rate=network.learning_rate,
            ),
            network=network.copy(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metadata': self.metadata.to_dict(),
            'network': self.network.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'Checkpoint':
        """
        Validate and rebuild a checkpoint.

        Raises:
            CheckpointFormatError: If any field is missing, mistyped or
                dimensionally inconsistent
        """
        if not isinstance(payload, dict):
            raise CheckpointFormatError("Checkpoint must be a JSON object")
        for key in ('metadata', 'network'):
            if key not in payload:
                raise CheckpointFormatError(f"Checkpoint is missing '{key}'")

        return cls(
            metadata=CheckpointMetadata.from_dict(payload['metadata']),
            network=Network.from_dict(payload['network']),
        )

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), cls=NetworkEncoder, indent=indent)

    @classmethod
    def from_json(cls, text: str) -> 'Checkpoint':
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise CheckpointFormatError(f"Checkpoint is not valid JSON: {e}") from e
        return cls.from_dict(payload)

    def save(self, path: str) -> None:
        save_checkpoint(self, path)

    @classmethod
    def load(cls, path: str) -> 'Checkpoint':
        return load_checkpoint(path)


def save_checkpoint(checkpoint: Checkpoint, path: str) -> None:
    """
    Atomically write ``checkpoint`` to ``path`` as JSON.

    Args:
        checkpoint: Checkpoint to persist
        path: Destination file; missing parent directories are created

    Raises:
        CheckpointIOError: If the file cannot be written
    """
    if not path:
        raise CheckpointIOError(str(path), "no checkpoint path given")

    content = checkpoint.to_json()
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix='.checkpoint-', suffix='.tmp', dir=directory
        )
        with os.fdopen(fd, 'w', encoding='utf-8') as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise CheckpointIOError(path, e.strerror or str(e)) from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.info(
        f"Saved checkpoint to {path} "
        f"(epoch {checkpoint.metadata.epoch}/{checkpoint.metadata.total_epochs})"
    )


def load_checkpoint(path: str) -> Checkpoint:
    """
    Read and validate a checkpoint file.

    Raises:
        CheckpointIOError: If the file is missing or unreadable
        CheckpointFormatError: If the content is not a valid checkpoint
    """
    try:
        with open(path, 'rb') as handle:
            raw = handle.read()
    except OSError as e:
        raise CheckpointIOError(path, e.strerror or str(e)) from e

    try:
        content = raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise CheckpointFormatError(
            f"Checkpoint {path} is not valid UTF-8: {e}"
        ) from e

    checkpoint = Checkpoint.from_json(content)
    logger.debug(f"Loaded checkpoint {path}: layers {checkpoint.network.layers}")
    return checkpoint
