"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

Model storage for the API server.

- ``ModelDatabase``: SQLite table of trained networks, stored as
  checkpoint-schema JSON so a row can be exported as a checkpoint file.
- ``ModelRegistry``: in-memory store keyed by model id, guarded by a single
  lock, optionally writing through to a ``ModelDatabase``.
"""

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional

from .checkpoint import Checkpoint, CheckpointMetadata, NetworkEncoder
from .errors import CheckpointFormatError
from .network import Network

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class StoredModel:
    """A trained network plus the parameters it was trained with."""

    network: Network
    example: str
    epochs: int
    learning_rate: float

    def info(self, model_id: str) -> Dict[str, Any]:
        return {
            'model_id': model_id,
            'example': self.example,
            'architecture': list(self.network.layers),
            'epochs': self.epochs,
            'learning_rate': self.learning_rate,
            'total_parameters': self.network.parameter_count(),
        }

    def to_checkpoint(self) -> Checkpoint:
        return Checkpoint(
            metadata=CheckpointMetadata(
                example=self.example,
                epoch=self.epochs,
                total_epochs=self.epochs,
                learning_rate=self.learning_rate,
            ),
            network=self.network.copy(),
        )


class ModelDatabase:
    """
    Manages SQLite database for trained model persistence.

    The database stores:
    - Model metadata (example, architecture, epochs, learning rate)
    - The network itself as checkpoint-schema JSON
    """

    def __init__(self, db_path: str = 'models/models.db'):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_directory()
        self._initialize_schema()

    def _ensure_directory(self) -> None:
        """Create the database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS models (
                    model_id TEXT PRIMARY KEY,
                    example TEXT NOT NULL,
                    architecture TEXT NOT NULL,
                    network_json TEXT NOT NULL,
                    epochs INTEGER NOT NULL DEFAULT 0,
                    learning_rate REAL NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_models_created_at
                ON models(created_at DESC)
            ''')

    def save_model_to_db(self, model_id: str, model: StoredModel) -> bool:
        """
        Insert or replace a model.

        Args:
            model_id: Unique identifier for the model
            model: Network and training parameters to store

        Returns:
            bool: True if successful

        Raises:
            ValueError: If epochs or learning rate are invalid
        """
        if model.epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {model.epochs}")
        if model.learning_rate <= 0:
            raise ValueError(
                f"learning_rate must be positive, got {model.learning_rate}"
            )

        network_json = json.dumps(model.network.to_dict(), cls=NetworkEncoder)
        architecture_json = json.dumps(model.network.layers)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO models
                (model_id, example, architecture, network_json, epochs,
                 learning_rate, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            ''', (
                model_id,
                model.example,
                architecture_json,
                network_json,
                model.epochs,
                model.learning_rate
            ))

        logger.info(
            f"Saved model '{model_id}' ({model.example}) with architecture "
            f"{model.network.layers}, epochs={model.epochs}"
        )
        return True

    def load_model_from_db(self, model_id: str) -> Optional[StoredModel]:
        """
        Load a model from the database.

        Returns:
            StoredModel or None if not found

        Raises:
            CheckpointFormatError: If the stored network is corrupt
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT example, network_json, epochs, learning_rate '
                'FROM models WHERE model_id = ?',
                (model_id,)
            )
            row = cursor.fetchone()

            if row is None:
                logger.warning(f"Model '{model_id}' not found")
                return None

            network = Network.from_json(row['network_json'])
            logger.info(f"Loaded model '{model_id}'")
            return StoredModel(
                network=network,
                example=row['example'],
                epochs=row['epochs'],
                learning_rate=row['learning_rate'],
            )

    def list_models_from_db(self) -> List[Dict[str, Any]]:
        """
        List all models with metadata.

        Returns:
            List of model metadata dictionaries, newest first
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT model_id, example, architecture, epochs,
                       learning_rate, created_at, updated_at
                FROM models
                ORDER BY created_at DESC
            ''')

            models = [self._row_to_metadata(row) for row in cursor.fetchall()]
            logger.debug(f"Listed {len(models)} models")
            return models

    def delete_model_from_db(self, model_id: str) -> bool:
        """
        Delete a model.

        Returns:
            bool: True if deleted, False if not found
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM models WHERE model_id = ?', (model_id,))

            deleted = cursor.rowcount > 0
            if deleted:
                logger.info(f"Deleted model '{model_id}'")
            else:
                logger.warning(f"Could not delete model '{model_id}': not found")
            return deleted

    def delete_old_models_from_db(self, days: int) -> int:
        """
        Delete models created more than ``days`` days ago.

        Returns:
            int: Number of deleted models

        Raises:
            ValueError: If ``days`` is negative
        """
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                DELETE FROM models
                WHERE julianday('now') - julianday(created_at) > ?
            ''', (days,))
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} model(s) older than {days} day(s)")
        return deleted

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> Dict[str, Any]:
        architecture = json.loads(row['architecture'])
        return {
            'model_id': row['model_id'],
            'example': row['example'],
            'architecture': architecture,
            'weights_shape': [
                [architecture[i + 1], architecture[i]]
                for i in range(len(architecture) - 1)
            ],
            'biases_shape': [
                [architecture[i + 1], 1]
                for i in range(len(architecture) - 1)
            ],
            'epochs': row['epochs'],
            'learning_rate': row['learning_rate'],
            'created_at': row['created_at'],
            'updated_at': row['updated_at'],
        }


class ModelRegistry:
    """
    Thread-safe in-memory model store keyed by model id.

    Networks are copied on the way in and out, so a caller evaluating a
    model never shares a mutable network with anyone else.
    """

    def __init__(self, database: Optional[ModelDatabase] = None):
        self._models: Dict[str, StoredModel] = {}
        self._lock = threading.Lock()
        self.database = database

    def add(self, model_id: str, model: StoredModel) -> None:
        stored = StoredModel(
            network=model.network.copy(),
            example=model.example,
            epochs=model.epochs,
            learning_rate=model.learning_rate,
        )
        with self._lock:
            self._models[model_id] = stored
        if self.database is not None:
            try:
                self.database.save_model_to_db(model_id, stored)
            except (sqlite3.Error, ValueError) as e:
                logger.error(f"Could not persist model '{model_id}': {e}")

    def get(self, model_id: str) -> Optional[StoredModel]:
        """Independent copy of a stored model, or None."""
        with self._lock:
            model = self._models.get(model_id)
            if model is None:
                return None
            return StoredModel(
                network=model.network.copy(),
                example=model.example,
                epochs=model.epochs,
                learning_rate=model.learning_rate,
            )

    def info(self, model_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            model = self._models.get(model_id)
            return model.info(model_id) if model is not None else None

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [model.info(mid) for mid, model in self._models.items()]

    def remove(self, model_id: str) -> bool:
        with self._lock:
            removed = self._models.pop(model_id, None) is not None
        if self.database is not None:
            try:
                removed = self.database.delete_model_from_db(model_id) or removed
            except sqlite3.Error as e:
                logger.error(f"Could not delete model '{model_id}': {e}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._models.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._models

    def reload_from_db(self) -> int:
        """
        Load every model in the database into memory.

        Returns:
            int: Number of models loaded
        """
        if self.database is None:
            return 0

        loaded = 0
        for meta in self.database.list_models_from_db():
            model_id = meta['model_id']
            try:
                model = self.database.load_model_from_db(model_id)
            except CheckpointFormatError as e:
                logger.error(f"Skipping corrupt model {model_id}: {e}")
                continue
            if model is not None:
                with self._lock:
                    self._models[model_id] = model
                loaded += 1

        logger.info(f"Reloaded {loaded} model(s) from database")
        return loaded

    def prune(self, days: int) -> int:
        """Delete old models from the database and drop them from memory."""
        if self.database is None:
            return 0
        deleted = self.database.delete_old_models_from_db(days)
        if deleted:
            saved_ids = {m['model_id'] for m in self.database.list_models_from_db()}
            with self._lock:
                for model_id in [m for m in self._models if m not in saved_ids]:
                    del self._models[model_id]
                    logger.info(f"Removed model {model_id} from memory")
        return deleted
