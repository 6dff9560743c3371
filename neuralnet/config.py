"""
config.py
~~~~~~~~~

Environment-driven settings and logging setup shared by the server and CLI.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 2421


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from the environment by :meth:`from_env`."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = 'INFO'
    is_production: bool = False
    model_db_path: Optional[str] = None
    retention_days: int = 2
    async_mode: str = 'gevent'

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            host=os.getenv('HOST', DEFAULT_HOST),
            port=int(os.getenv('PORT', DEFAULT_PORT)),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            is_production=os.getenv('FLASK_ENV') == 'production',
            model_db_path=os.getenv('MODEL_DB_PATH') or None,
            retention_days=int(os.getenv('MODEL_RETENTION_DAYS', 2)),
            async_mode=os.getenv('SOCKETIO_ASYNC_MODE', 'gevent'),
        )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Set up logging based on environment.

    - In production: silence noisy third-party loggers, keep ours at INFO
    - In development: show Socket.IO/Engine.IO chatter for debugging
    """
    settings = settings or Settings.from_env()
    log_level = getattr(logging, settings.log_level, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if settings.is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('neuralnet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)
