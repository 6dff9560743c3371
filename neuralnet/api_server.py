"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server for training and evaluating networks.

This module provides endpoints for:
- Listing the built-in example datasets
- Training a network synchronously, or with live progress as
  Server-Sent Events
- Background training jobs with progress pushed over Socket.IO
- Evaluating, inspecting, exporting and visualizing trained models

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for background training and streaming
- SQLite for optional model persistence (``MODEL_DB_PATH``)
"""

import json
import logging
import sys
import uuid
from typing import Any, Dict, Optional, Tuple

import gevent
from gevent.queue import Queue
from flask import Flask, Response, jsonify, request, stream_with_context
from flask_cors import CORS
from flask_socketio import SocketIO

from .config import Settings, configure_logging
from .errors import NeuralNetError, UnknownExampleError
from .examples import get_example, list_examples
from .model_persistence import ModelDatabase, ModelRegistry, StoredModel
from .network import Network
from .training import train_example
from .visualize import render_to_base64

# ============================================================================
# LOGGING SETUP
# ============================================================================

settings = Settings.from_env()
configure_logging(settings)
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})

# SocketIO pushes background training progress to connected clients
socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode=settings.async_mode,
    logger=not settings.is_production,
    engineio_logger=not settings.is_production,
    ping_timeout=60,
    ping_interval=25
)

# ============================================================================
# GLOBAL STATE
# ============================================================================

model_registry = ModelRegistry(
    ModelDatabase(settings.model_db_path) if settings.model_db_path else None
)

# Background training jobs: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}

if model_registry.database is not None:
    model_registry.reload_from_db()


# ============================================================================
# REQUEST VALIDATION
# ============================================================================

def parse_training_request(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a training request body.

    Expected body:
        {'example': 'xor', 'epochs': 1000, 'learning_rate': 0.5, 'seed': 42}

    Raises:
        ValueError: If a field is missing or invalid
        UnknownExampleError: If the example is not registered
    """
    if not isinstance(data, dict):
        raise ValueError('request body must be a JSON object')

    example = data.get('example')
    epochs = data.get('epochs')
    learning_rate = data.get('learning_rate', 0.5)
    seed = data.get('seed')

    if not isinstance(example, str) or not example:
        raise ValueError('example must be a non-empty string')
    if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 1:
        raise ValueError('epochs must be a positive integer')
    if isinstance(learning_rate, bool) or \
            not isinstance(learning_rate, (int, float)) or learning_rate <= 0:
        raise ValueError('learning_rate must be a positive number')
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)
                             or seed < 0):
        raise ValueError('seed must be a non-negative integer')

    return {
        'example': get_example(example).name,
        'epochs': epochs,
        'learning_rate': float(learning_rate),
        'seed': seed,
    }


def store_model(network: Network, params: Dict[str, Any]) -> str:
    """Register a trained network and return its new model id."""
    model_id = str(uuid.uuid4())
    model_registry.add(model_id, StoredModel(
        network=network,
        example=params['example'],
        epochs=params['epochs'],
        learning_rate=params['learning_rate'],
    ))
    return model_id


def _sse(payload: Dict[str, Any], event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ''
    return f"{prefix}data: {json.dumps(payload)}\n\n"


def _json_body() -> Optional[Dict[str, Any]]:
    """The request's JSON object; ``{}`` when there is no body, None if not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _bad_request(message: str) -> Tuple[Response, int]:
    return jsonify({'error': message}), 400


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok'}), 200


@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status with model and active job counts."""
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'models': len(model_registry),
        'training_jobs': active_training,
        'persistent': model_registry.database is not None
    }), 200


@app.route('/api/examples', methods=['GET'])
def get_examples():
    """List the built-in examples with their recommended architecture."""
    return jsonify([get_example(name).to_dict() for name in list_examples()]), 200


@app.route('/api/examples/<name>', methods=['GET'])
def get_example_data(name: str):
    """Full example data, including training inputs and targets."""
    try:
        example = get_example(name)
    except UnknownExampleError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify(example.to_dict(include_data=True)), 200


@app.route('/api/train', methods=['POST'])
def train():
    """
    Train a new model synchronously.

    Request body:
        {'example': 'xor', 'epochs': 1000, 'learning_rate': 0.5, 'seed': 1}

    Returns:
        JSON with model_id, example, epochs and final loss
    """
    data = _json_body()
    if data is None:
        return _bad_request('request body must be a JSON object')
    try:
        params = parse_training_request(data)
    except (ValueError, UnknownExampleError) as e:
        logger.warning(f"Rejected training request {data}: {e}")
        return _bad_request(str(e))

    try:
        network, history = train_example(
            params['example'],
            params['epochs'],
            params['learning_rate'],
            seed=params['seed']
        )
    except NeuralNetError as e:
        logger.exception(f"Training failed: {e}")
        return jsonify({'error': str(e)}), 500

    model_id = store_model(network, params)
    logger.info(
        f"Trained model {model_id} on '{params['example']}' for "
        f"{params['epochs']} epochs, final loss {history[-1]:.6f}"
    )

    return jsonify({
        'model_id': model_id,
        'example': params['example'],
        'epochs': params['epochs'],
        'loss': history[-1]
    }), 200


@app.route('/api/train/stream', methods=['POST'])
def train_stream():
    """
    Train a new model, streaming progress as Server-Sent Events.

    Every epoch produces ``data: {"epoch": n, "loss": x}``. The stream ends
    with an ``event: complete`` message carrying the model id, or an
    ``event: error`` message.
    """
    data = _json_body()
    if data is None:
        return _bad_request('request body must be a JSON object')
    try:
        params = parse_training_request(data)
    except (ValueError, UnknownExampleError) as e:
        logger.warning(f"Rejected streaming request {data}: {e}")
        return _bad_request(str(e))

    events: Queue = Queue()

    def on_epoch(epoch: int, loss: float, _network: Network) -> None:
        events.put(('progress', {'epoch': epoch, 'loss': loss}))
        # Let gevent flush the event to the client
        gevent.sleep(0)

    def run_training() -> None:
        try:
            network, history = train_example(
                params['example'],
                params['epochs'],
                params['learning_rate'],
                seed=params['seed'],
                callbacks=[on_epoch]
            )
            model_id = store_model(network, params)
            events.put(('complete', {
                'model_id': model_id,
                'example': params['example'],
                'epochs': params['epochs'],
                'loss': history[-1]
            }))
        except Exception as e:
            logger.exception(f"Streaming training failed: {e}")
            events.put(('error', {'error': str(e)}))

    worker = gevent.spawn(run_training)

    def generate():
        finished = False
        try:
            while True:
                kind, payload = events.get()
                if kind == 'progress':
                    yield _sse(payload)
                else:
                    finished = True
                    yield _sse(payload, event=kind)
                    return
        finally:
            # Client went away mid-stream
            if not finished:
                logger.info("Stream closed by client, stopping training")
                worker.kill()

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
    )


@app.route('/api/eval', methods=['POST'])
def evaluate():
    """
    Run a stored model on one input.

    Request body:
        {'model_id': '...', 'input': [1.0, 0.0]}
    """
    data = _json_body()
    if data is None:
        return _bad_request('request body must be a JSON object')
    model_id = data.get('model_id')
    values = data.get('input')

    model = model_registry.get(model_id) if isinstance(model_id, str) else None
    if model is None:
        logger.warning(f"Evaluation requested for non-existent model: {model_id}")
        return jsonify({'error': 'Model not found'}), 404

    if not isinstance(values, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
    ):
        return _bad_request('input must be a list of numbers')

    expected = model.network.layers[0]
    if len(values) != expected:
        return _bad_request(
            f"Invalid input dimensions: expected {expected}, got {len(values)}"
        )

    return jsonify({'output': model.network.predict(values)}), 200


@app.route('/api/models', methods=['GET'])
def list_models():
    return jsonify({'models': model_registry.list()}), 200


@app.route('/api/models/<model_id>', methods=['GET'])
def model_info(model_id: str):
    """Architecture, training parameters and parameter count of a model."""
    info = model_registry.info(model_id)
    if info is None:
        return jsonify({'error': 'Model not found'}), 404
    return jsonify(info), 200


@app.route('/api/models/<model_id>', methods=['DELETE'])
def delete_model_endpoint(model_id: str):
    if not model_registry.remove(model_id):
        logger.warning(f"Delete attempted for non-existent model: {model_id}")
        return jsonify({'error': 'Model not found'}), 404

    logger.info(f"Deleted model {model_id}")
    return jsonify({'model_id': model_id, 'deleted': True}), 200


@app.route('/api/models/<model_id>/checkpoint', methods=['GET'])
def export_checkpoint(model_id: str):
    """Download a model in checkpoint format (loadable by ``resume``)."""
    model = model_registry.get(model_id)
    if model is None:
        return jsonify({'error': 'Model not found'}), 404
    return jsonify(model.to_checkpoint().to_dict()), 200


@app.route('/api/models/<model_id>/visualization', methods=['GET'])
def visualize_model(model_id: str):
    """Base64-encoded PNG of the model's architecture and weights."""
    model = model_registry.get(model_id)
    if model is None:
        return jsonify({'error': 'Model not found'}), 404

    show_values = request.args.get('show_values', 'false').lower() == 'true'
    return jsonify({
        'model_id': model_id,
        'image_data': render_to_base64(model.network, show_values=show_values)
    }), 200


# ============================================================================
# BACKGROUND TRAINING JOBS
# ============================================================================

@app.route('/api/jobs', methods=['POST'])
def start_training_job():
    """
    Start training in the background.

    Progress is pushed over Socket.IO as ``training_update`` events, followed
    by ``training_complete`` or ``training_error``.

    Returns:
        JSON with job_id and status
    """
    data = _json_body()
    if data is None:
        return _bad_request('request body must be a JSON object')
    try:
        params = parse_training_request(data)
    except (ValueError, UnknownExampleError) as e:
        return _bad_request(str(e))

    job_id = str(uuid.uuid4())
    training_jobs[job_id] = {
        'job_id': job_id,
        'example': params['example'],
        'status': 'pending',
        'progress': 0,
        'epochs': params['epochs']
    }

    logger.info(
        f"Created training job {job_id}: example={params['example']}, "
        f"epochs={params['epochs']}, lr={params['learning_rate']}"
    )

    socketio.start_background_task(run_training_job, job_id, params)

    return jsonify({'job_id': job_id, 'status': 'training_started'}), 202


def run_training_job(job_id: str, params: Dict[str, Any]) -> None:
    """Background task that trains a model and reports over Socket.IO."""
    job = training_jobs.get(job_id)
    if job is None:
        logger.warning(f"Training job {job_id} was removed before it started")
        return
    total_epochs = params['epochs']

    def on_epoch(epoch: int, loss: float, _network: Network) -> None:
        progress = (epoch / total_epochs) * 100
        job.update(status='training', progress=progress, epoch=epoch, loss=loss)

        socketio.emit('training_update', {
            'job_id': job_id,
            'epoch': epoch,
            'total_epochs': total_epochs,
            'loss': loss,
            'progress': progress
        })
        # Cooperative yield so HTTP requests are served during training
        socketio.sleep(0)

    try:
        logger.info(f"Starting training for job {job_id}")
        network, history = train_example(
            params['example'],
            total_epochs,
            params['learning_rate'],
            seed=params['seed'],
            callbacks=[on_epoch]
        )
        model_id = store_model(network, params)

        job.update(status='completed', progress=100, model_id=model_id,
                   loss=history[-1])
        logger.info(f"Training completed for job {job_id}: model {model_id}")

        socketio.emit('training_complete', {
            'job_id': job_id,
            'model_id': model_id,
            'status': 'completed',
            'loss': history[-1],
            'progress': 100
        })
    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")
        job.update(status='failed', error=str(e))

        socketio.emit('training_error', {
            'job_id': job_id,
            'status': 'failed',
            'error': str(e)
        })


@app.route('/api/jobs/<job_id>', methods=['GET'])
def get_training_job(job_id: str):
    if job_id not in training_jobs:
        logger.warning(f"Status requested for non-existent job: {job_id}")
        return jsonify({'error': 'Training job not found'}), 404
    return jsonify(training_jobs[job_id]), 200


def cleanup_finished_training_jobs() -> None:
    """Drop completed or failed jobs so ``training_jobs`` does not grow forever."""
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


# ============================================================================
# BACKGROUND CLEANUP
# ============================================================================

_cleanup_task_started = False


def cleanup_old_models_task() -> None:
    """
    Runs immediately, then every 24 hours:
    - Delete persisted models older than ``MODEL_RETENTION_DAYS``
    - Remove finished training jobs from memory
    """
    while True:
        try:
            deleted = model_registry.prune(settings.retention_days)
            logger.info(f"Cleanup completed: deleted {deleted} old model(s)")
            cleanup_finished_training_jobs()
            gevent.sleep(86400)
        except Exception as e:
            logger.exception(f"Error during model cleanup: {e}")
            gevent.sleep(3600)


def start_cleanup_task() -> None:
    """Start the cleanup greenlet once; later calls do nothing."""
    global _cleanup_task_started

    if _cleanup_task_started:
        logger.debug("Cleanup task already started, skipping")
        return

    _cleanup_task_started = True
    logger.info("Starting cleanup task (runs immediately, then every 24 hours)")
    gevent.spawn(cleanup_old_models_task)


# ============================================================================
# SERVER STARTUP
# ============================================================================

def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the API (with Socket.IO) until interrupted."""
    host = host or settings.host
    port = port or settings.port

    logger.info(f"Starting server at http://{host}:{port}/")
    start_cleanup_task()

    try:
        socketio.run(
            app,
            host=host,
            port=port,
            debug=not settings.is_production,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        raise


if __name__ == '__main__':
    run_server()
