"""
neuralnet package
~~~~~~~~~~~~~~~~~

Minimal feed-forward neural network engine: dense matrices, a multi-layer
perceptron trained by per-sample backpropagation, a training controller with
progress callbacks and resumable JSON checkpoints, plus a CLI and a REST API
server built on top of them.
"""

__version__ = "1.0.0"

from .activations import RELU, SIGMOID, TANH, Activation, get_activation
from .checkpoint import Checkpoint, CheckpointMetadata, load_checkpoint, save_checkpoint
from .errors import (
    CheckpointFormatError,
    CheckpointIOError,
    DimensionMismatchError,
    InvalidArchitectureError,
    NetworkStateError,
    NeuralNetError,
    UnknownExampleError,
)
from .examples import get_example, list_examples
from .matrix import Matrix
from .network import ForwardPass, Network
from .training import TrainingConfig, TrainingController, TrainingState, train_example

__all__ = [
    "Activation",
    "SIGMOID",
    "TANH",
    "RELU",
    "get_activation",
    "Matrix",
    "Network",
    "ForwardPass",
    "Checkpoint",
    "CheckpointMetadata",
    "save_checkpoint",
    "load_checkpoint",
    "TrainingConfig",
    "TrainingController",
    "TrainingState",
    "train_example",
    "get_example",
    "list_examples",
    "NeuralNetError",
    "DimensionMismatchError",
    "InvalidArchitectureError",
    "UnknownExampleError",
    "CheckpointIOError",
    "CheckpointFormatError",
    "NetworkStateError",
]
