"""
activations.py
~~~~~~~~~~~~~~

Named activation functions and their derivatives.

Derivatives take the *activated* value ``y = f(x)`` rather than the
pre-activation sum, because that is what the forward pass caches.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List

import numpy as np

from .errors import CheckpointFormatError

ArrayFunc = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class Activation:
    """A named (function, derivative) pair applied element-wise."""

    name: str
    function: ArrayFunc
    derivative: ArrayFunc

    def __repr__(self) -> str:
        return f"Activation({self.name!r})"


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _sigmoid_derivative(y: np.ndarray) -> np.ndarray:
    return y * (1.0 - y)


def _tanh_derivative(y: np.ndarray) -> np.ndarray:
    return 1.0 - y * y


def _relu(x: np.ndarray) -> np.ndarray:
    return np.maximum(x, 0.0)


def _relu_derivative(y: np.ndarray) -> np.ndarray:
    return (y > 0.0).astype(np.float64)


SIGMOID = Activation('sigmoid', _sigmoid, _sigmoid_derivative)
TANH = Activation('tanh', np.tanh, _tanh_derivative)
RELU = Activation('relu', _relu, _relu_derivative)

_REGISTRY: Dict[str, Activation] = {
    activation.name: activation for activation in (SIGMOID, TANH, RELU)
}


def get_activation(name: str) -> Activation:
    """
    Look up a registered activation by name.

    Raises:
        CheckpointFormatError: If no activation has that name
    """
    if not isinstance(name, str) or name.lower() not in _REGISTRY:
        raise CheckpointFormatError(
            f"Unknown activation {name!r}; expected one of "
            f"{', '.join(sorted(_REGISTRY))}"
        )
    return _REGISTRY[name.lower()]


def list_activations() -> List[str]:
    return sorted(_REGISTRY)
