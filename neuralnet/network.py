"""
network.py
~~~~~~~~~~

Fully-connected feed-forward network trained by per-sample backpropagation.

A network is described by its layer sizes, e.g. ``[2, 3, 1]`` is two inputs,
one hidden layer of three neurons and a single output. ``weights[i]`` maps
layer ``i`` to layer ``i + 1`` and has shape ``[layers[i+1] x layers[i]]``;
``biases[i]`` is a ``[layers[i+1] x 1]`` column.

Example:
    >>> net = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=42)
    >>> out = net.feed_forward(Matrix.from_vector([1.0, 0.0]))
    >>> net.back_propagate(out, Matrix.from_vector([1.0]))
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .activations import SIGMOID, Activation, get_activation
from .errors import (
    CheckpointFormatError,
    DimensionMismatchError,
    InvalidArchitectureError,
    NetworkStateError,
)
from .matrix import Matrix, _is_int, _is_number, as_column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForwardPass:
    """
    Per-layer activations produced by one forward pass.

    ``activations[0]`` is the input and ``activations[-1]`` the output.
    """

    activations: Tuple[Matrix, ...]

    @property
    def output(self) -> Matrix:
        return self.activations[-1]


def validate_layers(layers: Any) -> List[int]:
    """
    Check that ``layers`` describes a usable architecture.

    Raises:
        InvalidArchitectureError: If there are fewer than two layers or a
            layer size is not a positive integer
    """
    if not isinstance(layers, (list, tuple)):
        raise InvalidArchitectureError(layers, "layers must be a list of sizes")
    if len(layers) < 2:
        raise InvalidArchitectureError(
            layers, "need at least an input and an output layer"
        )
    for size in layers:
        if not _is_int(size) or size < 1:
            raise InvalidArchitectureError(
                layers, f"layer size {size!r} is not a positive integer"
            )
    return list(layers)


class Network:
    """Multi-layer perceptron with a single activation shared by all layers."""

    def __init__(
        self,
        layers: Sequence[int],
        activation: Activation = SIGMOID,
        learning_rate: float = 0.1,
        seed: Optional[int] = None
    ):
        """
        Create a network with random weights and biases in [-1, 1].

        Args:
            layers: Neuron count per layer, input first
            activation: Activation applied after every layer
            learning_rate: Scale applied to every gradient step
            seed: Seed for reproducible initialisation; ``None`` draws from
                OS entropy

        Raises:
            InvalidArchitectureError: If ``layers`` is not a valid architecture
        """
        self.layers = validate_layers(layers)
        self.activation = activation
        self.learning_rate = float(learning_rate)

        rng = np.random.default_rng(seed)
        self.weights: List[Matrix] = []
        self.biases: List[Matrix] = []
        # Draw order is part of the seeded contract: W0, b0, W1, b1, ...
        for i in range(len(self.layers) - 1):
            self.weights.append(
                Matrix.random_seeded(self.layers[i + 1], self.layers[i], rng)
            )
            self.biases.append(Matrix.random_seeded(self.layers[i + 1], 1, rng))

        self._last_pass: Optional[ForwardPass] = None

    @classmethod
    def new_seeded(
        cls,
        layers: Sequence[int],
        activation: Activation,
        learning_rate: float,
        seed: int
    ) -> 'Network':
        """Deterministic constructor; equal arguments give equal networks."""
        return cls(layers, activation, learning_rate, seed=seed)

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def forward(self, inputs: Matrix) -> ForwardPass:
        """
        Run the network on one sample without touching any network state.

        Args:
            inputs: ``[layers[0] x 1]`` column matrix

        Returns:
            ForwardPass: Every layer's activation, input included

        Raises:
            DimensionMismatchError: If ``inputs`` has the wrong shape
        """
        expected = (self.layers[0], 1)
        if inputs.shape != expected:
            raise DimensionMismatchError('feed_forward', expected, inputs.shape)

        current = inputs
        activations = [current]
        for weight, bias in zip(self.weights, self.biases):
            current = (
                weight.dot_multiply(current)
                .add(bias)
                .apply(self.activation.function)
            )
            activations.append(current)
        return ForwardPass(tuple(activations))

    def feed_forward(self, inputs: Matrix) -> Matrix:
        """
        Run one sample forward and keep its activations for ``back_propagate``.

        Returns:
            Matrix: The output layer's activation
        """
        self._last_pass = self.forward(inputs)
        return self._last_pass.output

    def predict(self, values: Sequence[float]) -> List[float]:
        """Evaluate a plain input vector; safe to call on a shared network."""
        return self.forward(as_column(values)).output.data

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def back_propagate(
        self,
        outputs: Matrix,
        targets: Matrix,
        forward_pass: Optional[ForwardPass] = None
    ) -> None:
        """
        Apply one gradient step for a single sample.

        The error is ``targets - outputs`` and updates are *added* to the
        weights, which is gradient descent on the squared error.

        Args:
            outputs: Output returned by the matching forward pass
            targets: Expected output, same shape as ``outputs``
            forward_pass: Activations to use; defaults to the ones cached by
                the last ``feed_forward`` call

        Raises:
            NetworkStateError: If no forward pass is available
            DimensionMismatchError: If ``targets`` or ``outputs`` have the
                wrong shape
        """
        forward_pass = forward_pass or self._last_pass
        if forward_pass is None:
            raise NetworkStateError(
                "back_propagate called before feed_forward"
            )
        if len(forward_pass.activations) != len(self.layers):
            raise NetworkStateError(
                f"Forward pass has {len(forward_pass.activations)} layer(s), "
                f"network has {len(self.layers)}"
            )

        expected = (self.layers[-1], 1)
        if outputs.shape != expected:
            raise DimensionMismatchError('back_propagate', expected, outputs.shape)
        if targets.shape != expected:
            raise DimensionMismatchError('back_propagate', expected, targets.shape)

        data = forward_pass.activations
        errors = targets.subtract(outputs)
        gradients = outputs.apply(self.activation.derivative)
        learning_rate = self.learning_rate

        for i in reversed(range(len(self.layers) - 1)):
            gradients = gradients.elementwise_multiply(errors).apply(
                lambda x: x * learning_rate
            )
            previous_weights = self.weights[i]
            self.weights[i] = previous_weights.add(
                gradients.dot_multiply(data[i].transpose())
            )
            self.biases[i] = self.biases[i].add(gradients)

            errors = previous_weights.transpose().dot_multiply(errors)
            gradients = data[i].apply(self.activation.derivative)

    def train(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]],
        epochs: int
    ) -> None:
        """
        Plain per-sample SGD over the samples in their given order.

        Progress is logged every epoch below 100 epochs, otherwise every
        ``epochs // 100`` epochs.
        """
        if len(inputs) != len(targets):
            raise DimensionMismatchError(
                'train',
                expected=(len(inputs), 1),
                actual=(len(targets), 1),
                message=(
                    f"train: {len(inputs)} input(s) but "
                    f"{len(targets)} target(s)"
                )
            )
        samples = [
            (Matrix.from_vector(x), Matrix.from_vector(y))
            for x, y in zip(inputs, targets)
        ]
        for epoch in range(1, epochs + 1):
            if should_report(epoch, epochs):
                logger.info(f"Epoch {epoch} of {epochs}")
            for x, y in samples:
                outputs = self.feed_forward(x)
                self.back_propagate(outputs, y)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_activations(self) -> List[List[float]]:
        """Activations of every layer from the last ``feed_forward`` call."""
        if self._last_pass is None:
            return []
        return [layer.data for layer in self._last_pass.activations]

    def get_weights(self) -> List[List[float]]:
        return [weight.data for weight in self.weights]

    def get_weight_shapes(self) -> List[Tuple[int, int]]:
        return [weight.shape for weight in self.weights]

    def parameter_count(self) -> int:
        """Total number of weights plus biases."""
        return sum(w.rows * w.cols for w in self.weights) + sum(
            b.rows for b in self.biases
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Persistable state; the forward-pass cache is left out."""
        return {
            'layers': list(self.layers),
            'weights': [weight.to_dict() for weight in self.weights],
            'biases': [bias.to_dict() for bias in self.biases],
            'activation': self.activation.name,
            'learning_rate': self.learning_rate,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'Network':
        """
        Rebuild a network from ``to_dict`` output.

        Raises:
            CheckpointFormatError: If the payload is malformed or its matrix
                shapes disagree with ``layers``
        """
        if not isinstance(payload, dict):
            raise CheckpointFormatError(
                f"Network must be an object, got {type(payload).__name__}"
            )
        missing = [
            key for key in ('layers', 'weights', 'biases', 'activation',
                            'learning_rate')
            if key not in payload
        ]
        if missing:
            raise CheckpointFormatError(
                f"Network is missing field(s): {', '.join(missing)}"
            )

        try:
            layers = validate_layers(payload['layers'])
        except InvalidArchitectureError as e:
            raise CheckpointFormatError(str(e)) from e

        weights_data, biases_data = payload['weights'], payload['biases']
        expected_count = len(layers) - 1
        for name, items in (('weights', weights_data), ('biases', biases_data)):
            if not isinstance(items, list):
                raise CheckpointFormatError(f"Network {name} must be a list")
            if len(items) != expected_count:
                raise CheckpointFormatError(
                    f"Network has {len(items)} {name} matrices, expected "
                    f"{expected_count} for layers {layers}"
                )

        weights = [Matrix.from_dict(item) for item in weights_data]
        biases = [Matrix.from_dict(item) for item in biases_data]
        for i in range(expected_count):
            if weights[i].shape != (layers[i + 1], layers[i]):
                raise CheckpointFormatError(
                    f"weights[{i}] has shape {weights[i].rows}x{weights[i].cols}, "
                    f"expected {layers[i + 1]}x{layers[i]}"
                )
            if biases[i].shape != (layers[i + 1], 1):
                raise CheckpointFormatError(
                    f"biases[{i}] has shape {biases[i].rows}x{biases[i].cols}, "
                    f"expected {layers[i + 1]}x1"
                )

        learning_rate = payload['learning_rate']
        if not _is_number(learning_rate):
            raise CheckpointFormatError(
                f"learning_rate must be a number, got {learning_rate!r}"
            )

        network = cls.__new__(cls)
        network.layers = layers
        network.weights = weights
        network.biases = biases
        network.activation = get_activation(payload['activation'])
        network.learning_rate = float(learning_rate)
        network._last_pass = None
        return network

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> 'Network':
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise CheckpointFormatError(f"Invalid network JSON: {e}") from e
        return cls.from_dict(payload)

    def copy(self) -> 'Network':
        """Independent value copy; the forward-pass cache is not carried over."""
        clone = self.__class__.__new__(self.__class__)
        clone.layers = list(self.layers)
        clone.weights = [weight.copy() for weight in self.weights]
        clone.biases = [bias.copy() for bias in self.biases]
        clone.activation = self.activation
        clone.learning_rate = self.learning_rate
        clone._last_pass = None
        return clone

    def __repr__(self) -> str:
        return (
            f"Network(layers={self.layers}, activation={self.activation.name!r}, "
            f"learning_rate={self.learning_rate})"
        )


def should_report(epoch: int, epochs: int) -> bool:
    """Logging cadence: every epoch under 100, else every ``epochs // 100``."""
    return epochs < 100 or epoch % (epochs // 100) == 0
