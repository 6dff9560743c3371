"""
test_network.py
~~~~~~~~~~~~~~~

Unit tests for the feed-forward network and its activations.
"""

import logging
import math

import numpy as np
import pytest

from neuralnet.activations import RELU, SIGMOID, TANH, get_activation, list_activations
from neuralnet.errors import (
    CheckpointFormatError,
    DimensionMismatchError,
    InvalidArchitectureError,
    NetworkStateError,
)
from neuralnet.matrix import Matrix
from neuralnet.network import Network, should_report


def _sigmoid(x):
    return 1.0 / (1.0 + math.exp(-x))


@pytest.fixture
def xor_network():
    """Seeded [2, 3, 1] sigmoid network."""
    return Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=42)


@pytest.mark.unit
class TestActivations:
    """Test the registered activation functions."""

    def test_registry(self):
        assert list_activations() == ['relu', 'sigmoid', 'tanh']
        assert get_activation('SIGMOID') is SIGMOID

    def test_unknown_activation(self):
        with pytest.raises(CheckpointFormatError):
            get_activation('softmax')

    def test_sigmoid_derivative_uses_activated_value(self):
        y = SIGMOID.function(np.array([[0.0]]))
        assert y[0, 0] == 0.5
        assert SIGMOID.derivative(y)[0, 0] == 0.25

    def test_tanh_and_relu(self):
        y = TANH.function(np.array([[0.5]]))
        assert TANH.derivative(y)[0, 0] == pytest.approx(1 - math.tanh(0.5) ** 2)
        assert RELU.function(np.array([[-2.0, 3.0]])).tolist() == [[0.0, 3.0]]
        assert RELU.derivative(np.array([[0.0, 3.0]])).tolist() == [[0.0, 1.0]]


@pytest.mark.unit
class TestConstruction:
    """Test network construction and architecture validation."""

    @pytest.mark.parametrize('layers', [[2, 3, 1], [4, 8, 3], [1, 1], [3, 5, 5, 2]])
    def test_weight_and_bias_shapes(self, layers):
        network = Network(layers)
        assert len(network.weights) == len(layers) - 1
        for i, (weight, bias) in enumerate(zip(network.weights, network.biases)):
            assert weight.shape == (layers[i + 1], layers[i])
            assert bias.shape == (layers[i + 1], 1)

    def test_initial_values_in_range(self):
        network = Network([4, 8, 3])
        for matrix in network.weights + network.biases:
            assert all(-1.0 <= v <= 1.0 for v in matrix.data)

    @pytest.mark.parametrize('layers', [[], [3], [2, 0, 1], [2, -1], [2, 1.5], 'abc'])
    def test_invalid_architectures(self, layers):
        with pytest.raises(InvalidArchitectureError):
            Network(layers)

    def test_seeded_networks_are_identical(self):
        first = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=42)
        second = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=42)
        assert first.to_json() == second.to_json()

    def test_different_seeds_differ(self):
        first = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=1)
        second = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=2)
        assert first.get_weights() != second.get_weights()

    def test_parameter_count(self, xor_network):
        assert xor_network.parameter_count() == 13
        assert xor_network.get_weight_shapes() == [(3, 2), (1, 3)]


@pytest.mark.unit
class TestFeedForward:
    """Test the forward pass."""

    def test_output_shape_and_range(self, xor_network):
        output = xor_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        assert output.shape == (1, 1)
        assert 0.0 < output[0, 0] < 1.0

    def test_activations_cached(self, xor_network):
        xor_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        activations = xor_network.get_activations()
        assert [len(layer) for layer in activations] == [2, 3, 1]
        assert activations[0] == [1.0, 0.0]

    def test_forward_leaves_cache_alone(self, xor_network):
        forward_pass = xor_network.forward(Matrix.from_vector([0.0, 1.0]))
        assert len(forward_pass.activations) == 3
        assert xor_network.get_activations() == []

    def test_matches_manual_computation(self):
        network = Network([2, 1], seed=5)
        w = network.weights[0]
        b = network.biases[0]
        expected = _sigmoid(w[0, 0] * 0.3 + w[0, 1] * 0.7 + b[0, 0])
        assert network.predict([0.3, 0.7])[0] == pytest.approx(expected)

    def test_wrong_input_size(self, xor_network):
        with pytest.raises(DimensionMismatchError) as exc_info:
            xor_network.feed_forward(Matrix.from_vector([1.0, 0.0, 1.0]))
        assert exc_info.value.expected == (2, 1)
        assert exc_info.value.actual == (3, 1)

    def test_predict_is_deterministic(self, xor_network):
        assert xor_network.predict([1.0, 1.0]) == xor_network.predict([1.0, 1.0])


@pytest.mark.unit
class TestBackPropagate:
    """Test single gradient steps against hand-computed updates."""

    def test_requires_forward_pass(self, xor_network):
        with pytest.raises(NetworkStateError):
            xor_network.back_propagate(
                Matrix.from_vector([0.5]), Matrix.from_vector([1.0])
            )

    def test_wrong_target_size(self, xor_network):
        outputs = xor_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        with pytest.raises(DimensionMismatchError):
            xor_network.back_propagate(outputs, Matrix.from_vector([1.0, 0.0]))

    def test_single_layer_update(self):
        network = Network([1, 1], SIGMOID, 0.5, seed=3)
        w, b = network.weights[0][0, 0], network.biases[0][0, 0]

        outputs = network.feed_forward(Matrix.from_vector([1.0]))
        network.back_propagate(outputs, Matrix.from_vector([1.0]))

        o = _sigmoid(w + b)
        step = o * (1 - o) * (1.0 - o) * 0.5
        assert network.weights[0][0, 0] == pytest.approx(w + step)
        assert network.biases[0][0, 0] == pytest.approx(b + step)

    def test_hidden_error_uses_pre_update_weights(self):
        network = Network([1, 1, 1], SIGMOID, 0.5, seed=11)
        w1, b1 = network.weights[0][0, 0], network.biases[0][0, 0]
        w2, b2 = network.weights[1][0, 0], network.biases[1][0, 0]
        x, t = 0.8, 0.2

        outputs = network.feed_forward(Matrix.from_vector([x]))
        network.back_propagate(outputs, Matrix.from_vector([t]))

        a1 = _sigmoid(w1 * x + b1)
        a2 = _sigmoid(w2 * a1 + b2)
        g2 = a2 * (1 - a2) * (t - a2) * 0.5
        hidden_error = w2 * (t - a2)
        g1 = a1 * (1 - a1) * hidden_error * 0.5

        assert network.weights[1][0, 0] == pytest.approx(w2 + g2 * a1)
        assert network.biases[1][0, 0] == pytest.approx(b2 + g2)
        assert network.weights[0][0, 0] == pytest.approx(w1 + g1 * x)
        assert network.biases[0][0, 0] == pytest.approx(b1 + g1)

    def test_explicit_forward_pass(self):
        cached = Network.new_seeded([2, 3, 1], SIGMOID, 0.5, seed=9)
        explicit = cached.copy()
        x, y = Matrix.from_vector([0.0, 1.0]), Matrix.from_vector([1.0])

        cached.back_propagate(cached.feed_forward(x), y)
        forward_pass = explicit.forward(x)
        explicit.back_propagate(forward_pass.output, y, forward_pass)

        assert cached.to_dict() == explicit.to_dict()

    def test_step_reduces_error(self, xor_network):
        x, y = Matrix.from_vector([1.0, 0.0]), Matrix.from_vector([1.0])
        before = abs(1.0 - xor_network.predict([1.0, 0.0])[0])
        xor_network.back_propagate(xor_network.feed_forward(x), y)
        after = abs(1.0 - xor_network.predict([1.0, 0.0])[0])
        assert after < before


@pytest.mark.unit
class TestTrain:
    """Test the plain training loop."""

    def test_mismatched_sample_counts(self, xor_network):
        with pytest.raises(DimensionMismatchError):
            xor_network.train([[0.0, 0.0], [1.0, 1.0]], [[0.0]], 1)

    def test_zero_epochs_changes_nothing(self, xor_network):
        before = xor_network.to_dict()
        xor_network.train([[0.0, 0.0]], [[0.0]], 0)
        assert xor_network.to_dict() == before

    @pytest.mark.parametrize('epochs, reports', [(50, 50), (200, 100), (1000, 100)])
    def test_progress_cadence(self, caplog, epochs, reports):
        caplog.set_level(logging.INFO, logger='neuralnet.network')
        network = Network([1, 1], seed=0)
        network.train([[1.0]], [[1.0]], epochs)

        messages = [r.getMessage() for r in caplog.records
                    if r.getMessage().startswith('Epoch ')]
        assert len(messages) == reports
        assert messages[-1] == f"Epoch {epochs} of {epochs}"

    def test_should_report(self):
        assert should_report(1, 10)
        assert not should_report(1, 500)
        assert should_report(5, 500)


@pytest.mark.unit
class TestSerialization:
    """Test dictionary and JSON round trips."""

    def test_json_round_trip_is_bit_exact(self, xor_network):
        xor_network.train([[1.0, 0.0]], [[1.0]], 3)
        restored = Network.from_json(xor_network.to_json())

        assert restored.layers == xor_network.layers
        assert restored.activation is xor_network.activation
        assert restored.learning_rate == xor_network.learning_rate
        assert restored.get_weights() == xor_network.get_weights()
        for original, copy in zip(xor_network.biases, restored.biases):
            assert original == copy

    def test_restored_network_predicts_identically(self, xor_network):
        restored = Network.from_dict(xor_network.to_dict())
        for x in ([0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]):
            assert restored.predict(x) == xor_network.predict(x)

    def test_shape_mismatch_rejected(self, xor_network):
        payload = xor_network.to_dict()
        payload['layers'] = [2, 4, 1]
        with pytest.raises(CheckpointFormatError):
            Network.from_dict(payload)

    def test_missing_fields_rejected(self, xor_network):
        payload = xor_network.to_dict()
        del payload['biases']
        with pytest.raises(CheckpointFormatError) as exc_info:
            Network.from_dict(payload)
        assert 'biases' in str(exc_info.value)

    def test_non_numeric_learning_rate(self, xor_network):
        payload = xor_network.to_dict()
        payload['learning_rate'] = 'fast'
        with pytest.raises(CheckpointFormatError):
            Network.from_dict(payload)

    def test_invalid_json(self):
        with pytest.raises(CheckpointFormatError):
            Network.from_json('{not json')

    def test_copy_is_independent(self, xor_network):
        clone = xor_network.copy()
        clone.train([[1.0, 1.0]], [[0.0]], 5)
        assert clone.get_weights() != xor_network.get_weights()
