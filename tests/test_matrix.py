"""
test_matrix.py
~~~~~~~~~~~~~~

Unit tests for the dense Matrix primitive.
"""

import math

import numpy as np
import pytest

from neuralnet.errors import CheckpointFormatError, DimensionMismatchError
from neuralnet.matrix import Matrix


@pytest.fixture
def a():
    """2x3 matrix [[1, 2, 3], [4, 5, 6]]."""
    return Matrix([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])


@pytest.fixture
def b():
    """3x2 matrix [[7, 8], [9, 10], [11, 12]]."""
    return Matrix([[7.0, 8.0], [9.0, 10.0], [11.0, 12.0]])


@pytest.mark.unit
class TestConstruction:
    """Test the ways a matrix can be built."""

    def test_from_vector_builds_column(self):
        m = Matrix.from_vector([1.0, 0.0, 2.5])
        assert m.shape == (3, 1)
        assert m.data == [1.0, 0.0, 2.5]

    def test_data_is_row_major(self, a):
        assert a.rows == 2
        assert a.cols == 3
        assert a.data == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        assert len(a.data) == a.rows * a.cols

    def test_rejects_non_2d_data(self):
        with pytest.raises(ValueError):
            Matrix([1.0, 2.0])

    def test_random_values_in_init_range(self):
        m = Matrix.random(20, 30)
        assert m.shape == (20, 30)
        assert all(-1.0 <= v <= 1.0 for v in m.data)

    def test_random_seeded_is_deterministic(self):
        first = Matrix.random_seeded(4, 5, np.random.default_rng(1234))
        second = Matrix.random_seeded(4, 5, np.random.default_rng(1234))
        assert first == second

    def test_random_seeded_differs_between_seeds(self):
        first = Matrix.random_seeded(4, 5, np.random.default_rng(1))
        second = Matrix.random_seeded(4, 5, np.random.default_rng(2))
        assert first != second

    def test_dict_round_trip(self, a):
        assert Matrix.from_dict(a.to_dict()) == a


@pytest.mark.unit
class TestArithmetic:
    """Test matrix operations and their shape contracts."""

    def test_dot_multiply(self, a, b):
        result = a.dot_multiply(b)
        assert result.shape == (2, 2)
        assert result.data == [58.0, 64.0, 139.0, 154.0]

    def test_dot_multiply_dimension_mismatch(self, a):
        with pytest.raises(DimensionMismatchError) as exc_info:
            a.dot_multiply(a)
        assert exc_info.value.operation == 'dot_multiply'

    def test_add_and_subtract(self, a):
        doubled = a.add(a)
        assert doubled.data == [2.0, 4.0, 6.0, 8.0, 10.0, 12.0]
        assert doubled.subtract(a) == a

    def test_elementwise_multiply(self, a):
        assert a.elementwise_multiply(a).data == [1.0, 4.0, 9.0, 16.0, 25.0, 36.0]

    @pytest.mark.parametrize('operation', ['add', 'subtract', 'elementwise_multiply'])
    def test_elementwise_ops_require_same_shape(self, a, b, operation):
        with pytest.raises(DimensionMismatchError) as exc_info:
            getattr(a, operation)(b)
        assert exc_info.value.expected == (2, 3)
        assert exc_info.value.actual == (3, 2)

    def test_no_broadcasting_of_columns(self, a):
        column = Matrix.from_vector([1.0, 2.0])
        with pytest.raises(DimensionMismatchError):
            a.add(column)

    def test_transpose(self, a):
        t = a.transpose()
        assert t.shape == (3, 2)
        for i in range(a.rows):
            for j in range(a.cols):
                assert t[j, i] == a[i, j]

    def test_map(self, a):
        assert a.map(lambda x: x * 2).data == [2.0, 4.0, 6.0, 8.0, 10.0, 12.0]

    def test_map_accepts_scalar_functions(self):
        m = Matrix.from_vector([0.0, 1.0])
        assert m.map(math.exp).data == [1.0, math.exp(1.0)]

    def test_map_with_branching_function(self):
        m = Matrix([[-2.0, 0.0], [0.5, 3.0]])
        step = m.map(lambda x: 1.0 if x > 0 else 0.0)
        assert step.shape == (2, 2)
        assert step.data == [0.0, 0.0, 1.0, 1.0]

    def test_map_calls_function_per_element(self, a):
        seen = []

        def record(x):
            seen.append(float(x))
            return x

        a.map(record)
        assert sorted(seen) == a.data

    def test_apply_runs_on_whole_buffer(self, a):
        assert a.apply(np.negative).data == [-v for v in a.data]

    def test_apply_must_keep_shape(self, a):
        with pytest.raises(DimensionMismatchError):
            a.apply(lambda x: x.sum())

    def test_operations_return_new_matrices(self, a):
        original = a.data
        a.add(a)
        a.map(lambda x: x + 1)
        a.transpose()
        assert a.data == original

    def test_values_is_a_copy(self, a):
        values = a.values
        values[0, 0] = 100.0
        assert a[0, 0] == 1.0


@pytest.mark.unit
class TestFromDictValidation:
    """Malformed matrix payloads fail instead of being reshaped."""

    def test_wrong_data_length(self):
        with pytest.raises(CheckpointFormatError):
            Matrix.from_dict({'rows': 2, 'cols': 2, 'data': [1.0, 2.0, 3.0]})

    def test_non_numeric_data(self):
        with pytest.raises(CheckpointFormatError):
            Matrix.from_dict({'rows': 1, 'cols': 2, 'data': [1.0, 'x']})

    def test_boolean_data_rejected(self):
        with pytest.raises(CheckpointFormatError):
            Matrix.from_dict({'rows': 1, 'cols': 1, 'data': [True]})

    def test_missing_field(self):
        with pytest.raises(CheckpointFormatError) as exc_info:
            Matrix.from_dict({'rows': 1, 'data': [1.0]})
        assert 'cols' in str(exc_info.value)

    def test_negative_rows(self):
        with pytest.raises(CheckpointFormatError):
            Matrix.from_dict({'rows': -1, 'cols': 1, 'data': []})
