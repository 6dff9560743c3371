"""
matrix.py
~~~~~~~~~

Dense 2-D float64 matrix with value semantics.

Every operation returns a new ``Matrix``; the wrapped numpy buffer is never
shared between two instances. Shape contracts are checked explicitly and
violations raise ``DimensionMismatchError`` instead of relying on numpy
broadcasting.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import CheckpointFormatError, DimensionMismatchError

# Weight and bias initialisation range
INIT_LOW = -1.0
INIT_HIGH = 1.0


class Matrix:
    """
    Row-major dense matrix of 64-bit floats.

    Attributes:
        rows: Number of rows
        cols: Number of columns
    """

    __slots__ = ('_values',)

    def __init__(self, values: Any):
        array = np.array(values, dtype=np.float64)
        if array.ndim != 2:
            raise ValueError(
                f"Matrix requires 2-D data, got {array.ndim} dimension(s)"
            )
        self._values = array

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def random(cls, rows: int, cols: int) -> 'Matrix':
        """Uniform [-1, 1] matrix from fresh OS entropy."""
        return cls.random_seeded(rows, cols, np.random.default_rng())

    @classmethod
    def random_seeded(
        cls,
        rows: int,
        cols: int,
        rng: np.random.Generator
    ) -> 'Matrix':
        """
        Uniform [-1, 1] matrix drawn from ``rng``.

        numpy's PCG64 generator produces the same stream on every platform,
        so a generator built from a fixed seed yields bit-identical matrices.

        Args:
            rows: Number of rows
            cols: Number of columns
            rng: Generator to draw from; it is advanced by rows*cols values

        Returns:
            Matrix: The new random matrix
        """
        return cls(rng.uniform(INIT_LOW, INIT_HIGH, size=(rows, cols)))

    @classmethod
    def from_vector(cls, values: Sequence[float]) -> 'Matrix':
        """
        Build a column matrix (one row per element).

        This is how a single sample's input or target is represented.
        """
        array = np.array(values, dtype=np.float64)
        if array.ndim != 1:
            raise ValueError(
                f"Expected a flat vector, got an array with shape {array.shape}"
            )
        return cls(array.reshape(-1, 1))

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'Matrix':
        """
        Rebuild a matrix from its ``{"rows", "cols", "data"}`` form.

        Raises:
            CheckpointFormatError: If the payload is malformed
        """
        if not isinstance(payload, dict):
            raise CheckpointFormatError(
                f"Matrix must be an object, got {type(payload).__name__}"
            )
        missing = [key for key in ('rows', 'cols', 'data') if key not in payload]
        if missing:
            raise CheckpointFormatError(
                f"Matrix is missing field(s): {', '.join(missing)}"
            )

        rows, cols, data = payload['rows'], payload['cols'], payload['data']
        for name, value in (('rows', rows), ('cols', cols)):
            if not _is_int(value) or value < 0:
                raise CheckpointFormatError(
                    f"Matrix {name} must be a non-negative integer, got {value!r}"
                )
        if not isinstance(data, list):
            raise CheckpointFormatError("Matrix data must be a list of numbers")
        if len(data) != rows * cols:
            raise CheckpointFormatError(
                f"Matrix data has {len(data)} element(s), "
                f"expected rows*cols = {rows * cols}"
            )
        for value in data:
            if not _is_number(value):
                raise CheckpointFormatError(
                    f"Matrix data must be numeric, found {value!r}"
                )

        return cls(np.array(data, dtype=np.float64).reshape(rows, cols))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._values.shape[0]

    @property
    def cols(self) -> int:
        return self._values.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def data(self) -> List[float]:
        """Elements in row-major order."""
        return self._values.ravel().tolist()

    @property
    def values(self) -> np.ndarray:
        """Copy of the underlying (rows, cols) array."""
        return self._values.copy()

    def __getitem__(self, index: Tuple[int, int]) -> float:
        row, col = index
        return float(self._values[row, col])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(
            self._values, other._values
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, cols={self.cols}, data={self.data})"

    def to_dict(self) -> Dict[str, Any]:
        return {'rows': self.rows, 'cols': self.cols, 'data': self.data}

    def copy(self) -> 'Matrix':
        return Matrix(self._values)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def dot_multiply(self, other: 'Matrix') -> 'Matrix':
        """
        Matrix product ``self . other``.

        Raises:
            DimensionMismatchError: If ``self.cols != other.rows``
        """
        if self.cols != other.rows:
            raise DimensionMismatchError(
                'dot_multiply',
                expected=(self.cols, other.cols),
                actual=other.shape,
                message=(
                    f"dot_multiply: cannot multiply {self.rows}x{self.cols} "
                    f"by {other.rows}x{other.cols}"
                )
            )
        return Matrix(self._values @ other._values)

    def add(self, other: 'Matrix') -> 'Matrix':
        self._check_same_shape('add', other)
        return Matrix(self._values + other._values)

    def subtract(self, other: 'Matrix') -> 'Matrix':
        self._check_same_shape('subtract', other)
        return Matrix(self._values - other._values)

    def elementwise_multiply(self, other: 'Matrix') -> 'Matrix':
        self._check_same_shape('elementwise_multiply', other)
        return Matrix(self._values * other._values)

    def transpose(self) -> 'Matrix':
        return Matrix(self._values.T)

    def map(self, func: Callable[[float], float]) -> 'Matrix':
        """
        Apply a scalar function ``func(x) -> float`` to every element.

        Args:
            func: Called once per element with a Python float

        Returns:
            Matrix: New matrix of the same shape
        """
        if self._values.size == 0:
            return self.copy()
        mapped = np.vectorize(func, otypes=[np.float64])
        return Matrix(mapped(self._values))

    def apply(self, func: Callable[[np.ndarray], np.ndarray]) -> 'Matrix':
        """
        Apply an array function to the whole buffer at once.

        Used for activations, which are numpy ufunc compositions; ``func``
        receives a private copy of the ``(rows, cols)`` array.

        Raises:
            DimensionMismatchError: If ``func`` changes the shape
        """
        result = np.asarray(func(self._values.copy()), dtype=np.float64)
        if result.shape != self._values.shape:
            raise DimensionMismatchError('apply', self.shape, _shape_of(result))
        return Matrix(result)

    def _check_same_shape(self, operation: str, other: 'Matrix') -> None:
        if self.shape != other.shape:
            raise DimensionMismatchError(operation, self.shape, other.shape)


def _shape_of(array: np.ndarray) -> Tuple[int, int]:
    if array.ndim == 2:
        return (array.shape[0], array.shape[1])
    return (array.size, 1)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_column(values: Optional[Sequence[float]]) -> Matrix:
    """Coerce a plain vector or an existing Matrix into a column matrix."""
    if isinstance(values, Matrix):
        return values
    if values is None:
        raise ValueError("Expected a vector, got None")
    return Matrix.from_vector(values)
