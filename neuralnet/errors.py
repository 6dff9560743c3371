"""
errors.py
~~~~~~~~~

Typed failures raised by the neural network engine.

Every error is local and recoverable: the engine never exits the process,
it raises one of these and lets the caller decide what to do with it.
"""

from typing import Any, Iterable, Optional, Sequence, Tuple


class NeuralNetError(Exception):
    """Base class for all engine errors."""


class DimensionMismatchError(NeuralNetError, ValueError):
    """A matrix shape contract was violated."""

    def __init__(
        self,
        operation: str,
        expected: Tuple[int, int],
        actual: Tuple[int, int],
        message: Optional[str] = None
    ):
        self.operation = operation
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        if message is None:
            message = (
                f"{operation}: expected shape {describe_shape(self.expected)}, "
                f"got {describe_shape(self.actual)}"
            )
        super().__init__(message)


class InvalidArchitectureError(NeuralNetError, ValueError):
    """The requested layer sizes do not describe a valid network."""

    def __init__(self, layers: Any, reason: str):
        self.layers = layers
        super().__init__(f"Invalid architecture {layers!r}: {reason}")


class UnknownExampleError(NeuralNetError, LookupError):
    """The requested example dataset is not registered."""

    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = list(available)
        message = f"Unknown example: {name}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message
        return self.args[0]


class CheckpointIOError(NeuralNetError, OSError):
    """A checkpoint file could not be read or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Checkpoint I/O failed for '{path}': {reason}")

    def __str__(self) -> str:
        return f"Checkpoint I/O failed for '{self.path}': {self.reason}"


class CheckpointFormatError(NeuralNetError, ValueError):
    """Checkpoint content is structurally invalid or inconsistent."""


class NetworkStateError(NeuralNetError, RuntimeError):
    """An operation was called in a state that does not allow it."""


def describe_shape(shape: Sequence[int]) -> str:
    """Format a (rows, cols) pair the way error messages print it."""
    return f"{shape[0]}x{shape[1]}"
