"""
examples.py
~~~~~~~~~~~

Small built-in datasets with a recommended architecture for each.
"""

from dataclasses import dataclass
from itertools import product
from typing import Dict, List

from .errors import UnknownExampleError


@dataclass(frozen=True)
class Example:
    name: str
    description: str
    recommended_arch: List[int]
    inputs: List[List[float]]
    targets: List[List[float]]

    def to_dict(self, include_data: bool = False) -> Dict[str, object]:
        info: Dict[str, object] = {
            'name': self.name,
            'description': self.description,
            'architecture': list(self.recommended_arch),
        }
        if include_data:
            info['inputs'] = [list(x) for x in self.inputs]
            info['targets'] = [list(y) for y in self.targets]
        return info


_TRUTH_TABLE = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]


def _parity3() -> Example:
    inputs = [[float(b) for b in bits] for bits in product((0, 1), repeat=3)]
    targets = [[float(sum(x) % 2)] for x in inputs]
    return Example(
        'parity3',
        '3-bit parity: 1 when an odd number of inputs are 1',
        [3, 6, 1],
        inputs,
        targets,
    )


def _quadrant() -> Example:
    # Two points per quadrant of the unit square, one-hot over 4 classes
    points = [
        ([0.75, 0.75], 0), ([0.9, 0.6], 0),
        ([0.25, 0.75], 1), ([0.1, 0.6], 1),
        ([0.25, 0.25], 2), ([0.1, 0.4], 2),
        ([0.75, 0.25], 3), ([0.9, 0.4], 3),
    ]
    inputs = [list(p) for p, _ in points]
    targets = [[1.0 if i == label else 0.0 for i in range(4)] for _, label in points]
    return Example(
        'quadrant',
        'Classify a point of the unit square by quadrant (one-hot)',
        [2, 4, 4],
        inputs,
        targets,
    )


def _adder2() -> Example:
    inputs, targets = [], []
    for a, b in product(range(4), repeat=2):
        inputs.append([float(a >> 1 & 1), float(a & 1), float(b >> 1 & 1), float(b & 1)])
        total = a + b
        targets.append([float(total >> 2 & 1), float(total >> 1 & 1), float(total & 1)])
    return Example(
        'adder2',
        '2-bit binary adder: two 2-bit numbers in, 3-bit sum out',
        [4, 8, 3],
        inputs,
        targets,
    )


_EXAMPLES: Dict[str, Example] = {
    example.name: example for example in (
        Example(
            'and', 'Logical AND gate (linearly separable)', [2, 2, 1],
            _TRUTH_TABLE, [[0.0], [0.0], [0.0], [1.0]],
        ),
        Example(
            'or', 'Logical OR gate (linearly separable)', [2, 2, 1],
            _TRUTH_TABLE, [[0.0], [1.0], [1.0], [1.0]],
        ),
        Example(
            'xor', 'Logical XOR gate (needs a hidden layer)', [2, 3, 1],
            _TRUTH_TABLE, [[0.0], [1.0], [1.0], [0.0]],
        ),
        _parity3(),
        _quadrant(),
        _adder2(),
    )
}


def list_examples() -> List[str]:
    """Names of all registered examples, in registration order."""
    return list(_EXAMPLES)


def get_example(name: str) -> Example:
    """
    Look up an example by name (case-insensitive).

    Raises:
        UnknownExampleError: If no example has that name
    """
    if not isinstance(name, str) or name.lower() not in _EXAMPLES:
        raise UnknownExampleError(str(name), list_examples())
    return _EXAMPLES[name.lower()]
