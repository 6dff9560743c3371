"""
test_examples.py
~~~~~~~~~~~~~~~~

Tests for the built-in example datasets.
"""

import pytest

from neuralnet.errors import UnknownExampleError
from neuralnet.examples import get_example, list_examples


@pytest.mark.unit
class TestExamples:
    """Registry lookups and dataset consistency."""

    def test_registered_names(self):
        assert list_examples() == ['and', 'or', 'xor', 'parity3', 'quadrant', 'adder2']

    def test_lookup_is_case_insensitive(self):
        assert get_example('XOR') is get_example('xor')

    @pytest.mark.parametrize('name', [None, 42, 'nand', ''])
    def test_unknown_names(self, name):
        with pytest.raises(UnknownExampleError) as exc_info:
            get_example(name)
        assert 'xor' in str(exc_info.value)

    def test_unknown_example_is_lookup_error(self):
        with pytest.raises(LookupError):
            get_example('nand')

    @pytest.mark.parametrize('name', list_examples())
    def test_vectors_match_architecture(self, name):
        example = get_example(name)
        arch = example.recommended_arch
        assert len(example.inputs) == len(example.targets) > 0
        assert all(len(x) == arch[0] for x in example.inputs)
        assert all(len(y) == arch[-1] for y in example.targets)

    def test_xor_truth_table(self):
        example = get_example('xor')
        assert example.recommended_arch == [2, 3, 1]
        for x, y in zip(example.inputs, example.targets):
            assert y[0] == float(int(x[0]) ^ int(x[1]))

    def test_adder_sums(self):
        example = get_example('adder2')
        for x, y in zip(example.inputs, example.targets):
            a = int(x[0]) * 2 + int(x[1])
            b = int(x[2]) * 2 + int(x[3])
            assert int(y[0]) * 4 + int(y[1]) * 2 + int(y[2]) == a + b

    def test_to_dict(self):
        summary = get_example('and').to_dict()
        assert summary['architecture'] == [2, 2, 1]
        assert 'inputs' not in summary
        assert len(get_example('and').to_dict(include_data=True)['inputs']) == 4
