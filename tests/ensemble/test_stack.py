# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""
Stack assembly unit tests.
"""
import typing

import pandas
import pytest

import stackml
from stackml import candidate, ensemble, fold


def test_shape(stack: ensemble.Stack, columns: typing.Mapping[candidate.Spec, candidate.Column], target: pandas.Series):
    """Test the stack of one linear and one tree candidate over 100 rows."""
    assert stack.shape == (100, 3)
    assert stack.specs == tuple(columns)
    assert list(stack.matrix.columns) == [target.name, *(s.key for s in columns)]
    assert stack.features.shape == (100, 2)
    assert stack.matrix.index.equals(target.index)
    assert stack.folds is not None


def test_idempotent(target: pandas.Series, columns: typing.Mapping[candidate.Spec, candidate.Column]):
    """Test repeated assembly produces identical matrices independent of the inputs."""
    first = ensemble.assemble(target, columns)
    second = ensemble.assemble(target, columns)
    pandas.testing.assert_frame_equal(first.matrix, second.matrix)
    values = {s: c.values.copy() for s, c in columns.items()}
    third = ensemble.assemble(target, values)
    next(iter(values.values())).iloc[0] = -1e9
    pandas.testing.assert_frame_equal(first.matrix, third.matrix)


def test_order(target: pandas.Series, columns: typing.Mapping[candidate.Spec, candidate.Column]):
    """Test the mapping order defines the column order."""
    reverse = dict(reversed(list(columns.items())))
    assert ensemble.assemble(target, reverse).specs == tuple(reversed(tuple(columns)))


def test_sequence(target: pandas.Series):
    """Test plain value sequences."""
    spec = candidate.Spec.of('linear', penalty=1.0)
    stack = ensemble.assemble(target, {spec: list(range(len(target)))})
    assert stack.features[spec.key].tolist() == list(range(len(target)))


class TestMisaligned:
    """Alignment failures unit tests."""

    @staticmethod
    @pytest.fixture(scope='session')
    def spec() -> candidate.Spec:
        """Spec fixture."""
        return candidate.Spec.of('linear', penalty=1.0)

    def test_empty(self, target: pandas.Series):
        """Test no columns."""
        with pytest.raises(stackml.AlignmentError):
            ensemble.assemble(target, {})

    def test_length(self, target: pandas.Series, spec: candidate.Spec):
        """Test the row count mismatch."""
        with pytest.raises(stackml.AlignmentError):
            ensemble.assemble(target, {spec: [1.0, 2.0]})

    def test_index(self, target: pandas.Series, spec: candidate.Spec):
        """Test the row order mismatch."""
        shuffled = pandas.Series(range(len(target)), index=target.index[::-1], dtype=float)
        with pytest.raises(stackml.AlignmentError):
            ensemble.assemble(target, {spec: shuffled})

    def test_spec(self, columns: typing.Mapping[candidate.Spec, candidate.Column], target: pandas.Series):
        """Test the column provided under a different spec."""
        column = next(iter(columns.values()))
        with pytest.raises(stackml.AlignmentError):
            ensemble.assemble(target, {candidate.Spec.of('linear', penalty=123.0): column})

    def test_folds(self, target: pandas.Series, spec: candidate.Spec):
        """Test the fold assignment of a different length."""
        with pytest.raises(stackml.AlignmentError):
            ensemble.assemble(target, {spec: target.to_numpy()}, fold.assign(range(10), 2))
