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
Candidate family unit tests.
"""
import time
import typing

import numpy
import pandas
import pytest

import stackml
from stackml import candidate, fold

MARKER = 0  # index label of the row the flaky family depends on


class Estimator:
    """Mean (or maximum) predicting estimator failing if strict and the marker row is not part of the
    training set.
    """

    def __init__(self, strict: bool = False, maximum: bool = False, delay: float = 0):
        self.strict: bool = strict
        self.maximum: bool = maximum
        self.delay: float = delay
        self.value_: typing.Optional[float] = None

    def fit(self, features: pandas.DataFrame, target: pandas.Series) -> 'Estimator':
        """Fit the single value."""
        time.sleep(self.delay)
        if self.strict and MARKER not in features.index:
            raise ValueError('not converged')
        self.value_ = float(target.max() if self.maximum else target.mean())
        return self

    def predict(self, features: pandas.DataFrame) -> numpy.ndarray:
        """Predict the single value."""
        return numpy.full(len(features), self.value_)


class Dummy(candidate.Family):
    """Family of the dummy estimators."""

    NAME = 'dummy'

    @classmethod
    def build(cls, spec: candidate.Spec) -> Estimator:
        return Estimator(**spec.kwargs)


def test_registry():
    """Test the family lookup."""
    assert candidate.Family.get('dummy') is Dummy
    assert candidate.Family.get('linear') is candidate.Linear
    assert candidate.Family.get('tree') is candidate.Tree
    with pytest.raises(stackml.MissingError):
        candidate.Family.get('foobar')


class TestCrossvalidate:
    """Out-of-fold machinery unit tests."""

    @staticmethod
    @pytest.fixture(scope='function')
    def family() -> Dummy:
        """Family fixture."""
        return Dummy(workers=2)

    def test_partial_failure(
        self, family: Dummy, features: pandas.DataFrame, target: pandas.Series, assignment: fold.Assignment
    ):
        """Test a spec failing on one of the folds is invalidated as a whole without affecting the others."""
        strict = candidate.Spec.of('dummy', strict=True)
        tolerant = candidate.Spec.of('dummy', strict=False)
        failed, column = family.crossvalidate([strict, tolerant], features, target, assignment)
        assert isinstance(failed, stackml.CandidateFitFailure)
        assert failed.spec == strict
        assert failed.fold == assignment.folds[features.index.get_loc(MARKER)]
        assert 'not converged' in str(failed)
        assert isinstance(column, candidate.Column)
        assert column.spec == tolerant
        assert len(column.errors) == assignment.nfolds
        assert not column.values.isna().any()

    def test_out_of_fold(self, family: Dummy, features: pandas.DataFrame, target: pandas.Series):
        """Test no row is predicted by a model trained on that row."""
        leaky = target.copy()
        leaky.iloc[0] = 1e6
        assignment = fold.assign(features, 4, seed=1)
        (column,) = family.crossvalidate([candidate.Spec.of('dummy', maximum=True)], features, leaky, assignment)
        own = assignment.members(assignment.folds[0])
        assert column.values.iloc[0] < 1e6
        assert (column.values.iloc[own] < 1e6).all()
        assert (numpy.delete(column.values.to_numpy(), own) == 1e6).all()

    def test_index(self, family: Dummy, features: pandas.DataFrame, target: pandas.Series):
        """Test the column values are aligned with the target."""
        assignment = fold.assign(features, 5, seed=3)
        (column,) = family.crossvalidate([candidate.Spec.of('dummy')], features, target, assignment)
        assert column.values.index.equals(target.index)
        assert column.values.name == column.spec.key

    def test_timeout(self, features: pandas.DataFrame, target: pandas.Series, assignment: fold.Assignment):
        """Test the fold fit timeout."""
        family = Dummy(workers=1, timeout=0.01)
        (failed,) = family.crossvalidate([candidate.Spec.of('dummy', delay=0.2)], features, target, assignment)
        assert isinstance(failed, stackml.CandidateFitFailure)
        assert 'timeout' in failed.reason

    def test_timeout_queued(self, features: pandas.DataFrame, target: pandas.Series, assignment: fold.Assignment):
        """Test the timeout counts from the fit start so the fits queued behind a slow one survive."""
        family = Dummy(workers=1, timeout=0.1)
        slow = candidate.Spec.of('dummy', delay=1.0)
        fast = candidate.Spec.of('dummy', delay=0.0)
        failed, column = family.crossvalidate([slow, fast], features, target, assignment)
        assert isinstance(failed, stackml.CandidateFitFailure)
        assert failed.spec == slow
        assert isinstance(column, candidate.Column)
        assert column.spec == fast
        assert not column.values.isna().any()

    def test_misaligned(
        self, family: Dummy, features: pandas.DataFrame, target: pandas.Series, assignment: fold.Assignment
    ):
        """Test the alignment checks."""
        spec = candidate.Spec.of('dummy')
        with pytest.raises(stackml.AlignmentError):
            family.crossvalidate([spec], features, target.reset_index(drop=True).iloc[::-1], assignment)
        with pytest.raises(stackml.AlignmentError):
            family.crossvalidate([spec], features.iloc[:50], target.iloc[:50], assignment)


def test_refit(features: pandas.DataFrame, target: pandas.Series):
    """Test the full training set refit."""
    spec = candidate.Spec.of('dummy', maximum=True)
    model = Dummy.refit(spec, features, target)
    assert model.spec == spec
    assert model.columns == tuple(features.columns)
    assert model.predict(features).eq(target.max()).all()
    with pytest.raises(stackml.CandidateFitFailure):
        Dummy.refit(candidate.Spec.of('dummy', strict=True), features.iloc[1:], target.iloc[1:])


def test_rmse():
    """Test the error helper."""
    assert candidate.rmse([1.0, 2.0], [1.0, 4.0]) == pytest.approx(numpy.sqrt(2))
