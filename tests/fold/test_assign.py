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
Fold assignment unit tests.
"""
import numpy
import pandas
import pytest
from sklearn import linear_model, model_selection

import stackml
from stackml import fold


class TestAssign:
    """Fold assignment unit tests."""

    def test_balanced(self):
        """Test the fold sizes differ by at most one."""
        assignment = fold.assign(range(10), 3, seed=1)
        assert assignment.sizes == (4, 3, 3)
        assert assignment.nfolds == 3
        assert len(assignment.folds) == 10

    def test_deterministic(self):
        """Test the same seed produces the same assignment."""
        assert fold.assign(range(100), 5, seed=42) == fold.assign(range(100), 5, seed=42)
        assert fold.assign(range(100), 5, seed=42).folds != fold.assign(range(100), 5, seed=43).folds

    @pytest.mark.parametrize('k', [0, 1, -3, 2.5, True, '3'])
    def test_invalid_k(self, k):
        """Test the invalid number of folds."""
        with pytest.raises(stackml.InvalidConfiguration):
            fold.assign(range(10), k)

    def test_too_many_folds(self):
        """Test more folds than rows."""
        with pytest.raises(stackml.InvalidConfiguration):
            fold.assign(range(3), 4)

    def test_empty(self):
        """Test empty training rows."""
        with pytest.raises(stackml.InvalidConfiguration):
            fold.assign([], 2)


class TestAssignment:
    """Assignment protocol unit tests."""

    @staticmethod
    @pytest.fixture(scope='function')
    def assignment() -> fold.Assignment:
        """Assignment fixture."""
        return fold.assign(range(20), 4, seed=0)

    def test_splits(self, assignment: fold.Assignment):
        """Test each row is predicted exactly once and never trained on within its own fold."""
        tested = []
        for index, (train, test) in enumerate(assignment.splits()):
            assert not set(train).intersection(test)
            assert len(train) + len(test) == 20
            numpy.testing.assert_array_equal(test, assignment.members(index))
            tested.extend(test)
        assert sorted(tested) == list(range(20))

    def test_split(self, assignment: fold.Assignment):
        """Test the cross-validator protocol."""
        assert assignment.get_n_splits() == 4
        assert len(list(assignment.split(numpy.zeros((20, 2))))) == 4
        with pytest.raises(stackml.AlignmentError):
            assignment.split(numpy.zeros((10, 2)))

    def test_sklearn(self, assignment: fold.Assignment):
        """Test the assignment can be used as a scikit-learn splitter."""
        rng = numpy.random.default_rng(0)
        features = pandas.DataFrame(rng.normal(size=(20, 2)))
        target = features[0] * 2 + 1
        scores = model_selection.cross_val_score(linear_model.LinearRegression(), features, target, cv=assignment)
        assert len(scores) == 4

    def test_alias(self):
        """Test the public alias."""
        assert fold.assign_folds is fold.assign
