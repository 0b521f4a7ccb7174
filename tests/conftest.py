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
Global StackML unit tests fixtures.
"""
import typing

import numpy
import pandas
import pytest

from stackml import candidate, ensemble, fold

TARGET = 'y'


@pytest.fixture(scope='session')
def dataset() -> pandas.DataFrame:
    """Synthetic regression dataset fixture (the first 100 rows for training, the rest for testing)."""
    rng = numpy.random.default_rng(7)
    frame = pandas.DataFrame(rng.normal(size=(130, 3)), columns=['x1', 'x2', 'x3'])
    frame[TARGET] = (
        3 * frame['x1'] - 2 * frame['x2'] + 0.5 * frame['x3'] ** 2 + rng.normal(scale=0.1, size=len(frame))
    )
    return frame


@pytest.fixture(scope='session')
def features(dataset: pandas.DataFrame) -> pandas.DataFrame:
    """Training features fixture."""
    return dataset.iloc[:100].drop(columns=TARGET)


@pytest.fixture(scope='session')
def target(dataset: pandas.DataFrame) -> pandas.Series:
    """Training target fixture."""
    return dataset[TARGET].iloc[:100]


@pytest.fixture(scope='session')
def holdout_features(dataset: pandas.DataFrame) -> pandas.DataFrame:
    """Held-out features fixture."""
    return dataset.iloc[100:].drop(columns=TARGET)


@pytest.fixture(scope='session')
def holdout_target(dataset: pandas.DataFrame) -> pandas.Series:
    """Held-out target fixture."""
    return dataset[TARGET].iloc[100:]


@pytest.fixture(scope='session')
def assignment(features: pandas.DataFrame) -> fold.Assignment:
    """Four-fold assignment of the training rows."""
    return fold.assign(features, 4, seed=42)


@pytest.fixture(scope='session')
def linear_spec() -> candidate.Spec:
    """The single linear grid point spec."""
    return candidate.Linear.spec(penalty=0.1, mixture=0.5)


@pytest.fixture(scope='session')
def columns(
    features: pandas.DataFrame,
    target: pandas.Series,
    assignment: fold.Assignment,
    linear_spec: candidate.Spec,
) -> typing.Mapping[candidate.Spec, candidate.Column]:
    """Out-of-fold columns of one linear grid point and one tree setting."""
    linear = candidate.Linear().tune(features, target, assignment, [linear_spec.kwargs])
    tree = candidate.Tree().evaluate(features, target, assignment, {'trees': 50})
    return {**linear, tree.spec: tree}


@pytest.fixture(scope='session')
def stack(
    target: pandas.Series, columns: typing.Mapping[candidate.Spec, candidate.Column], assignment: fold.Assignment
) -> ensemble.Stack:
    """Stack matrix fixture."""
    return ensemble.assemble(target, columns, assignment)


@pytest.fixture(scope='session')
def blended(stack: ensemble.Stack) -> ensemble.Blend:
    """Blend model fixture."""
    return ensemble.blend(stack, 0.5)
