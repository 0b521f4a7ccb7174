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
Finalization unit tests.
"""
import numpy
import pandas
import pytest

import stackml
from stackml import candidate, ensemble


class Broken(candidate.Family):
    """Family failing every fit."""

    NAME = 'broken'

    class Estimator:
        """Estimator failing to fit."""

        @staticmethod
        def fit(features: pandas.DataFrame, target: pandas.Series) -> None:
            """Fail."""
            raise ArithmeticError('singular')

    @classmethod
    def build(cls, spec: candidate.Spec) -> 'Broken.Estimator':
        return cls.Estimator()


def test_blend(blended: ensemble.Blend, features: pandas.DataFrame, target: pandas.Series):
    """Test only the retained blend members get finalized."""
    models = ensemble.finalize(blended, features, target)
    assert tuple(models) == blended.members
    for spec, model in models.items():
        assert model.spec == spec
        assert model.columns == tuple(features.columns)
        assert len(model.predict(features)) == len(features)


def test_independent(features: pandas.DataFrame, target: pandas.Series):
    """Test specs of the same family are finalized as independent models with their own parameters."""
    specs = [candidate.Linear.spec(0.01, 1.0), candidate.Linear.spec(10.0, 1.0)]
    models = ensemble.finalize(specs, features, target, workers=2)
    assert list(models) == specs
    first, second = (models[s].estimator for s in specs)
    assert first is not second
    assert first[-1].alpha == 0.01
    assert second[-1].alpha == 10.0
    assert not numpy.allclose(first[-1].coef_, second[-1].coef_)


def test_failure(features: pandas.DataFrame, target: pandas.Series):
    """Test the refit failures."""
    with pytest.raises(stackml.FinalizationError, match='singular'):
        ensemble.finalize([candidate.Spec.of('broken')], features, target)
    with pytest.raises(stackml.FinalizationError, match='Unknown candidate family'):
        ensemble.finalize([candidate.Spec.of('foobar')], features, target)


def test_misaligned(features: pandas.DataFrame, target: pandas.Series):
    """Test the features and target alignment."""
    with pytest.raises(stackml.AlignmentError):
        ensemble.finalize([candidate.Linear.spec(0.1, 0.5)], features, target.iloc[::-1])
