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
Fixed gradient-boosted tree ensemble family.
"""
import logging
import numbers
import typing

import pandas
from sklearn import ensemble

import stackml

from . import _family, _spec

if typing.TYPE_CHECKING:
    from stackml import candidate, fold

LOGGER = logging.getLogger(__name__)


class Tree(_family.Family):
    """Gradient-boosted regression trees with externally supplied (not tuned) hyper-parameters.

    Recognized hyper-parameters (with their scikit-learn counterparts):

    * ``trees`` (required) - ``n_estimators``
    * ``tree_depth`` - ``max_depth``
    * ``learn_rate`` - ``learning_rate``
    * ``min_n`` - ``min_samples_split``
    * ``sample_size`` - ``subsample``
    * ``seed`` - ``random_state`` (defaults to the family seed)

    Args:
        seed: Default random seed for the specs not providing their own.
        workers: Maximum number of worker threads.
        timeout: Maximum number of seconds to wait for each of the fold fits.
    """

    NAME = 'tree'
    PARAMS: typing.Mapping[str, tuple[str, type, typing.Any]] = {
        'trees': ('n_estimators', numbers.Integral, None),
        'tree_depth': ('max_depth', numbers.Integral, 3),
        'learn_rate': ('learning_rate', numbers.Real, 0.1),
        'min_n': ('min_samples_split', numbers.Integral, 2),
        'sample_size': ('subsample', numbers.Real, 1.0),
        'seed': ('random_state', numbers.Integral, 0),
    }

    def __init__(self, seed: int = 0, workers: typing.Optional[int] = None, timeout: typing.Optional[float] = None):
        super().__init__(workers, timeout)
        self._seed: int = seed

    @classmethod
    def spec(cls, **hyperparameters: typing.Any) -> 'candidate.Spec':
        """Create the validated spec.

        Args:
            **hyperparameters: Tree hyper-parameters (see the class docstring).

        Returns:
            Candidate spec.
        """
        if unknown := set(hyperparameters).difference(cls.PARAMS):
            raise stackml.InvalidConfiguration(f'Unknown tree hyper-parameters: {", ".join(sorted(unknown))}')
        if 'trees' not in hyperparameters:
            raise stackml.InvalidConfiguration('Tree count (trees) required')
        for name, value in hyperparameters.items():
            _, kind, _ = cls.PARAMS[name]
            if isinstance(value, bool) or not isinstance(value, kind) or value < 0:
                raise stackml.InvalidConfiguration(f'Invalid tree {name}: {value!r}')
        if hyperparameters['trees'] < 1:
            raise stackml.InvalidConfiguration(f'Invalid tree trees: {hyperparameters["trees"]!r}')
        for name in {'learn_rate', 'sample_size'}.intersection(hyperparameters):
            if hyperparameters[name] <= 0:
                raise stackml.InvalidConfiguration(f'Tree {name} must be positive: {hyperparameters[name]!r}')
        if hyperparameters.get('sample_size', 1) > 1:
            raise stackml.InvalidConfiguration(
                f'Tree sample_size must be at most 1: {hyperparameters["sample_size"]!r}'
            )
        params = {k: int(v) if cls.PARAMS[k][1] is numbers.Integral else float(v) for k, v in hyperparameters.items()}
        return _spec.Spec.of(cls.NAME, **params)

    @classmethod
    def build(cls, spec: 'candidate.Spec') -> ensemble.GradientBoostingRegressor:
        params = spec.kwargs
        return ensemble.GradientBoostingRegressor(
            **{option: params.get(name, default) for name, (option, _, default) in cls.PARAMS.items()}
        )

    def evaluate(
        self,
        features: pandas.DataFrame,
        target: pandas.Series,
        assignment: 'fold.Assignment',
        hyperparameters: typing.Mapping[str, typing.Any],
    ) -> 'candidate.Column':
        """Produce the out-of-fold column of the single hyper-parameter setting.

        Args:
            features: Training features.
            target: Training target.
            assignment: Fold assignment shared with the other families.
            hyperparameters: Tree hyper-parameters (``trees`` required).

        Returns:
            Out-of-fold column.

        Raises:
            stackml.CandidateFitFailure: If any of the fold fits fails.
        """
        spec = self.spec(**{'seed': self._seed, **hyperparameters})
        (outcome,) = self.crossvalidate([spec], features, target, assignment)
        if isinstance(outcome, stackml.CandidateFitFailure):
            raise outcome
        LOGGER.info('Tree family evaluated: %s', spec)
        return outcome
