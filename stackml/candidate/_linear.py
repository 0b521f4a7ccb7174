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
Tuned penalized linear model family.
"""
import logging
import numbers
import typing

import pandas
from sklearn import linear_model, pipeline, preprocessing

import stackml

from . import _family, _spec

if typing.TYPE_CHECKING:
    from stackml import candidate, fold

LOGGER = logging.getLogger(__name__)


class Linear(_family.Family):
    """Elastic-net regression family tuned over a grid of ``penalty`` (the regularization
    strength) and ``mixture`` (the proportion of the lasso penalty, ``0`` being pure ridge and
    ``1`` pure lasso).

    Features get standardized before the regression. A fit hitting the iteration cap is treated
    as not converged.

    Examples:
        >>> LINEAR = candidate.Linear(workers=4)
        >>> COLUMNS = LINEAR.tune(
        ...     features, target, assignment, candidate.Linear.grid([0.01, 0.1], [0.0, 0.5, 1.0])
        ... )
    """

    NAME = 'linear'
    MAX_ITER = 10000

    @classmethod
    def spec(cls, penalty: float, mixture: float) -> 'candidate.Spec':
        """Create the validated spec of a single grid point.

        Args:
            penalty: Non-negative regularization strength.
            mixture: Lasso proportion in the range of [0, 1].

        Returns:
            Candidate spec.
        """
        for name, value, upper in (('penalty', penalty, float('inf')), ('mixture', mixture, 1)):
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not 0 <= value <= upper:
                raise stackml.InvalidConfiguration(f'Invalid linear {name}: {value!r}')
        return _spec.Spec.of(cls.NAME, penalty=float(penalty), mixture=float(mixture))

    @staticmethod
    def grid(
        penalties: typing.Iterable[float], mixtures: typing.Iterable[float]
    ) -> tuple[typing.Mapping[str, float], ...]:
        """Regular grid helper.

        Args:
            penalties: Penalty axis.
            mixtures: Mixture axis.

        Returns:
            Cartesian product of the two axes as a sequence of grid points.
        """
        mixtures = tuple(mixtures)
        return tuple({'penalty': p, 'mixture': m} for p in penalties for m in mixtures)

    @classmethod
    def build(cls, spec: 'candidate.Spec') -> pipeline.Pipeline:
        params = spec.kwargs
        return pipeline.make_pipeline(
            preprocessing.StandardScaler(),
            linear_model.ElasticNet(alpha=params['penalty'], l1_ratio=params['mixture'], max_iter=cls.MAX_ITER),
        )

    @classmethod
    def diagnose(cls, estimator: pipeline.Pipeline) -> typing.Optional[str]:
        model = estimator[-1]
        if model.n_iter_ >= model.max_iter:
            return f'not converged within {model.max_iter} iterations'
        return None

    def tune(
        self,
        features: pandas.DataFrame,
        target: pandas.Series,
        assignment: 'fold.Assignment',
        grid: typing.Iterable[typing.Mapping[str, float]],
    ) -> dict['candidate.Spec', 'candidate.Column']:
        """Cross-validate all the grid points.

        Grid points failing on any of the folds are dropped (with a warning) without affecting
        the others.

        Args:
            features: Training features.
            target: Training target.
            assignment: Fold assignment shared with the other families.
            grid: Sequence of the ``penalty``/``mixture`` mappings.

        Returns:
            Out-of-fold columns of the surviving grid points keyed by their specs in the grid order.
        """
        specs = []
        for point in grid:
            if set(point) != {'penalty', 'mixture'}:
                raise stackml.InvalidConfiguration(f'Linear grid point requires penalty and mixture: {dict(point)}')
            spec = self.spec(**point)
            if spec not in specs:
                specs.append(spec)
        if not specs:
            raise stackml.InvalidConfiguration('Empty linear grid')
        columns = {}
        for outcome in self.crossvalidate(specs, features, target, assignment):
            if isinstance(outcome, stackml.CandidateFitFailure):
                LOGGER.warning('Dropping grid point: %s', outcome)
                continue
            columns[outcome.spec] = outcome
        LOGGER.info('Linear family tuned: %d of %d grid points retained', len(columns), len(specs))
        return columns
