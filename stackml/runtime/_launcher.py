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
End-to-end stacking run.
"""
import logging
import typing

import pandas
from pandas.api import types as pdtypes

import stackml
from stackml import candidate, ensemble, evaluation, fold

if typing.TYPE_CHECKING:
    from stackml import setup

LOGGER = logging.getLogger(__name__)


class Report(typing.NamedTuple):
    """Outputs of a single evaluation run handed over to the reporting collaborators."""

    ensemble: ensemble.Ensemble
    metrics: pandas.DataFrame
    """Metrics table (``rmse``, ``rsq``) of the members and the ensemble sorted by descending ``rsq``."""
    contributions: pandas.Series
    """Weight of each retained member."""
    predictions: pandas.DataFrame
    """Member and ensemble predictions of the test rows."""
    importance: typing.Optional[pandas.Series] = None
    """Feature importance of the finalized tree member (if retained by the blend)."""


class Launcher:
    """Stacking run orchestrator.

    Executes the fold assignment, the linear family tuning, the tree family evaluation, the stack
    assembly, the blending and the finalization.

    Args:
        params: Experiment hyper-parameters.
        workers: Maximum number of parallel fits.
        timeout: Maximum number of seconds to wait for each of the candidate fold fits.

    Examples:
        >>> LAUNCHER = runtime.Launcher(setup.Params.load('params.toml'))
        >>> REPORT = LAUNCHER.evaluate(train_features, train_target, test_features, test_target)
    """

    def __init__(
        self, params: 'setup.Params', *, workers: typing.Optional[int] = None, timeout: typing.Optional[float] = None
    ):
        self._params: 'setup.Params' = params
        self._workers: typing.Optional[int] = workers
        self._timeout: typing.Optional[float] = timeout

    @staticmethod
    def split(frame: pandas.DataFrame, target: str) -> tuple[pandas.DataFrame, pandas.Series]:
        """Separate the target column from the (already clean, numeric) features.

        Args:
            frame: Dataset including the target column.
            target: Name of the target column.

        Returns:
            Tuple of the features and the target.
        """
        if target not in frame.columns:
            raise stackml.MissingError(f'Target column not found: {target}')
        features = frame.drop(columns=target)
        if features.empty:
            raise stackml.MissingError('No feature columns')
        if nonnumeric := [c for c in features.columns if not pdtypes.is_numeric_dtype(features[c])]:
            raise stackml.InvalidConfiguration(f'Non-numeric feature columns: {", ".join(map(str, nonnumeric))}')
        if not pdtypes.is_numeric_dtype(frame[target]):
            raise stackml.InvalidConfiguration(f'Non-numeric target column: {target}')
        return features, frame[target]

    @staticmethod
    def importance(model: ensemble.Ensemble) -> typing.Optional[pandas.Series]:
        """Extract the feature importance of the tree member.

        Args:
            model: Trained ensemble.

        Returns:
            Importance of each training feature sorted in descending order or None if the ensemble
            retains no tree member.
        """
        for spec, member in model.models.items():
            if spec.family == candidate.Tree.NAME:
                return (
                    pandas.Series(
                        member.estimator.feature_importances_,
                        index=pandas.Index(member.columns, name='feature'),
                        name='importance',
                    )
                    .sort_values(ascending=False, kind='stable')
                )
        return None

    def stack(self, features: pandas.DataFrame, target: pandas.Series) -> 'ensemble.Stack':
        """Cross-validate all the candidate families and assemble their columns.

        Args:
            features: Training features.
            target: Training target.

        Returns:
            Stack matrix.
        """
        assignment = fold.assign(features, self._params.nfolds, self._params.seed)
        linear = candidate.Linear(workers=self._workers, timeout=self._timeout)
        tree = candidate.Tree(seed=self._params.seed, workers=self._workers, timeout=self._timeout)
        columns = dict(linear.tune(features, target, assignment, self._params.grid))
        try:
            column = tree.evaluate(features, target, assignment, self._params.tree)
        except stackml.CandidateFitFailure as err:
            LOGGER.warning('Tree family dropped: %s', err)
        else:
            columns[column.spec] = column
        if not columns:
            raise stackml.DegenerateBlendError('No candidate survived the cross-validation')
        return ensemble.assemble(target, columns, assignment)

    def train(self, features: pandas.DataFrame, target: pandas.Series) -> ensemble.Ensemble:
        """Build the final ensemble.

        Args:
            features: Training features.
            target: Training target.

        Returns:
            Ensemble ready for predictions.
        """
        stack = self.stack(features, target)
        blend = ensemble.blend(stack, self._params.alpha, metric=self._params.metric)
        models = ensemble.finalize(blend, features, target, workers=self._workers)
        return ensemble.Ensemble(blend, models)

    def evaluate(
        self,
        train_features: pandas.DataFrame,
        train_target: pandas.Series,
        test_features: pandas.DataFrame,
        test_target: pandas.Series,
    ) -> Report:
        """Train the ensemble and score it on the test partition.

        Args:
            train_features: Training features.
            train_target: Training target.
            test_features: Held-out features.
            test_target: Held-out target.

        Returns:
            Evaluation report.
        """
        model = self.train(train_features, train_target)
        predictions = model.predict(test_features)
        metrics = evaluation.scoreboard(test_target, predictions)
        LOGGER.info('Ensemble test rsq: %.4f', metrics.loc[ensemble.Ensemble.COLUMN, 'rsq'])
        return Report(model, metrics, model.blend.contributions, predictions, self.importance(model))
