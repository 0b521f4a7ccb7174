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
Blending meta-learner.
"""
import collections
import logging
import numbers
import typing

import numpy
import pandas
from sklearn import linear_model, metrics, model_selection

import stackml
from stackml import candidate
from stackml.setup import _conf

if typing.TYPE_CHECKING:
    from stackml import ensemble

LOGGER = logging.getLogger(__name__)

#: Cross-validation loss functions available for the penalty selection.
METRICS: typing.Mapping[str, typing.Callable[[numpy.ndarray, numpy.ndarray], float]] = {
    'rmse': candidate.rmse,
    'mse': metrics.mean_squared_error,
    'mae': metrics.mean_absolute_error,
}
MAX_ITER = 100000
PATH_RATIO = 1e-4


class Path(typing.NamedTuple):
    """Cross-validated regularization path diagnostics."""

    penalties: tuple[float, ...]
    errors: tuple[float, ...]
    """Mean cross-validation error of each penalty."""
    stderrs: tuple[float, ...]
    """Standard error of the mean cross-validation error of each penalty."""
    best: int
    """Index of the penalty with the minimal error."""
    chosen: int
    """Index of the penalty selected by the one-standard-error rule."""

    def frame(self) -> pandas.DataFrame:
        """Tabular representation of the path."""
        return pandas.DataFrame(
            {'penalty': self.penalties, 'error': self.errors, 'stderr': self.stderrs}
        ).rename_axis('step')


class Blend(collections.namedtuple('Blend', 'intercept, specs, weights, retained, penalty, alpha, path')):
    """Blend model - an intercept plus one weight per stack member defining the linear
    combination of the member predictions.

    The ``specs`` order is the frozen column-order contract inherited from the stack. Members with
    exactly zero weight are explicitly marked as not ``retained`` so that neither the finalizer nor
    the predictor need to inspect the weight values.

    Args:
        intercept: Blend intercept.
        specs: All the stack member specs (in stack order).
        weights: Weight of each of the specs.
        retained: Flags of the members kept for the final ensemble (defaults to the non-zero weights).
        penalty: Selected regularization strength.
        alpha: Elastic-net mixing parameter used.
        path: Optional regularization path diagnostics.
    """

    intercept: float
    specs: tuple['candidate.Spec', ...]
    weights: tuple[float, ...]
    retained: tuple[bool, ...]
    penalty: float
    alpha: float
    path: typing.Optional[Path]

    def __new__(
        cls,
        intercept: float,
        specs: typing.Sequence['candidate.Spec'],
        weights: typing.Sequence[float],
        retained: typing.Optional[typing.Sequence[bool]] = None,
        penalty: float = 0.0,
        alpha: float = 1.0,
        path: typing.Optional[Path] = None,
    ):
        specs = tuple(specs)
        weights = tuple(float(w) for w in weights)
        retained = tuple(w != 0 for w in weights) if retained is None else tuple(bool(r) for r in retained)
        if not len(specs) == len(weights) == len(retained):
            raise stackml.AlignmentError('Blend specs, weights and retained flags must have the same length')
        if len(set(specs)) != len(specs):
            raise stackml.AlignmentError('Duplicate blend members')
        return super().__new__(cls, float(intercept), specs, weights, retained, float(penalty), float(alpha), path)

    @property
    def members(self) -> tuple['candidate.Spec', ...]:
        """Retained specs in the frozen column order."""
        return tuple(s for s, r in zip(self.specs, self.retained) if r)

    @property
    def coefficients(self) -> tuple[float, ...]:
        """Weights of the retained members in the frozen column order."""
        return tuple(w for w, r in zip(self.weights, self.retained) if r)

    @property
    def contributions(self) -> pandas.Series:
        """Relative contribution table - the weight of each retained member (indexed by its key)."""
        return pandas.Series(
            self.coefficients, index=pandas.Index([s.key for s in self.members], name='member'), name='weight'
        )

    def combine(self, predictions: typing.Union[pandas.DataFrame, numpy.ndarray]) -> numpy.ndarray:
        """Apply the blend to the member predictions.

        Args:
            predictions: Matrix of the retained member predictions (one column per member in the
                         ``members`` order).

        Returns:
            Vector of ``intercept + sum(weight_i * prediction_i)``.
        """
        values = numpy.asarray(predictions, dtype=float)
        if values.ndim != 2 or values.shape[1] != len(self.members):
            raise stackml.AlignmentError(f'Expecting {len(self.members)} member columns, got shape {values.shape}')
        return self.intercept + values @ numpy.asarray(self.coefficients, dtype=float)


def select(
    penalties: typing.Sequence[float], errors: typing.Sequence[float], stderrs: typing.Sequence[float]
) -> tuple[int, int]:
    """One-standard-error rule.

    Picks the largest penalty whose mean error is within one standard error (of the minimum) from
    the minimal mean error.

    Args:
        penalties: Regularization strengths.
        errors: Mean cross-validation error of each penalty.
        stderrs: Standard error of each mean error.

    Returns:
        Tuple of the indices of the minimal error penalty and the selected penalty.
    """
    penalties = numpy.asarray(penalties, dtype=float)
    errors = numpy.asarray(errors, dtype=float)
    best = int(numpy.argmin(errors))
    eligible = numpy.flatnonzero(errors <= errors[best] + stderrs[best])
    return best, int(eligible[numpy.argmax(penalties[eligible])])


def _penalties(features: numpy.ndarray, target: numpy.ndarray, alpha: float, count: int) -> numpy.ndarray:
    """Default descending log-spaced penalty path starting at the smallest penalty zeroing all the
    weights.
    """
    centered = features - features.mean(axis=0)
    top = numpy.abs(centered.T @ (target - target.mean())).max() / (len(target) * max(alpha, 1e-3))
    if not top > 0:
        top = 1.0
    return numpy.geomspace(top, top * PATH_RATIO, count)


def _model(alpha: float, non_negative: bool) -> linear_model.ElasticNet:
    return linear_model.ElasticNet(l1_ratio=alpha, positive=non_negative, max_iter=MAX_ITER, warm_start=True)


def blend(
    stack: 'ensemble.Stack',
    alpha: float,
    *,
    metric: str = 'rmse',
    penalties: typing.Optional[typing.Sequence[float]] = None,
    npenalties: typing.Optional[int] = None,
    crossvalidator: typing.Optional[typing.Any] = None,
    nfolds: typing.Optional[int] = None,
    seed: typing.Optional[int] = None,
    non_negative: typing.Optional[bool] = None,
) -> Blend:
    """Fit the elastic-net meta-learner on the stack.

    The penalty gets selected using the *one-standard-error* rule applied to the cross-validated
    errors along the regularization path. The final blend is then fit on the entire stack using the
    selected penalty.

    Args:
        stack: Stack matrix.
        alpha: Elastic-net mixing parameter (``0`` is pure ridge, ``1`` is pure lasso).
        metric: Cross-validation loss (one of the ``METRICS``).
        penalties: Explicit penalty path (generated if not provided).
        npenalties: Number of penalties of the generated path.
        crossvalidator: Splitter implementing the scikit-learn cross-validator protocol (e.g. the
                        fold assignment); shuffled ``KFold`` with ``nfolds`` splits if not provided.
        nfolds: Number of the default cross-validator folds.
        seed: Random seed of the default cross-validator.
        non_negative: Constrain the weights to be non-negative.

    Returns:
        Blend model.

    Raises:
        stackml.DegenerateBlendError: For constant target, less than two usable columns or no
                                      retained member.
        stackml.InvalidConfiguration: For invalid settings.
    """
    settings = _conf.CONFIG.get(_conf.SECTION_BLEND, {})
    npenalties = npenalties or settings.get(_conf.OPT_NPENALTIES, 50)
    nfolds = nfolds or settings.get(_conf.OPT_NFOLDS, 10)
    seed = settings.get(_conf.OPT_SEED, 0) if seed is None else seed
    non_negative = settings.get(_conf.OPT_NON_NEGATIVE, True) if non_negative is None else non_negative
    if isinstance(alpha, bool) or not isinstance(alpha, numbers.Real) or not 0 <= alpha <= 1:
        raise stackml.InvalidConfiguration(f'Blend alpha must be within [0, 1]: {alpha!r}')
    try:
        loss = METRICS[metric]
    except KeyError as err:
        raise stackml.InvalidConfiguration(f'Unknown blend metric: {metric}') from err

    target = stack.target.to_numpy(dtype=float)
    if not numpy.all(numpy.isfinite(target)) or len(target) < 2 or numpy.ptp(target) == 0:
        raise stackml.DegenerateBlendError('Zero-variance (or non-finite) target')
    features = stack.features.to_numpy(dtype=float)
    usable = numpy.all(numpy.isfinite(features), axis=0) & (numpy.ptp(numpy.nan_to_num(features), axis=0) > 0)
    if usable.sum() < 2:
        raise stackml.DegenerateBlendError(f'Only {usable.sum()} usable stack columns (at least 2 required)')
    for spec in (s for s, u in zip(stack.specs, usable) if not u):
        LOGGER.warning('Excluding unusable (constant or non-finite) stack column %s', spec)
    features = features[:, usable]

    if penalties is None:
        penalties = _penalties(features, target, alpha, npenalties)
    else:
        penalties = numpy.sort(numpy.asarray(penalties, dtype=float))[::-1]
        if not len(penalties) or penalties[-1] <= 0:
            raise stackml.InvalidConfiguration('Explicit blend penalties must be non-empty and positive')
    if crossvalidator is None:
        crossvalidator = model_selection.KFold(n_splits=min(nfolds, len(target)), shuffle=True, random_state=seed)
    splits = tuple(crossvalidator.split(features, target))
    if len(splits) < 2:
        raise stackml.InvalidConfiguration('Blend cross-validation requires at least 2 splits')

    errors = numpy.empty((len(penalties), len(splits)))
    for index, (train, test) in enumerate(splits):
        model = _model(alpha, non_negative)
        for step, penalty in enumerate(penalties):
            model.set_params(alpha=penalty).fit(features[train], target[train])
            errors[step, index] = loss(target[test], model.predict(features[test]))
    means = errors.mean(axis=1)
    stderrs = errors.std(axis=1, ddof=1) / numpy.sqrt(len(splits))
    best, chosen = select(penalties, means, stderrs)
    path = Path(tuple(penalties.tolist()), tuple(means.tolist()), tuple(stderrs.tolist()), best, chosen)
    LOGGER.debug(
        'Penalty %.6g (error %.6g) selected over the minimum %.6g (error %.6g +- %.6g)',
        penalties[chosen],
        means[chosen],
        penalties[best],
        means[best],
        stderrs[best],
    )

    final = _model(alpha, non_negative).set_params(alpha=penalties[chosen]).fit(features, target)
    weights = numpy.zeros(len(stack.specs))
    weights[usable] = final.coef_
    result = Blend(final.intercept_, stack.specs, weights, None, penalties[chosen], alpha, path)
    if not result.members:
        raise stackml.DegenerateBlendError(f'No candidate retained at penalty {penalties[chosen]:.6g}')
    LOGGER.info(
        'Blend fitted: %d of %d candidates retained (penalty=%.6g, alpha=%.3g)',
        len(result.members),
        len(stack.specs),
        result.penalty,
        alpha,
    )
    return result
