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
Candidate family base class.
"""
import abc
import logging
import threading
import time
import typing
from concurrent import futures

import numpy
import pandas
from sklearn import metrics

import stackml
from stackml.setup import _conf

from . import _spec

if typing.TYPE_CHECKING:
    from stackml import candidate, fold

LOGGER = logging.getLogger(__name__)


def rmse(true: typing.Any, pred: typing.Any) -> float:
    """Root mean squared error helper."""
    return float(numpy.sqrt(metrics.mean_squared_error(true, pred)))


class Job:
    """Handle of a single fit submitted to the executor tracking the moment it actually started running.

    The timeout applies to the fit itself, not to the time it spent queued behind other fits.

    Args:
        executor: Executor to submit the fit to.
        function: Fit callable.
        *args: Fit arguments.
    """

    POLL = 0.05

    def __init__(self, executor: futures.Executor, function: typing.Callable[..., typing.Any], *args: typing.Any):
        self._started: threading.Event = threading.Event()
        self._start: float = 0.0
        self._future: futures.Future = executor.submit(self._run, function, *args)

    def _run(self, function: typing.Callable[..., typing.Any], *args: typing.Any) -> typing.Any:
        self._start = time.monotonic()
        self._started.set()
        return function(*args)

    def cancel(self) -> bool:
        """Cancel the fit if not started yet."""
        return self._future.cancel()

    def result(self, timeout: typing.Optional[float] = None) -> typing.Any:
        """Wait for the fit result.

        Args:
            timeout: Maximum number of seconds since the fit start (no limit if not set).

        Returns:
            Fit result.

        Raises:
            futures.TimeoutError: If the fit did not finish within the timeout since its start.
        """
        if timeout is None:
            return self._future.result()
        while not self._started.wait(self.POLL):
            if self._future.done():  # cancelled before starting
                return self._future.result()
        return self._future.result(timeout=max(self._start + timeout - time.monotonic(), 0))


class Family(abc.ABC):
    """Abstract candidate model family.

    A family knows how to turn a :class:`candidate.Spec <stackml.candidate.Spec>` into a
    (scikit-learn compatible) estimator and provides the generic leave-one-fold-out machinery
    producing the out-of-fold prediction columns as well as the full-data refit.

    Concrete families get registered under their ``NAME`` so that any spec can be rebuilt just
    from its ``family`` reference (see :meth:`get`).

    The individual (spec x fold) fits are independent and run on a thread pool sharing the
    read-only training data.

    Args:
        workers: Maximum number of worker threads (executor default if not set).
        timeout: Maximum number of seconds to wait for each of the fold fits (no limit if not set).
    """

    NAME: str = abc.abstractmethod
    REGISTRY: dict[str, type['Family']] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        name = cls.__dict__.get('NAME')
        if isinstance(name, str):
            if name in Family.REGISTRY:
                LOGGER.debug('Overriding family %s: %s -> %s', name, Family.REGISTRY[name], cls)
            Family.REGISTRY[name] = cls

    def __init__(self, workers: typing.Optional[int] = None, timeout: typing.Optional[float] = None):
        execution = _conf.CONFIG.get(_conf.SECTION_EXECUTION, {})
        self._workers: typing.Optional[int] = workers or execution.get(_conf.OPT_WORKERS) or None
        self._timeout: typing.Optional[float] = timeout or execution.get(_conf.OPT_TIMEOUT) or None

    def __repr__(self):
        return f'{self.__class__.__name__}(workers={self._workers}, timeout={self._timeout})'

    @classmethod
    def get(cls, family: str) -> type['Family']:
        """Lookup the registered family implementation.

        Args:
            family: Family name.

        Returns:
            Family class.
        """
        try:
            return cls.REGISTRY[family]
        except KeyError as err:
            raise stackml.MissingError(f'Unknown candidate family: {family}') from err

    @classmethod
    @abc.abstractmethod
    def build(cls, spec: 'candidate.Spec') -> typing.Any:
        """Create an unfitted estimator for the given spec.

        Args:
            spec: Candidate specification.

        Returns:
            Estimator instance with the ``fit``/``predict`` interface.
        """

    @classmethod
    def diagnose(cls, estimator: typing.Any) -> typing.Optional[str]:  # pylint: disable=unused-argument
        """Post-fit sanity check.

        Args:
            estimator: Freshly fitted estimator.

        Returns:
            Failure reason if the fit is not acceptable (e.g. did not converge) or None if OK.
        """
        return None

    @classmethod
    def fit(
        cls,
        spec: 'candidate.Spec',
        features: pandas.DataFrame,
        target: pandas.Series,
        fold: typing.Optional[int] = None,
    ) -> typing.Any:
        """Build and fit the estimator for the given spec.

        Args:
            spec: Candidate specification.
            features: Training features.
            target: Training target.
            fold: Index of the fold this fit is excluding (for the error reporting).

        Returns:
            Fitted estimator.

        Raises:
            stackml.CandidateFitFailure: If the fit fails numerically or does not converge.
        """
        estimator = cls.build(spec)
        try:
            estimator.fit(features, target)
        except (ValueError, ArithmeticError) as err:
            raise stackml.CandidateFitFailure(spec, fold, str(err)) from err
        reason = cls.diagnose(estimator)
        if reason:
            raise stackml.CandidateFitFailure(spec, fold, reason)
        return estimator

    @classmethod
    def refit(cls, spec: 'candidate.Spec', features: pandas.DataFrame, target: pandas.Series) -> 'candidate.Model':
        """Fit the spec estimator on the entire training set.

        Args:
            spec: Candidate specification.
            features: All training features.
            target: All training target values.

        Returns:
            Finalized model.
        """
        LOGGER.debug('Refitting %s on %d rows', spec, len(features))
        return _spec.Model(spec, cls.fit(spec, features, target), tuple(features.columns))

    @classmethod
    def predict_fold(
        cls,
        spec: 'candidate.Spec',
        features: pandas.DataFrame,
        target: pandas.Series,
        fold: int,
        train: numpy.ndarray,
        test: numpy.ndarray,
    ) -> numpy.ndarray:
        """Fit the spec on the rows outside of the fold and predict the rows inside.

        Args:
            spec: Candidate specification.
            features: All training features.
            target: All training target values.
            fold: Fold index.
            train: Positions of the rows outside of the fold.
            test: Positions of the fold rows.

        Returns:
            Predictions for the fold rows.
        """
        estimator = cls.fit(spec, features.iloc[train], target.iloc[train], fold)
        try:
            predicted = numpy.asarray(estimator.predict(features.iloc[test]), dtype=float)
        except (ValueError, ArithmeticError) as err:
            raise stackml.CandidateFitFailure(spec, fold, str(err)) from err
        if not numpy.all(numpy.isfinite(predicted)):
            raise stackml.CandidateFitFailure(spec, fold, 'non-finite predictions')
        return predicted

    def crossvalidate(
        self,
        specs: typing.Iterable['candidate.Spec'],
        features: pandas.DataFrame,
        target: pandas.Series,
        assignment: 'fold.Assignment',
    ) -> list[typing.Union['candidate.Column', stackml.CandidateFitFailure]]:
        """Produce the out-of-fold prediction columns of all the given specs.

        A failure of any of the folds invalidates the entire spec - partial-fold columns are never
        produced.

        Args:
            specs: Candidate specifications to evaluate.
            features: Training features.
            target: Training target.
            assignment: Fold assignment of the training rows.

        Returns:
            List with either the column or the failure of each spec in the original specs order.
        """
        if len(features) != len(target) or not features.index.equals(target.index):
            raise stackml.AlignmentError('Features and target rows not aligned')
        if len(assignment.folds) != len(target):
            raise stackml.AlignmentError(
                f'Fold assignment of {len(assignment.folds)} rows used with {len(target)} training rows'
            )
        splits = tuple(assignment.splits())
        executor = futures.ThreadPoolExecutor(self._workers, thread_name_prefix=self.NAME)
        try:
            jobs = [
                (
                    s,
                    [
                        Job(executor, self.predict_fold, s, features, target, f, train, test)
                        for f, (train, test) in enumerate(splits)
                    ],
                )
                for s in specs
            ]
            results = []
            for spec, folds in jobs:
                try:
                    results.append(self._collect(spec, folds, splits, target))
                except stackml.CandidateFitFailure as err:
                    for pending in folds:
                        pending.cancel()
                    results.append(err)
            return results
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _collect(
        self,
        spec: 'candidate.Spec',
        folds: typing.Sequence[Job],
        splits: typing.Sequence[tuple[numpy.ndarray, numpy.ndarray]],
        target: pandas.Series,
    ) -> 'candidate.Column':
        """Assemble the fold predictions into a single column.

        Args:
            spec: Candidate specification.
            folds: Jobs of the fold predictions (in fold order).
            splits: Fold splits.
            target: Training target.

        Returns:
            Out-of-fold column.
        """
        values = numpy.full(len(target), numpy.nan)
        errors = []
        for index, (job, (_, test)) in enumerate(zip(folds, splits)):
            try:
                predicted = job.result(timeout=self._timeout)
            except futures.TimeoutError as err:
                raise stackml.CandidateFitFailure(spec, index, f'timeout after {self._timeout}s') from err
            values[test] = predicted
            errors.append(rmse(target.iloc[test], predicted))
        column = _spec.Column(spec, pandas.Series(values, index=target.index, name=spec.key), tuple(errors))
        LOGGER.debug('Candidate %s cross-validated with RMSE %.6g', spec, column.error)
        return column
