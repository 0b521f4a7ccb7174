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
K-fold partitioning of the training rows.
"""
import collections
import logging
import typing

import numpy

import stackml

LOGGER = logging.getLogger(__name__)


class Assignment(typing.NamedTuple):
    """Immutable mapping of training row positions to fold indices.

    The same instance is meant to be shared by all the candidate families so that their
    out-of-fold predictions are comparable.

    Beside the direct access to the splits, it implements the :ref:`cross-validator protocol
    <sklearn:cross_validation>` (``split`` and ``get_n_splits``) so it can be passed to any
    component accepting a scikit-learn splitter.
    """

    folds: tuple[int, ...]
    """Fold index of each training row (by position)."""
    nfolds: int
    """Number of folds."""
    seed: typing.Optional[int] = None
    """Seed used for generating the assignment (if any)."""

    @property
    def sizes(self) -> tuple[int, ...]:
        """Number of rows in each of the folds."""
        counts = collections.Counter(self.folds)
        return tuple(counts[f] for f in range(self.nfolds))

    def members(self, fold: int) -> numpy.ndarray:
        """Positions of the rows belonging to the given fold.

        Args:
            fold: Fold index.

        Returns:
            Sorted array of row positions.
        """
        return numpy.flatnonzero(numpy.asarray(self.folds) == fold)

    def splits(self) -> typing.Iterator[tuple[numpy.ndarray, numpy.ndarray]]:
        """Generate the train/test row positions for each fold in the fold index order.

        Returns:
            Iterator of ``(train, test)`` position arrays where ``test`` are the fold members and
            ``train`` all the other rows.
        """
        folds = numpy.asarray(self.folds)
        for fold in range(self.nfolds):
            yield numpy.flatnonzero(folds != fold), numpy.flatnonzero(folds == fold)

    def split(
        self,
        features: typing.Any = None,
        labels: typing.Any = None,  # pylint: disable=unused-argument
        groups: typing.Any = None,  # pylint: disable=unused-argument
    ) -> typing.Iterator[tuple[numpy.ndarray, numpy.ndarray]]:
        """Cross-validator protocol compatible alias of :meth:`splits`.

        Args:
            features: Train features data (must have the same length as the assignment if given).
            labels: Target data (ignored).
            groups: Group membership vector (ignored).

        Returns:
            Iterator of ``(train, test)`` position arrays.
        """
        if features is not None and len(features) != len(self.folds):
            raise stackml.AlignmentError(f'Assignment of {len(self.folds)} rows used with {len(features)} rows')
        return self.splits()

    def get_n_splits(
        self,
        features: typing.Any = None,  # pylint: disable=unused-argument
        labels: typing.Any = None,  # pylint: disable=unused-argument
        groups: typing.Any = None,  # pylint: disable=unused-argument
    ) -> int:
        """Cross-validator protocol compatible number of splits.

        Returns:
            Number of folds.
        """
        return self.nfolds


def assign(training_rows: typing.Sized, k: int, seed: typing.Optional[int] = None) -> Assignment:
    """Randomly (but deterministically for a given seed) partition the training rows into ``k`` folds.

    Rows get shuffled using the seeded generator and then dealt to the folds in a round-robin
    fashion so the fold sizes differ by at most one.

    Args:
        training_rows: Training dataset (only its length is used).
        k: Number of folds (at least 2 and at most the number of rows).
        seed: Random generator seed.

    Returns:
        Fold assignment instance.

    Raises:
        stackml.InvalidConfiguration: For invalid ``k`` or empty rows.
    """
    if isinstance(k, bool) or not isinstance(k, int) or k < 2:
        raise stackml.InvalidConfiguration(f'At least 2 folds required: {k!r}')
    count = len(training_rows)
    if not count:
        raise stackml.InvalidConfiguration('No training rows to assign')
    if k > count:
        raise stackml.InvalidConfiguration(f'Number of folds ({k}) exceeds the number of rows ({count})')
    order = numpy.random.default_rng(seed).permutation(count)
    folds = numpy.empty(count, dtype=int)
    folds[order] = numpy.arange(count) % k
    LOGGER.debug('Assigned %d rows into %d folds (seed=%s)', count, k, seed)
    return Assignment(tuple(int(f) for f in folds), k, seed)
