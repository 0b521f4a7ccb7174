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
Stack assembly.
"""
import logging
import typing

import numpy
import pandas

import stackml
from stackml import candidate as candmod

if typing.TYPE_CHECKING:
    from stackml import candidate, fold

LOGGER = logging.getLogger(__name__)


class Stack(typing.NamedTuple):
    """Stack matrix - the target plus the aligned out-of-fold prediction columns.

    The ``specs`` order is the column-order contract inherited by the blend and the ensemble.
    """

    target: pandas.Series
    specs: tuple['candidate.Spec', ...]
    matrix: pandas.DataFrame
    """Frame with the target as the first column followed by one column per spec (named by its key)."""
    folds: typing.Optional['fold.Assignment'] = None
    """Fold assignment the columns were produced with (if known)."""

    @property
    def features(self) -> pandas.DataFrame:
        """The candidate columns only (in the ``specs`` order)."""
        return self.matrix.iloc[:, 1:]

    @property
    def shape(self) -> tuple[int, int]:
        """Stack matrix shape including the target column."""
        return self.matrix.shape


def assemble(
    target: pandas.Series,
    columns: typing.Mapping['candidate.Spec', typing.Union['candidate.Column', pandas.Series, typing.Sequence[float]]],
    folds: typing.Optional['fold.Assignment'] = None,
) -> Stack:
    """Merge the candidate out-of-fold columns with the target into a single aligned matrix.

    Args:
        target: True training target values.
        columns: Out-of-fold predictions keyed by the candidate specs. The mapping order defines the
                 stack column order.
        folds: Optional fold assignment the columns were produced with.

    Returns:
        Stack matrix.

    Raises:
        stackml.AlignmentError: If any column does not match the target rows (count or index).
    """
    if not columns:
        raise stackml.AlignmentError('No candidate columns to stack')
    if folds is not None and len(folds.folds) != len(target):
        raise stackml.AlignmentError(f'Fold assignment of {len(folds.folds)} rows used with {len(target)} target rows')
    target = pandas.Series(numpy.asarray(target, dtype=float), index=target.index, name=target.name or 'target')
    specs = []
    data = {}
    for spec, column in columns.items():
        if isinstance(column, candmod.Column):
            if column.spec != spec:
                raise stackml.AlignmentError(f'Column of {column.spec} provided under {spec}')
            column = column.values
        if spec.key in data or spec.key == target.name:
            raise stackml.AlignmentError(f'Duplicate stack column {spec}')
        if len(column) != len(target):
            raise stackml.AlignmentError(f'Column {spec} has {len(column)} rows while the target has {len(target)}')
        if isinstance(column, pandas.Series):
            if not column.index.equals(target.index):
                raise stackml.AlignmentError(f'Column {spec} rows not aligned with the target')
            column = column.to_numpy()
        specs.append(spec)
        data[spec.key] = numpy.array(column, dtype=float)
    matrix = pandas.DataFrame({target.name: target.to_numpy(copy=True), **data}, index=target.index.copy())
    LOGGER.info('Stack assembled: %d rows x %d candidates', len(matrix), len(specs))
    return Stack(target, tuple(specs), matrix, folds)
