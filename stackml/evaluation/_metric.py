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
Metric implementations.
"""
import logging
import typing

import pandas
from sklearn import metrics

import stackml
from stackml import candidate

LOGGER = logging.getLogger(__name__)

#: Default scoring functions of the metrics table.
METRICS: typing.Mapping[str, typing.Callable[[typing.Any, typing.Any], float]] = {
    'rmse': candidate.rmse,
    'rsq': metrics.r2_score,
}


def scoreboard(
    true: pandas.Series,
    predictions: pandas.DataFrame,
    scorers: typing.Mapping[str, typing.Callable[[typing.Any, typing.Any], float]] = METRICS,
    order: str = 'rsq',
) -> pandas.DataFrame:
    """Compute the metrics table of the individual prediction columns.

    Args:
        true: Ground truth.
        predictions: One column of predictions per model (e.g. the ensemble prediction table).
        scorers: Mapping of metric names to the ``(true, pred) -> float`` scoring functions.
        order: Metric to sort the table by (descending).

    Returns:
        Table indexed by the model identifiers with one column per metric.
    """
    if len(true) != len(predictions) or not predictions.index.equals(true.index):
        raise stackml.AlignmentError('Ground truth not aligned with the predictions')
    if order not in scorers:
        raise stackml.InvalidConfiguration(f'Unknown ordering metric: {order}')
    table = pandas.DataFrame(
        [[float(f(true, predictions[c])) for f in scorers.values()] for c in predictions.columns],
        index=pandas.Index(predictions.columns, name='model'),
        columns=list(scorers),
    )
    LOGGER.debug('Scored %d models', len(table))
    return table.sort_values(order, ascending=False, kind='stable')
