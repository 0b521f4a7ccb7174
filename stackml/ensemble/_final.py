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
Finalization of the blended candidates.
"""
import logging
import typing
from concurrent import futures

import pandas

import stackml
from stackml import candidate as candmod
from stackml.setup import _conf

from . import _blend

if typing.TYPE_CHECKING:
    from stackml import candidate

LOGGER = logging.getLogger(__name__)


def _refit(spec: 'candidate.Spec', features: pandas.DataFrame, target: pandas.Series) -> 'candidate.Model':
    """Refit the single spec converting all the failures to the finalization error."""
    try:
        return candmod.Family.get(spec.family).refit(spec, features, target)
    except stackml.MissingError as err:
        raise stackml.FinalizationError(spec, str(err)) from err
    except stackml.CandidateFitFailure as err:
        raise stackml.FinalizationError(spec, err.reason) from err


def finalize(
    candidates: typing.Union[_blend.Blend, typing.Iterable['candidate.Spec']],
    features: pandas.DataFrame,
    target: pandas.Series,
    *,
    workers: typing.Optional[int] = None,
) -> dict['candidate.Spec', 'candidate.Model']:
    """Refit the candidates on the entire training set using exactly their spec hyper-parameters.

    Each spec is rebuilt by its registered family so multiple specs of the same family are
    finalized as independent models.

    Args:
        candidates: Either a blend (in which case only its retained members get finalized) or an
                    explicit sequence of specs.
        features: All training features.
        target: All training target values.
        workers: Maximum number of parallel refits.

    Returns:
        Finalized models keyed by their specs (in the candidates order).

    Raises:
        stackml.FinalizationError: If any of the specs can't be refit.
    """
    specs = candidates.members if isinstance(candidates, _blend.Blend) else tuple(candidates)
    if len(features) != len(target) or not features.index.equals(target.index):
        raise stackml.AlignmentError('Features and target rows not aligned')
    workers = workers or _conf.CONFIG.get(_conf.SECTION_EXECUTION, {}).get(_conf.OPT_WORKERS) or None
    with futures.ThreadPoolExecutor(workers, thread_name_prefix='finalize') as executor:
        jobs = {s: executor.submit(_refit, s, features, target) for s in specs}
        models = {s: j.result() for s, j in jobs.items()}
    LOGGER.info('Finalized %d candidates on %d rows', len(models), len(features))
    return models
