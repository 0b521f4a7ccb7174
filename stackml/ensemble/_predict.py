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
Ensemble predictor.
"""
import logging
import types
import typing

import cloudpickle
import pandas

import stackml

if typing.TYPE_CHECKING:
    from stackml import candidate, ensemble

LOGGER = logging.getLogger(__name__)


class Ensemble:
    """Frozen stacked ensemble owning the blend model and the finalized base models of all its
    retained members.

    Args:
        blend: Blend model defining the member order and the combination weights.
        models: Finalized models keyed by the specs (must cover all the retained blend members).

    Raises:
        stackml.FinalizationError: If any of the retained members has no finalized model.
    """

    COLUMN = 'ensemble'

    def __init__(self, blend: 'ensemble.Blend', models: typing.Mapping['candidate.Spec', 'candidate.Model']):
        for spec in blend.members:
            if spec not in models:
                raise stackml.FinalizationError(spec, 'missing finalized model of a retained member')
            if models[spec].spec != spec:
                raise stackml.FinalizationError(spec, f'finalized model belongs to {models[spec].spec}')
        self._blend: 'ensemble.Blend' = blend
        self._models: typing.Mapping['candidate.Spec', 'candidate.Model'] = types.MappingProxyType(
            {s: models[s] for s in blend.members}
        )

    def __repr__(self):
        return f'Ensemble[{", ".join(s.key for s in self._blend.members)}]'

    @property
    def blend(self) -> 'ensemble.Blend':
        """The blend model."""
        return self._blend

    @property
    def models(self) -> typing.Mapping['candidate.Spec', 'candidate.Model']:
        """Read-only mapping of the finalized member models (in the blend order)."""
        return self._models

    def predict(self, features: pandas.DataFrame) -> pandas.DataFrame:
        """Predict the new rows.

        The member predictions are assembled strictly in the column order frozen in the blend.

        Args:
            features: New rows (containing all the training feature columns).

        Returns:
            Table with one prediction column per member (named by the spec key) followed by the
            combined ``ensemble`` column.
        """
        members = pandas.DataFrame(
            {s.key: self._models[s].predict(features).to_numpy() for s in self._blend.members}, index=features.index
        )
        result = members.assign(**{self.COLUMN: self._blend.combine(members)})
        LOGGER.debug('Predicted %d rows using %d members', len(result), len(members.columns))
        return result

    def dumps(self) -> bytes:
        """Serialize the ensemble.

        Returns:
            Ensemble state as bytes.
        """
        return cloudpickle.dumps((self._blend, dict(self._models)))

    @classmethod
    def loads(cls, state: bytes) -> 'Ensemble':
        """Restore the ensemble previously serialized using :meth:`dumps`.

        Args:
            state: Serialized ensemble state.

        Returns:
            Ensemble instance.
        """
        blend, models = cloudpickle.loads(state)
        LOGGER.debug('Loaded ensemble state (%d bytes)', len(state))
        return cls(blend, models)
