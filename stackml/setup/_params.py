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
Experiment hyper-parameter document.
"""
import logging
import numbers
import pathlib
import typing

import tomli

import stackml

from . import _conf

LOGGER = logging.getLogger(__name__)


class Params(typing.NamedTuple):
    """Validated experiment hyper-parameters.

    The document is a TOML file with the following recognized keys::

        [tune]
        trees = 50              # required - tree count of the fixed tree family
        penalty = [0.01, 0.1]   # optional - linear family penalty grid axis
        mixture = [0.0, 1.0]    # optional - linear family mixture grid axis

        [ensemble]
        alpha = 0.5             # required - elastic-net mixing of the blender
        metric = "rmse"         # optional - blender cross-validation loss

        [folds]
        k = 5                   # optional - number of folds
        seed = 42               # optional - fold assignment seed

    Defaults of the optional keys come from the ``[PARAMS]`` section of the application config.
    """

    trees: int
    alpha: float
    nfolds: int
    seed: int
    penalty: tuple[float, ...]
    mixture: tuple[float, ...]
    metric: str

    @property
    def grid(self) -> tuple[typing.Mapping[str, float], ...]:
        """The regular linear family grid as the cartesian product of the penalty and mixture axes."""
        return tuple({'penalty': p, 'mixture': m} for p in self.penalty for m in self.mixture)

    @property
    def tree(self) -> typing.Mapping[str, typing.Any]:
        """Hyper-parameters of the fixed tree family."""
        return {'trees': self.trees}

    @classmethod
    def load(cls, path: typing.Union[str, pathlib.Path]) -> 'Params':
        """Parse the parameters from the given TOML file.

        Args:
            path: Document location.

        Returns:
            Parameters instance.
        """
        try:
            with open(path, 'rb') as document:
                content = tomli.load(document)
        except OSError as err:
            raise stackml.InvalidConfiguration(f'Unable to read parameters {path}: {err}') from err
        except ValueError as err:
            raise stackml.InvalidConfiguration(f'Malformed parameters {path}: {err}') from err
        LOGGER.debug('Parameters loaded from %s', path)
        return cls.parse(content)

    @classmethod
    def parse(cls, document: typing.Mapping[str, typing.Any]) -> 'Params':
        """Validate the parsed parameter document.

        Args:
            document: Nested mapping of the parameter sections.

        Returns:
            Parameters instance.
        """
        defaults = _conf.CONFIG.get(_conf.SECTION_PARAMS, {})

        def section(name: str) -> typing.Mapping[str, typing.Any]:
            value = document.get(name, {})
            if not isinstance(value, typing.Mapping):
                raise stackml.InvalidConfiguration(f'Parameter section {name} must be a table')
            return value

        def required(name: str, option: str) -> typing.Any:
            try:
                return section(name)[option]
            except KeyError as err:
                raise stackml.InvalidConfiguration(f'Missing parameter {name}.{option}') from err

        def optional(name: str, option: str) -> typing.Any:
            try:
                return section(name).get(option, defaults[name][option])
            except KeyError as err:
                raise stackml.InvalidConfiguration(f'No default for parameter {name}.{option}') from err

        def integer(value: typing.Any, name: str, minimum: int) -> int:
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < minimum:
                raise stackml.InvalidConfiguration(f'Parameter {name} must be an integer >= {minimum}: {value!r}')
            return int(value)

        def real(value: typing.Any, name: str, lower: float, upper: float = float('inf')) -> float:
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not lower <= value <= upper:
                raise stackml.InvalidConfiguration(
                    f'Parameter {name} must be a number in [{lower}, {upper}]: {value!r}'
                )
            return float(value)

        def axis(value: typing.Any, name: str, lower: float, upper: float = float('inf')) -> tuple[float, ...]:
            if isinstance(value, (str, bytes)) or not isinstance(value, typing.Sequence) or not value:
                raise stackml.InvalidConfiguration(f'Parameter {name} must be a non-empty list: {value!r}')
            return tuple(real(v, name, lower, upper) for v in value)

        from stackml import ensemble  # pylint: disable=import-outside-toplevel

        metric = optional('ensemble', 'metric')
        if not isinstance(metric, str) or metric not in ensemble.METRICS:
            raise stackml.InvalidConfiguration(
                f'Parameter ensemble.metric must be one of {", ".join(ensemble.METRICS)}: {metric!r}'
            )
        return cls(
            trees=integer(required('tune', 'trees'), 'tune.trees', 1),
            alpha=real(required('ensemble', 'alpha'), 'ensemble.alpha', 0, 1),
            nfolds=integer(optional('folds', 'k'), 'folds.k', 2),
            seed=integer(optional('folds', 'seed'), 'folds.seed', 0),
            penalty=axis(optional('tune', 'penalty'), 'tune.penalty', 0),
            mixture=axis(optional('tune', 'mixture'), 'tune.mixture', 0, 1),
            metric=metric,
        )
