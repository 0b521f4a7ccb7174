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
StackML - cross-validated model stacking for tabular regression.

The package root carries the exception hierarchy shared by all the submodules.
"""
import typing

if typing.TYPE_CHECKING:
    from stackml import candidate

__version__ = '0.3.dev1'


class AnyError(Exception):
    """Base StackML exception type."""


class InvalidError(AnyError):
    """Base invalid state exception."""


class MissingError(InvalidError):
    """Exception state of a missing element."""


class UnexpectedError(InvalidError):
    """Exception state of an unexpected element."""


class FailedError(AnyError):
    """Exception indicating an unsuccessful result of an operation."""


class InvalidConfiguration(InvalidError):
    """Invalid run configuration (fold count, hyper-parameter document, blending settings).

    Always raised before any model gets fitted.
    """


class AlignmentError(InvalidError):
    """Row-count or row-order mismatch between the stacked columns."""


class DegenerateBlendError(InvalidError):
    """The stack is not suitable for blending (too few usable columns, constant target or no
    retained candidate).
    """


class CandidateFitFailure(FailedError):
    """A candidate fit did not converge or failed numerically.

    Args:
        spec: Specification of the failed candidate.
        fold: Index of the failing fold (``None`` if not fold-specific).
        reason: Description of the failure.
    """

    def __init__(self, spec: 'candidate.Spec', fold: typing.Optional[int], reason: str):
        location = f' on fold {fold}' if fold is not None else ''
        super().__init__(f'Candidate {spec.key} failed{location}: {reason}')
        self.spec: 'candidate.Spec' = spec
        self.fold: typing.Optional[int] = fold
        self.reason: str = reason


class FinalizationError(FailedError):
    """A retained candidate could not be refit on the full training set.

    Args:
        spec: Specification of the candidate failing the refit.
        reason: Description of the failure.
    """

    def __init__(self, spec: 'candidate.Spec', reason: str):
        super().__init__(f'Unable to finalize {spec.key}: {reason}')
        self.spec: 'candidate.Spec' = spec
        self.reason: str = reason
