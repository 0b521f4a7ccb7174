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
Stacked ensemble - the second layer combining the candidate out-of-fold predictions.

The stages are applied in this order:

#. :func:`assemble` the candidate columns into the :class:`Stack` matrix
#. :func:`blend` the stack into the :class:`Blend` model
#. :func:`finalize` the retained blend members on the full training set
#. deploy the :class:`Ensemble` for making the combined predictions
"""

from ._blend import METRICS, Blend, Path, blend, select
from ._final import finalize
from ._predict import Ensemble
from ._stack import Stack, assemble

__all__ = ['assemble', 'blend', 'Blend', 'Ensemble', 'finalize', 'METRICS', 'Path', 'select', 'Stack']
