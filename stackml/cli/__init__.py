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
StackML command line interface.
"""
import logging
import pathlib
import sys
import typing

import click
import pandas
from click import core

import stackml
from stackml import ensemble, runtime, setup

LOGGER = logging.getLogger(__name__)


class Scope(typing.NamedTuple):
    """Case class for holding the partial command config."""

    config: typing.Optional[str]
    loglevel: typing.Optional[str]

    @staticmethod
    def read(path: str) -> pandas.DataFrame:
        """Load the CSV dataset.

        Args:
            path: Dataset file path.

        Returns:
            Dataset frame.
        """
        try:
            return pandas.read_csv(path)
        except (OSError, ValueError) as err:
            raise stackml.InvalidError(f'Unable to read dataset {path}: {err}') from err

    @staticmethod
    def write(frame: pandas.DataFrame, path: str) -> None:
        """Store the CSV table.

        Args:
            frame: Table to be written.
            path: Target file path.
        """
        frame.to_csv(path, index=False)
        LOGGER.info('Written %d rows to %s', len(frame), path)


@click.group(name='stackml')
@click.option('--config', '-C', type=click.Path(exists=True, file_okay=True), help='Additional config file.')
@click.option(
    '--loglevel',
    '-L',
    type=click.Choice(['debug', 'info', 'warning', 'error'], case_sensitive=False),
    help='Global loglevel to use.',
)
@click.pass_context
def group(context: core.Context, config: typing.Optional[str], loglevel: typing.Optional[str]):
    """Stacked ensemble regression experiments."""
    if config:
        setup.CONFIG.read(pathlib.Path(config))
    setup.logging(level=loglevel)
    context.obj = Scope(config, loglevel)


@group.command()
@click.option('--params', '-p', type=click.Path(exists=True, dir_okay=False), required=True, help='Params file.')
@click.option('--train', type=click.Path(exists=True, dir_okay=False), required=True, help='Training CSV dataset.')
@click.option('--test', type=click.Path(exists=True, dir_okay=False), help='Held-out CSV dataset.')
@click.option('--target', '-t', required=True, help='Target column name.')
@click.option('--predictions', type=click.Path(dir_okay=False), help='Test predictions output CSV file.')
@click.option('--model', type=click.Path(dir_okay=False), help='Serialized ensemble output file.')
@click.option('--workers', type=click.IntRange(min=1), help='Maximum number of parallel fits.')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True), help='Per-fit timeout in seconds.')
@click.pass_obj
def run(
    scope: Scope,
    params: str,
    train: str,
    test: typing.Optional[str],
    target: str,
    predictions: typing.Optional[str],
    model: typing.Optional[str],
    workers: typing.Optional[int],
    timeout: typing.Optional[float],
) -> None:
    """Train the stacked ensemble (and evaluate it if the test dataset is provided)."""
    if predictions and not test:
        raise click.UsageError('Predictions output requires the --test dataset')
    launcher = runtime.Launcher(setup.Params.load(params), workers=workers, timeout=timeout)
    train_features, train_target = launcher.split(scope.read(train), target)
    if test:
        test_features, test_target = launcher.split(scope.read(test), target)
        report = launcher.evaluate(train_features, train_target, test_features, test_target)
        result = report.ensemble
        click.echo(report.metrics.to_string(float_format='{:.4f}'.format))
        click.echo()
        if report.importance is not None:
            click.echo(report.importance.to_frame().to_string(float_format='{:.4f}'.format))
            click.echo()
        if predictions:
            scope.write(pandas.concat([test_target, report.predictions], axis='columns'), predictions)
    else:
        result = launcher.train(train_features, train_target)
    click.echo(result.blend.contributions.to_frame().to_string(float_format='{:.4f}'.format))
    if model:
        pathlib.Path(model).write_bytes(result.dumps())
        LOGGER.info('Ensemble stored to %s', model)


@group.command()
@click.option('--model', type=click.Path(exists=True, dir_okay=False), required=True, help='Serialized ensemble.')
@click.option('--data', type=click.Path(exists=True, dir_okay=False), required=True, help='Input CSV dataset.')
@click.option('--output', type=click.Path(dir_okay=False), help='Predictions output CSV file (stdout if omitted).')
@click.pass_obj
def predict(scope: Scope, model: str, data: str, output: typing.Optional[str]) -> None:
    """Apply the previously stored ensemble to new data."""
    result = ensemble.Ensemble.loads(pathlib.Path(model).read_bytes())
    table = result.predict(scope.read(data))
    if output:
        scope.write(table, output)
    else:
        click.echo(table.to_csv(index=False), nl=False)


def main() -> None:
    """Cli wrapper for handling StackML exceptions."""
    try:
        group()  # pylint: disable=no-value-for-parameter
    except stackml.AnyError as err:
        print(err, file=sys.stderr)
        sys.exit(1)
