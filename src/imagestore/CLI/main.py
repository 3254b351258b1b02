# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for imagestore.
"""
import click
from ..BUILDERS.image_builder import DockerBuildTool, ImageBuilder
from ..MODELS.image_metadata import PullPolicy
from ..PARSERS.config_parser import ConfigError, ConfigParser
from ..REGISTRY.errors import ImageError
from ..REGISTRY.image_copier import SkopeoCopier
from ..REGISTRY.image_store import ImageStore
from ..UTILS.logging import setup_logging

PULL_CHOICES = [p.value for p in PullPolicy]


@click.group()
@click.option('--config', '-c', 'config_file', default=None, help='YAML configuration file')
@click.option('--env-file', default='.env', help='.env file with IMAGESTORE_* variables')
@click.option('--root', '-r', default=None, help='Image store directory')
@click.option('--log-level', default='WARNING', help='Logging level')
@click.pass_context
def cli(ctx, config_file, env_file, root, log_level):
    """
    imagestore - resolve container images into a local OCI store.

    Prints the run metadata (exec, working directory, ports, mounts,
    environment) of the requested images as JSON.
    """
    setup_logging(log_level)
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = ConfigParser().load(config_file, env_file, overrides={'image_root': root})
    except ConfigError as e:
        fail(ctx, e)


def fail(ctx, error):
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def create_store(config) -> ImageStore:
    """Creates the image store described by the configuration."""
    copier = SkopeoCopier(
        trust_policy=config.trust_policy,
        insecure_policy=config.insecure_policy,
        executable=config.skopeo,
    )
    return ImageStore(config.image_root, copier, config.pull_policy)


@cli.command()
@click.argument('reference')
@click.option('--pull', '-p', type=click.Choice(PULL_CHOICES), default=None,
              help='Pull policy, defaults to the configured one')
@click.pass_context
def resolve(ctx, reference, pull):
    """Resolve an image, fetching it if the pull policy allows."""
    store = create_store(ctx.obj['config'])
    try:
        image = store.resolve(reference, PullPolicy(pull) if pull else None)
    except (ImageError, ValueError) as e:
        fail(ctx, e)
    click.echo(image.to_json())


@cli.command()
@click.argument('reference')
@click.argument('dockerfile')
@click.option('--context', 'context_path', default=None, help='Build context directory')
@click.pass_context
def build(ctx, reference, dockerfile, context_path):
    """Build an image from a Dockerfile unless it is stored already."""
    config = ctx.obj['config']
    builder = ImageBuilder(create_store(config), DockerBuildTool(executable=config.docker))
    try:
        image = builder.build_image(reference, dockerfile, context_path)
    except (ImageError, ValueError) as e:
        fail(ctx, e)
    click.echo(image.to_json())


@cli.command()
@click.argument('reference')
@click.pass_context
def name(ctx, reference):
    """Print the store directory of an image."""
    store = create_store(ctx.obj['config'])
    try:
        click.echo(str(store.directory_for(reference)))
    except ValueError as e:
        fail(ctx, e)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
