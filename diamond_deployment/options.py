from pathlib import Path

import click

from diamond_deployment.constants import FACETS, SUPPORTED_TOKENS, USDP
from diamond_deployment.types import ChecksumAddress

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Deployment parameters YAML file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
)

config_filepath_option = click.option(
    "--config-filepath",
    "-c",
    help="Network configuration JSON file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
)

token_option = click.option(
    "--token",
    "-t",
    help="Parallelized token",
    type=click.Choice(SUPPORTED_TOKENS),
    default=USDP,
    show_default=True,
)

proxy_option = click.option(
    "--proxy",
    help="Address of the diamond proxy; defaults to the registry entry",
    type=ChecksumAddress(),
    required=False,
)

redeploy_option = click.option(
    "--redeploy",
    "-r",
    help="Facet to redeploy even if its code is unchanged",
    type=click.Choice(FACETS),
    multiple=True,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish deployed contracts to the block explorer",
    default=False,
    show_default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without confirmation prompts",
    is_flag=True,
    default=False,
)
