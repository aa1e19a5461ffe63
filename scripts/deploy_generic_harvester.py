#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from diamond_deployment.constants import PARALLELIZER
from diamond_deployment.options import (
    autosign_option,
    params_filepath_option,
    token_option,
    verify_option,
)
from diamond_deployment.params import Deployer
from diamond_deployment.registry import registry_entries_for_chain
from diamond_deployment.utils import get_contract_container

CONTRACT_NAME = "GenericHarvester"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_filepath_option
@token_option
@verify_option
@autosign_option
def cli(network, account, params_filepath, token, verify, autosign):
    """Deploys the GenericHarvester of a deployed Parallelizer."""
    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify,
        account=account,
        autosign=autosign,
        update=True,
    )
    config = deployer.network_config
    token_p = config.token_address(token)
    harvester_config = config.generic_harvester_config(token)

    parallelizer_name = f"{PARALLELIZER}_{token}"
    registry = registry_entries_for_chain(
        deployer.registry_filepath, networks.provider.network.chain_id
    )
    if parallelizer_name not in registry:
        raise click.ClickException(f"{parallelizer_name} not found in {deployer.registry_filepath}")

    generic_harvester = deployer.deploy(
        get_contract_container(CONTRACT_NAME),
        harvester_config.token_transfer_address,
        harvester_config.swap_router,
        token_p,
        registry[parallelizer_name].address,
        config.access_manager,
        harvester_config.flashloan,
    )

    registry_name = f"{CONTRACT_NAME}_{token}"
    deployer.finalize(
        deployments=[generic_harvester], registry_names={CONTRACT_NAME: registry_name}
    )
    print(f"Deployed {registry_name}, address: {generic_harvester.address}")


if __name__ == "__main__":
    cli()
