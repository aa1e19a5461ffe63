#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from diamond_deployment.constants import DIAMOND_INITIALIZER, DIAMOND_PROXY, PARALLELIZER
from diamond_deployment.cut import compute_facet_cuts
from diamond_deployment.options import (
    autosign_option,
    params_filepath_option,
    token_option,
    verify_option,
)
from diamond_deployment.oracle import setup_collateral, setup_redemption
from diamond_deployment.params import Deployer
from diamond_deployment.utils import get_contract_container


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_filepath_option
@token_option
@verify_option
@autosign_option
def cli(network, account, params_filepath, token, verify, autosign):
    """
    Deploys the facets, the DiamondInitializer and the Parallelizer diamond,
    initialized with the collaterals and redemption curve of the network config.
    """
    deployer = Deployer.from_yaml(
        filepath=params_filepath, verify=verify, account=account, autosign=autosign
    )
    config = deployer.network_config

    # encode everything before any deployment so that config errors cost nothing
    token_p = config.token_address(token)
    parallelizer_config = config.parallelizer_config(token)
    collaterals = [setup_collateral(c).as_struct() for c in parallelizer_config.collaterals]
    redemption_setup = setup_redemption(parallelizer_config.redemption_setup)

    facets, facet_deployments = deployer.deploy_facets()

    initializer = deployer.deploy(get_contract_container(DIAMOND_INITIALIZER))
    calldata = initializer.initialize.encode_input(
        config.access_manager,
        token_p,
        collaterals,
        redemption_setup.as_struct(),
    )

    # a new diamond routes nothing: every facet selector is added
    cuts = compute_facet_cuts(current=dict(), facets=facets)
    if cuts is None:
        raise click.ClickException("No facet selectors to cut into the diamond.")

    registry_name = f"{PARALLELIZER}_{token}"
    parallelizer = deployer.deploy(
        get_contract_container(DIAMOND_PROXY),
        [cut.as_struct() for cut in cuts],
        initializer.address,
        bytes(calldata),
    )
    print(f"Deployed {registry_name} at {parallelizer.address}")

    deployer.finalize(
        deployments=[*facet_deployments, initializer, parallelizer],
        registry_names={DIAMOND_PROXY: registry_name},
    )


if __name__ == "__main__":
    cli()
