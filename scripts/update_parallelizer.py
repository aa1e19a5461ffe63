#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from diamond_deployment.constants import PARALLELIZER
from diamond_deployment.gate import UpgradeGate
from diamond_deployment.options import (
    autosign_option,
    params_filepath_option,
    proxy_option,
    redeploy_option,
    token_option,
    verify_option,
)
from diamond_deployment.params import ApeDiamondClient, Deployer
from diamond_deployment.registry import registry_entries_for_chain
from diamond_deployment.sync import FacetSynchronizer, print_sync_plan


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_filepath_option
@token_option
@proxy_option
@redeploy_option
@click.option(
    "--include-removals",
    help="Also remove selectors that no facet provides anymore",
    is_flag=True,
    default=False,
)
@click.option(
    "--check-staleness",
    help="Re-read the routing table right before cutting and abort if it changed",
    is_flag=True,
    default=False,
)
@click.option(
    "--dry-run",
    help="Print the cuts against the registered facets without deploying or cutting",
    is_flag=True,
    default=False,
)
@verify_option
@autosign_option
def cli(
    network,
    account,
    params_filepath,
    token,
    proxy,
    redeploy,
    include_removals,
    check_staleness,
    dry_run,
    verify,
    autosign,
):
    """Deploys changed facets and cuts them into the Parallelizer diamond."""
    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify,
        account=account,
        autosign=autosign,
        update=True,
    )
    config = deployer.network_config

    registry = registry_entries_for_chain(
        deployer.registry_filepath, networks.provider.network.chain_id
    )
    registry_name = f"{PARALLELIZER}_{token}"
    if proxy is None:
        if registry_name not in registry:
            raise click.ClickException(
                f"{registry_name} not found in {deployer.registry_filepath}; use --proxy."
            )
        proxy = registry[registry_name].address

    client = ApeDiamondClient(transactor=deployer)
    gate = UpgradeGate(client=client, access_manager=config.access_manager)
    synchronizer = FacetSynchronizer(client=client, proxy=proxy, gate=gate)

    # fail before deploying anything if the account cannot cut the diamond
    synchronizer.authorize(deployer.get_account().address)

    if dry_run:
        missing = [name for name in deployer.facet_names if name not in registry]
        if missing:
            print(f"(!) Facets not in the registry are left out: {', '.join(missing)}")
        facets = [
            registry[name].facet_descriptor() for name in deployer.facet_names if name in registry
        ]
        print_sync_plan(synchronizer.plan(facets, include_removals=include_removals))
        return

    receipt = synchronizer.upgrade(
        deployer,
        redeploy=redeploy,
        include_removals=include_removals,
        check_staleness=check_staleness,
    )
    if receipt is not None:
        print(f"Updated {registry_name}, network: {networks.provider.network.name}")


if __name__ == "__main__":
    cli()
