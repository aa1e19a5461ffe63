#!/usr/bin/python3

import click
from ape import Contract
from ape.cli import ConnectedProviderCommand, account_option, network_option
from eth_utils import get_create_address

from diamond_deployment.constants import (
    ERC1967_PROXY,
    IERC20_ABI,
    SAVINGS,
    SAVINGS_INITIAL_DIVIDER,
    SAVINGS_SEED_AMOUNT,
)
from diamond_deployment.options import (
    autosign_option,
    params_filepath_option,
    token_option,
    verify_option,
)
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
    Deploys SavingsNameable behind an ERC1967 proxy. Initialization pulls a
    seed deposit of tokenP from the deployer, so the future proxy address is
    approved first when the allowance is short.
    """
    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        verify=verify,
        account=account,
        autosign=autosign,
        update=True,
    )
    config = deployer.network_config
    token_p = config.token_address(token)
    savings_config = config.savings_config(token)

    implementation = deployer.deploy(get_contract_container(SAVINGS))
    init_data = implementation.initialize.encode_input(
        config.access_manager,
        token_p,
        savings_config.name,
        savings_config.symbol,
        SAVINGS_INITIAL_DIVIDER,
    )

    sender = deployer.get_account().address
    token_contract = Contract(token_p, abi=IERC20_ABI)
    nonce = deployer.get_account().nonce
    proxy_address = get_create_address(sender, nonce)
    if token_contract.allowance(sender, proxy_address) < SAVINGS_SEED_AMOUNT:
        # the approval consumes the current nonce
        proxy_address = get_create_address(sender, nonce + 1)
        if token_contract.allowance(sender, proxy_address) < SAVINGS_SEED_AMOUNT:
            print(f"Approving {SAVINGS_SEED_AMOUNT} tokenP for future address {proxy_address}")
            deployer.transact(token_contract.approve, proxy_address, SAVINGS_SEED_AMOUNT)

    proxy = deployer.deploy_erc1967_proxy(implementation, init_data)
    if proxy.address != proxy_address:
        raise click.ClickException(
            f"Proxy deployed at {proxy.address}, but {proxy_address} was approved."
        )

    registry_name = f"Savings_{token}"
    deployer.finalize(
        deployments=[implementation, proxy],
        registry_names={
            SAVINGS: f"{registry_name}_Implementation",
            ERC1967_PROXY: registry_name,
        },
    )
    print(f"Deployed {registry_name}, address: {proxy.address}")


if __name__ == "__main__":
    cli()
