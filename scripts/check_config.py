#!/usr/bin/python3

import click
from eth_utils import encode_hex

from diamond_deployment.config import load_config
from diamond_deployment.options import config_filepath_option
from diamond_deployment.oracle import decode_oracle_config, setup_collateral


@click.command()
@config_filepath_option
def cli(config_filepath):
    """
    Validates a network config file and prints the oracleConfig blob of each
    collateral, without connecting to any network.
    """
    config = load_config(config_filepath)
    print(f"AccessManager: {config.access_manager}")
    for token, parallelizer_config in config.parallelizer.items():
        print(f"\nParallelizer {token}: {len(parallelizer_config.collaterals)} collateral(s)")
        for collateral in parallelizer_config.collaterals:
            params = setup_collateral(collateral)
            oracle = decode_oracle_config(params.oracle_config)
            kind = f"{oracle.oracle_type.name}, target {oracle.target_type.name}"
            print(
                f"\t{collateral.token} ({kind})",
                f"\t\toracleConfig={encode_hex(params.oracle_config)}",
                sep="\n",
            )
        redemption_setup = parallelizer_config.redemption_setup
        print(f"\tredemption curve: {len(redemption_setup.x_redeem_fee)} point(s)")
    print("\n(i) Config is valid.")


if __name__ == "__main__":
    cli()
