import click
from eth_utils import to_checksum_address

from diamond_deployment.config import is_address_valid


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        if not is_address_valid(value):
            self.fail(f"{value} is not a valid non-zero ethereum address", param, ctx)
        return to_checksum_address(value)
