from eth_typing import ChecksumAddress, HexStr
from eth_utils import to_checksum_address

from diamond_deployment.client import DiamondClient
from diamond_deployment.constants import DIAMOND_CUT_SELECTOR


class UpgradeGate:
    """
    Pre-flight check that a caller may invoke diamondCut on a proxy right now.
    Anything other than an immediate, unambiguous permission is a refusal.
    """

    class Unauthorized(Exception):
        """Raised when the caller may not cut the diamond"""

    def __init__(
        self,
        client: DiamondClient,
        access_manager: ChecksumAddress,
        selector: HexStr = DIAMOND_CUT_SELECTOR,
    ):
        self.client = client
        self.access_manager = to_checksum_address(access_manager)
        self.selector = selector

    def check(self, caller: ChecksumAddress, target: ChecksumAddress) -> int:
        answer = self.client.can_call(self.access_manager, caller, target, self.selector)
        try:
            immediate, delay = answer
        except (TypeError, ValueError):
            raise self.Unauthorized(
                f"Unexpected canCall answer {answer!r} for {caller} on {target}"
            )

        if not isinstance(immediate, bool) or not isinstance(delay, int):
            raise self.Unauthorized(
                f"Unexpected canCall answer {answer!r} for {caller} on {target}"
            )

        if not immediate:
            if delay > 0:
                raise self.Unauthorized(
                    f"Caller {caller} can only schedule {self.selector} on {target} "
                    f"(delay {delay}s); immediate execution is required"
                )
            raise self.Unauthorized(
                f"Caller {caller} is not allowed to call {self.selector} on {target}"
            )

        print(f"(i) Caller {caller} is allowed to call {self.selector} on {target}")
        return delay
