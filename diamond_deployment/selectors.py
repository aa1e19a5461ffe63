from typing import Any, Dict, List, NamedTuple, Union

from eth_typing import ChecksumAddress, HexStr
from eth_utils import (
    add_0x_prefix,
    encode_hex,
    function_abi_to_4byte_selector,
    is_hexstr,
    to_checksum_address,
)

from diamond_deployment.constants import SELECTOR_SIZE

ABIEntry = Dict[str, Any]

# entries without a "type" default to functions in the Solidity ABI
DEFAULT_ABI_ENTRY_TYPE = "function"


def normalize_selector(selector: Union[bytes, str]) -> HexStr:
    """Returns a selector as a lowercase, 0x-prefixed, 4-byte hex string."""
    if isinstance(selector, (bytes, bytearray)):
        selector = encode_hex(selector)
    if not isinstance(selector, str) or not is_hexstr(selector):
        raise ValueError(f"Invalid selector: {selector!r}")
    selector = add_0x_prefix(HexStr(selector.lower()))
    if len(selector) != 2 + 2 * SELECTOR_SIZE:
        raise ValueError(f"Invalid selector size: {selector}")
    return selector


def is_function(entry: ABIEntry) -> bool:
    return entry.get("type", DEFAULT_ABI_ENTRY_TYPE) == "function"


def function_selector(entry: ABIEntry) -> HexStr:
    """Computes keccak256(signature)[:4] for a function ABI entry."""
    entry = dict(entry, type="function", inputs=entry.get("inputs", []))
    return normalize_selector(function_abi_to_4byte_selector(entry))


def sigs_from_abi(abi: List[ABIEntry]) -> List[HexStr]:
    """Returns the selectors of every function in the ABI, in ABI order."""
    return [function_selector(entry) for entry in abi if is_function(entry)]


class FacetDescriptor(NamedTuple):
    """A deployed facet contract: its address and ABI."""

    name: str
    address: ChecksumAddress
    abi: List[ABIEntry]

    @classmethod
    def create(cls, name: str, address: str, abi: List[ABIEntry]) -> "FacetDescriptor":
        return cls(name=name, address=to_checksum_address(address), abi=list(abi))

    @property
    def selectors(self) -> List[HexStr]:
        return sigs_from_abi(self.abi)
