import pytest
from eth_utils import to_checksum_address

from diamond_deployment.constants import DIAMOND_CUT_SELECTOR
from diamond_deployment.selectors import (
    FacetDescriptor,
    function_selector,
    normalize_selector,
    sigs_from_abi,
)

DIAMOND_CUT_ABI = {
    "type": "function",
    "name": "diamondCut",
    "stateMutability": "nonpayable",
    "inputs": [
        {
            "name": "_diamondCut",
            "type": "tuple[]",
            "internalType": "struct FacetCut[]",
            "components": [
                {"name": "facetAddress", "type": "address"},
                {"name": "action", "type": "uint8", "internalType": "enum FacetCutAction"},
                {"name": "functionSelectors", "type": "bytes4[]"},
            ],
        },
        {"name": "_init", "type": "address"},
        {"name": "_calldata", "type": "bytes"},
    ],
    "outputs": [],
}

LOUPE_ABI = [
    {
        "type": "function",
        "name": "facets",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "facets_",
                "type": "tuple[]",
                "components": [
                    {"name": "facetAddress", "type": "address"},
                    {"name": "functionSelectors", "type": "bytes4[]"},
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "facetAddress",
        "stateMutability": "view",
        "inputs": [{"name": "_functionSelector", "type": "bytes4"}],
        "outputs": [{"name": "facetAddress_", "type": "address"}],
    },
    {
        "type": "event",
        "name": "DiamondCut",
        "anonymous": False,
        "inputs": [{"name": "_init", "type": "address", "indexed": False}],
    },
    {"type": "error", "name": "NotAllowed", "inputs": []},
    {"type": "constructor", "stateMutability": "nonpayable", "inputs": []},
    # untyped entries are functions
    {"name": "facetAddresses", "inputs": [], "outputs": [{"name": "", "type": "address[]"}]},
    {
        "type": "function",
        "name": "supportsInterface",
        "stateMutability": "view",
        "inputs": [{"name": "interfaceId", "type": "bytes4"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


def test_diamond_cut_selector():
    assert function_selector(DIAMOND_CUT_ABI) == "0x1f931c1c"
    assert function_selector(DIAMOND_CUT_ABI) == DIAMOND_CUT_SELECTOR


def test_sigs_from_abi():
    assert sigs_from_abi(LOUPE_ABI) == ["0x7a0ed627", "0xcdffacc6", "0x52ef6b2c", "0x01ffc9a7"]
    assert sigs_from_abi([]) == []


def test_function_without_inputs():
    assert function_selector({"type": "function", "name": "totalSupply"}) == "0x18160ddd"


@pytest.mark.parametrize(
    "selector",
    [b"\xaa\xbb\xcc\xdd", bytearray(b"\xaa\xbb\xcc\xdd"), "0xaabbccdd", "0xAABBCCDD", "aabbccdd"],
)
def test_normalize_selector(selector):
    assert normalize_selector(selector) == "0xaabbccdd"


@pytest.mark.parametrize("selector", [b"\xaa\xbb\xcc", "0xaabbccddee", "0x", "0xzzbbccdd", None, 1])
def test_invalid_selector(selector):
    with pytest.raises(ValueError):
        normalize_selector(selector)


def test_facet_descriptor():
    address = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
    facet = FacetDescriptor.create(name="DiamondLoupe", address=address, abi=LOUPE_ABI)
    assert facet.address == to_checksum_address(address)
    assert facet.selectors == sigs_from_abi(LOUPE_ABI)
    assert facet.abi is not LOUPE_ABI
