from enum import IntEnum
from pathlib import Path

import diamond_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(diamond_deployment.__file__).parent
CONFIG_DIR = DEPLOYMENT_DIR / "config"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
CONFIG_FILENAME = "config.json"

#
# Tokens
#

USDP = "USDp"

SUPPORTED_TOKENS = [USDP]

#
# Diamond
#

# Facets composing the Parallelizer diamond, in cut order
FACETS = [
    "DiamondCut",
    "DiamondLoupe",
    "SettersGovernor",
    "SettersGuardian",
    "Getters",
    "Swapper",
    "Redeemer",
    "RewardHandler",
    "Surplus",
]

DIAMOND_CUT = "DiamondCut"
DIAMOND_LOUPE = "DiamondLoupe"
DIAMOND_PROXY = "DiamondProxy"
DIAMOND_INITIALIZER = "DiamondInitializer"
PARALLELIZER = "Parallelizer"

# diamondCut((address,uint8,bytes4[])[],address,bytes)
DIAMOND_CUT_SELECTOR = "0x1f931c1c"

SELECTOR_SIZE = 4

ZERO_ADDRESS = "0x" + "0" * 40


class FacetCutAction(IntEnum):
    Add = 0
    Replace = 1
    Remove = 2


#
# Oracles, as defined in the on-chain oracle library
#


class OracleReadType(IntEnum):
    CHAINLINK_FEEDS = 0
    EXTERNAL = 1
    NO_ORACLE = 2
    STABLE = 3
    WSTETH = 4
    CBETH = 5
    RETH = 6
    SFRXETH = 7
    MAX = 8
    MORPHO_ORACLE = 9


class QuoteType(IntEnum):
    UNIT = 0
    TARGET = 1


#
# Access management
#

ACCESS_MANAGER_ABI = [
    {
        "type": "function",
        "name": "canCall",
        "stateMutability": "view",
        "inputs": [
            {"name": "caller", "type": "address"},
            {"name": "target", "type": "address"},
            {"name": "selector", "type": "bytes4"},
        ],
        "outputs": [
            {"name": "immediate", "type": "bool"},
            {"name": "delay", "type": "uint32"},
        ],
    },
]

#
# Peripherals
#

ERC1967_PROXY = "ERC1967Proxy"
SAVINGS = "SavingsNameable"
SAVINGS_INITIAL_DIVIDER = 1
SAVINGS_SEED_AMOUNT = 10**18

IERC20_ABI = [
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]
