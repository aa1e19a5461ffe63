import json
from collections import defaultdict
from pathlib import Path
from typing import NamedTuple, Tuple

import pytest
from eth_utils import decode_hex, to_checksum_address

from diamond_deployment.client import DiamondClient
from diamond_deployment.constants import FacetCutAction
from diamond_deployment.selectors import normalize_selector

FIXTURES_DIR = Path(__file__).parent / "fixtures"
CONFIG_FILEPATH = FIXTURES_DIR / "config.json"

ACCESS_MANAGER = to_checksum_address("0x00000000000000000000000000000000000a11ce")
PROXY = to_checksum_address("0x000000000000000000000000000000000000d1a0")
GOVERNOR = to_checksum_address("0x000000000000000000000000000000000000900d")
STRANGER = to_checksum_address("0x000000000000000000000000000000000000bad0")

FACET_1 = "0x1111111111111111111111111111111111111111"
FACET_2 = "0x2222222222222222222222222222222222222222"
FACET_3 = "0x3333333333333333333333333333333333333333"


class StaticFacet(NamedTuple):
    """A facet known only by its selectors."""

    name: str
    address: str
    selectors: Tuple[str, ...]


def apply_facet_cuts(table, cuts):
    """Applies cuts to a routing table the way the diamond does, rejecting invalid cuts."""
    result = {normalize_selector(s): to_checksum_address(a) for s, a in table.items()}
    for cut in cuts:
        for selector in cut.function_selectors:
            current_address = result.get(selector)
            if cut.action == FacetCutAction.Add:
                if current_address is not None:
                    raise ValueError(f"Cannot add selector {selector} that already exists")
                result[selector] = to_checksum_address(cut.facet_address)
            elif cut.action == FacetCutAction.Replace:
                if current_address is None:
                    raise ValueError(f"Cannot replace selector {selector} that does not exist")
                if current_address.lower() == cut.facet_address.lower():
                    raise ValueError(f"Cannot replace selector {selector} with the same facet")
                result[selector] = to_checksum_address(cut.facet_address)
            else:
                if current_address is None:
                    raise ValueError(f"Cannot remove selector {selector} that does not exist")
                del result[selector]
    return result


class FakeDiamondClient(DiamondClient):
    """In-memory diamond: a routing table, an access manager and a log of submitted cuts."""

    def __init__(self, table=None, permissions=None):
        self.table = dict(table or {})
        self.permissions = dict(permissions or {})
        self.submitted = list()
        self.can_call_requests = list()

    def facets(self, proxy):
        grouped = defaultdict(list)
        for selector, address in self.table.items():
            grouped[address].append(decode_hex(selector))
        return list(grouped.items())

    def can_call(self, access_manager, caller, target, selector):
        self.can_call_requests.append((access_manager, caller, target, selector))
        return self.permissions.get(caller, (False, 0))

    def diamond_cut(self, proxy, cuts, init_address, init_calldata):
        self.table = apply_facet_cuts(self.table, cuts)
        self.submitted.append((proxy, list(cuts), init_address, init_calldata))
        return {"status": 1, "cuts": len(cuts)}



class FakeDeployer:
    """Hands out prebuilt facets and records what would be written to the registry."""

    def __init__(self, facets, deployments):
        self.facets = list(facets)
        self.deployments = list(deployments)
        self.deploy_requests = list()
        self.finalized = list()

    def deploy_facets(self, redeploy=()):
        self.deploy_requests.append(tuple(redeploy))
        return self.facets, self.deployments

    def finalize(self, deployments, registry_names=None):
        self.finalized.append(list(deployments))


@pytest.fixture()
def raw_config():
    with open(CONFIG_FILEPATH, "r") as file:
        return json.load(file)


@pytest.fixture()
def chainlink_oracle(raw_config):
    return raw_config["parallelizer"]["USDp"]["collaterals"][0]["oracle"]


@pytest.fixture()
def morpho_oracle(raw_config):
    return raw_config["parallelizer"]["USDp"]["collaterals"][1]["oracle"]


@pytest.fixture()
def client():
    return FakeDiamondClient(permissions={GOVERNOR: (True, 0)})
