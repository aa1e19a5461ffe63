from typing import Any, List, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress, HexStr
from eth_utils import to_checksum_address

from diamond_deployment.client import DiamondClient
from diamond_deployment.constants import ZERO_ADDRESS
from diamond_deployment.cut import (
    FacetCut,
    RoutingTable,
    compute_facet_cuts,
    routing_table_digest,
    routing_table_from_facets,
    stale_selectors,
)
from diamond_deployment.gate import UpgradeGate
from diamond_deployment.selectors import FacetDescriptor


class StaleRoutingTable(Exception):
    """Raised when the proxy's routing table changed after the plan was computed."""


class SyncPlan(NamedTuple):
    cuts: Optional[List[FacetCut]]
    current: RoutingTable
    stale: Tuple[HexStr, ...]

    @property
    def changes_detected(self) -> bool:
        return self.cuts is not None


def print_sync_plan(plan: SyncPlan) -> None:
    print(f"\nCurrent routing table: {len(plan.current)} selector(s)")
    if plan.changes_detected:
        print(f"Facet cuts ({len(plan.cuts)}):")
        for cut in plan.cuts:
            print(f"\t{cut}")
    if plan.stale:
        print(
            f"(!) {len(plan.stale)} selector(s) routed on-chain are not provided "
            f"by any facet: {', '.join(plan.stale)}"
        )


class FacetSynchronizer:
    """
    Brings a diamond's routing table in line with a set of facets:
    authorize, read the live table, diff, then submit a single diamondCut.
    """

    class NotAuthorized(Exception):
        """Raised when a cut is submitted without a successful gate check"""

    def __init__(self, client: DiamondClient, proxy: ChecksumAddress, gate: UpgradeGate):
        self.client = client
        self.proxy = to_checksum_address(proxy)
        self.gate = gate
        self._authorized_caller = None

    def authorize(self, caller: ChecksumAddress) -> None:
        self._authorized_caller = None
        self.gate.check(caller=caller, target=self.proxy)
        self._authorized_caller = to_checksum_address(caller)

    def read_routing_table(self) -> RoutingTable:
        return routing_table_from_facets(self.client.facets(self.proxy))

    def plan(self, facets: Sequence[FacetDescriptor], include_removals: bool = False) -> SyncPlan:
        current = self.read_routing_table()
        cuts = compute_facet_cuts(current, facets, include_removals=include_removals)
        return SyncPlan(cuts=cuts, current=current, stale=stale_selectors(current, facets))

    def execute(
        self,
        plan: SyncPlan,
        init_address: ChecksumAddress = ZERO_ADDRESS,
        init_calldata: bytes = b"",
        check_staleness: bool = False,
    ) -> Any:
        if self._authorized_caller is None:
            raise self.NotAuthorized(f"No authorized caller for diamondCut on {self.proxy}")

        if not plan.changes_detected:
            print("No changes detected")
            return None

        if check_staleness:
            latest = self.read_routing_table()
            if routing_table_digest(latest) != routing_table_digest(plan.current):
                raise StaleRoutingTable(
                    f"Routing table of {self.proxy} changed since the cut was planned"
                )

        return self.client.diamond_cut(self.proxy, plan.cuts, init_address, init_calldata)

    def synchronize(
        self,
        caller: ChecksumAddress,
        facets: Sequence[FacetDescriptor],
        include_removals: bool = False,
        init_address: ChecksumAddress = ZERO_ADDRESS,
        init_calldata: bytes = b"",
        check_staleness: bool = False,
    ) -> Any:
        self.authorize(caller)
        plan = self.plan(facets, include_removals=include_removals)
        print_sync_plan(plan)
        return self.execute(
            plan,
            init_address=init_address,
            init_calldata=init_calldata,
            check_staleness=check_staleness,
        )

    def upgrade(
        self,
        deployer,
        redeploy: Sequence[str] = (),
        include_removals: bool = False,
        check_staleness: bool = False,
    ) -> Any:
        """
        Deploys the facets through `deployer`, then cuts them into the proxy.
        New facets are recorded with `deployer.finalize` whether or not the
        cut goes through: they stay deployed either way.
        """
        if self._authorized_caller is None:
            raise self.NotAuthorized(f"No authorized caller for diamondCut on {self.proxy}")

        facets, deployments = deployer.deploy_facets(redeploy=redeploy)
        try:
            plan = self.plan(facets, include_removals=include_removals)
            print_sync_plan(plan)
            return self.execute(plan, check_staleness=check_staleness)
        finally:
            deployer.finalize(deployments=deployments)
