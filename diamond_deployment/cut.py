import json
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from eth_typing import ChecksumAddress, HexStr
from eth_utils import decode_hex, keccak, to_checksum_address

from diamond_deployment.constants import ZERO_ADDRESS, FacetCutAction
from diamond_deployment.selectors import FacetDescriptor, normalize_selector

RoutingTable = Dict[HexStr, ChecksumAddress]


class SelectorCollision(ValueError):
    """Raised when two desired facets claim the same selector."""


class FacetCut(NamedTuple):
    facet_address: ChecksumAddress
    action: FacetCutAction
    function_selectors: Tuple[HexStr, ...]

    def as_struct(self) -> tuple:
        """(address facetAddress, uint8 action, bytes4[] functionSelectors)"""
        return (
            self.facet_address,
            int(self.action),
            [decode_hex(selector) for selector in self.function_selectors],
        )

    def __str__(self) -> str:
        return (
            f"{self.action.name} {len(self.function_selectors)} selector(s) "
            f"-> {self.facet_address}: {', '.join(self.function_selectors)}"
        )


class SelectorPartition(NamedTuple):
    untouched: Tuple[HexStr, ...]
    to_add: Tuple[HexStr, ...]
    to_replace: Tuple[HexStr, ...]


def routing_table_from_facets(
    facets: Iterable[Tuple[str, Iterable[Union[bytes, str]]]]
) -> RoutingTable:
    """Builds a routing table from loupe output: (facet address, selectors) pairs."""
    table = dict()
    for facet_address, selectors in facets:
        address = to_checksum_address(facet_address)
        for selector in selectors:
            table[normalize_selector(selector)] = address
    return table


def _normalize_table(table: Dict[Union[bytes, str], str]) -> RoutingTable:
    return {normalize_selector(s): to_checksum_address(a) for s, a in table.items()}


def desired_routing_table(facets: Sequence[FacetDescriptor]) -> RoutingTable:
    """Returns the union of the facets' selectors; each selector must have a single owner."""
    owners: Dict[HexStr, FacetDescriptor] = dict()
    for facet in facets:
        for selector in facet.selectors:
            owner = owners.get(selector)
            if owner is not None:
                raise SelectorCollision(
                    f"Selector {selector} is claimed by both {owner.name} ({owner.address}) "
                    f"and {facet.name} ({facet.address})"
                )
            owners[selector] = facet
    return {selector: facet.address for selector, facet in owners.items()}


def partition_selectors(facet: FacetDescriptor, current: RoutingTable) -> SelectorPartition:
    """
    Splits the facet's selectors into those already routed to it, those absent
    from the current table, and those routed to another facet.
    """
    untouched, to_add, to_replace = list(), list(), list()
    for selector in facet.selectors:
        current_address = current.get(selector)
        if current_address is None:
            to_add.append(selector)
        elif current_address.lower() != facet.address.lower():
            to_replace.append(selector)
        else:
            untouched.append(selector)
    return SelectorPartition(
        untouched=tuple(untouched), to_add=tuple(to_add), to_replace=tuple(to_replace)
    )


def stale_selectors(current: RoutingTable, facets: Sequence[FacetDescriptor]) -> Tuple[HexStr, ...]:
    """Selectors routed on-chain that no desired facet provides."""
    desired = desired_routing_table(facets)
    return tuple(s for s in _normalize_table(current) if s not in desired)


def compute_facet_cuts(
    current: RoutingTable,
    facets: Sequence[FacetDescriptor],
    include_removals: bool = False,
) -> Optional[List[FacetCut]]:
    """
    Computes the cuts moving `current` to the routing table described by `facets`.
    For each facet, in order, a Replace cut precedes an Add cut. Returns None
    when no cut is needed.

    Selectors absent from every desired facet are left in place unless
    `include_removals` is set, in which case a final Remove cut retracts them.
    """
    desired_routing_table(facets)  # fail on collisions before computing anything
    current = _normalize_table(current)

    cuts = list()
    for facet in facets:
        partition = partition_selectors(facet, current)
        if partition.to_replace:
            cuts.append(FacetCut(facet.address, FacetCutAction.Replace, partition.to_replace))
        if partition.to_add:
            cuts.append(FacetCut(facet.address, FacetCutAction.Add, partition.to_add))

    if include_removals:
        removed = stale_selectors(current, facets)
        if removed:
            cuts.append(FacetCut(ZERO_ADDRESS, FacetCutAction.Remove, removed))

    if not cuts:
        return None
    return cuts


def routing_table_digest(table: RoutingTable) -> HexStr:
    entries = sorted((s, a.lower()) for s, a in _normalize_table(table).items())
    return HexStr(keccak(text=json.dumps(entries)).hex())
