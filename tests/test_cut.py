import pytest
from eth_utils import decode_hex

from diamond_deployment.constants import ZERO_ADDRESS, FacetCutAction
from diamond_deployment.cut import (
    FacetCut,
    SelectorCollision,
    compute_facet_cuts,
    desired_routing_table,
    partition_selectors,
    routing_table_digest,
    stale_selectors,
)
from tests.conftest import FACET_1, FACET_2, FACET_3, StaticFacet, apply_facet_cuts


def test_replace_and_add():
    current = {"0xaabbccdd": FACET_1}
    facet = StaticFacet("Swapper", FACET_2, ("0xaabbccdd", "0x99887766"))

    cuts = compute_facet_cuts(current, [facet])

    assert cuts == [
        FacetCut(FACET_2, FacetCutAction.Replace, ("0xaabbccdd",)),
        FacetCut(FACET_2, FacetCutAction.Add, ("0x99887766",)),
    ]


def test_no_changes():
    current = {"0xaabbccdd": FACET_1, "0x99887766": FACET_1, "0x11223344": FACET_2}
    facets = [
        StaticFacet("Getters", FACET_1, ("0xaabbccdd", "0x99887766")),
        StaticFacet("Swapper", FACET_2, ("0x11223344",)),
    ]
    assert compute_facet_cuts(current, facets) is None


def test_no_facets():
    assert compute_facet_cuts(dict(), []) is None
    assert compute_facet_cuts({"0xaabbccdd": FACET_1}, []) is None


def test_current_table_is_normalized():
    # loupe output may carry bytes selectors and lowercase addresses
    current = {decode_hex("0xAABBCCDD"): FACET_1.lower()}
    facets = [StaticFacet("Getters", FACET_1, ("0xaabbccdd",))]
    assert compute_facet_cuts(current, facets) is None


def test_idempotence():
    current = {"0xaabbccdd": FACET_1, "0x01020304": FACET_1, "0x0a0b0c0d": FACET_3}
    facets = [
        StaticFacet("Getters", FACET_2, ("0xaabbccdd", "0x99887766")),
        StaticFacet("Swapper", FACET_3, ("0x0a0b0c0d", "0x11223344")),
    ]

    cuts = compute_facet_cuts(current, facets)
    assert cuts is not None
    updated = apply_facet_cuts(current, cuts)
    assert compute_facet_cuts(updated, facets) is None

    # leftover selectors are not removed by default
    assert updated["0x01020304"] == FACET_1


def test_new_diamond():
    facets = [
        StaticFacet("DiamondCut", FACET_1, ("0x1f931c1c",)),
        StaticFacet("DiamondLoupe", FACET_2, ("0x7a0ed627", "0xcdffacc6")),
    ]
    cuts = compute_facet_cuts(dict(), facets)
    assert [cut.action for cut in cuts] == [FacetCutAction.Add, FacetCutAction.Add]
    assert apply_facet_cuts(dict(), cuts) == desired_routing_table(facets)


@pytest.mark.parametrize(
    "current",
    [
        dict(),
        {"0x00000001": FACET_1, "0x00000002": FACET_1, "0x00000003": FACET_1},
        {"0x00000001": FACET_2, "0x00000002": FACET_3},
        {"0x00000001": FACET_1, "0x00000003": FACET_2, "0xffffffff": FACET_3},
    ],
)
def test_partition_completeness(current):
    facet = StaticFacet("Getters", FACET_1, ("0x00000001", "0x00000002", "0x00000003"))
    partition = partition_selectors(facet, current)

    parts = [set(partition.untouched), set(partition.to_add), set(partition.to_replace)]
    assert set.union(*parts) == set(facet.selectors)
    assert sum(len(part) for part in parts) == len(facet.selectors)

    for selector in partition.untouched:
        assert current[selector] == FACET_1
    for selector in partition.to_add:
        assert selector not in current
    for selector in partition.to_replace:
        assert current[selector] != FACET_1


def test_replace_precedes_add_per_facet():
    current = {"0x00000001": FACET_3, "0x00000003": FACET_3}
    facets = [
        StaticFacet("Getters", FACET_1, ("0x00000001", "0x00000002")),
        StaticFacet("Swapper", FACET_2, ("0x00000003", "0x00000004")),
    ]
    cuts = compute_facet_cuts(current, facets)
    assert [(cut.facet_address, cut.action) for cut in cuts] == [
        (FACET_1, FacetCutAction.Replace),
        (FACET_1, FacetCutAction.Add),
        (FACET_2, FacetCutAction.Replace),
        (FACET_2, FacetCutAction.Add),
    ]


def test_selector_collision():
    facets = [
        StaticFacet("Getters", FACET_1, ("0xaabbccdd",)),
        StaticFacet("Swapper", FACET_2, ("0x11223344", "0xaabbccdd")),
    ]
    with pytest.raises(SelectorCollision, match="Getters.*Swapper"):
        compute_facet_cuts(dict(), facets)


def test_removals():
    current = {"0xaabbccdd": FACET_1, "0x01020304": FACET_1, "0x05060708": FACET_2}
    facets = [StaticFacet("Getters", FACET_1, ("0xaabbccdd",))]

    assert stale_selectors(current, facets) == ("0x01020304", "0x05060708")
    assert compute_facet_cuts(current, facets) is None

    cuts = compute_facet_cuts(current, facets, include_removals=True)
    assert cuts == [FacetCut(ZERO_ADDRESS, FacetCutAction.Remove, ("0x01020304", "0x05060708"))]
    assert apply_facet_cuts(current, cuts) == {"0xaabbccdd": FACET_1}


def test_apply_invalid_cuts():
    current = {"0xaabbccdd": FACET_1}
    with pytest.raises(ValueError, match="already exists"):
        apply_facet_cuts(current, [FacetCut(FACET_2, FacetCutAction.Add, ("0xaabbccdd",))])
    with pytest.raises(ValueError, match="does not exist"):
        apply_facet_cuts(current, [FacetCut(FACET_2, FacetCutAction.Replace, ("0x99887766",))])
    with pytest.raises(ValueError, match="same facet"):
        apply_facet_cuts(current, [FacetCut(FACET_1, FacetCutAction.Replace, ("0xaabbccdd",))])
    with pytest.raises(ValueError, match="does not exist"):
        apply_facet_cuts(current, [FacetCut(ZERO_ADDRESS, FacetCutAction.Remove, ("0x99887766",))])


def test_cut_struct():
    cut = FacetCut(FACET_2, FacetCutAction.Replace, ("0xaabbccdd", "0x99887766"))
    assert cut.as_struct() == (FACET_2, 1, [b"\xaa\xbb\xcc\xdd", b"\x99\x88\x77\x66"])
    assert str(cut).startswith("Replace 2 selector(s)")


def test_routing_table_digest():
    table = {"0xaabbccdd": FACET_1, "0x99887766": FACET_2}
    same = {"0x99887766": FACET_2.lower(), "0xAABBCCDD": FACET_1}
    assert routing_table_digest(table) == routing_table_digest(same)
    assert routing_table_digest(table) != routing_table_digest({"0xaabbccdd": FACET_1})
