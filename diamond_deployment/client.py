from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Sequence, Tuple, Union

from eth_typing import ChecksumAddress, HexStr

from diamond_deployment.cut import FacetCut

LoupeFacet = Tuple[ChecksumAddress, Iterable[Union[bytes, HexStr]]]


class DiamondClient(ABC):
    """The chain calls a facet synchronization depends on."""

    @abstractmethod
    def facets(self, proxy: ChecksumAddress) -> List[LoupeFacet]:
        """Returns the proxy's current (facet address, selectors) pairs from its loupe."""
        raise NotImplementedError

    @abstractmethod
    def can_call(
        self,
        access_manager: ChecksumAddress,
        caller: ChecksumAddress,
        target: ChecksumAddress,
        selector: HexStr,
    ) -> Tuple[bool, int]:
        """Returns (immediate, delay) as answered by the access manager."""
        raise NotImplementedError

    @abstractmethod
    def diamond_cut(
        self,
        proxy: ChecksumAddress,
        cuts: Sequence[FacetCut],
        init_address: ChecksumAddress,
        init_calldata: bytes,
    ) -> Any:
        """Submits a single diamondCut transaction; returns its receipt."""
        raise NotImplementedError
