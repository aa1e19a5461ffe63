import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ape import Contract, chain, networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from eth_abi import is_encodable
from eth_typing import ChecksumAddress, HexStr
from eth_utils import decode_hex
from ethpm_types import MethodABI
from hexbytes import HexBytes

from diamond_deployment.client import DiamondClient, LoupeFacet
from diamond_deployment.config import _load_yaml, load_network_config
from diamond_deployment.confirm import _confirm_resolution, _continue
from diamond_deployment.constants import (
    ACCESS_MANAGER_ABI,
    DIAMOND_CUT,
    DIAMOND_LOUPE,
    ERC1967_PROXY,
)
from diamond_deployment.cut import FacetCut
from diamond_deployment.registry import (
    _get_abi,
    registry_entries_for_chain,
    registry_from_ape_deployments,
)
from diamond_deployment.selectors import FacetDescriptor
from diamond_deployment.utils import (
    check_plugins,
    get_contract_container,
    get_facet_names,
    validate_config,
    verify_contracts,
)


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not is_encodable(abi_input.canonical_type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _constructor_params(container: ContractContainer, args: Sequence[Any]) -> OrderedDict:
    """Validates constructor arguments against the constructor ABI and names them."""
    contract_name = container.contract_type.name
    abi_inputs = container.constructor.abi.inputs
    if len(args) != len(abi_inputs):
        raise ValueError(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )

    params = OrderedDict()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        if not is_encodable(abi_input.canonical_type, value):
            raise ValueError(
                f"{contract_name} constructor param '{abi_input.name}' at position {position} "
                f"has a value '{value}' whose type does not match expected ABI type "
                f"'{abi_input.canonical_type}'"
            )
        params[abi_input.name or f"arg{position}"] = value
    return params


def _code_changed(container: ContractContainer, address: ChecksumAddress) -> bool:
    """Returns True if the code at `address` differs from the compiled runtime bytecode."""
    runtime_bytecode = container.contract_type.runtime_bytecode
    if runtime_bytecode is None or not runtime_bytecode.bytecode:
        return True
    deployed_code = HexBytes(chain.provider.get_code(address))
    return deployed_code != HexBytes(runtime_bytecode.bytecode)


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        if hasattr(self._account, "set_autosign"):
            self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        return method(*args, sender=self._account)


class ApeDiamondClient(DiamondClient):
    """Reads the diamond through ape contract containers; cuts through a Transactor."""

    def __init__(self, transactor: Transactor):
        self.transactor = transactor

    def facets(self, proxy: ChecksumAddress) -> List[LoupeFacet]:
        loupe = get_contract_container(DIAMOND_LOUPE).at(proxy)
        return [(facet.facetAddress, facet.functionSelectors) for facet in loupe.facets()]

    def can_call(
        self,
        access_manager: ChecksumAddress,
        caller: ChecksumAddress,
        target: ChecksumAddress,
        selector: HexStr,
    ) -> Tuple[bool, int]:
        manager = Contract(access_manager, abi=ACCESS_MANAGER_ABI)
        immediate, delay = manager.canCall(caller, target, decode_hex(selector))
        return immediate, delay

    def diamond_cut(
        self,
        proxy: ChecksumAddress,
        cuts: Sequence[FacetCut],
        init_address: ChecksumAddress,
        init_calldata: bytes,
    ) -> ReceiptAPI:
        diamond = get_contract_container(DIAMOND_CUT).at(proxy)
        return self.transactor.transact(
            diamond.diamondCut,
            [cut.as_struct() for cut in cuts],
            init_address,
            bytes(init_calldata),
        )


class Deployer(Transactor):
    """
    Represents an ape account plus the deployment params and network
    configuration for one deployment session, plus validated/annotated execution.
    """

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        update: bool = False,
    ):
        super().__init__(account, autosign)

        check_plugins(verify=verify)
        self.path = path
        self.config = config
        self.update = update
        self.registry_filepath = validate_config(config=self.config, allow_existing=update)
        self.network_config = load_network_config(config["deployment"]["network_config"])
        self.facet_names = get_facet_names(config)

        self.verify = verify
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    def _get_kwargs(self) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        return {"publish": self.verify}

    def deploy(self, container: ContractContainer, *args) -> ContractInstance:
        resolved_params = _constructor_params(container, args)
        return self._deploy_contract(container, resolved_params)

    def _deploy_contract(
        self, container: ContractContainer, resolved_params: OrderedDict
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name)
        deployment_params = [container, *resolved_params.values()]
        kwargs = self._get_kwargs()

        return self.get_account().deploy(*deployment_params, **kwargs)

    def deploy_facets(
        self, redeploy: Sequence[str] = ()
    ) -> Tuple[List[FacetDescriptor], List[ContractInstance]]:
        """
        Deploys the facets listed in the params file, in order. A facet found in
        the registry is reused unless its on-chain code differs from the compiled
        artifact or it is listed in `redeploy`. Returns the descriptors of all
        facets and the newly deployed instances.
        """
        unknown = set(redeploy) - set(self.facet_names)
        if unknown:
            raise ValueError(f"Cannot redeploy unknown facet(s): {', '.join(sorted(unknown))}")

        registered = registry_entries_for_chain(
            self.registry_filepath, networks.provider.network.chain_id
        )
        facets, deployments = list(), list()
        for facet_name in self.facet_names:
            container = get_contract_container(facet_name)
            entry = registered.get(facet_name)
            if entry and facet_name not in redeploy and not _code_changed(container, entry.address):
                print(f"(i) Reusing facet {facet_name} at {entry.address}")
                facets.append(entry.facet_descriptor())
                continue

            print(f"\nDeploying facet {facet_name}...")
            instance = self.deploy(container)
            deployments.append(instance)
            facets.append(
                FacetDescriptor.create(
                    name=facet_name, address=instance.address, abi=_get_abi(instance)
                )
            )
        return facets, deployments

    def deploy_erc1967_proxy(
        self, implementation: ContractInstance, data: bytes
    ) -> ContractInstance:
        """Deploys an ERC1967 (UUPS) proxy to `implementation`, initialized with `data`."""
        proxy_container = get_contract_container(ERC1967_PROXY)
        implementation_name = implementation.contract_type.name
        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {implementation_name}."
        )
        proxy_contract = self.deploy(proxy_container, implementation.address, bytes(data))
        print(
            f"\nWrapped {implementation_name} into {proxy_contract.contract_type.name} "
            f"at {proxy_contract.address}."
        )
        return proxy_contract

    def finalize(
        self,
        deployments: List[ContractInstance],
        registry_names: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Publishes the deployments to the registry and optionally to block explorers.
        """
        registry_from_ape_deployments(
            deployments=deployments,
            output_filepath=self.registry_filepath,
            registry_names=registry_names,
            update=self.update,
        )
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Network config: {self.config['deployment']['network_config']}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
