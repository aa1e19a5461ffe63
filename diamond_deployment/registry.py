import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ape.contracts import ContractInstance
from eth_typing import ABI, ChecksumAddress
from eth_utils import to_checksum_address

from diamond_deployment.config import _load_json
from diamond_deployment.selectors import FacetDescriptor

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str

    def facet_descriptor(self) -> FacetDescriptor:
        return FacetDescriptor.create(name=self.name, address=self.address, abi=self.abi)


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the JSON ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
    return contract_abi


def _get_name(
    contract_instance: ContractInstance, registry_names: Dict[ContractName, ContractName]
) -> ContractName:
    """
    Returns the optionally remapped registry name of a contract instance
    (e.g. DiamondProxy -> Parallelizer_USDp).
    """
    real_contract_name = contract_instance.contract_type.name
    return registry_names.get(real_contract_name, real_contract_name)


def _get_entry(
    contract_instance: ContractInstance, registry_names: Dict[ContractName, ContractName]
) -> RegistryEntry:
    receipt = contract_instance.receipt
    return RegistryEntry(
        name=_get_name(contract_instance=contract_instance, registry_names=registry_names),
        address=to_checksum_address(contract_instance.address),
        abi=_get_abi(contract_instance),
        chain_id=receipt.chain_id,
        tx_hash=receipt.txn_hash,
        block_number=receipt.block_number,
        deployer=receipt.transaction.sender,
    )


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def registry_entries_for_chain(
    filepath: Path, chain_id: ChainId
) -> Dict[ContractName, RegistryEntry]:
    if not filepath.exists():
        return dict()
    return {e.name: e for e in read_registry(filepath) if e.chain_id == chain_id}


def _serialize(entries: List[RegistryEntry]) -> Dict[str, Dict]:
    # common order: chain id, then name; ABI entries by type and name
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))
    data = defaultdict(dict)
    for entry in entries:
        entry_abi = sorted(
            entry.abi, key=lambda d: (d.get("type", "function"), d.get("name", ""))
        )
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }
    return data


def write_registry(entries: List[RegistryEntry], filepath: Path, update: bool = False) -> Path:
    """
    Writes a contract registry to a file. An existing registry is merged with
    the new entries; entries for an already registered chain replace the
    previous ones by name only when `update` is set.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        existing_entries = read_registry(filepath)
        new_chain_ids = {entry.chain_id for entry in entries}
        overlapping = any(entry.chain_id in new_chain_ids for entry in existing_entries)
        if overlapping and not update:
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                "Cannot merge registries with overlapping chain IDs.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            replaced = {(entry.chain_id, entry.name) for entry in entries}
            kept = [e for e in existing_entries if (e.chain_id, e.name) not in replaced]
            entries = kept + list(entries)
    else:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(_serialize(entries), file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_ape_deployments(
    deployments: List[ContractInstance],
    output_filepath: Path,
    registry_names: Optional[Dict[ContractName, ContractName]] = None,
    update: bool = False,
) -> Path:
    """Creates or updates a contract registry from ape deployments."""
    registry_names = registry_names or dict()
    entries = [_get_entry(instance, registry_names) for instance in deployments]
    output_filepath = write_registry(entries=entries, filepath=output_filepath, update=update)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath

