import json
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

import yaml
from eth_abi import is_encodable
from eth_typing import ChecksumAddress
from eth_utils import is_address, is_checksum_address, to_checksum_address

from diamond_deployment.constants import CONFIG_DIR, CONFIG_FILENAME, OracleReadType, QuoteType


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


#
# Errors
#


class DeploymentConfigError(ValueError):
    """Raised when the network configuration document is invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class MissingField(DeploymentConfigError):
    pass


class InvalidAddress(DeploymentConfigError):
    pass


class InvalidEnumMember(DeploymentConfigError):
    pass


class InvalidInteger(DeploymentConfigError):
    pass


class LengthMismatch(DeploymentConfigError):
    pass


class UnsupportedOracleType(DeploymentConfigError):
    pass


#
# Domain model
#


class Hyperparameters(NamedTuple):
    user_deviation: int
    burn_ratio_deviation: int


class ChainlinkFeedsConfig(NamedTuple):
    """Price read through a circuit of Chainlink feeds."""

    oracle_type = OracleReadType.CHAINLINK_FEEDS

    target_type: OracleReadType
    feeds: Tuple[ChecksumAddress, ...]
    stale_periods: Tuple[int, ...]
    circuit_chain_is_multiplied: Tuple[int, ...]
    chainlink_decimals: Tuple[int, ...]
    quote_type: QuoteType
    hyperparameters: Optional[Hyperparameters] = None

    @property
    def target_max(self) -> bool:
        return self.target_type == OracleReadType.MAX


class MorphoOracleConfig(NamedTuple):
    """Price read from a Morpho oracle, scaled by a normalization factor."""

    oracle_type = OracleReadType.MORPHO_ORACLE

    target_type: OracleReadType
    oracle_address: ChecksumAddress
    normalization_factor: int
    hyperparameters: Optional[Hyperparameters] = None

    @property
    def target_max(self) -> bool:
        return self.target_type == OracleReadType.MAX


OracleConfig = Union[ChainlinkFeedsConfig, MorphoOracleConfig]


class CollateralConfig(NamedTuple):
    token: ChecksumAddress
    oracle: OracleConfig
    x_mint_fee: Tuple[int, ...]
    y_mint_fee: Tuple[int, ...]
    x_burn_fee: Tuple[int, ...]
    y_burn_fee: Tuple[int, ...]


class RedemptionSetup(NamedTuple):
    x_redeem_fee: Tuple[int, ...]
    y_redeem_fee: Tuple[int, ...]

    def as_struct(self) -> tuple:
        return list(self.x_redeem_fee), list(self.y_redeem_fee)


class ParallelizerConfig(NamedTuple):
    collaterals: Tuple[CollateralConfig, ...]
    redemption_setup: RedemptionSetup


class SavingsConfig(NamedTuple):
    name: str
    symbol: str


class GenericRebalancerConfig(NamedTuple):
    swap_router: ChecksumAddress
    token_transfer_address: ChecksumAddress
    flashloan: ChecksumAddress


class GenericHarvesterConfig(NamedTuple):
    swap_router: ChecksumAddress
    token_transfer_address: ChecksumAddress
    flashloan: ChecksumAddress


class ConfigData(NamedTuple):
    """Validated network configuration; token and wallet keys are lowercase."""

    access_manager: ChecksumAddress
    wallets: Dict[str, ChecksumAddress]
    tokens: Dict[str, ChecksumAddress]
    parallelizer: Dict[str, ParallelizerConfig]
    savings: Dict[str, SavingsConfig]
    generic_rebalancer: Dict[str, GenericRebalancerConfig]
    generic_harvester: Dict[str, GenericHarvesterConfig]

    @staticmethod
    def _lookup(section: Dict[str, Any], section_name: str, key: str, label: str) -> Any:
        try:
            return section[key.lower()]
        except KeyError:
            raise MissingField(
                _field(section_name, key.lower()), f"{label} {key} not found in config"
            )

    def token_address(self, token: str) -> ChecksumAddress:
        return self._lookup(self.tokens, "tokens", token, "Token")

    def wallet_address(self, wallet: str) -> ChecksumAddress:
        return self._lookup(self.wallets, "wallets", wallet, "Wallet")

    def parallelizer_config(self, token: str) -> ParallelizerConfig:
        return self._lookup(self.parallelizer, "parallelizer", token, "Parallelizer config for")

    def savings_config(self, token: str) -> SavingsConfig:
        return self._lookup(self.savings, "savings", token, "Savings config for")

    def generic_rebalancer_config(self, token: str) -> GenericRebalancerConfig:
        return self._lookup(
            self.generic_rebalancer, "genericRebalancer", token, "GenericRebalancer config for"
        )

    def generic_harvester_config(self, token: str) -> GenericHarvesterConfig:
        return self._lookup(
            self.generic_harvester, "genericHarvester", token, "GenericHarvester config for"
        )


#
# Field parsing
#


def _field(path: str, key: Union[str, int]) -> str:
    """Returns the dotted path of a field, used to identify offending values."""
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else key


def _require_object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise DeploymentConfigError(path, f"expected an object, got {type(value).__name__}")
    return value


def _require(data: Dict[str, Any], key: str, path: str) -> Any:
    _require_object(data, path)
    if key not in data:
        raise MissingField(_field(path, key), "required field is missing")
    return data[key]


def _require_list(data: Dict[str, Any], key: str, path: str) -> List[Any]:
    value = _require(data, key, path)
    if not isinstance(value, list):
        raise DeploymentConfigError(
            _field(path, key), f"expected a list, got {type(value).__name__}"
        )
    return value


def is_address_valid(address: Any) -> bool:
    """Returns True for a well-formed address other than the zero address."""
    if not isinstance(address, str) or not is_address(address):
        return False
    hex_digits = address[2:] if address[:2].lower() == "0x" else address
    if hex_digits != hex_digits.lower() and hex_digits != hex_digits.upper():
        # mixed case must be a valid EIP-55 checksum
        if not is_checksum_address(address):
            return False
    return int(address, 16) != 0


def _parse_address(value: Any, field: str) -> ChecksumAddress:
    if not is_address_valid(value):
        raise InvalidAddress(field, f"Invalid address: {value}")
    return to_checksum_address(value)


def _parse_int(value: Any, field: str, abi_type: Optional[str] = None) -> int:
    """
    Coerces an integer or an integer string (decimal or 0x-prefixed hex) to int.
    Floats are rejected: they cannot carry exact fixed-point values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidInteger(field, f"'{value}' is not an integer")

    if isinstance(value, str):
        text = value.strip()
        # int() would also take Python literal forms such as 1_000
        if "_" in text:
            raise InvalidInteger(field, f"'{text}' is not an integer")
        base = 16 if text.lower().lstrip("-").startswith("0x") else 10
        try:
            value = int(text, base)
        except ValueError:
            raise InvalidInteger(field, f"'{text}' is not an integer")

    if abi_type and not is_encodable(abi_type, value):
        raise InvalidInteger(field, f"{value} is out of range for {abi_type}")
    return value


def _parse_int_list(
    data: Dict[str, Any], key: str, path: str, abi_type: Optional[str] = None
) -> Tuple[int, ...]:
    field = _field(path, key)
    values = _require_list(data, key, path)
    return tuple(_parse_int(v, _field(field, i), abi_type) for i, v in enumerate(values))


def _parse_enum(enum_class, value: Any, field: str):
    """Accepts a member name (e.g. 'CHAINLINK_FEEDS') or its integer value."""
    if isinstance(value, str) and value in enum_class.__members__:
        return enum_class[value]
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return enum_class(value)
        except ValueError:
            pass
    raise InvalidEnumMember(
        field,
        f"Invalid {enum_class.__name__}: {value}; "
        f"expected one of {', '.join(enum_class.__members__)}",
    )


def _check_same_length(path: str, key_1: str, values_1: tuple, key_2: str, values_2: tuple):
    if len(values_1) != len(values_2):
        raise LengthMismatch(
            _field(path, key_2),
            f"{key_1} and {key_2} must have the same length "
            f"({len(values_1)} != {len(values_2)})",
        )


#
# Oracles
#


def _parse_hyperparameters(value: Any, path: str) -> Optional[Hyperparameters]:
    if value is None:
        return None
    _require_object(value, path)
    return Hyperparameters(
        user_deviation=_parse_int(
            _require(value, "userDeviation", path), _field(path, "userDeviation"), "uint128"
        ),
        burn_ratio_deviation=_parse_int(
            _require(value, "burnRatioDeviation", path),
            _field(path, "burnRatioDeviation"),
            "uint128",
        ),
    )


def _parse_chainlink_feeds(
    oracle: Dict[str, Any],
    path: str,
    target_type: OracleReadType,
    hyperparameters: Optional[Hyperparameters],
) -> ChainlinkFeedsConfig:
    feeds_field = _field(path, "circuitChainlink")
    feeds = tuple(
        _parse_address(feed, _field(feeds_field, i))
        for i, feed in enumerate(_require_list(oracle, "circuitChainlink", path))
    )
    if not feeds:
        raise DeploymentConfigError(feeds_field, "at least one Chainlink feed is required")

    stale_periods = _parse_int_list(oracle, "stalePeriods", path, "uint32")
    multiplied = _parse_int_list(oracle, "circuitChainIsMultiplied", path, "uint8")
    decimals = _parse_int_list(oracle, "chainlinkDecimals", path, "uint8")

    # one entry per feed
    _check_same_length(path, "circuitChainlink", feeds, "stalePeriods", stale_periods)
    _check_same_length(path, "circuitChainlink", feeds, "circuitChainIsMultiplied", multiplied)
    _check_same_length(path, "circuitChainlink", feeds, "chainlinkDecimals", decimals)

    quote_type = _parse_enum(
        QuoteType, _require(oracle, "quoteType", path), _field(path, "quoteType")
    )
    return ChainlinkFeedsConfig(
        target_type=target_type,
        feeds=feeds,
        stale_periods=stale_periods,
        circuit_chain_is_multiplied=multiplied,
        chainlink_decimals=decimals,
        quote_type=quote_type,
        hyperparameters=hyperparameters,
    )


def _parse_morpho_oracle(
    oracle: Dict[str, Any],
    path: str,
    target_type: OracleReadType,
    hyperparameters: Optional[Hyperparameters],
) -> MorphoOracleConfig:
    oracle_address = _parse_address(
        _require(oracle, "oracleAddress", path), _field(path, "oracleAddress")
    )
    factor_field = _field(path, "normalizationFactor")
    normalization_factor = _parse_int(
        _require(oracle, "normalizationFactor", path), factor_field, "uint256"
    )
    if normalization_factor == 0:
        raise InvalidInteger(factor_field, "normalization factor must be nonzero")
    return MorphoOracleConfig(
        target_type=target_type,
        oracle_address=oracle_address,
        normalization_factor=normalization_factor,
        hyperparameters=hyperparameters,
    )


ORACLE_PARSERS: Dict[OracleReadType, Callable[..., OracleConfig]] = {
    OracleReadType.CHAINLINK_FEEDS: _parse_chainlink_feeds,
    OracleReadType.MORPHO_ORACLE: _parse_morpho_oracle,
}


def parse_oracle_config(oracle: Any, path: str = "oracle") -> OracleConfig:
    _require_object(oracle, path)
    oracle_type = _parse_enum(
        OracleReadType, _require(oracle, "oracleType", path), _field(path, "oracleType")
    )
    target_type = _parse_enum(
        OracleReadType, _require(oracle, "targetType", path), _field(path, "targetType")
    )
    if oracle.get("quoteType") is not None:
        _parse_enum(QuoteType, oracle["quoteType"], _field(path, "quoteType"))

    hyperparameters = _parse_hyperparameters(
        oracle.get("hyperparameters"), _field(path, "hyperparameters")
    )

    try:
        parser = ORACLE_PARSERS[oracle_type]
    except KeyError:
        raise UnsupportedOracleType(
            _field(path, "oracleType"),
            f"no oracle configuration is defined for {oracle_type.name}; "
            f"supported: {', '.join(t.name for t in ORACLE_PARSERS)}",
        )
    return parser(oracle, path, target_type, hyperparameters)


#
# Sections
#


def parse_collateral(collateral: Any, path: str) -> CollateralConfig:
    _require_object(collateral, path)
    token = _parse_address(_require(collateral, "token", path), _field(path, "token"))
    oracle = parse_oracle_config(_require(collateral, "oracle", path), _field(path, "oracle"))

    x_mint_fee = _parse_int_list(collateral, "xMintFee", path, "uint64")
    y_mint_fee = _parse_int_list(collateral, "yMintFee", path, "int64")
    x_burn_fee = _parse_int_list(collateral, "xBurnFee", path, "uint64")
    y_burn_fee = _parse_int_list(collateral, "yBurnFee", path, "int64")
    _check_same_length(path, "xMintFee", x_mint_fee, "yMintFee", y_mint_fee)
    _check_same_length(path, "xBurnFee", x_burn_fee, "yBurnFee", y_burn_fee)

    return CollateralConfig(
        token=token,
        oracle=oracle,
        x_mint_fee=x_mint_fee,
        y_mint_fee=y_mint_fee,
        x_burn_fee=x_burn_fee,
        y_burn_fee=y_burn_fee,
    )


def parse_redemption_setup(redemption: Any, path: str) -> RedemptionSetup:
    _require_object(redemption, path)
    x_redeem_fee = _parse_int_list(redemption, "xRedeemFee", path, "uint64")
    y_redeem_fee = _parse_int_list(redemption, "yRedeemFee", path, "int64")
    _check_same_length(path, "xRedeemFee", x_redeem_fee, "yRedeemFee", y_redeem_fee)
    return RedemptionSetup(x_redeem_fee=x_redeem_fee, y_redeem_fee=y_redeem_fee)


def _parse_parallelizer(value: Any, path: str) -> ParallelizerConfig:
    _require_object(value, path)
    collaterals_field = _field(path, "collaterals")
    collaterals = tuple(
        parse_collateral(collateral, _field(collaterals_field, i))
        for i, collateral in enumerate(_require_list(value, "collaterals", path))
    )
    redemption_setup = parse_redemption_setup(
        _require(value, "redemptionSetup", path), _field(path, "redemptionSetup")
    )
    return ParallelizerConfig(collaterals=collaterals, redemption_setup=redemption_setup)


def _parse_savings(value: Any, path: str) -> SavingsConfig:
    _require_object(value, path)
    fields = {}
    for key in ("name", "symbol"):
        text = _require(value, key, path)
        if not isinstance(text, str) or not text.strip():
            raise DeploymentConfigError(_field(path, key), "expected a non-empty string")
        fields[key] = text
    return SavingsConfig(**fields)


def _parse_swap_addresses(value: Any, path: str) -> Dict[str, ChecksumAddress]:
    _require_object(value, path)
    return dict(
        swap_router=_parse_address(
            _require(value, "swapRouter", path), _field(path, "swapRouter")
        ),
        token_transfer_address=_parse_address(
            _require(value, "tokenTransferAddress", path), _field(path, "tokenTransferAddress")
        ),
        flashloan=_parse_address(_require(value, "flashloan", path), _field(path, "flashloan")),
    )


def _parse_section(raw: Dict[str, Any], key: str, parse: Callable, required: bool = False) -> Dict:
    """Parses a mapping of lowercased names to values with `parse`."""
    if key not in raw and not required:
        return dict()
    section = _require_object(_require(raw, key, ""), key)
    parsed = dict()
    for name, value in section.items():
        if name.lower() in parsed:
            raise DeploymentConfigError(
                _field(key, name), f"duplicate of {name.lower()}; names are case-insensitive"
            )
        parsed[name.lower()] = parse(value, _field(key, name.lower()))
    return parsed


def parse_config(raw: Any) -> ConfigData:
    """
    Normalizes an untyped network configuration document into `ConfigData`.
    Raises a `DeploymentConfigError` naming the offending field on the first
    invalid value; never truncates or defaults invalid data.
    """
    _require_object(raw, "config")
    return ConfigData(
        access_manager=_parse_address(_require(raw, "accessManager", ""), "accessManager"),
        wallets=_parse_section(raw, "wallets", _parse_address),
        tokens=_parse_section(raw, "tokens", _parse_address, required=True),
        parallelizer=_parse_section(raw, "parallelizer", _parse_parallelizer, required=True),
        savings=_parse_section(raw, "savings", _parse_savings),
        generic_rebalancer=_parse_section(
            raw,
            "genericRebalancer",
            lambda v, p: GenericRebalancerConfig(**_parse_swap_addresses(v, p)),
        ),
        generic_harvester=_parse_section(
            raw,
            "genericHarvester",
            lambda v, p: GenericHarvesterConfig(**_parse_swap_addresses(v, p)),
        ),
    )


def load_config(filepath: Path) -> ConfigData:
    """Loads and normalizes a network configuration JSON file."""
    print(f"Validating network config {filepath}...")
    return parse_config(_load_json(filepath))


def network_config_filepath(network: str) -> Path:
    p = CONFIG_DIR / network.lower() / CONFIG_FILENAME
    if not p.exists():
        raise ValueError(f"No network config found for '{network}' at {p}")
    return p


def load_network_config(network: str) -> ConfigData:
    return load_config(network_config_filepath(network))
