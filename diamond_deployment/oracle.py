"""
Encoding of collateral oracle configurations into the `oracleConfig` blob read
by the on-chain oracle library, and of the collateral setup structs passed to
the diamond initializer.

The layout must match the on-chain decoding exactly:

    oracleConfig = abi.encode(uint8 oracleType, uint8 targetType,
                              bytes readData, bytes targetData, bytes hyperparameters)
"""

from typing import NamedTuple, Optional, Tuple

from eth_abi import decode, encode
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from diamond_deployment.config import (
    ChainlinkFeedsConfig,
    CollateralConfig,
    Hyperparameters,
    MorphoOracleConfig,
    OracleConfig,
    RedemptionSetup,
)
from diamond_deployment.constants import OracleReadType, QuoteType

CHAINLINK_FEEDS_READ_DATA_TYPES = ["address[]", "uint32[]", "uint8[]", "uint8[]", "uint8"]
MORPHO_ORACLE_READ_DATA_TYPES = ["address", "uint256"]
TARGET_MAX_DATA_TYPES = ["uint256"]
HYPERPARAMETERS_TYPES = ["uint128", "uint128"]
ORACLE_CONFIG_TYPES = ["uint8", "uint8", "bytes", "bytes", "bytes"]

EMPTY_BYTES = b""


class OracleEncodingError(Exception):
    """Raised when an oracle configuration has no known encoding."""


class CollateralSetupParams(NamedTuple):
    """Collateral registration parameters, as expected by the diamond initializer."""

    token: ChecksumAddress
    target_max: bool
    oracle_config: bytes
    x_mint_fee: Tuple[int, ...]
    y_mint_fee: Tuple[int, ...]
    x_burn_fee: Tuple[int, ...]
    y_burn_fee: Tuple[int, ...]

    def as_struct(self) -> tuple:
        return (
            self.token,
            self.target_max,
            self.oracle_config,
            list(self.x_mint_fee),
            list(self.y_mint_fee),
            list(self.x_burn_fee),
            list(self.y_burn_fee),
        )


def encode_read_data(oracle: OracleConfig) -> bytes:
    if isinstance(oracle, ChainlinkFeedsConfig):
        return encode(
            CHAINLINK_FEEDS_READ_DATA_TYPES,
            [
                list(oracle.feeds),
                list(oracle.stale_periods),
                list(oracle.circuit_chain_is_multiplied),
                list(oracle.chainlink_decimals),
                int(oracle.quote_type),
            ],
        )
    if isinstance(oracle, MorphoOracleConfig):
        return encode(
            MORPHO_ORACLE_READ_DATA_TYPES,
            [oracle.oracle_address, oracle.normalization_factor],
        )
    raise OracleEncodingError(f"No read data encoding for oracle configuration {oracle!r}")


def encode_target_data(oracle: OracleConfig) -> bytes:
    # a zero target tells the oracle library to track the max of its reads
    if oracle.target_type == OracleReadType.MAX:
        return encode(TARGET_MAX_DATA_TYPES, [0])
    return EMPTY_BYTES


def encode_hyperparameters(hyperparameters: Optional[Hyperparameters]) -> bytes:
    if hyperparameters is None:
        return EMPTY_BYTES
    return encode(
        HYPERPARAMETERS_TYPES,
        [hyperparameters.user_deviation, hyperparameters.burn_ratio_deviation],
    )


def encode_oracle_config(oracle: OracleConfig) -> bytes:
    read_data = encode_read_data(oracle)
    return encode(
        ORACLE_CONFIG_TYPES,
        [
            int(oracle.oracle_type),
            int(oracle.target_type),
            read_data,
            encode_target_data(oracle),
            encode_hyperparameters(oracle.hyperparameters),
        ],
    )


def setup_collateral(collateral: CollateralConfig) -> CollateralSetupParams:
    return CollateralSetupParams(
        token=collateral.token,
        target_max=collateral.oracle.target_max,
        oracle_config=encode_oracle_config(collateral.oracle),
        x_mint_fee=collateral.x_mint_fee,
        y_mint_fee=collateral.y_mint_fee,
        x_burn_fee=collateral.x_burn_fee,
        y_burn_fee=collateral.y_burn_fee,
    )


def setup_redemption(redemption: Optional[RedemptionSetup]) -> RedemptionSetup:
    if redemption is None:
        raise ValueError("Redemption setup not found in config")
    if len(redemption.x_redeem_fee) != len(redemption.y_redeem_fee):
        raise ValueError("Redemption setup must have the same length")
    return redemption


#
# Decoding
#


def _decode_hyperparameters(data: bytes) -> Optional[Hyperparameters]:
    if not data:
        return None
    user_deviation, burn_ratio_deviation = decode(HYPERPARAMETERS_TYPES, data)
    return Hyperparameters(
        user_deviation=user_deviation, burn_ratio_deviation=burn_ratio_deviation
    )


def decode_oracle_config(oracle_config: bytes) -> OracleConfig:
    """Rebuilds the typed oracle configuration from an `oracleConfig` blob."""
    oracle_type, target_type, read_data, target_data, hyperparameters_data = decode(
        ORACLE_CONFIG_TYPES, oracle_config
    )
    oracle_type = OracleReadType(oracle_type)
    target_type = OracleReadType(target_type)
    hyperparameters = _decode_hyperparameters(hyperparameters_data)

    if target_type == OracleReadType.MAX and target_data != encode(TARGET_MAX_DATA_TYPES, [0]):
        raise OracleEncodingError(f"Unexpected target data for MAX target: 0x{target_data.hex()}")

    if oracle_type == OracleReadType.CHAINLINK_FEEDS:
        feeds, stale_periods, multiplied, decimals, quote_type = decode(
            CHAINLINK_FEEDS_READ_DATA_TYPES, read_data
        )
        return ChainlinkFeedsConfig(
            target_type=target_type,
            feeds=tuple(to_checksum_address(feed) for feed in feeds),
            stale_periods=tuple(stale_periods),
            circuit_chain_is_multiplied=tuple(multiplied),
            chainlink_decimals=tuple(decimals),
            quote_type=QuoteType(quote_type),
            hyperparameters=hyperparameters,
        )
    if oracle_type == OracleReadType.MORPHO_ORACLE:
        oracle_address, normalization_factor = decode(MORPHO_ORACLE_READ_DATA_TYPES, read_data)
        return MorphoOracleConfig(
            target_type=target_type,
            oracle_address=to_checksum_address(oracle_address),
            normalization_factor=normalization_factor,
            hyperparameters=hyperparameters,
        )
    raise OracleEncodingError(f"No read data decoding for oracle type {oracle_type.name}")
