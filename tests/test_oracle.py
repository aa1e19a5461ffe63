import pytest
from eth_abi import decode
from eth_utils import decode_hex

from diamond_deployment.config import (
    ChainlinkFeedsConfig,
    Hyperparameters,
    MorphoOracleConfig,
    parse_config,
    parse_oracle_config,
)
from diamond_deployment.constants import OracleReadType, QuoteType
from diamond_deployment.oracle import (
    ORACLE_CONFIG_TYPES,
    OracleEncodingError,
    decode_oracle_config,
    encode_hyperparameters,
    encode_oracle_config,
    encode_read_data,
    encode_target_data,
    setup_collateral,
    setup_redemption,
)

WORD = 32


def word(value: int) -> bytes:
    return value.to_bytes(WORD, "big", signed=value < 0)


def address_word(address: str) -> bytes:
    return bytes(WORD - 20) + decode_hex(address)


def test_morpho_read_data_layout(morpho_oracle):
    oracle = parse_oracle_config(morpho_oracle)
    assert encode_read_data(oracle) == address_word(oracle.oracle_address) + word(10**18)


def test_chainlink_read_data_layout(chainlink_oracle):
    oracle = parse_oracle_config(chainlink_oracle)
    read_data = encode_read_data(oracle)

    # head: four dynamic array offsets, then the quote type
    assert read_data[: 5 * WORD] == (
        word(5 * WORD) + word(8 * WORD) + word(11 * WORD) + word(14 * WORD) + word(0)
    )
    # tail: length-prefixed arrays, in order
    assert read_data[5 * WORD :] == b"".join(
        [
            word(2),
            address_word(oracle.feeds[0]),
            address_word(oracle.feeds[1]),
            word(2),
            word(86400),
            word(3600),
            word(2),
            word(1),
            word(0),
            word(2),
            word(8),
            word(8),
        ]
    )


def test_target_data(chainlink_oracle, morpho_oracle):
    assert encode_target_data(parse_oracle_config(chainlink_oracle)) == b""
    assert encode_target_data(parse_oracle_config(morpho_oracle)) == word(0)


def test_hyperparameters():
    assert encode_hyperparameters(None) == b""
    assert encode_hyperparameters(Hyperparameters(1000000, 500000)) == word(1000000) + word(500000)


def test_oracle_config_envelope(chainlink_oracle):
    oracle = parse_oracle_config(chainlink_oracle)
    oracle_config = encode_oracle_config(oracle)

    assert oracle_config[: 3 * WORD] == (
        word(OracleReadType.CHAINLINK_FEEDS) + word(OracleReadType.STABLE) + word(5 * WORD)
    )
    oracle_type, target_type, read_data, target_data, hyperparameters = decode(
        ORACLE_CONFIG_TYPES, oracle_config
    )
    assert (oracle_type, target_type) == (0, 3)
    assert read_data == encode_read_data(oracle)
    assert target_data == b""
    assert hyperparameters == word(1000000) + word(500000)


def test_oracle_config_round_trip(chainlink_oracle, morpho_oracle):
    chainlink = parse_oracle_config(chainlink_oracle)
    decoded = decode_oracle_config(encode_oracle_config(chainlink))
    assert isinstance(decoded, ChainlinkFeedsConfig)
    assert decoded == chainlink
    assert decoded.stale_periods == (86400, 3600)
    assert decoded.quote_type == QuoteType.UNIT

    morpho_oracle["normalizationFactor"] = str(10**36 + 7)
    morpho_oracle["hyperparameters"] = {"userDeviation": 0, "burnRatioDeviation": 2**128 - 1}
    morpho = parse_oracle_config(morpho_oracle)
    decoded = decode_oracle_config(encode_oracle_config(morpho))
    assert isinstance(decoded, MorphoOracleConfig)
    assert decoded == morpho
    assert decoded.normalization_factor == 10**36 + 7


def test_encoding_is_total():
    with pytest.raises(OracleEncodingError):
        encode_read_data(("CHAINLINK_FEEDS", OracleReadType.STABLE))


def test_setup_collateral(raw_config):
    parallelizer = parse_config(raw_config).parallelizer_config("USDp")
    chainlink, morpho = [setup_collateral(c) for c in parallelizer.collaterals]

    assert not chainlink.target_max
    assert morpho.target_max
    assert morpho.oracle_config == encode_oracle_config(parallelizer.collaterals[1].oracle)

    token, target_max, oracle_config, x_mint, y_mint, x_burn, y_burn = chainlink.as_struct()
    assert token == parallelizer.collaterals[0].token
    assert target_max is False
    assert x_mint == [0, 790000000, 990000000]
    assert y_burn == [1000000, 100000000]


def test_setup_redemption(raw_config):
    redemption_setup = parse_config(raw_config).parallelizer_config("USDp").redemption_setup
    assert setup_redemption(redemption_setup) is redemption_setup
    assert redemption_setup.as_struct() == ([750000000, 1000000000], [995000000, 1000000000])

    with pytest.raises(ValueError, match="not found"):
        setup_redemption(None)

    with pytest.raises(ValueError, match="same length"):
        setup_redemption(redemption_setup._replace(y_redeem_fee=(1,)))
