"""
Tests for market ids, chain decoding and configuration parsing
"""

import pytest
from eth_abi import encode
from web3 import Web3

from config import Config
from conftest import IRM, LLTV, ORACLE, USDC, WETH
from models import MarketParams, PreLiquidationParams, market_id_to_bytes, market_id_to_hex


def test_market_id_is_keccak_of_encoded_params():
    params = MarketParams(USDC, WETH, ORACLE, IRM, LLTV)
    encoded = encode(["address", "address", "address", "address", "uint256"], [USDC, WETH, ORACLE, IRM, LLTV])

    assert params.id() == market_id_to_hex(Web3.keccak(encoded))
    assert len(params.id()) == 66
    assert params.id() != MarketParams(USDC, WETH, ORACLE, IRM, LLTV - 1).id()


def test_market_id_normalization():
    raw = bytes(range(32))
    assert market_id_to_bytes(raw) == raw
    assert market_id_to_bytes(raw.hex()) == raw
    assert market_id_to_hex("0x" + raw.hex().upper()) == "0x" + raw.hex()

    with pytest.raises(ValueError):
        market_id_to_bytes("0x1234")
    with pytest.raises(ValueError):
        market_id_to_bytes("0x" + "zz" * 32)


def test_pre_liquidation_params_from_chain():
    params = PreLiquidationParams.from_chain((1, 2, 3, 4, 5, ORACLE))

    assert (params.pre_lltv, params.pre_lcf_1, params.pre_lcf_2) == (1, 2, 3)
    assert (params.pre_lif_1, params.pre_lif_2, params.oracle) == (4, 5, ORACLE)


def test_monitor_targets_parsing():
    settings = Config()
    settings.MONITOR_TARGETS = f" 0x{'12' * 32}:{USDC} , ,0x{'34' * 32}:{WETH}"

    assert settings.monitor_targets() == [("0x" + "12" * 32, USDC), ("0x" + "34" * 32, WETH)]

    settings.MONITOR_TARGETS = ""
    assert settings.monitor_targets() == []
