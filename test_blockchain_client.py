"""
Tests for the chain client against a mocked Web3 instance
"""

from unittest.mock import MagicMock

import pytest
from web3 import Web3

from blockchain_client import BlockchainClient
from conftest import BORROWER, IRM, LLTV, ORACLE, PRE_LIQUIDATION, PRICE_1100, USDC, WETH
from models import ZERO_ADDRESS

MARKET_ID = "0x" + "12" * 32
MORPHO = "0xbbbbbbbbbb9cc5e90e3b3af64bdaf62c37eeffcb"


@pytest.fixture
def w3():
    w3 = MagicMock()
    functions = w3.eth.contract.return_value.functions
    functions.idToMarketParams.return_value.call.return_value = (USDC, WETH, ORACLE, IRM, LLTV)
    functions.market.return_value.call.return_value = (
        20_000 * 10**6, 20_000 * 10**12, 10_000 * 10**6, 10_000 * 10**12, 1_700_000_000, 0,
    )
    functions.position.return_value.call.return_value = (0, 1000 * 10**12, 10**18)
    functions.price.return_value.call.return_value = PRICE_1100
    functions.preLiquidationParams.return_value.call.return_value = (
        70 * 10**16, 0, 0, 105 * 10**16, 10825 * 10**14, ZERO_ADDRESS,
    )
    functions.balanceOf.return_value.call.return_value = 42
    return w3


@pytest.fixture
def client(w3):
    return BlockchainClient(rpc_url="http://localhost:8545", morpho_address=MORPHO, w3=w3)


def test_morpho_address_is_checksummed(client):
    assert client.morpho_address == Web3.to_checksum_address(MORPHO)


def test_get_market_params(client, w3):
    params = client.get_market_params(MARKET_ID)

    assert params.loan_token == USDC
    assert params.lltv == LLTV
    w3.eth.contract.return_value.functions.idToMarketParams.assert_called_with(bytes.fromhex("12" * 32))


def test_get_market_and_position(client):
    market = client.get_market(MARKET_ID)
    position = client.get_position(MARKET_ID, BORROWER)

    assert market.total_borrow_assets == 10_000 * 10**6
    assert market.last_update == 1_700_000_000
    assert position.borrow_shares == 1000 * 10**12
    assert position.collateral == 10**18


def test_pre_liquidation_params(client):
    params = client.get_pre_liquidation_params(PRE_LIQUIDATION)

    assert params.pre_lltv == 70 * 10**16
    assert params.pre_lif_1 == 105 * 10**16
    assert params.pre_lif_2 == 10825 * 10**14
    assert client.get_pre_liquidation_params(None) is None
    assert client.get_pre_liquidation_params(ZERO_ADDRESS) is None


def test_get_snapshot(client):
    snapshot = client.get_snapshot(MARKET_ID, BORROWER, PRE_LIQUIDATION)

    assert snapshot.market_id == MARKET_ID
    assert snapshot.borrower == Web3.to_checksum_address(BORROWER)
    assert snapshot.price == PRICE_1100
    assert snapshot.pre_liquidation_params.pre_lltv == 70 * 10**16


def test_missing_market_is_rejected(client, w3):
    w3.eth.contract.return_value.functions.idToMarketParams.return_value.call.return_value = (
        ZERO_ADDRESS, ZERO_ADDRESS, ZERO_ADDRESS, ZERO_ADDRESS, 0,
    )
    with pytest.raises(ValueError):
        client.get_snapshot(MARKET_ID, BORROWER)


def test_rpc_errors_propagate(client, w3):
    w3.eth.contract.return_value.functions.price.return_value.call.side_effect = ConnectionError("rpc down")
    with pytest.raises(ConnectionError):
        client.get_oracle_price(ORACLE)


def test_invalid_market_id(client):
    with pytest.raises(ValueError):
        client.get_market("0x1234")


def test_token_balance(client):
    assert client.get_token_balance(USDC, BORROWER) == 42
