"""
Tests for the deployed liquidator interface against a mocked Web3 instance
"""

import json
from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from conftest import BORROWER, EXECUTOR, OWNER, WETH
from exceptions import TransactionRevertedError, TransactionUnconfirmedError
from liquidator_contract import LiquidatorContract

MARKET_ID = "0x" + "12" * 32
TX_HASH = bytes.fromhex("ab" * 32)


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1, "gasUsed": 420_000, "transactionHash": TX_HASH, "contractAddress": EXECUTOR,
    }
    return w3


@pytest.fixture
def liquidator(w3):
    return LiquidatorContract(w3, EXECUTOR, account=MagicMock(address=OWNER), gas_limit=1_000_000)


def functions(w3):
    return w3.eth.contract.return_value.functions


def test_view_calls(liquidator, w3):
    functions(w3).checkPosition.return_value.call.return_value = [True, 192_700_000]
    functions(w3).simulateProfitability.return_value.call.return_value = [192_700_000, 208_000_000, 173_430, 15_126_570]

    assert liquidator.check_position(MARKET_ID, BORROWER) == (True, 192_700_000)
    assert liquidator.simulate_profitability(MARKET_ID, BORROWER) == (192_700_000, 208_000_000, 173_430, 15_126_570)
    functions(w3).checkPosition.assert_called_with(bytes.fromhex("12" * 32), BORROWER)


def test_execute_preliquidation_sends_signed_transaction(liquidator, w3):
    tx_hash = liquidator.execute_preliquidation(MARKET_ID, BORROWER)

    assert tx_hash == TX_HASH.hex()
    build = functions(w3).executePreliquidation.return_value.build_transaction
    build.assert_called_once_with({"from": OWNER, "gas": 1_000_000, "nonce": 7})
    liquidator.account.sign_transaction.assert_called_once_with(build.return_value)


def test_reverted_receipt_raises(liquidator, w3):
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "gasUsed": 30_000, "transactionHash": TX_HASH}

    with pytest.raises(TransactionRevertedError) as exc_info:
        liquidator.execute_preliquidation(MARKET_ID, BORROWER)
    assert exc_info.value.tx_hash == TX_HASH.hex()


def test_receipt_timeout_reports_sent_hash(liquidator, w3):
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined in 120s")

    with pytest.raises(TransactionUnconfirmedError) as exc_info:
        liquidator.execute_preliquidation(MARKET_ID, BORROWER)
    assert exc_info.value.tx_hash == TX_HASH.hex()


def test_failed_broadcast_reports_signed_hash(liquidator, w3):
    w3.eth.send_raw_transaction.side_effect = ConnectionError("rpc down")
    signed = liquidator.account.sign_transaction.return_value

    with pytest.raises(TransactionUnconfirmedError) as exc_info:
        liquidator.execute_preliquidation(MARKET_ID, BORROWER)
    assert exc_info.value.tx_hash == signed.hash.hex.return_value


def test_simulate_preliquidation_revert(liquidator, w3):
    call = functions(w3).executePreliquidation.return_value.call
    call.side_effect = ContractLogicError("execution reverted: not liquidatable")

    with pytest.raises(TransactionRevertedError):
        liquidator.simulate_preliquidation(MARKET_ID, BORROWER)
    call.assert_called_once_with({"from": OWNER})


def test_transactions_need_an_account(w3):
    read_only = LiquidatorContract(w3, EXECUTOR)

    with pytest.raises(ValueError):
        read_only.recover_token(WETH)
    w3.eth.send_raw_transaction.assert_not_called()


def test_recover_token(liquidator, w3):
    assert liquidator.recover_token(WETH) == TX_HASH.hex()
    functions(w3).recoverToken.assert_called_once_with(WETH)


@pytest.mark.parametrize("bytecode", ["0x6080", {"object": "0x6080"}])
def test_load_artifact(tmp_path, bytecode):
    path = tmp_path / "Liquidator.json"
    path.write_text(json.dumps({"abi": [{"type": "constructor", "inputs": []}], "bytecode": bytecode}))

    abi, code = LiquidatorContract.load_artifact(str(path))
    assert abi == [{"type": "constructor", "inputs": []}]
    assert code == "0x6080"


def test_deploy(w3, tmp_path):
    path = tmp_path / "Liquidator.json"
    path.write_text(json.dumps({"abi": [], "bytecode": {"object": "0x6080"}}))

    deployed = LiquidatorContract.deploy(w3, MagicMock(address=OWNER), str(path), [EXECUTOR])

    assert deployed.address == EXECUTOR
    w3.eth.contract.assert_any_call(abi=[], bytecode="0x6080")
    w3.eth.contract.return_value.constructor.assert_called_once_with(EXECUTOR)
