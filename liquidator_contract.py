from typing import Any, Dict, List, Sequence, Tuple
import json
import logging

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError

from abis import LIQUIDATOR_ABI
from config import config
from exceptions import TransactionRevertedError, TransactionUnconfirmedError
from models import market_id_to_bytes

logger = logging.getLogger(__name__)


class LiquidatorContract:
    """
    Interface to the deployed pre-liquidation contract
    """

    def __init__(self, w3: Web3, address: str, account=None, abi: List = None, gas_limit: int = None):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=abi or LIQUIDATOR_ABI)
        self.account = account
        self.gas_limit = gas_limit or config.GAS_LIMIT

    @classmethod
    def from_config(cls, w3: Web3) -> "LiquidatorContract":
        account = Account.from_key(config.PRIVATE_KEY) if config.PRIVATE_KEY else None
        return cls(w3, config.LIQUIDATOR_ADDRESS, account)

    @staticmethod
    def load_artifact(artifact_path: str) -> Tuple[List, str]:
        """Read abi and creation bytecode from a Foundry or Hardhat artifact"""
        with open(artifact_path) as f:
            artifact = json.load(f)
        bytecode = artifact["bytecode"]
        if isinstance(bytecode, dict):
            bytecode = bytecode["object"]
        return artifact["abi"], bytecode

    @classmethod
    def deploy(cls, w3: Web3, account, artifact_path: str,
               constructor_args: Sequence[Any]) -> "LiquidatorContract":
        """
        Deploy the liquidator from a compiled artifact, the sender becomes owner
        """
        abi, bytecode = cls.load_artifact(artifact_path)
        factory = w3.eth.contract(abi=abi, bytecode=bytecode)
        transaction = factory.constructor(*constructor_args).build_transaction({
            "from": account.address,
            "nonce": w3.eth.get_transaction_count(account.address),
        })
        receipt = cls._send(w3, account, transaction, "deploy")
        logger.info(f"Liquidator deployed at {receipt['contractAddress']}")
        return cls(w3, receipt["contractAddress"], account, abi=abi)

    @staticmethod
    def _send(w3: Web3, account, transaction: Dict, label: str) -> Dict:
        signed = account.sign_transaction(transaction)
        tx_hash = None
        try:
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash)
        except Exception as e:
            # the node may have accepted the transaction even if we never saw it confirmed
            sent_hash = (tx_hash if tx_hash is not None else signed.hash).hex()
            logger.error(f"{label} not confirmed, tx: {sent_hash}: {e}")
            raise TransactionUnconfirmedError(f"{label} not confirmed: {e}", tx_hash=sent_hash) from e
        if receipt["status"] != 1:
            raise TransactionRevertedError(f"{label} reverted", tx_hash=tx_hash.hex())
        logger.info(f"{label} confirmed, tx: {tx_hash.hex()}, gas used: {receipt['gasUsed']}")
        return receipt

    def _require_account(self):
        if self.account is None:
            raise ValueError("No signing account configured (PRIVATE_KEY)")

    def _transact(self, function, label: str) -> str:
        self._require_account()
        transaction = function.build_transaction({
            "from": self.account.address,
            "gas": self.gas_limit,
            "nonce": self.w3.eth.get_transaction_count(self.account.address),
        })
        receipt = self._send(self.w3, self.account, transaction, label)
        return receipt["transactionHash"].hex()

    def owner(self) -> str:
        return self.contract.functions.owner().call()

    def check_position(self, market_id, borrower: str) -> Tuple[bool, int]:
        result = self.contract.functions.checkPosition(
            market_id_to_bytes(market_id), Web3.to_checksum_address(borrower)
        ).call()
        return bool(result[0]), int(result[1])

    def simulate_profitability(self, market_id, borrower: str) -> Tuple[int, int, int, int]:
        result = self.contract.functions.simulateProfitability(
            market_id_to_bytes(market_id), Web3.to_checksum_address(borrower)
        ).call()
        return tuple(int(value) for value in result)

    def simulate_preliquidation(self, market_id, borrower: str):
        """
        eth_call executePreliquidation from the owner, raises on revert
        """
        self._require_account()
        try:
            self.contract.functions.executePreliquidation(
                market_id_to_bytes(market_id), Web3.to_checksum_address(borrower)
            ).call({"from": self.account.address})
        except ContractLogicError as e:
            logger.warning(f"Simulated pre-liquidation of {borrower} reverted: {e}")
            raise TransactionRevertedError(f"executePreliquidation would revert: {e}") from e

    def execute_preliquidation(self, market_id, borrower: str) -> str:
        function = self.contract.functions.executePreliquidation(
            market_id_to_bytes(market_id), Web3.to_checksum_address(borrower)
        )
        try:
            return self._transact(function, "executePreliquidation")
        except Exception as e:
            logger.error(f"Error executing pre-liquidation of {borrower}: {e}")
            raise

    def recover_token(self, token: str) -> str:
        function = self.contract.functions.recoverToken(Web3.to_checksum_address(token))
        try:
            return self._transact(function, "recoverToken")
        except Exception as e:
            logger.error(f"Error recovering {token}: {e}")
            raise
