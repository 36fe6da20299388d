"""
Liquidation Executor - Flash-loan driven pre-liquidation state machine
Runs the liquidator contract's sequencing against a SimulatedLedger
"""

from enum import Enum
from typing import Optional
import logging

from eth_abi import decode, encode

from exceptions import AssetMismatchError, LiquidationError, NotLiquidatableError, UnauthorizedError
from ledger import SimulatedFlashLoanPool, SimulatedLedger, SimulatedPreLiquidation, SimulatedToken
from models import PositionCheck, ProfitabilityReport, market_id_to_bytes, market_id_to_hex
from morpho_math import MorphoMath
from position_evaluator import PositionEvaluator

logger = logging.getLogger(__name__)


class ExecutionState(Enum):
    IDLE = "idle"
    FLASH_LOAN_REQUESTED = "flash_loan_requested"
    IN_CALLBACK = "in_callback"
    SETTLED = "settled"
    REVERTED = "reverted"


def _same_address(a: str, b: str) -> bool:
    return a is not None and b is not None and a.lower() == b.lower()


def encode_callback_params(market_id, borrower: str) -> bytes:
    return encode(["bytes32", "address"], [market_id_to_bytes(market_id), borrower])


def decode_callback_params(params: bytes):
    market_id, borrower = decode(["bytes32", "address"], params)
    return market_id_to_hex(market_id), borrower


class PreLiquidationExecutor:
    """
    Owner-operated liquidator: evaluates, borrows via flash loan, pre-liquidates, repays
    """

    def __init__(self, address: str, owner: str, ledger: SimulatedLedger,
                 flash_loan_pool: SimulatedFlashLoanPool,
                 pre_liquidation: Optional[SimulatedPreLiquidation],
                 loan_token: SimulatedToken, evaluator: PositionEvaluator = None):
        self.address = address
        self.owner = owner
        self.ledger = ledger
        self.flash_loan_pool = flash_loan_pool
        self.pre_liquidation = pre_liquidation
        self.loan_token = loan_token
        self.evaluator = evaluator or PositionEvaluator()
        self.state = ExecutionState.IDLE

    @property
    def pre_liquidation_address(self) -> Optional[str]:
        return self.pre_liquidation.address if self.pre_liquidation else None

    def _only_owner(self, sender: str):
        if not _same_address(sender, self.owner):
            raise UnauthorizedError(f"Caller {sender} is not the owner")

    # Public reads

    def check_position(self, market_id, borrower: str) -> PositionCheck:
        snapshot = self.ledger.get_snapshot(market_id, borrower, self.pre_liquidation_address)
        return self.evaluator.check_position(snapshot)

    def simulate_profitability(self, market_id, borrower: str) -> ProfitabilityReport:
        snapshot = self.ledger.get_snapshot(market_id, borrower, self.pre_liquidation_address)
        return self.evaluator.simulate_profitability(snapshot)

    # Owner entry points

    def execute_preliquidation(self, sender: str, market_id, borrower: str) -> PositionCheck:
        """
        Request a flash loan for the suggested repay amount and pre-liquidate inside the callback
        The whole sequence is atomic: any failure restores the ledger and re-raises
        """
        self.state = ExecutionState.IDLE
        try:
            self._only_owner(sender)
            if self.pre_liquidation is None:
                raise LiquidationError("No pre-liquidation contract configured")
            check = self.check_position(market_id, borrower)
            if not check.is_liquidatable:
                raise NotLiquidatableError(f"Position of {borrower} in {market_id_to_hex(market_id)} "
                                           f"is not liquidatable (ltv={check.ltv})")

            params = encode_callback_params(market_id, borrower)
            with self.ledger.atomic():
                self.state = ExecutionState.FLASH_LOAN_REQUESTED
                logger.info(f"Requesting flash loan of {check.suggested_repay_amount} "
                            f"{self.loan_token.symbol} for {borrower}")
                self.flash_loan_pool.flash_loan_simple(
                    self.address, self, self.loan_token.address,
                    check.suggested_repay_amount, params, 0,
                )
        except Exception as e:
            self.state = ExecutionState.REVERTED
            logger.error(f"Pre-liquidation of {borrower} reverted: {e}")
            raise

        self.state = ExecutionState.SETTLED
        logger.info(f"Pre-liquidation of {borrower} settled")
        return check

    def execute_operation(self, sender: str, asset: str, amount: int, premium: int,
                          initiator: str, params: bytes) -> bool:
        """
        Flash-loan callback: repay part of the borrower's debt, then approve loan repayment
        """
        if self.flash_loan_pool is None or not _same_address(sender, self.flash_loan_pool.address):
            raise UnauthorizedError(f"Callback caller {sender} is not the flash-loan pool")
        if not _same_address(asset, self.loan_token.address):
            raise AssetMismatchError(f"Flash-loaned asset {asset} is not the loan token")
        if self.pre_liquidation is None:
            raise LiquidationError("No pre-liquidation contract configured")

        self.state = ExecutionState.IN_CALLBACK
        market_id, borrower = decode_callback_params(params)

        # Shares are re-derived from the totals at callback time
        market = self.ledger.get_market(market_id)
        repaid_shares = MorphoMath.to_shares_down(
            amount, market.total_borrow_assets, market.total_borrow_shares
        )
        logger.info(f"Callback: borrowed {amount} (+{premium} premium), "
                    f"repaying {repaid_shares} shares of {borrower}")

        self.loan_token.approve(self.address, self.pre_liquidation.address, amount)
        self.pre_liquidation.pre_liquidate(self.address, borrower, 0, repaid_shares, b"")
        self.loan_token.approve(self.address, self.flash_loan_pool.address, amount + premium)
        return True

    def recover_token(self, sender: str, token) -> int:
        """Sweep this executor's whole balance of a token to the owner"""
        self._only_owner(sender)
        token = self.ledger.token(token)
        balance = token.balance_of(self.address)
        if balance > 0:
            token.transfer(self.address, self.owner, balance)
        logger.info(f"Recovered {balance} {token.symbol} to {self.owner}")
        return balance
