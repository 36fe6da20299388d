"""
Pre-Liquidation Bot
Ties chain reads, local evaluation, dry runs and the deployed liquidator together
"""

from typing import Dict, Iterable, List, Optional, Tuple
import asyncio
import logging

from blockchain_client import BlockchainClient
from config import config
from exceptions import LiquidationError, TransactionRevertedError
from ledger import SimulatedLedger
from liquidation_executor import PreLiquidationExecutor
from liquidator_contract import LiquidatorContract
from models import ExecutionResult, MarketSnapshot, PositionCheck, ProfitabilityReport
from morpho_math import MorphoMath
from position_evaluator import PositionEvaluator

logger = logging.getLogger(__name__)

# Stand-in addresses used when the real ones are not configured
SIMULATED_LIQUIDATOR = "0x000000000000000000000000000000000000dEaD"
SIMULATED_OWNER = "0x0000000000000000000000000000000000000B07"
SIMULATED_PRE_LIQUIDATION = "0x0000000000000000000000000000000000000911"


class PreLiquidationBot:
    """
    Simulate-then-commit driver: evaluate, dry-run locally, eth_call, then send
    """

    def __init__(self, client: BlockchainClient, evaluator: PositionEvaluator = None,
                 contract: Optional[LiquidatorContract] = None, pre_liquidation: str = None,
                 flash_loan_pool: str = None, min_profit: int = None, dry_run: bool = None):
        self.client = client
        self.evaluator = evaluator or PositionEvaluator()
        self.contract = contract
        self.pre_liquidation = pre_liquidation or config.PRE_LIQUIDATION_ADDRESS
        self.flash_loan_pool = flash_loan_pool or config.FLASH_LOAN_POOL_ADDRESS
        self.min_profit = config.MIN_PROFIT if min_profit is None else min_profit
        self.dry_run_only = config.DRY_RUN if dry_run is None else dry_run
        self.latest_results: Dict[Tuple[str, str], ExecutionResult] = {}

    def snapshot(self, market_id, borrower: str) -> MarketSnapshot:
        return self.client.get_snapshot(market_id, borrower, self.pre_liquidation)

    def evaluate(self, market_id, borrower: str,
                 snapshot: MarketSnapshot = None) -> Tuple[MarketSnapshot, PositionCheck, ProfitabilityReport]:
        """Fresh snapshot plus checkPosition and simulateProfitability"""
        snapshot = snapshot or self.snapshot(market_id, borrower)
        check = self.evaluator.check_position(snapshot)
        report = self.evaluator.simulate_profitability(snapshot)
        return snapshot, check, report

    def dry_run(self, market_id, borrower: str, snapshot: MarketSnapshot = None) -> Dict:
        """
        Run the full flash-loan sequence on a ledger seeded from the snapshot
        Raises whatever the sequence would revert with
        """
        snapshot = snapshot or self.snapshot(market_id, borrower)
        check = self.evaluator.check_position(snapshot)
        loan_token = snapshot.params.loan_token
        collateral_token = snapshot.params.collateral_token

        liquidator = self.contract.address if self.contract else SIMULATED_LIQUIDATOR
        owner = (self.contract.account.address
                 if self.contract and self.contract.account else SIMULATED_OWNER)
        # Seized collateral is not swapped back, so the flash loan and its premium are
        # repaid from the liquidator's own loan token balance
        if self.contract:
            funding = self.client.get_token_balance(loan_token, liquidator)
        else:
            funding = check.suggested_repay_amount + MorphoMath.bps_of(
                check.suggested_repay_amount, self.evaluator.flash_loan_fee_bps
            )

        pre_params = snapshot.pre_liquidation_params or self.evaluator.default_pre_liquidation_params
        pre_liquidation_address = self.pre_liquidation or SIMULATED_PRE_LIQUIDATION
        ledger = SimulatedLedger.from_snapshot(
            snapshot,
            pool_address=self.flash_loan_pool,
            pre_liquidation_address=pre_liquidation_address,
            pre_liquidation_params=pre_params,
            pool_liquidity=check.suggested_repay_amount,
            balances={loan_token: {liquidator: funding}},
            premium_bps=self.evaluator.flash_loan_fee_bps,
        )
        executor = PreLiquidationExecutor(
            address=liquidator,
            owner=owner,
            ledger=ledger,
            flash_loan_pool=ledger.flash_loan_pools[self.flash_loan_pool.lower()],
            pre_liquidation=ledger.pre_liquidations[pre_liquidation_address.lower()],
            loan_token=ledger.token(loan_token),
            evaluator=self.evaluator,
        )

        loan_before = ledger.get_token_balance(loan_token, liquidator)
        collateral_before = ledger.get_token_balance(collateral_token, liquidator)
        executor.execute_preliquidation(owner, snapshot.market_id, snapshot.borrower)
        loan_delta = ledger.get_token_balance(loan_token, liquidator) - loan_before
        collateral_delta = ledger.get_token_balance(collateral_token, liquidator) - collateral_before

        profit = loan_delta
        if loan_token.lower() != collateral_token.lower():
            profit += MorphoMath.collateral_value(collateral_delta, snapshot.price)
        logger.info(f"Dry run for {borrower}: loan token delta {loan_delta}, "
                    f"collateral delta {collateral_delta}, profit {profit}")
        return {
            "state": executor.state.value,
            "loan_token_delta": loan_delta,
            "collateral_delta": collateral_delta,
            "profit": profit,
            "position_after": ledger.get_position(snapshot.market_id, snapshot.borrower).to_dict(),
        }

    def execute(self, market_id, borrower: str) -> ExecutionResult:
        """
        One attempt, no retry: skip unless liquidatable, profitable and every simulation passes
        """
        snapshot, check, report = self.evaluate(market_id, borrower)
        result = ExecutionResult(
            market_id=snapshot.market_id, borrower=snapshot.borrower, executed=False,
            reason="", check=check, profitability=report,
        )

        if not check.is_liquidatable:
            result.reason = "position not liquidatable"
            return result
        if report.net_profit < self.min_profit or not report.is_profitable:
            result.reason = f"net profit {report.net_profit} below minimum {self.min_profit}"
            return result

        try:
            simulation = self.dry_run(market_id, borrower, snapshot=snapshot)
        except LiquidationError as e:
            result.reason = f"dry run reverted: {e}"
            return result
        result.simulated_profit = simulation["profit"]
        result.extra["dry_run"] = simulation

        if self.contract is None or self.dry_run_only:
            result.reason = "dry run only"
            return result

        result.extra["verification"] = self.evaluator.verify_against_contract(
            check, report,
            self.contract.check_position(market_id, borrower),
            self.contract.simulate_profitability(market_id, borrower),
        )

        try:
            self.contract.simulate_preliquidation(market_id, borrower)
        except TransactionRevertedError as e:
            result.reason = f"reverted: {e}"
            return result

        result.sent = True
        try:
            result.tx_hash = self.contract.execute_preliquidation(market_id, borrower)
        except TransactionRevertedError as e:
            result.reason = f"reverted: {e}"
            result.tx_hash = e.tx_hash
            return result
        except Exception as e:
            # may already be broadcast; never submit a second one
            result.reason = f"unconfirmed: {e}"
            result.tx_hash = getattr(e, "tx_hash", None)
            logger.error(f"Pre-liquidation of {borrower} in {snapshot.market_id} unconfirmed: {e}")
            return result

        result.executed = True
        result.reason = "pre-liquidation executed"
        logger.info(f"Pre-liquidated {borrower} in {snapshot.market_id}, tx: {result.tx_hash}")
        return result

    async def monitor(self, targets: Iterable[Tuple[str, str]], interval: float = None,
                      max_iterations: int = None) -> List[ExecutionResult]:
        """
        Poll targets; once a transaction was sent or reverted the target is not attempted again
        Bounded runs return every result, unbounded runs only the latest one per target
        """
        interval = config.POLL_INTERVAL if interval is None else interval
        active = list(targets)
        keep_history = max_iterations is not None
        results: List[ExecutionResult] = []
        self.latest_results = {}
        iteration = 0

        while active and (max_iterations is None or iteration < max_iterations):
            iteration += 1
            for market_id, borrower in list(active):
                try:
                    result = await asyncio.to_thread(self.execute, market_id, borrower)
                except Exception as e:
                    logger.error(f"Error evaluating {borrower} in {market_id}: {e}")
                    continue

                self.latest_results[(market_id, borrower)] = result
                if keep_history:
                    results.append(result)
                logger.info(f"[poll {iteration}] {borrower}: {result.reason}")
                if result.sent or result.reason.startswith("reverted"):
                    active.remove((market_id, borrower))

            if active and (max_iterations is None or iteration < max_iterations):
                await asyncio.sleep(interval)

        return results if keep_history else list(self.latest_results.values())
