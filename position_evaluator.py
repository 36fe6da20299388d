from typing import Dict, Optional, Sequence
import logging

from config import config
from models import MarketSnapshot, PositionCheck, PreLiquidationParams, ProfitabilityReport
from morpho_math import MorphoMath, WAD

logger = logging.getLogger(__name__)


class PositionEvaluator:
    """
    Evaluates Morpho Blue positions exactly like the liquidator contract
    """

    def __init__(self, liquidation_threshold: int = None, use_market_lltv: bool = None,
                 default_pre_liquidation_params: Optional[PreLiquidationParams] = None,
                 repay_fraction_bps: int = None, flash_loan_fee_bps: int = None):
        self.liquidation_threshold = (
            config.LIQUIDATION_THRESHOLD if liquidation_threshold is None else liquidation_threshold
        )
        self.use_market_lltv = config.USE_MARKET_LLTV if use_market_lltv is None else use_market_lltv
        self.default_pre_liquidation_params = default_pre_liquidation_params or PreLiquidationParams(
            pre_lltv=config.DEFAULT_PRE_LLTV,
            pre_lif_1=config.DEFAULT_PRE_LIF_1,
            pre_lif_2=config.DEFAULT_PRE_LIF_2,
        )
        self.repay_fraction_bps = (
            config.REPAY_FRACTION_BPS if repay_fraction_bps is None else repay_fraction_bps
        )
        self.flash_loan_fee_bps = (
            config.FLASH_LOAN_FEE_BPS if flash_loan_fee_bps is None else flash_loan_fee_bps
        )

    def threshold_for(self, snapshot: MarketSnapshot) -> int:
        """Hard threshold the position is compared against"""
        if self.use_market_lltv and snapshot.params.lltv > 0:
            return snapshot.params.lltv
        return self.liquidation_threshold

    def check_position(self, snapshot: MarketSnapshot) -> PositionCheck:
        """
        Compute LTV and decide liquidation eligibility (checkPosition)
        """
        market = snapshot.market
        position = snapshot.position

        borrowed = MorphoMath.to_assets_up(
            position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares
        )
        logger.info(f"[{snapshot.borrower}] borrow shares={position.borrow_shares} "
                    f"total borrow assets={market.total_borrow_assets} "
                    f"total borrow shares={market.total_borrow_shares} -> borrowed={borrowed}")

        threshold = self.threshold_for(snapshot)
        if borrowed == 0 or position.collateral == 0:
            logger.info(f"[{snapshot.borrower}] no position (borrowed={borrowed}, "
                        f"collateral={position.collateral})")
            return PositionCheck(False, 0, borrowed=borrowed, threshold=threshold)

        price = snapshot.price
        collateral_value = MorphoMath.collateral_value(position.collateral, price)
        if collateral_value == 0:
            logger.warning(f"[{snapshot.borrower}] collateral {position.collateral} is worth 0 "
                           f"at price {price}, nothing to seize")
            return PositionCheck(False, 0, borrowed=borrowed, threshold=threshold, price=price)

        ltv = MorphoMath.w_div_up(borrowed, collateral_value)
        is_liquidatable = ltv > threshold
        suggested = MorphoMath.bps_of(borrowed, self.repay_fraction_bps) if is_liquidatable else 0

        logger.info(f"[{snapshot.borrower}] collateral={position.collateral} price={price} "
                    f"collateral value={collateral_value} ltv={ltv} threshold={threshold} "
                    f"liquidatable={is_liquidatable} suggested repay={suggested}")

        return PositionCheck(
            is_liquidatable=is_liquidatable,
            suggested_repay_amount=suggested,
            borrowed=borrowed,
            collateral_value=collateral_value,
            ltv=ltv,
            threshold=threshold,
            price=price,
        )

    @staticmethod
    def incentive_factor(ltv: int, lltv: int, params: PreLiquidationParams) -> int:
        """
        Interpolate the liquidation incentive factor between preLIF1 and preLIF2
        The quotient saturates to [0, 1]; lltv <= preLltv yields preLIF2
        """
        if lltv <= params.pre_lltv:
            quotient = WAD
        elif ltv <= params.pre_lltv:
            quotient = 0
        else:
            quotient = min(WAD, MorphoMath.w_div_down(ltv - params.pre_lltv, lltv - params.pre_lltv))

        return params.pre_lif_1 + MorphoMath.w_mul_down(quotient, params.pre_lif_2 - params.pre_lif_1)

    def simulate_profitability(self, snapshot: MarketSnapshot,
                               pre_liquidation_params: Optional[PreLiquidationParams] = None
                               ) -> ProfitabilityReport:
        """
        Estimate repay, seized value, flash-loan fee and net profit (simulateProfitability)
        """
        check = self.check_position(snapshot)
        if not check.is_liquidatable:
            return ProfitabilityReport()

        params = (pre_liquidation_params or snapshot.pre_liquidation_params
                  or self.default_pre_liquidation_params)
        lltv = snapshot.params.lltv or check.threshold

        lif = self.incentive_factor(check.ltv, lltv, params)
        repay_amount = check.suggested_repay_amount
        seized_amount = MorphoMath.w_mul_down(repay_amount, lif)
        flash_loan_fee = MorphoMath.bps_of(repay_amount, self.flash_loan_fee_bps)
        net_profit = max(0, seized_amount - repay_amount - flash_loan_fee)

        logger.info(f"[{snapshot.borrower}] preLltv={params.pre_lltv} lltv={lltv} LIF={lif} "
                    f"repay={repay_amount} seized={seized_amount} fee={flash_loan_fee} "
                    f"net profit={net_profit}")

        return ProfitabilityReport(
            repay_amount=repay_amount,
            seized_amount=seized_amount,
            flash_loan_fee=flash_loan_fee,
            net_profit=net_profit,
            incentive_factor=lif,
            ltv=check.ltv,
        )

    @staticmethod
    def verify_against_contract(local_check: PositionCheck, local_report: ProfitabilityReport,
                                onchain_check: Sequence, onchain_report: Sequence) -> Dict:
        """
        Compare local results with the liquidator contract's own view functions
        Integer math must match exactly, there is no tolerance
        """
        check_match = (
            bool(onchain_check[0]) == local_check.is_liquidatable
            and int(onchain_check[1]) == local_check.suggested_repay_amount
        )
        report_match = tuple(int(v) for v in onchain_report[:4]) == local_report.as_tuple()

        result = {
            "local_check": [local_check.is_liquidatable, local_check.suggested_repay_amount],
            "onchain_check": [bool(onchain_check[0]), int(onchain_check[1])],
            "local_profitability": list(local_report.as_tuple()),
            "onchain_profitability": [int(v) for v in onchain_report[:4]],
            "check_match": check_match,
            "profitability_match": report_match,
            "calculations_match": check_match and report_match,
        }
        if not result["calculations_match"]:
            logger.warning(f"Local evaluation diverges from contract: {result}")
        return result
