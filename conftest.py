"""
Shared fixtures: a seeded USDC/WETH market on a SimulatedLedger
"""

import logging

import pytest

from ledger import SimulatedLedger
from liquidation_executor import PreLiquidationExecutor
from models import Market, MarketParams, Position, PreLiquidationParams
from position_evaluator import PositionEvaluator

logging.basicConfig(level=logging.INFO)

USDC = "0x1111111111111111111111111111111111111111"
WETH = "0x2222222222222222222222222222222222222222"
ORACLE = "0x3333333333333333333333333333333333333333"
IRM = "0x4444444444444444444444444444444444444444"
POOL = "0x5555555555555555555555555555555555555555"
PRE_LIQUIDATION = "0x6666666666666666666666666666666666666666"
EXECUTOR = "0x7777777777777777777777777777777777777777"
OWNER = "0x8888888888888888888888888888888888888888"
BORROWER = "0x9999999999999999999999999999999999999999"
STRANGER = "0x1234567890123456789012345678901234567890"

LLTV = 915 * 10**15  # 91.5%
# 1 WETH quoted in USDC units at the 1e36 oracle scale: 1100 USDC
PRICE_1100 = 1100 * 10**6 * 10**36 // 10**18
PRICE_1300 = 1300 * 10**6 * 10**36 // 10**18
DEFAULT_PRE_PARAMS = PreLiquidationParams(
    pre_lltv=70 * 10**16, pre_lif_1=105 * 10**16, pre_lif_2=10825 * 10**14,
)


class Scenario:
    """Ledger, executor and addresses for one borrower"""

    def __init__(self, price=PRICE_1100, debt=1000 * 10**6, collateral=10**18,
                 executor_funding=None, pre_params=DEFAULT_PRE_PARAMS, lltv=LLTV):
        self.ledger = SimulatedLedger()
        self.usdc = self.ledger.add_token(USDC, "USDC")
        self.weth = self.ledger.add_token(WETH, "WETH")
        self.oracle = self.ledger.add_oracle(ORACLE, price)

        self.params = MarketParams(USDC, WETH, ORACLE, IRM, lltv)
        # 1e6 shares per asset, 10,000 USDC borrowed in total
        market = Market(
            total_supply_assets=20_000 * 10**6, total_supply_shares=20_000 * 10**12,
            total_borrow_assets=10_000 * 10**6, total_borrow_shares=10_000 * 10**12,
        )
        self.market_id = self.ledger.morpho.create_market(self.params, market)
        self.ledger.morpho.set_position(
            self.market_id, BORROWER, Position(borrow_shares=debt * 10**6, collateral=collateral)
        )
        self.weth.mint(self.ledger.morpho.address, collateral)

        self.pre_liquidation = self.ledger.add_pre_liquidation(PRE_LIQUIDATION, self.market_id, pre_params)
        self.pool = self.ledger.add_flash_loan_pool(POOL, premium_bps=9)
        self.usdc.mint(POOL, 1_000_000 * 10**6)

        self.evaluator = PositionEvaluator(liquidation_threshold=85 * 10**16, use_market_lltv=False)
        self.executor = PreLiquidationExecutor(
            address=EXECUTOR, owner=OWNER, ledger=self.ledger, flash_loan_pool=self.pool,
            pre_liquidation=self.pre_liquidation, loan_token=self.usdc, evaluator=self.evaluator,
        )
        if executor_funding is None:
            # flash-loaned amount is spent on the debt, so repayment comes from the executor's float
            executor_funding = 200 * 10**6
        self.usdc.mint(EXECUTOR, executor_funding)

    def snapshot(self):
        return self.ledger.get_snapshot(self.market_id, BORROWER, PRE_LIQUIDATION)


@pytest.fixture
def scenario():
    return Scenario()


@pytest.fixture
def make_scenario():
    return Scenario
