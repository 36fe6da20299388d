"""
Simulated Ledger - In-memory stand-in for the chain during dry runs
Reproduces the token, Morpho, oracle, pre-liquidation and flash-loan semantics
the liquidator depends on, with snapshot/restore in place of an automatic revert
"""

from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple
import copy
import logging

from exceptions import InsufficientBalanceError, LiquidationError, TransactionRevertedError
from models import (
    Market,
    MarketParams,
    MarketSnapshot,
    Position,
    PreLiquidationParams,
    market_id_to_hex,
)
from morpho_math import MorphoMath, ORACLE_PRICE_SCALE, WAD

logger = logging.getLogger(__name__)


def _key(address: str) -> str:
    return address.lower()


class _Component:
    """Ledger component whose mutable state lives in self.state"""

    def __init__(self, address: str):
        self.address = address
        self.state: Dict = {}


class SimulatedToken(_Component):
    """
    ERC-20 token with balances and allowances
    """

    def __init__(self, address: str, symbol: str = "TKN"):
        super().__init__(address)
        self.symbol = symbol
        self.state = {"balances": {}, "allowances": {}}

    def balance_of(self, account: str) -> int:
        return self.state["balances"].get(_key(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.state["allowances"].get((_key(owner), _key(spender)), 0)

    def mint(self, to: str, amount: int):
        self.state["balances"][_key(to)] = self.balance_of(to) + amount

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self.state["allowances"][(_key(owner), _key(spender))] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: transfer amount {amount} exceeds balance {balance} of {sender}"
            )
        self.state["balances"][_key(sender)] = balance - amount
        self.state["balances"][_key(to)] = self.balance_of(to) + amount
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: amount {amount} exceeds allowance {allowed} of {spender}"
            )
        self.transfer(owner, to, amount)
        self.state["allowances"][(_key(owner), _key(spender))] = allowed - amount
        return True


class SimulatedOracle(_Component):

    def __init__(self, address: str, price: int):
        super().__init__(address)
        self.state = {"price": price}

    def price(self) -> int:
        return self.state["price"]

    def set_price(self, price: int):
        self.state["price"] = price


class SimulatedMorpho(_Component):
    """
    Morpho Blue markets and positions (no interest accrual)
    """

    def __init__(self, address: str):
        super().__init__(address)
        self.state = {"params": {}, "markets": {}, "positions": {}}

    def create_market(self, params: MarketParams, market: Market = None,
                      market_id: str = None) -> str:
        market_id = market_id_to_hex(market_id) if market_id else params.id()
        self.state["params"][market_id] = params
        self.state["markets"][market_id] = market or Market()
        return market_id

    def set_position(self, market_id, borrower: str, position: Position):
        self.state["positions"][(market_id_to_hex(market_id), _key(borrower))] = position

    def get_market_params(self, market_id) -> MarketParams:
        params = self.state["params"].get(market_id_to_hex(market_id))
        if params is None:
            raise LiquidationError(f"Market {market_id} not created")
        return params

    def get_market(self, market_id) -> Market:
        return copy.copy(self.state["markets"][market_id_to_hex(market_id)])

    def get_position(self, market_id, borrower: str) -> Position:
        position = self.state["positions"].get((market_id_to_hex(market_id), _key(borrower)))
        return copy.copy(position) if position else Position()

    def repay_and_seize(self, market_id, borrower: str, repaid_shares: int,
                        seized_assets: int) -> int:
        """Burn borrow shares and release collateral; returns repaid assets"""
        market_id = market_id_to_hex(market_id)
        market = self.state["markets"][market_id]
        position = self.state["positions"][(market_id, _key(borrower))]

        if repaid_shares > position.borrow_shares:
            raise TransactionRevertedError("Morpho: repaid shares exceed borrow shares")
        if seized_assets > position.collateral:
            raise TransactionRevertedError("Morpho: insufficient collateral")

        repaid_assets = MorphoMath.to_assets_up(
            repaid_shares, market.total_borrow_assets, market.total_borrow_shares
        )
        position.borrow_shares -= repaid_shares
        position.collateral -= seized_assets
        market.total_borrow_shares -= repaid_shares
        market.total_borrow_assets = max(0, market.total_borrow_assets - repaid_assets)
        return repaid_assets


class SimulatedPreLiquidation(_Component):
    """
    Pre-liquidation contract bound to one market
    """

    def __init__(self, address: str, ledger: "SimulatedLedger", market_id,
                 params: PreLiquidationParams):
        super().__init__(address)
        self.ledger = ledger
        self.market_id = market_id_to_hex(market_id)
        self.params = params

    def pre_liquidate(self, sender: str, borrower: str, seized_assets: int,
                      repaid_shares: int, data: bytes = b"") -> Tuple[int, int]:
        if (seized_assets == 0) == (repaid_shares == 0):
            raise TransactionRevertedError("PreLiquidation: inconsistent input")

        morpho = self.ledger.morpho
        market_params = morpho.get_market_params(self.market_id)
        market = morpho.get_market(self.market_id)
        position = morpho.get_position(self.market_id, borrower)
        oracle = market_params.oracle if int(self.params.oracle, 16) == 0 else self.params.oracle
        price = self.ledger.get_oracle_price(oracle)

        collateral_quoted = MorphoMath.collateral_value(position.collateral, price)
        borrowed = MorphoMath.to_assets_up(
            position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares
        )
        if borrowed == 0 or collateral_quoted == 0:
            raise TransactionRevertedError("PreLiquidation: not pre-liquidatable position")

        ltv = MorphoMath.w_div_up(borrowed, collateral_quoted)
        if ltv <= self.params.pre_lltv:
            raise TransactionRevertedError("PreLiquidation: not pre-liquidatable position")
        if ltv > market_params.lltv:
            raise TransactionRevertedError("PreLiquidation: liquidatable position")

        quotient = MorphoMath.w_div_down(ltv - self.params.pre_lltv,
                                         market_params.lltv - self.params.pre_lltv)
        pre_lif = MorphoMath.w_mul_down(quotient, self.params.pre_lif_2 - self.params.pre_lif_1) \
            + self.params.pre_lif_1

        if seized_assets > 0:
            seized_quoted = MorphoMath.mul_div_up(seized_assets, price, ORACLE_PRICE_SCALE)
            repaid_shares = MorphoMath.to_shares_down(
                MorphoMath.w_div_up(seized_quoted, pre_lif),
                market.total_borrow_assets, market.total_borrow_shares,
            )
        else:
            repaid_assets = MorphoMath.to_assets_up(
                repaid_shares, market.total_borrow_assets, market.total_borrow_shares
            )
            seized_assets = MorphoMath.mul_div_down(
                MorphoMath.w_mul_down(repaid_assets, pre_lif), ORACLE_PRICE_SCALE, price
            )

        if self.params.pre_lcf_2 > 0:
            pre_lcf = MorphoMath.w_mul_down(quotient, self.params.pre_lcf_2 - self.params.pre_lcf_1) \
                + self.params.pre_lcf_1
            repayable_shares = MorphoMath.w_mul_down(position.borrow_shares, min(pre_lcf, WAD))
            if repaid_shares > repayable_shares:
                raise TransactionRevertedError("PreLiquidation: pre-liquidation too large")

        repaid_assets = morpho.repay_and_seize(self.market_id, borrower, repaid_shares, seized_assets)

        loan_token = self.ledger.token(market_params.loan_token)
        collateral_token = self.ledger.token(market_params.collateral_token)
        loan_token.transfer_from(self.address, sender, morpho.address, repaid_assets)
        collateral_token.transfer(morpho.address, sender, seized_assets)

        logger.info(f"Pre-liquidated {borrower}: repaid {repaid_assets} ({repaid_shares} shares), "
                    f"seized {seized_assets} collateral, LIF {pre_lif}")
        return seized_assets, repaid_assets


class SimulatedFlashLoanPool(_Component):
    """
    Flash-loan pool with flashLoanSimple semantics
    """

    def __init__(self, address: str, ledger: "SimulatedLedger", premium_bps: int = 9):
        super().__init__(address)
        self.ledger = ledger
        self.premium_bps = premium_bps

    def flash_loan_simple(self, sender: str, receiver, asset: str, amount: int,
                          params: bytes, referral_code: int = 0):
        token = self.ledger.token(asset)
        premium = MorphoMath.bps_of(amount, self.premium_bps)

        token.transfer(self.address, receiver.address, amount)
        if not receiver.execute_operation(self.address, asset, amount, premium, sender, params):
            raise TransactionRevertedError("FlashLoan: invalid flash loan executor return")
        token.transfer_from(self.address, receiver.address, self.address, amount + premium)
        return premium


class SimulatedLedger:
    """
    Registry of simulated components, exposing the chain client's read API
    """

    MORPHO_ADDRESS = "0x00000000000000000000000000000000000B1DE0"

    def __init__(self, morpho_address: str = None):
        self.morpho = SimulatedMorpho(morpho_address or self.MORPHO_ADDRESS)
        self.tokens: Dict[str, SimulatedToken] = {}
        self.oracles: Dict[str, SimulatedOracle] = {}
        self.pre_liquidations: Dict[str, SimulatedPreLiquidation] = {}
        self.flash_loan_pools: Dict[str, SimulatedFlashLoanPool] = {}
        self.components: List[_Component] = [self.morpho]

    def _register(self, component: _Component):
        self.components.append(component)
        return component

    def add_token(self, address: str, symbol: str = "TKN") -> SimulatedToken:
        token = self._register(SimulatedToken(address, symbol))
        self.tokens[_key(address)] = token
        return token

    def token(self, address) -> SimulatedToken:
        if isinstance(address, SimulatedToken):
            return address
        token = self.tokens.get(_key(address))
        if token is None:
            raise LiquidationError(f"Unknown token {address}")
        return token

    def add_oracle(self, address: str, price: int) -> SimulatedOracle:
        oracle = self._register(SimulatedOracle(address, price))
        self.oracles[_key(address)] = oracle
        return oracle

    def add_pre_liquidation(self, address: str, market_id,
                            params: PreLiquidationParams) -> SimulatedPreLiquidation:
        pre_liquidation = self._register(SimulatedPreLiquidation(address, self, market_id, params))
        self.pre_liquidations[_key(address)] = pre_liquidation
        return pre_liquidation

    def add_flash_loan_pool(self, address: str, premium_bps: int = 9) -> SimulatedFlashLoanPool:
        pool = self._register(SimulatedFlashLoanPool(address, self, premium_bps))
        self.flash_loan_pools[_key(address)] = pool
        return pool

    @contextmanager
    def atomic(self):
        """
        All-or-nothing block: on any exception every component state is restored
        """
        saved = [copy.deepcopy(component.state) for component in self.components]
        try:
            yield self
        except Exception:
            for component, state in zip(self.components, saved):
                component.state = state
            logger.info("Ledger rolled back")
            raise

    # Read API, same shape as BlockchainClient

    def get_market_params(self, market_id) -> MarketParams:
        return self.morpho.get_market_params(market_id)

    def get_market(self, market_id) -> Market:
        return self.morpho.get_market(market_id)

    def get_position(self, market_id, borrower: str) -> Position:
        return self.morpho.get_position(market_id, borrower)

    def get_oracle_price(self, oracle: str) -> int:
        source = self.oracles.get(_key(oracle))
        if source is None:
            raise LiquidationError(f"Unknown oracle {oracle}")
        return source.price()

    def get_pre_liquidation_params(self, pre_liquidation: Optional[str]) -> Optional[PreLiquidationParams]:
        if not pre_liquidation:
            return None
        contract = self.pre_liquidations.get(_key(pre_liquidation))
        return contract.params if contract else None

    def get_token_balance(self, token: str, account: str) -> int:
        return self.token(token).balance_of(account)

    def get_snapshot(self, market_id, borrower: str, pre_liquidation: str = None) -> MarketSnapshot:
        params = self.get_market_params(market_id)
        return MarketSnapshot(
            market_id=market_id_to_hex(market_id),
            borrower=borrower,
            params=params,
            market=self.get_market(market_id),
            position=self.get_position(market_id, borrower),
            price=self.get_oracle_price(params.oracle),
            pre_liquidation_params=self.get_pre_liquidation_params(pre_liquidation),
        )

    @classmethod
    def from_snapshot(cls, snapshot: MarketSnapshot, pool_address: str,
                      pre_liquidation_address: str, pre_liquidation_params: PreLiquidationParams,
                      pool_liquidity: int, balances: Dict[str, Dict[str, int]] = None,
                      premium_bps: int = 9) -> "SimulatedLedger":
        """
        Seed a ledger from a live snapshot so one borrower can be dry-run
        balances maps token address -> {account: amount} for extra funding
        """
        ledger = cls()
        params = snapshot.params
        loan_token = ledger.add_token(params.loan_token, "LOAN")
        if _key(params.collateral_token) == _key(params.loan_token):
            collateral_token = loan_token
        else:
            collateral_token = ledger.add_token(params.collateral_token, "COLLATERAL")
        ledger.add_oracle(params.oracle, snapshot.price)

        ledger.morpho.create_market(params, copy.copy(snapshot.market), market_id=snapshot.market_id)
        ledger.morpho.set_position(snapshot.market_id, snapshot.borrower, copy.copy(snapshot.position))
        collateral_token.mint(ledger.morpho.address, snapshot.position.collateral)

        ledger.add_pre_liquidation(pre_liquidation_address, snapshot.market_id, pre_liquidation_params)
        pool = ledger.add_flash_loan_pool(pool_address, premium_bps)
        loan_token.mint(pool.address, pool_liquidity)

        for token, accounts in (balances or {}).items():
            for account, amount in accounts.items():
                ledger.token(token).mint(account, amount)
        return ledger
