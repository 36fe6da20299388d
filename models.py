"""
Data model for Morpho Blue markets, positions and evaluation results
"""

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional, Sequence

from eth_abi import encode
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def market_id_to_bytes(market_id) -> bytes:
    """Normalize a market id (hex string or bytes) to its 32-byte form"""
    if isinstance(market_id, (bytes, bytearray)):
        raw = bytes(market_id)
    else:
        text = str(market_id)
        if text.startswith("0x"):
            text = text[2:]
        raw = bytes.fromhex(text)
    if len(raw) != 32:
        raise ValueError(f"Market id must be 32 bytes, got {len(raw)}")
    return raw


def market_id_to_hex(market_id) -> str:
    return "0x" + market_id_to_bytes(market_id).hex()


@dataclass(frozen=True)
class MarketParams:
    """
    Immutable parameters identifying a Morpho Blue market
    """

    loan_token: str
    collateral_token: str
    oracle: str
    irm: str
    lltv: int  # WAD

    def id(self) -> str:
        """Market id: keccak256(abi.encode(marketParams))"""
        encoded = encode(
            ["address", "address", "address", "address", "uint256"],
            [self.loan_token, self.collateral_token, self.oracle, self.irm, self.lltv],
        )
        return "0x" + Web3.keccak(encoded).hex().removeprefix("0x")

    @classmethod
    def from_chain(cls, raw: Sequence) -> "MarketParams":
        return cls(
            loan_token=raw[0],
            collateral_token=raw[1],
            oracle=raw[2],
            irm=raw[3],
            lltv=int(raw[4]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Market:
    """
    Aggregate market state, owned by the lending protocol
    """

    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    fee: int = 0

    @classmethod
    def from_chain(cls, raw: Sequence) -> "Market":
        return cls(*(int(value) for value in raw[:6]))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Position:
    """
    Borrower position; shares are proportional claims, collateral is absolute
    """

    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0

    @classmethod
    def from_chain(cls, raw: Sequence) -> "Position":
        return cls(int(raw[0]), int(raw[1]), int(raw[2]))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PreLiquidationParams:
    """
    Risk configuration of a pre-liquidation contract (all WAD)
    """

    pre_lltv: int
    pre_lif_1: int
    pre_lif_2: int
    pre_lcf_1: int = 0
    pre_lcf_2: int = 0
    oracle: str = ZERO_ADDRESS

    @classmethod
    def from_chain(cls, raw: Sequence) -> "PreLiquidationParams":
        # preLltv, preLCF1, preLCF2, preLIF1, preLIF2, preLiquidationOracle
        return cls(
            pre_lltv=int(raw[0]),
            pre_lcf_1=int(raw[1]),
            pre_lcf_2=int(raw[2]),
            pre_lif_1=int(raw[3]),
            pre_lif_2=int(raw[4]),
            oracle=raw[5],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MarketSnapshot:
    """
    Everything needed to evaluate one borrower, read at a single point in time
    """

    market_id: str
    borrower: str
    params: MarketParams
    market: Market
    position: Position
    price: int  # ORACLE_PRICE_SCALE
    pre_liquidation_params: Optional[PreLiquidationParams] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "market_id": self.market_id,
            "borrower": self.borrower,
            "params": self.params.to_dict(),
            "market": self.market.to_dict(),
            "position": self.position.to_dict(),
            "price": self.price,
            "pre_liquidation_params": (
                self.pre_liquidation_params.to_dict() if self.pre_liquidation_params else None
            ),
        }


@dataclass
class PositionCheck:
    """Result of checkPosition"""

    is_liquidatable: bool
    suggested_repay_amount: int
    borrowed: int = 0
    collateral_value: int = 0
    ltv: int = 0
    threshold: int = 0
    price: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProfitabilityReport:
    """Result of simulateProfitability"""

    repay_amount: int = 0
    seized_amount: int = 0
    flash_loan_fee: int = 0
    net_profit: int = 0
    incentive_factor: int = 0
    ltv: int = 0

    @property
    def is_profitable(self) -> bool:
        return self.net_profit > 0

    def as_tuple(self):
        return (self.repay_amount, self.seized_amount, self.flash_loan_fee, self.net_profit)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExecutionResult:
    """Outcome of one bot execution attempt"""

    market_id: str
    borrower: str
    executed: bool
    reason: str
    sent: bool = False  # a transaction was submitted, whatever its outcome
    check: Optional[PositionCheck] = None
    profitability: Optional[ProfitabilityReport] = None
    simulated_profit: Optional[int] = None
    tx_hash: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
