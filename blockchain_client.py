from typing import Optional
import logging
from web3 import Web3

from abis import ERC20_ABI, MORPHO_BLUE_ABI, ORACLE_ABI, PRE_LIQUIDATION_ABI
from config import config
from models import (
    Market,
    MarketParams,
    MarketSnapshot,
    Position,
    PreLiquidationParams,
    ZERO_ADDRESS,
    market_id_to_bytes,
    market_id_to_hex,
)

logger = logging.getLogger(__name__)


class BlockchainClient:
    """Read-only client for Morpho Blue, its oracles and pre-liquidation contracts"""

    def __init__(self, rpc_url: str = None, morpho_address: str = None, w3: Web3 = None):
        self.ethereum_rpc = rpc_url or config.ETHEREUM_RPC_URL
        self.w3 = w3 or Web3(Web3.HTTPProvider(self.ethereum_rpc))
        self.morpho_address = Web3.to_checksum_address(morpho_address or config.MORPHO_BLUE_ADDRESS)
        self.morpho = self.w3.eth.contract(address=self.morpho_address, abi=MORPHO_BLUE_ABI)

    def is_connected(self) -> bool:
        return self.w3.is_connected()

    def get_market_params(self, market_id) -> MarketParams:
        """Get the immutable parameters of a market"""
        try:
            raw = self.morpho.functions.idToMarketParams(market_id_to_bytes(market_id)).call()
        except Exception as e:
            logger.error(f"Error getting market params for {market_id}: {e}")
            raise
        return MarketParams.from_chain(raw)

    def get_market(self, market_id) -> Market:
        """Get current market totals"""
        try:
            raw = self.morpho.functions.market(market_id_to_bytes(market_id)).call()
        except Exception as e:
            logger.error(f"Error getting market {market_id}: {e}")
            raise
        return Market.from_chain(raw)

    def get_position(self, market_id, borrower: str) -> Position:
        """Get a borrower's position in a market"""
        try:
            raw = self.morpho.functions.position(
                market_id_to_bytes(market_id), Web3.to_checksum_address(borrower)
            ).call()
        except Exception as e:
            logger.error(f"Error getting position of {borrower} in {market_id}: {e}")
            raise
        return Position.from_chain(raw)

    def get_oracle_price(self, oracle: str) -> int:
        """Get collateral price from a Morpho oracle (scaled by 1e36)"""
        try:
            oracle_contract = self.w3.eth.contract(address=Web3.to_checksum_address(oracle), abi=ORACLE_ABI)
            return int(oracle_contract.functions.price().call())
        except Exception as e:
            logger.error(f"Error getting oracle price from {oracle}: {e}")
            raise

    def get_pre_liquidation_params(self, pre_liquidation: Optional[str]) -> Optional[PreLiquidationParams]:
        """Get pre-liquidation risk parameters, None when no contract is configured"""
        if not pre_liquidation or int(pre_liquidation, 16) == 0:
            return None
        try:
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(pre_liquidation), abi=PRE_LIQUIDATION_ABI
            )
            raw = contract.functions.preLiquidationParams().call()
        except Exception as e:
            logger.error(f"Error getting pre-liquidation params from {pre_liquidation}: {e}")
            raise
        return PreLiquidationParams.from_chain(raw)

    def get_token_balance(self, token: str, account: str) -> int:
        """Get ERC-20 balance in raw token units"""
        try:
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
            return int(contract.functions.balanceOf(Web3.to_checksum_address(account)).call())
        except Exception as e:
            logger.error(f"Error getting {token} balance for {account}: {e}")
            raise

    def get_snapshot(self, market_id, borrower: str, pre_liquidation: str = None) -> MarketSnapshot:
        """Read everything needed to evaluate a borrower"""
        params = self.get_market_params(market_id)
        if params.oracle == ZERO_ADDRESS:
            raise ValueError(f"Market {market_id} does not exist")

        market = self.get_market(market_id)
        position = self.get_position(market_id, borrower)
        price = self.get_oracle_price(params.oracle)
        pre_params = self.get_pre_liquidation_params(
            pre_liquidation if pre_liquidation is not None else config.PRE_LIQUIDATION_ADDRESS
        )

        return MarketSnapshot(
            market_id=market_id_to_hex(market_id),
            borrower=Web3.to_checksum_address(borrower),
            params=params,
            market=market,
            position=position,
            price=price,
            pre_liquidation_params=pre_params,
        )

    def validate_ethereum_address(self, address: str) -> bool:
        """Validate Ethereum address format and checksum"""
        if not isinstance(address, str) or not address.startswith("0x") or len(address) != 42:
            return False
        return self.w3.is_address(address)

    def get_gas_price(self) -> int:
        """Get current gas price in wei"""
        try:
            return int(self.w3.eth.gas_price)
        except Exception as e:
            logger.error(f"Error getting gas price: {e}")
            raise
