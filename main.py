from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import asyncio
import logging
import time
from typing import Any, Dict, Optional
from web3 import Web3

from blockchain_client import BlockchainClient
from bot import PreLiquidationBot
from config import config
from exceptions import LiquidationError
from liquidator_contract import LiquidatorContract
from models import market_id_to_bytes

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Morpho Pre-Liquidation Bot API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

bot: Optional[PreLiquidationBot] = None


class PositionCheckResponse(BaseModel):
    market_id: str
    borrower: str
    is_liquidatable: bool
    suggested_repay_amount: int
    borrowed: int
    collateral_value: int
    ltv: int
    threshold: int
    price: int


class ProfitabilityResponse(BaseModel):
    market_id: str
    borrower: str
    repay_amount: int
    seized_amount: int
    flash_loan_fee: int
    net_profit: int
    incentive_factor: int
    ltv: int


@app.on_event("startup")
async def startup_event():
    global bot
    if bot is not None:
        return

    logger.info("Connecting to chain...")
    client = BlockchainClient()
    contract = LiquidatorContract.from_config(client.w3) if config.LIQUIDATOR_ADDRESS else None
    bot = PreLiquidationBot(client, contract=contract)
    logger.info(f"Pre-liquidation bot initialized (liquidator: {contract.address if contract else 'none'}, "
                f"dry run: {bot.dry_run_only})")

    # Start background monitoring
    targets = config.monitor_targets()
    if targets:
        asyncio.create_task(bot.monitor(targets))


def get_bot() -> PreLiquidationBot:
    if bot is None:
        raise HTTPException(status_code=500, detail="System not initialized")
    return bot


def validate_target(market_id: str, borrower: Optional[str] = None) -> None:
    """Reject malformed market ids and borrower addresses"""
    try:
        market_id_to_bytes(market_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid market id")
    if borrower is not None and not Web3.is_address(borrower):
        raise HTTPException(status_code=400, detail="Invalid Ethereum address")


def chain_error(e: Exception) -> HTTPException:
    logger.error(f"Chain read failed: {e}")
    return HTTPException(status_code=502, detail=f"Chain read failed: {e}")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/api/markets/{market_id}")
def get_market(market_id: str, bot: PreLiquidationBot = Depends(get_bot)) -> Dict[str, Any]:
    """Market parameters and current totals"""
    validate_target(market_id)
    try:
        params = bot.client.get_market_params(market_id)
        market = bot.client.get_market(market_id)
    except Exception as e:
        raise chain_error(e)
    return {"market_id": market_id, "params": params.to_dict(), "market": market.to_dict()}


@app.get("/api/positions/{market_id}/{borrower}", response_model=PositionCheckResponse)
def check_position(market_id: str, borrower: str, bot: PreLiquidationBot = Depends(get_bot)):
    """checkPosition: LTV and liquidation eligibility"""
    validate_target(market_id, borrower)
    try:
        snapshot = bot.snapshot(market_id, borrower)
    except Exception as e:
        raise chain_error(e)
    check = bot.evaluator.check_position(snapshot)
    return PositionCheckResponse(market_id=snapshot.market_id, borrower=snapshot.borrower, **check.to_dict())


@app.get("/api/positions/{market_id}/{borrower}/profitability", response_model=ProfitabilityResponse)
def simulate_profitability(market_id: str, borrower: str, bot: PreLiquidationBot = Depends(get_bot)):
    """simulateProfitability: repay, seized value, fee and net profit"""
    validate_target(market_id, borrower)
    try:
        snapshot = bot.snapshot(market_id, borrower)
    except Exception as e:
        raise chain_error(e)
    report = bot.evaluator.simulate_profitability(snapshot)
    return ProfitabilityResponse(market_id=snapshot.market_id, borrower=snapshot.borrower, **report.to_dict())


@app.get("/api/positions/{market_id}/{borrower}/dry-run")
def dry_run(market_id: str, borrower: str, bot: PreLiquidationBot = Depends(get_bot)) -> Dict[str, Any]:
    """Run the whole flash-loan sequence on a simulated ledger"""
    validate_target(market_id, borrower)
    try:
        snapshot = bot.snapshot(market_id, borrower)
    except Exception as e:
        raise chain_error(e)

    try:
        simulation = bot.dry_run(market_id, borrower, snapshot=snapshot)
    except LiquidationError as e:
        return {"success": False, "reason": str(e)}
    return {"success": True, **simulation}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
