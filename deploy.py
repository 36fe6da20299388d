#!/usr/bin/env python3
"""
Deploy the liquidator contract when none is configured, then log diagnostics

Usage:
    python deploy.py [market_id] [borrower]
"""

import logging
import os
import sys
from typing import Optional

from eth_account import Account

from blockchain_client import BlockchainClient
from bot import PreLiquidationBot
from config import config
from liquidator_contract import LiquidatorContract
from models import ZERO_ADDRESS

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("deploy")


def deploy_liquidator(client: BlockchainClient, market_id: str) -> Optional[LiquidatorContract]:
    """Use LIQUIDATOR_ADDRESS if set, otherwise deploy from LIQUIDATOR_ARTIFACT"""
    if config.LIQUIDATOR_ADDRESS:
        return LiquidatorContract.from_config(client.w3)

    if not config.PRIVATE_KEY:
        logger.info("No PRIVATE_KEY and no LIQUIDATOR_ADDRESS, running read-only diagnostics")
        return None
    if not os.path.exists(config.LIQUIDATOR_ARTIFACT):
        logger.warning(f"Artifact {config.LIQUIDATOR_ARTIFACT} not found, skipping deployment")
        return None

    account = Account.from_key(config.PRIVATE_KEY)
    loan_token = config.LOAN_TOKEN_ADDRESS or client.get_market_params(market_id).loan_token
    constructor_args = [
        client.morpho_address,
        config.FLASH_LOAN_POOL_ADDRESS,
        config.PRE_LIQUIDATION_ADDRESS or ZERO_ADDRESS,
        loan_token,
    ]
    logger.info(f"Deploying liquidator from {account.address} with args {constructor_args}")
    return LiquidatorContract.deploy(client.w3, account, config.LIQUIDATOR_ARTIFACT, constructor_args)


def log_market(client: BlockchainClient, market_id: str):
    params = client.get_market_params(market_id)
    market = client.get_market(market_id)

    logger.info(f"Market {market_id}")
    logger.info(f"  Loan token:        {params.loan_token}")
    logger.info(f"  Collateral token:  {params.collateral_token}")
    logger.info(f"  Oracle:            {params.oracle}")
    logger.info(f"  IRM:               {params.irm}")
    logger.info(f"  LLTV:              {params.lltv / 1e16:.2f}%")
    logger.info(f"  Total supply:      {market.total_supply_assets} ({market.total_supply_shares} shares)")
    logger.info(f"  Total borrow:      {market.total_borrow_assets} ({market.total_borrow_shares} shares)")
    logger.info(f"  Last update:       {market.last_update}")


def diagnose(bot: PreLiquidationBot, market_id: str, borrower: str):
    """Evaluate one borrower; failures are logged, never fatal"""
    try:
        snapshot, check, report = bot.evaluate(market_id, borrower)
    except Exception as e:
        logger.error(f"Position evaluation failed: {e}")
        return

    position = snapshot.position
    logger.info(f"Borrower {snapshot.borrower}")
    logger.info(f"  Borrow shares:     {position.borrow_shares}")
    logger.info(f"  Collateral:        {position.collateral}")
    logger.info(f"  Oracle price:      {snapshot.price}")
    logger.info(f"  Borrowed:          {check.borrowed}")
    logger.info(f"  Collateral value:  {check.collateral_value}")
    logger.info(f"  LTV:               {check.ltv / 1e16:.2f}% (threshold {check.threshold / 1e16:.2f}%)")
    logger.info(f"  Liquidatable:      {check.is_liquidatable}")
    logger.info(f"  Suggested repay:   {check.suggested_repay_amount}")
    logger.info(f"  Seized (value):    {report.seized_amount}")
    logger.info(f"  Flash loan fee:    {report.flash_loan_fee}")
    logger.info(f"  Net profit:        {report.net_profit}")

    if bot.contract is not None:
        try:
            verification = bot.evaluator.verify_against_contract(
                check, report,
                bot.contract.check_position(market_id, borrower),
                bot.contract.simulate_profitability(market_id, borrower),
            )
            logger.info(f"  Matches contract:  {verification['calculations_match']}")
        except Exception as e:
            logger.error(f"Contract view call failed: {e}")

    if check.is_liquidatable:
        try:
            simulation = bot.dry_run(market_id, borrower, snapshot=snapshot)
            logger.info(f"  Dry run profit:    {simulation['profit']}")
        except Exception as e:
            logger.error(f"Dry run reverted: {e}")


def main():
    market_id = sys.argv[1] if len(sys.argv) > 1 else config.MARKET_ID
    borrower = sys.argv[2] if len(sys.argv) > 2 else config.BORROWER
    if not market_id:
        print("Usage: python deploy.py <market_id> [borrower]  (or set MARKET_ID / BORROWER)")
        sys.exit(1)

    client = BlockchainClient()
    if not client.is_connected():
        logger.error(f"Failed to connect to {client.ethereum_rpc}")
        sys.exit(1)

    contract = deploy_liquidator(client, market_id)
    if contract is not None:
        logger.info(f"Liquidator: {contract.address}")

    log_market(client, market_id)

    if borrower:
        diagnose(PreLiquidationBot(client, contract=contract), market_id, borrower)


if __name__ == "__main__":
    main()
