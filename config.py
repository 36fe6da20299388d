import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:

    ETHEREUM_RPC_URL = os.getenv("ETHEREUM_RPC_URL", "http://127.0.0.1:8545")
    PRIVATE_KEY = os.getenv("PRIVATE_KEY")

    # Morpho Blue singleton (Ethereum mainnet)
    MORPHO_BLUE_ADDRESS = os.getenv("MORPHO_BLUE_ADDRESS", "0xBBBBBbbBBb9cC5e90e3b3Af64bdAF62C37EEFFCb")
    # Aave v3 pool, used as the flash-loan provider
    FLASH_LOAN_POOL_ADDRESS = os.getenv("FLASH_LOAN_POOL_ADDRESS", "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2")
    PRE_LIQUIDATION_ADDRESS = os.getenv("PRE_LIQUIDATION_ADDRESS")
    LIQUIDATOR_ADDRESS = os.getenv("LIQUIDATOR_ADDRESS")
    LIQUIDATOR_ARTIFACT = os.getenv("LIQUIDATOR_ARTIFACT", "out/MorphoPreLiquidator.sol/MorphoPreLiquidator.json")
    LOAN_TOKEN_ADDRESS = os.getenv("LOAN_TOKEN_ADDRESS")

    # Default target for the diagnostic script
    MARKET_ID = os.getenv("MARKET_ID")
    BORROWER = os.getenv("BORROWER")

    # Risk parameters (WAD = 1e18)
    LIQUIDATION_THRESHOLD = int(os.getenv("LIQUIDATION_THRESHOLD", str(85 * 10**16)))  # 85%
    USE_MARKET_LLTV = _env_bool("USE_MARKET_LLTV", False)
    DEFAULT_PRE_LLTV = 70 * 10**16           # 70%
    DEFAULT_PRE_LIF_1 = 105 * 10**16         # 105%
    DEFAULT_PRE_LIF_2 = 10825 * 10**14       # 108.25%
    REPAY_FRACTION_BPS = 1927                # ~19.27% of the debt
    FLASH_LOAN_FEE_BPS = 9                   # 0.09%

    # Bot settings
    MIN_PROFIT = int(os.getenv("MIN_PROFIT", "0"))  # loan token units
    DRY_RUN = _env_bool("DRY_RUN", True)
    POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "30"))
    GAS_LIMIT = int(os.getenv("GAS_LIMIT", "1500000"))
    # Comma separated "<market id>:<borrower>" pairs polled by the API process
    MONITOR_TARGETS = os.getenv("MONITOR_TARGETS", "")

    def monitor_targets(self):
        targets = []
        for item in self.MONITOR_TARGETS.split(","):
            item = item.strip()
            if item:
                market_id, borrower = item.split(":")
                targets.append((market_id.strip(), borrower.strip()))
        return targets


config = Config()
