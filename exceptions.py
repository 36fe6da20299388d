"""Errors raised by the pre-liquidation bot"""


class LiquidationError(Exception):
    """Base error class for liquidation errors"""
    pass


class MathError(LiquidationError):
    """Error for invalid fixed-point arithmetic (division by zero)"""
    pass


class UnauthorizedError(LiquidationError):
    """Caller is not the owner or not the registered flash-loan pool"""
    pass


class AssetMismatchError(LiquidationError):
    """Flash-loaned asset is not the expected loan token"""
    pass


class NotLiquidatableError(LiquidationError):
    """Position is not eligible for pre-liquidation"""
    pass


class InsufficientBalanceError(LiquidationError):
    """Error for a transfer exceeding balance or allowance"""
    pass


class TransactionRevertedError(LiquidationError):
    """An on-chain transaction or call reverted"""

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class TransactionUnconfirmedError(LiquidationError):
    """A transaction may have been broadcast but its receipt was never seen"""

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message)
        self.tx_hash = tx_hash
