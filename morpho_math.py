"""
Morpho Math - Fixed-point helpers matching the Solidity libraries exactly
All values are integers; never mix WAD-scaled ratios with oracle-scaled prices
"""

from exceptions import MathError

WAD = 10**18
ORACLE_PRICE_SCALE = 10**36
BPS = 10_000


class MorphoMath:
    """
    Integer arithmetic mirroring MathLib / SharesMathLib rounding
    """

    @staticmethod
    def mul_div_down(x: int, y: int, d: int) -> int:
        """(x * y) / d rounded down"""
        if d == 0:
            raise MathError("Division by zero in mul_div_down")
        return (x * y) // d

    @staticmethod
    def mul_div_up(x: int, y: int, d: int) -> int:
        """(x * y) / d rounded up"""
        if d == 0:
            raise MathError("Division by zero in mul_div_up")
        return (x * y + (d - 1)) // d

    @staticmethod
    def w_mul_down(x: int, y: int) -> int:
        return MorphoMath.mul_div_down(x, y, WAD)

    @staticmethod
    def w_div_down(x: int, y: int) -> int:
        return MorphoMath.mul_div_down(x, WAD, y)

    @staticmethod
    def w_div_up(x: int, y: int) -> int:
        return MorphoMath.mul_div_up(x, WAD, y)

    @staticmethod
    def to_assets_up(shares: int, total_assets: int, total_shares: int) -> int:
        """
        Convert borrow shares to debt, rounding up in the protocol's favor
        Returns 0 for an empty market instead of faulting
        """
        if total_shares == 0:
            return 0
        return MorphoMath.mul_div_up(shares, total_assets, total_shares)

    @staticmethod
    def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
        """
        Convert an asset amount to borrow shares using the current totals
        Returns 0 for an empty market instead of faulting
        """
        if total_assets == 0:
            return 0
        return MorphoMath.mul_div_down(assets, total_shares, total_assets)

    @staticmethod
    def collateral_value(collateral: int, price: int) -> int:
        """Collateral amount quoted in loan token units (oracle scale divided out)"""
        return MorphoMath.mul_div_down(collateral, price, ORACLE_PRICE_SCALE)

    @staticmethod
    def bps_of(amount: int, bps: int) -> int:
        """amount * bps / 10000, rounded down"""
        return amount * bps // BPS
