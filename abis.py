"""
Minimal ABIs for the contracts the bot talks to
"""


def _params(items):
    return [{"internalType": kind, "name": name, "type": kind} for name, kind in items]


def _function(name, inputs=(), outputs=(), mutability="view"):
    return {
        "inputs": _params(inputs),
        "name": name,
        "outputs": _params(outputs),
        "stateMutability": mutability,
        "type": "function",
    }


MORPHO_BLUE_ABI = [
    _function(
        "idToMarketParams",
        inputs=[("id", "bytes32")],
        outputs=[("loanToken", "address"), ("collateralToken", "address"),
                 ("oracle", "address"), ("irm", "address"), ("lltv", "uint256")],
    ),
    _function(
        "market",
        inputs=[("id", "bytes32")],
        outputs=[("totalSupplyAssets", "uint128"), ("totalSupplyShares", "uint128"),
                 ("totalBorrowAssets", "uint128"), ("totalBorrowShares", "uint128"),
                 ("lastUpdate", "uint128"), ("fee", "uint128")],
    ),
    _function(
        "position",
        inputs=[("id", "bytes32"), ("user", "address")],
        outputs=[("supplyShares", "uint256"), ("borrowShares", "uint128"),
                 ("collateral", "uint128")],
    ),
]

ORACLE_ABI = [
    _function("price", outputs=[("", "uint256")]),
]

PRE_LIQUIDATION_ABI = [
    {
        "inputs": [],
        "name": "preLiquidationParams",
        "outputs": [{
            "components": _params([
                ("preLltv", "uint256"), ("preLCF1", "uint256"), ("preLCF2", "uint256"),
                ("preLIF1", "uint256"), ("preLIF2", "uint256"), ("preLiquidationOracle", "address"),
            ]),
            "internalType": "struct PreLiquidationParams",
            "name": "",
            "type": "tuple",
        }],
        "stateMutability": "view",
        "type": "function",
    },
    _function(
        "preLiquidate",
        inputs=[("borrower", "address"), ("seizedAssets", "uint256"),
                ("repaidShares", "uint256"), ("data", "bytes")],
        outputs=[("", "uint256"), ("", "uint256")],
        mutability="nonpayable",
    ),
]

ERC20_ABI = [
    _function("balanceOf", inputs=[("account", "address")], outputs=[("", "uint256")]),
    _function("allowance", inputs=[("owner", "address"), ("spender", "address")],
              outputs=[("", "uint256")]),
    _function("decimals", outputs=[("", "uint8")]),
    _function("symbol", outputs=[("", "string")]),
    _function("approve", inputs=[("spender", "address"), ("amount", "uint256")],
              outputs=[("", "bool")], mutability="nonpayable"),
    _function("transfer", inputs=[("to", "address"), ("amount", "uint256")],
              outputs=[("", "bool")], mutability="nonpayable"),
]

LIQUIDATOR_ABI = [
    _function("owner", outputs=[("", "address")]),
    _function(
        "checkPosition",
        inputs=[("marketId", "bytes32"), ("borrower", "address")],
        outputs=[("isLiquidatable", "bool"), ("suggestedAmount", "uint256")],
    ),
    _function(
        "simulateProfitability",
        inputs=[("marketId", "bytes32"), ("borrower", "address")],
        outputs=[("repayAmount", "uint256"), ("seizedAmount", "uint256"),
                 ("flashLoanFee", "uint256"), ("netProfit", "uint256")],
    ),
    _function(
        "executePreliquidation",
        inputs=[("marketId", "bytes32"), ("borrower", "address")],
        mutability="nonpayable",
    ),
    _function("recoverToken", inputs=[("token", "address")], mutability="nonpayable"),
]
