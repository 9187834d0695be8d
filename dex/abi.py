"""
Minimal ABIs for the on-chain reads the quote adapters perform.
"""

# Uniswap V3 QuoterV1: positional arguments, single return value
QUOTER_V1_ABI = [
    {
        "inputs": [
            {"name": "tokenIn", "type": "address"},
            {"name": "tokenOut", "type": "address"},
            {"name": "fee", "type": "uint24"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "sqrtPriceLimitX96", "type": "uint160"},
        ],
        "name": "quoteExactInputSingle",
        "outputs": [{"name": "amountOut", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Uniswap V3 QuoterV2: struct argument, tuple return
QUOTER_V2_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "quoteExactInputSingle",
        "outputs": [
            {"name": "amountOut", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

UNISWAP_V3_FACTORY_ABI = [
    {
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "name": "getPool",
        "outputs": [{"name": "pool", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Uniswap V2 style routers (Sushiswap, BaseSwap, Camelot...)
UNISWAP_V2_ROUTER_ABI = [
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Solidly style routers (Aerodrome, Velodrome): best of stable/volatile pool
SOLIDLY_ROUTER_ABI = [
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "tokenIn", "type": "address"},
            {"name": "tokenOut", "type": "address"},
        ],
        "name": "getAmountOut",
        "outputs": [
            {"name": "amount", "type": "uint256"},
            {"name": "stable", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

CURVE_ROUTER_ABI = [
    {
        "inputs": [
            {"name": "_from", "type": "address"},
            {"name": "_to", "type": "address"},
            {"name": "_amount", "type": "uint256"},
        ],
        "name": "get_best_rate",
        "outputs": [
            {"name": "pool", "type": "address"},
            {"name": "amountOut", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

BALANCER_VAULT_ABI = [
    {
        "inputs": [
            {"name": "kind", "type": "uint8"},
            {
                "components": [
                    {"name": "poolId", "type": "bytes32"},
                    {"name": "assetInIndex", "type": "uint256"},
                    {"name": "assetOutIndex", "type": "uint256"},
                    {"name": "amount", "type": "uint256"},
                    {"name": "userData", "type": "bytes"},
                ],
                "name": "swaps",
                "type": "tuple[]",
            },
            {"name": "assets", "type": "address[]"},
            {
                "components": [
                    {"name": "sender", "type": "address"},
                    {"name": "fromInternalBalance", "type": "bool"},
                    {"name": "recipient", "type": "address"},
                    {"name": "toInternalBalance", "type": "bool"},
                ],
                "name": "funds",
                "type": "tuple",
            },
        ],
        "name": "queryBatchSwap",
        "outputs": [{"name": "assetDeltas", "type": "int256[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Settlement contract: only the entry point used for gas estimation
SETTLEMENT_ABI = [
    {
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "minProfit", "type": "uint256"},
        ],
        "name": "executeArbitrage",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
