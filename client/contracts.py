"""
Minimal contract ABIs and network constants.
"""

from __future__ import annotations

# Uniswap-V2-style pair: reserves + token addresses
PAIR_ABI = [
    {
        "name": "getReserves",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "token1",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

# Single-transaction two-venue arbitrage executor.
# Buys on sourcePair, sells on targetPair, reverts if profit < minProfit.
ARB_EXECUTOR_ABI = [
    {
        "name": "executeArbitrage",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "sourcePair", "type": "address"},
            {"name": "targetPair", "type": "address"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "minProfit", "type": "uint256"},
        ],
        "outputs": [{"name": "profit", "type": "uint256"}],
    },
    {
        "name": "ArbitrageExecuted",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "sourcePair", "type": "address", "indexed": True},
            {"name": "targetPair", "type": "address", "indexed": True},
            {"name": "profit", "type": "uint256", "indexed": False},
        ],
    },
]

NETWORKS = {
    84532: {"name": "Base Sepolia", "explorer": "https://sepolia.basescan.org"},
    8453: {"name": "Base", "explorer": "https://basescan.org"},
    252: {"name": "Fraxtal", "explorer": "https://fraxscan.com"},
}


def explorer_tx_url(chain_id: int, tx_hash: str) -> str:
    """Block explorer link for a transaction, or empty string for unknown chains."""
    network = NETWORKS.get(chain_id)
    if not network:
        return ""
    return f"{network['explorer']}/tx/{tx_hash}"
