"""Domain models and rules for the market-data engine.

Holdings, quotes and exchange-rate records live here as in-memory models,
together with the USD normalization heuristic and the price freeze state
machine. They are independent from persistence and HTTP so the pricing logic
can be tested without a database or network.
"""

__all__ = [
    "assets",
    "errors",
    "ledger",
    "market",
    "normalization",
    "valuation",
]
