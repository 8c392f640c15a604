"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like USDC amounts and settlement
transaction ids, ensuring consistency across the payment and report layers.
"""

from decimal import Decimal
from typing import Any, NewType

# === Payload Context ===
# Remote payloads are opaque JSON; no field of them is typed here.
JSONDocument = Any

# === Payment Context ===
UsdcAmount = NewType("UsdcAmount", Decimal)    # Human units (atomic amount / 10^6)
SettlementTx = NewType("SettlementTx", str)    # On-chain transaction id of a settlement

USDC_DECIMALS = 6
