"""Storage layer for Pledge - file-based persistence.

This package provides:
- Bet records (one YAML document per bet under data/bets/, versioned writes)
- Settlement event ledger (JSONL under data/settlements/)
"""

from .bets import BetStore, ConcurrentModificationError
from .events import JsonlSettlementSink, SettlementEventSink

__all__ = [
    "BetStore",
    "ConcurrentModificationError",
    "JsonlSettlementSink",
    "SettlementEventSink",
]
