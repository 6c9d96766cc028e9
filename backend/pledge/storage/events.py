"""Settlement event ledger in data/settlements/{date}.jsonl.

Downstream payout processing reads these files; each line is one
``SettlementEvent``. Event ids are stable per bet, so a redelivered event can
be recognised by its id.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from pledge.bets.models import SettlementEvent

logger = logging.getLogger(__name__)


class SettlementEventSink(Protocol):
    """Receives settlement events for refund/charity payout."""

    def publish(self, event: SettlementEvent) -> None: ...


class JsonlSettlementSink:
    """Appends settlement events to a date-partitioned JSONL ledger."""

    def __init__(self, data_dir: Path):
        self.settlements_dir = Path(data_dir) / "settlements"

    def _ledger_path(self, event: SettlementEvent) -> Path:
        date_str = event.settled_at.strftime("%Y-%m-%d")
        return self.settlements_dir / f"{date_str}.jsonl"

    def publish(self, event: SettlementEvent) -> None:
        """Append one event as a single JSON line."""
        self.settlements_dir.mkdir(parents=True, exist_ok=True)
        ledger_path = self._ledger_path(event)

        try:
            with open(ledger_path, "a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")

            logger.info(
                f"Logged settlement {event.id} ({event.disposition} "
                f"${event.stake_amount}) to {ledger_path}"
            )

        except OSError as e:
            logger.error(f"Failed to log settlement {event.id}: {e}")
            raise

    def read_events(self) -> list[SettlementEvent]:
        """All logged events, oldest ledger first."""
        if not self.settlements_dir.exists():
            return []

        events: list[SettlementEvent] = []
        for ledger_path in sorted(self.settlements_dir.glob("*.jsonl")):
            for line in ledger_path.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    events.append(SettlementEvent.model_validate(json.loads(line)))
        return events
