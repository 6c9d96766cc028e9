"""Bet records persisted as one YAML document per bet in data/bets/.

Writes go through a tempfile -> rename so a crash mid-write leaves the
previous document intact. Every write carries the version the caller read;
a mismatch means another writer got there first. The read, version check and
write run under an OS file lock per bet, so writers in other processes
sharing the data directory are serialised too.
"""

import logging
import re
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import yaml
from filelock import FileLock, Timeout
from pydantic import ValidationError

from pledge.bets.models import Bet, BetPhase, utcnow

logger = logging.getLogger(__name__)

_BET_ID_PATTERN = re.compile(r"^bet_[A-Za-z0-9]{1,64}$")


class ConcurrentModificationError(Exception):
    """Stored bet changed (or vanished) since the caller read it."""

    def __init__(self, bet_id: str, expected: int | None, found: int | None):
        super().__init__(
            f"Bet {bet_id} version conflict: expected {expected}, found {found}"
        )
        self.bet_id = bet_id
        self.expected = expected
        self.found = found


class BetStore:
    """File-backed bet repository."""

    def __init__(self, data_dir: Path, lock_timeout_seconds: float = 10.0):
        self.bets_dir = Path(data_dir) / "bets"
        self.bets_dir.mkdir(parents=True, exist_ok=True)
        self.locks_dir = self.bets_dir / ".locks"
        self.locks_dir.mkdir(exist_ok=True)
        self.lock_timeout_seconds = lock_timeout_seconds

    def _path(self, bet_id: str) -> Path | None:
        if not _BET_ID_PATTERN.match(bet_id):
            return None
        return self.bets_dir / f"{bet_id}.yaml"

    @contextmanager
    def _bet_lock(self, bet_id: str, expected_version: int | None) -> Iterator[None]:
        if not _BET_ID_PATTERN.match(bet_id):
            raise ValueError(f"Invalid bet id: {bet_id}")
        lock = FileLock(
            self.locks_dir / f"{bet_id}.lock", timeout=self.lock_timeout_seconds
        )
        try:
            with lock:
                yield
        except Timeout as e:
            logger.warning(f"Timed out waiting for lock on bet {bet_id}")
            raise ConcurrentModificationError(bet_id, expected_version, None) from e

    def _read(self, path: Path) -> Bet:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
        if not raw_data:
            raise ValueError(f"Empty bet file: {path}")
        return Bet.model_validate(raw_data)

    def _write(self, bet: Bet) -> None:
        path = self._path(bet.id)
        if path is None:
            raise ValueError(f"Invalid bet id: {bet.id}")

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.bets_dir,
                delete=False,
                suffix=".yaml",
                encoding="utf-8",
            ) as temp_file:
                yaml.dump(
                    bet.model_dump(mode="json"),
                    temp_file,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                )
                temp_path = Path(temp_file.name)

            shutil.move(str(temp_path), str(path))
            logger.debug(f"Saved bet {bet.id} (v{bet.version}) to {path}")

        except Exception as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to save bet {bet.id}: {e}")
            raise

    def get(self, bet_id: str) -> Bet | None:
        """Load a bet, or None if it does not exist."""
        path = self._path(bet_id)
        if path is None or not path.exists():
            return None
        try:
            return self._read(path)
        except (yaml.YAMLError, ValidationError, ValueError) as e:
            logger.error(f"Corrupted bet file {path}: {e}")
            raise

    def list_bets(
        self,
        owner_id: str | None = None,
        phase: BetPhase | None = None,
    ) -> list[Bet]:
        """All stored bets, newest first, optionally filtered."""
        bets: list[Bet] = []
        for path in self.bets_dir.glob("bet_*.yaml"):
            try:
                bet = self._read(path)
            except (yaml.YAMLError, ValidationError, ValueError) as e:
                logger.warning(f"Skipping unreadable bet file {path}: {e}")
                continue
            if owner_id is not None and bet.owner_id != owner_id:
                continue
            if phase is not None and bet.phase != phase:
                continue
            bets.append(bet)

        bets.sort(key=lambda b: (b.created_at, b.id), reverse=True)
        return bets

    def create(self, bet: Bet) -> Bet:
        """Persist a new bet at version 1."""
        with self._bet_lock(bet.id, None):
            path = self._path(bet.id)
            if path is not None and path.exists():
                raise ConcurrentModificationError(bet.id, None, self._read(path).version)
            stored = bet.model_copy(update={"version": 1})
            self._write(stored)
        logger.info(f"Created bet {bet.id} for owner {bet.owner_id}")
        return stored

    def save(self, bet: Bet, expected_version: int) -> Bet:
        """Replace a stored bet if its version still equals ``expected_version``."""
        with self._bet_lock(bet.id, expected_version):
            current = self.get(bet.id)
            found = current.version if current else None
            if found != expected_version:
                raise ConcurrentModificationError(bet.id, expected_version, found)

            stored = bet.model_copy(
                update={"version": expected_version + 1, "updated_at": utcnow()}
            )
            self._write(stored)
        return stored

    def delete(self, bet_id: str, expected_version: int) -> None:
        """Remove a stored bet if its version still equals ``expected_version``."""
        with self._bet_lock(bet_id, expected_version):
            current = self.get(bet_id)
            found = current.version if current else None
            if found != expected_version:
                raise ConcurrentModificationError(bet_id, expected_version, found)
            self._path(bet_id).unlink()
        logger.info(f"Deleted bet {bet_id}")
