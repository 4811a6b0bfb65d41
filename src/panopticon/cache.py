"""
Transaction height cache.

Remembers the last observed confirmation height of every transaction id
so each history poll can be classified as new mempool, newly confirmed
or unchanged.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from panopticon.models import HistoryUpdate, TransactionRecord


class TransactionCache:
    """
    Mapping tx_hash -> last observed height.

    When a path is given the mapping is loaded from it at construction
    and written back before reconcile() returns.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._heights: dict[str, int] = self._load(path) if path else {}

    @staticmethod
    def _load(path: Path) -> dict[str, int]:
        if not path.exists():
            return {}

        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable transaction cache {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed transaction cache {path}")
            return {}

        return {str(k): int(v) for k, v in data.items() if isinstance(v, int)}

    def _write(self, heights: dict[str, int]) -> None:
        """
        Persist a mapping (no-op for an in-memory cache).

        Raises:
            OSError: If the cache file cannot be written
        """
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(heights, sort_keys=True))
        tmp_path.replace(self.path)

    def get(self, tx_hash: str) -> int | None:
        return self._heights.get(tx_hash)

    def __contains__(self, tx_hash: object) -> bool:
        return tx_hash in self._heights

    def __len__(self) -> int:
        return len(self._heights)

    def snapshot(self) -> dict[str, int]:
        return dict(self._heights)

    def reset(self) -> None:
        self._write({})
        self._heights = {}

    def reconcile(self, records: Iterable[TransactionRecord]) -> HistoryUpdate:
        """
        Classify a freshly fetched history against the cache and update it.

        A transaction first seen already confirmed is reported both as
        new_confirmed and confirmed_from_mempool. The new heights are
        persisted before the in-memory mapping is replaced, so a failed
        write leaves the cache as it was.

        Raises:
            OSError: If the cache file cannot be written
        """
        update = HistoryUpdate()

        for record in records:
            seen = record.tx_hash in self._heights
            previous = self._heights.get(record.tx_hash, 0)

            if not seen and not record.confirmed:
                update.new_mempool.append(record.tx_hash)

            if previous <= 0 and record.confirmed:
                update.confirmed_from_mempool.append(record.tx_hash)
                update.new_confirmed.append(record.tx_hash)

            if not seen or previous != record.height:
                update.changed.append(record)

        if update.changed:
            heights = dict(self._heights)
            for record in update.changed:
                heights[record.tx_hash] = record.height
            self._write(heights)
            self._heights = heights
            logger.debug(f"Transaction cache updated: {len(update.changed)} changed")

        return update
