#!/usr/bin/env python3
import json
import logging
import os
from pathlib import Path
from typing import Iterable, List, Set

from analysis.models import WatchlistEntry
from constants import WATCHLIST_CAPACITY

logger = logging.getLogger(__name__)


def _write_json(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8') as handle:
        json.dump(payload, handle, indent=2)
    os.replace(tmp_path, path)


def _read_json(path: Path):
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as handle:
            return json.load(handle)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s, treating it as empty: %s", path, exc)
        return None


class Watchlist:
    """
    Newest-first list of recently graduated tokens, shared with the scanner through a JSON file.

    At capacity, adding evicts exactly the oldest entry. The file is the
    source of truth: every ``load`` re-reads it, so hand edits are picked up.
    """

    def __init__(self, path: Path | str, capacity: int = WATCHLIST_CAPACITY) -> None:
        self.path = Path(path)
        self.capacity = capacity
        self.entries: List[WatchlistEntry] = []

    def load(self) -> List[WatchlistEntry]:
        raw = _read_json(self.path)
        entries: List[WatchlistEntry] = []
        if isinstance(raw, list):
            for item in raw:
                if isinstance(item, dict):
                    entry = WatchlistEntry.from_json(item)
                    if entry is not None:
                        entries.append(entry)
        if len(entries) > self.capacity:
            logger.debug("Watchlist file holds %d entries, keeping the newest %d", len(entries), self.capacity)
            del entries[self.capacity:]
        self.entries = entries
        return list(entries)

    def __contains__(self, asset_id: str) -> bool:
        return any(e.asset_id == asset_id for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entry: WatchlistEntry) -> bool:
        self.load()
        if entry.asset_id in self:
            return False
        self.entries.insert(0, entry)
        while len(self.entries) > self.capacity:
            evicted = self.entries.pop()
            logger.debug("Watchlist full, evicted %s (%s)", evicted.symbol, evicted.asset_id[:8])
        self.save()
        return True

    def save(self) -> None:
        _write_json(self.path, [e.to_json() for e in self.entries])


class SeenSet:
    """Asset ids the watcher has already processed, persisted across restarts."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        raw = _read_json(self.path)
        self._ids: Set[str] = {str(x) for x in raw} if isinstance(raw, list) else set()

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, asset_id: str) -> None:
        self._ids.add(asset_id)
        self.save()

    def update(self, asset_ids: Iterable[str]) -> None:
        self._ids.update(asset_ids)
        self.save()

    def save(self) -> None:
        _write_json(self.path, sorted(self._ids))
