"""Running trade statistics persisted as a small JSON document."""
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List

from analysis.models import TradeOutcome, TradeStatus

logger = logging.getLogger(__name__)

REASON_SIMULATION = 'simulation_rejected'
REASON_BUILD = 'build_failed'


def _fresh_stats() -> Dict[str, Any]:
    return {
        'totalTrades': 0,
        'successfulTrades': 0,
        'failedTrades': 0,
        'simulationSkipped': 0,
        'buildSkipped': 0,
        'totalProfit': 0.0,
        'totalLoss': 0.0,
        'netProfit': 0.0,
        'startTime': time.time(),
    }


class StatsStore:
    """Loaded once at start, rewritten after every record."""

    def __init__(self, path: Path | str = Path('logs/stats.json')) -> None:
        self.path = Path(path)
        self._stats = self._load()

    def _load(self) -> Dict[str, Any]:
        stats = _fresh_stats()
        if not self.path.exists():
            return stats
        try:
            with open(self.path, 'r', encoding='utf-8') as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Stats file %s unreadable, starting fresh: %s", self.path, exc)
            return stats
        if not isinstance(raw, dict):
            return stats
        # files written before the SOL-suffixed keys were dropped
        legacy = {'totalProfitSol': 'totalProfit', 'totalLossSol': 'totalLoss', 'netProfitSol': 'netProfit'}
        for old_key, new_key in legacy.items():
            if old_key in raw and new_key not in raw:
                raw[new_key] = raw[old_key]
        for key, default in stats.items():
            value = raw.get(key, default)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                stats[key] = type(default)(value)
        return stats

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as handle:
                json.dump(self._stats, handle, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Could not write stats to %s: %s", self.path, exc)

    def record(self, outcome: TradeOutcome) -> None:
        if outcome.status is TradeStatus.SKIPPED:
            self.record_skip(outcome.reason or '')
            return
        self._stats['totalTrades'] += 1
        if outcome.success:
            self._stats['successfulTrades'] += 1
            if outcome.realized_profit >= 0:
                self._stats['totalProfit'] += outcome.realized_profit
            else:
                self._stats['totalLoss'] += -outcome.realized_profit
        else:
            self._stats['failedTrades'] += 1
        self._stats['netProfit'] = self._stats['totalProfit'] - self._stats['totalLoss']
        self._save()

    def record_skip(self, reason: str) -> None:
        if reason == REASON_BUILD:
            self._stats['buildSkipped'] += 1
        else:
            self._stats['simulationSkipped'] += 1
        self._save()

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._stats)

    def summary_lines(self) -> List[str]:
        s = self._stats
        uptime_h = (time.time() - s['startTime']) / 3600
        win_rate = (s['successfulTrades'] / s['totalTrades'] * 100) if s['totalTrades'] else 0.0
        return [
            f"Uptime: {uptime_h:.1f}h",
            f"Trades: {s['totalTrades']} ({s['successfulTrades']} ok / {s['failedTrades']} failed, {win_rate:.0f}% win)",
            f"Skipped: {s['simulationSkipped']} simulation / {s['buildSkipped']} build",
            f"Net: {s['netProfit']:+.6f} SOL (profit {s['totalProfit']:.6f} / loss {s['totalLoss']:.6f})",
        ]
