"""Component timing for SWD-Sim runs.

Wraps the per-step work of a cell (fruit update, diapause gate, rate
assembly, Euler integration, statistics) in named timers. Disabled
monitors do nothing, so the hooks can stay in the step loop.

Usage:
    from swd_sim.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)
    sim = CellSimulator(params, perf=perf)
    perf.start()
    sim.run(temperatures, 365)
    perf.stop()
    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ComponentStats:
    """Accumulated wall-clock time for one named component."""
    total_time: float = 0.0
    call_count: int = 0
    min_time: float = float('inf')
    max_time: float = 0.0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0

    def add(self, elapsed: float) -> None:
        self.total_time += elapsed
        self.call_count += 1
        self.min_time = min(self.min_time, elapsed)
        self.max_time = max(self.max_time, elapsed)


class PerfMonitor:
    """Per-component wall-clock timer; a no-op unless enabled."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, ComponentStats] = defaultdict(ComponentStats)
        self._start_time: Optional[float] = None
        self._total_time: float = 0.0

    def start(self) -> None:
        if self.enabled:
            self._start_time = time.perf_counter()

    def stop(self) -> None:
        if self.enabled and self._start_time is not None:
            self._total_time = time.perf_counter() - self._start_time

    @contextmanager
    def track(self, component: str):
        """Time the enclosed block under ``component``."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        yield
        self._stats[component].add(time.perf_counter() - t0)

    def record(self, component: str, elapsed: float) -> None:
        if self.enabled:
            self._stats[component].add(elapsed)

    def get_stats(self) -> Dict[str, ComponentStats]:
        return dict(self._stats)

    def _total(self) -> float:
        return self._total_time or sum(s.total_time for s in self._stats.values())

    def summary(self) -> dict:
        """Per-component totals, call counts, mean ms and share of the run."""
        total = self._total()
        result = {}
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            result[name] = {
                'total_s': round(stats.total_time, 4),
                'calls': stats.call_count,
                'mean_ms': round(stats.mean_time * 1000, 3),
                'pct': round(stats.total_time / total * 100, 1) if total > 0 else 0.0,
            }
        result['_total_s'] = round(total, 4)
        return result

    def report(self, title: str = "Cell step timing") -> str:
        """Fixed-width text table of :meth:`summary`."""
        rows = self.summary()
        total = rows.pop('_total_s')
        lines = [
            title,
            f"{'component':<20}{'total_s':>10}{'calls':>9}{'mean_ms':>10}{'pct':>7}",
        ]
        for name, row in rows.items():
            lines.append(
                f"{name:<20}{row['total_s']:>10.4f}{row['calls']:>9}"
                f"{row['mean_ms']:>10.3f}{row['pct']:>6.1f}%"
            )
        lines.append(f"{'total':<20}{total:>10.4f}")
        return '\n'.join(lines)

    def reset(self) -> None:
        self._stats.clear()
        self._start_time = None
        self._total_time = 0.0
