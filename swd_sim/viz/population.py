"""Population, fruit and sweep visualizations for SWD-Sim.

Every function:
  - Accepts a CellSimResult (or batch summary rows) as input
  - Returns a matplotlib Figure
  - Has an optional ``save_path`` parameter (saves PNG when given)
  - Uses the shared dark theme from ``swd_sim.viz.style``

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from swd_sim.types import FEMALE_SLICE, SUMMARY_SERIES
from swd_sim.viz.style import (
    ACCENT_COLORS,
    FRUIT_COLOR,
    SERIES_COLORS,
    TEXT_COLOR,
    dark_figure,
    legend_kwargs,
    save_figure,
)

if TYPE_CHECKING:
    from swd_sim.model import CellSimResult


# ═══════════════════════════════════════════════════════════════════════
# 1. STAGE TIMESERIES
# ═══════════════════════════════════════════════════════════════════════

def plot_stage_timeseries(
    result: 'CellSimResult',
    series: Sequence[str] = SUMMARY_SERIES,
    log_scale: bool = False,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Abundance of each reported series over time, with peak markers.

    Args:
        result: CellSimResult.
        series: Series names to draw (stage names or 'females').
        log_scale: Use a log y axis (useful for unchecked growth).
        save_path: Optional path to save the figure.

    Returns:
        matplotlib Figure.
    """
    fig, ax = dark_figure()
    for i, name in enumerate(series):
        color = SERIES_COLORS.get(name, ACCENT_COLORS[i % len(ACCENT_COLORS)])
        ax.plot(result.times, result.series(name), color=color,
                linewidth=1.8, label=name)
        if name in result.peak_day:
            ax.plot(result.peak_day[name], result.peak[name], 'o',
                    color=color, markersize=5)

    if result.crossed_diapause_day >= 0:
        ax.axvline(result.crossed_diapause_day, color=TEXT_COLOR,
                   linestyle=':', linewidth=1.2, alpha=0.7,
                   label=f'Diapause crossed (day {result.crossed_diapause_day})')

    if log_scale:
        ax.set_yscale('symlog', linthresh=1.0)
    ax.set_xlabel('Day', fontsize=12)
    ax.set_ylabel('Abundance', fontsize=12)
    ax.set_title('Stage Abundance', fontsize=14, fontweight='bold')
    ax.legend(**legend_kwargs())

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 2. FEMALE AGE STRUCTURE
# ═══════════════════════════════════════════════════════════════════════

def plot_female_age_classes(
    result: 'CellSimResult',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Stacked area chart of the seven adult-female age classes.

    Negative abundances (possible at large dt) are drawn as zero.
    """
    females = np.maximum(result.populations[:, FEMALE_SLICE], 0.0)
    cmap = plt.get_cmap('magma')
    colors = [cmap(0.25 + 0.1 * i) for i in range(females.shape[1])]

    fig, ax = dark_figure()
    ax.stackplot(result.times, females.T,
                 labels=[f'females{i + 1}' for i in range(females.shape[1])],
                 colors=colors, alpha=0.9)
    ax.set_xlabel('Day', fontsize=12)
    ax.set_ylabel('Adult females', fontsize=12)
    ax.set_title('Female Age Structure', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', **legend_kwargs(fontsize=9))
    ax.set_ylim(bottom=0)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 3. FRUIT QUALITY
# ═══════════════════════════════════════════════════════════════════════

def plot_fruit_quality(
    result: 'CellSimResult',
    temperatures: Optional[Sequence[float]] = None,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Fruit quality over time, optionally with daily temperature.

    Args:
        result: CellSimResult.
        temperatures: Daily series used for the run (looped like the run).
        save_path: Optional save path.

    Returns:
        matplotlib Figure.
    """
    fig, ax = dark_figure()
    ax.plot(result.times, result.fruit_quality, color=FRUIT_COLOR,
            linewidth=2.0, label='Fruit quality')
    if result.day_crossed_max_fruit >= 0:
        ax.axvline(result.day_crossed_max_fruit, color=ACCENT_COLORS[4],
                   linestyle='--', linewidth=1.2, alpha=0.8,
                   label=f'Ripe (day {result.day_crossed_max_fruit:.2f})')
    ax.set_xlabel('Day', fontsize=12)
    ax.set_ylabel('Quality', fontsize=12)
    ax.set_ylim(0, 1.05)
    ax.set_title('Fruit Quality', fontsize=14, fontweight='bold')

    handles, labels = ax.get_legend_handles_labels()
    if temperatures is not None and len(temperatures) > 0:
        temps = np.asarray(temperatures, dtype=np.float64)
        ax2 = ax.twinx()
        ax2.plot(result.times, temps[result.times.astype(int) % temps.size],
                 color=ACCENT_COLORS[5], linewidth=1.0, alpha=0.6,
                 label='Temperature')
        ax2.set_ylabel('Temperature (°C)', fontsize=12, color=TEXT_COLOR)
        ax2.tick_params(colors=TEXT_COLOR)
        h2, l2 = ax2.get_legend_handles_labels()
        handles, labels = handles + h2, labels + l2
    ax.legend(handles, labels, **legend_kwargs())

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 4. SWEEP HEATMAP
# ═══════════════════════════════════════════════════════════════════════

def sweep_grid(
    rows: List[Dict[str, object]],
    x_values: Sequence[float],
    y_values: Sequence[float],
    column: str,
) -> np.ndarray:
    """Reshape sweep summary rows (x-major order) into a (len(y), len(x)) grid.

    Raises:
        ValueError: If the row count does not match the grid.
    """
    nx, ny = len(x_values), len(y_values)
    if len(rows) != nx * ny:
        raise ValueError(
            f"expected {nx * ny} rows for a {nx}×{ny} grid, got {len(rows)}"
        )
    values = np.array([float(r[column]) for r in rows], dtype=np.float64)
    return values.reshape(nx, ny).T


def plot_sweep_heatmap(
    rows: List[Dict[str, object]],
    x_values: Sequence[float],
    y_values: Sequence[float],
    column: str = 'total_females',
    x_label: str = 'gt multiplier',
    y_label: str = 'harvest lag (days)',
    log_color: bool = True,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Heatmap of one summary statistic over a two-parameter sweep.

    Rows must be in sweep order: the x parameter in the outer loop, the
    y parameter in the inner loop (as the fruit and diapause sweeps build
    them).
    """
    grid = sweep_grid(rows, x_values, y_values, column)
    if log_color:
        grid = np.log10(np.maximum(grid, 0.0) + 1.0)

    fig, ax = dark_figure(figsize=(10, 7))
    im = ax.imshow(grid, aspect='auto', origin='lower', cmap='viridis',
                   interpolation='nearest',
                   extent=(min(x_values), max(x_values),
                           min(y_values), max(y_values)))
    ax.set_xlabel(x_label, fontsize=12)
    ax.set_ylabel(y_label, fontsize=12)
    ax.set_title(column.replace('_', ' ').title(), fontsize=14, fontweight='bold')

    cbar = fig.colorbar(im, ax=ax, shrink=0.8, pad=0.02)
    cbar.ax.tick_params(colors=TEXT_COLOR)
    cbar.set_label(f'log10(1 + {column})' if log_color else column,
                   color=TEXT_COLOR, fontsize=11)

    if save_path:
        save_figure(fig, save_path)
    return fig
