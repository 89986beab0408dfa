"""Run-file and batch-summary writers.

Run file layout (tab-delimited text, one per simulation):

  Time:	eggs:	instar1:	instar2:	instar3:	pupae:	males:	females:
  <t>	<v>	...                       one row per simulated day

  Total Cumulative Populations      Σ value·dt per series
  Peak Populations                  running maxima
  Peak Populations Day              time of each maximum
  Threshold populations             one line per threshold
  Day diapause crossed: N
  Day crossed max fruit: T

Batch summary: one CSV row per run with the same statistics flattened
into columns, so a sweep can be loaded as a single table.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Union

from swd_sim.model import CellSimResult
from swd_sim.types import SUMMARY_SERIES

RUN_KINDS = ('population', 'fruit', 'diapause')


def _fmt(value: float) -> str:
    return repr(float(value))


def run_filename(kind: str, run_days: float, **labels) -> str:
    """File name for one sweep run.

    Args:
        kind: 'population' (labels initial_population, stage, start_day),
            'fruit' (gt_multiplier, time_lag) or 'diapause'
            (critical_temp, daylight_hours).
        run_days: Simulated horizon, appended to every name.

    Raises:
        ValueError: For an unknown kind.
        KeyError: If a required label is missing.
    """
    days = f"{int(run_days)}daysRun"
    if kind == 'population':
        return (
            f"output___{labels['initial_population']:g}{labels['stage']}"
            f"_addedDay{labels['start_day']}_{days}.txt"
        )
    if kind == 'fruit':
        return (
            f"f_output___gtMult{labels['gt_multiplier']:g}"
            f"_harvestLag{labels['time_lag']:g}_{days}.txt"
        )
    if kind == 'diapause':
        return (
            f"d_output___tCrit{labels['critical_temp']:g}"
            f"_daylightHours{labels['daylight_hours']:g}_{days}.txt"
        )
    raise ValueError(f"Unknown run kind '{kind}'; expected one of {RUN_KINDS}")


def format_run(result: CellSimResult) -> str:
    """Render a result in the run-file layout."""
    stride = max(int(round(1.0 / result.dt)), 1)
    series = [result.series(name) for name in SUMMARY_SERIES]

    lines: List[str] = [
        "Time:\t" + "".join(f"{name}:\t" for name in SUMMARY_SERIES)
    ]
    for i in range(0, result.n_steps, stride):
        row = [_fmt(result.times[i])] + [_fmt(s[i]) for s in series]
        lines.append("\t".join(row) + "\t")

    def block(title: str, stats: Dict[str, float]) -> None:
        lines.extend(["", "", title, ""])
        lines.append("\t" + "\t".join(_fmt(stats[n]) for n in SUMMARY_SERIES))

    block("Total Cumulative Populations", result.cumulative)
    block("Peak Populations", result.peak)
    block("Peak Populations Day", result.peak_day)

    lines.extend(["", "", "Threshold populations"])
    if result.thresholds is not None:
        for value, day in zip(result.thresholds, result.threshold_days):
            lines.append(f"Threshold: {_fmt(value)}\tDay passed: {_fmt(day)}")

    lines.extend(["", "", f"Day diapause crossed: {result.crossed_diapause_day}"])
    lines.extend(["", "", f"Day crossed max fruit: {_fmt(result.day_crossed_max_fruit)}"])
    return "\n".join(lines) + "\n"


def write_run_file(path: Union[str, Path], result: CellSimResult) -> Path:
    """Write one run file, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_run(result))
    return path


def summary_row(label: str, result: CellSimResult) -> Dict[str, object]:
    """Flatten a result's statistics into one CSV row."""
    row: Dict[str, object] = {
        'label': label,
        'start_day': result.start_day,
        'run_days': result.run_days,
        'dt': result.dt,
    }
    for name in SUMMARY_SERIES:
        row[f'total_{name}'] = result.cumulative[name]
        row[f'peak_{name}'] = result.peak[name]
        row[f'peak_day_{name}'] = result.peak_day[name]
    row['crossed_diapause_day'] = result.crossed_diapause_day
    row['day_crossed_max_fruit'] = result.day_crossed_max_fruit
    return row


def write_summary_csv(
    path: Union[str, Path],
    rows: Iterable[Dict[str, object]],
) -> Path:
    """Write summary rows (from :func:`summary_row`) to a CSV file."""
    rows = list(rows)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        path.write_text("")
        return path

    with open(path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return path
