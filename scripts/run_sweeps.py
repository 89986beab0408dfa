#!/usr/bin/env python3
"""Run the population, fruit or diapause sensitivity sweep.

Each sweep writes one tab-delimited run file per simulation (unless
output.write_run_files is false) and a CSV summary with one row per run.

Usage:
    python scripts/run_sweeps.py population --temperatures data/clark.txt
    python scripts/run_sweeps.py fruit --workers 8
    python scripts/run_sweeps.py diapause --config configs/default.yaml -v
"""

import logging
import time
from pathlib import Path

from swd_sim.batch import SWEEPS, run_batch, sweep_from_config
from swd_sim.config import load_config
from swd_sim.output import write_summary_csv
from swd_sim.parameters import load_parameter_text, parameters_from_config
from swd_sim.temperature import load_temperature_file, temperatures_from_config

# Sweep → (x override, y override, x label, y label) for --heatmap
HEATMAP_AXES = {
    'fruit': ("fruit gt multiplier", "fruit time lag",
              'gt multiplier', 'harvest lag (days)'),
    'diapause': ("diapause critical temp", "diapause daylight hours",
                 'critical temperature (°C)', 'daylight hours'),
}


def main():
    import argparse
    parser = argparse.ArgumentParser(description='Run an SWD sensitivity sweep')
    parser.add_argument('sweep', choices=sorted(SWEEPS),
                        help='Which sweep to run')
    parser.add_argument('--config', default='configs/default.yaml',
                        help='Base YAML configuration')
    parser.add_argument('--scenario', default=None,
                        help='Optional scenario YAML merged over the base')
    parser.add_argument('--params', default=None,
                        help='Legacy "name: value" parameter file applied last')
    parser.add_argument('--temperatures', default=None,
                        help='Daily temperature file (overrides the config source)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Thread pool size (default: batch.workers or CPU count)')
    parser.add_argument('--output-dir', default=None,
                        help='Output directory (default: <output.directory>/<sweep>)')
    parser.add_argument('--heatmap', action='store_true',
                        help='Plot total females over the fruit/diapause grid')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log progress after every batch')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    config = load_config(args.config, args.scenario)
    params = parameters_from_config(config)
    if args.params:
        params = load_parameter_text(args.params, base=params)
    if args.temperatures:
        temperatures = load_temperature_file(args.temperatures)
    else:
        temperatures = temperatures_from_config(config)

    out_dir = Path(args.output_dir or Path(config.output.directory) / args.sweep)
    run_dir = out_dir if config.output.write_run_files else None
    specs = sweep_from_config(args.sweep, config, output_dir=run_dir)
    workers = args.workers or config.batch.workers

    print("=" * 60)
    print(f"  Sweep: {args.sweep} ({len(specs)} runs)")
    print(f"  Workers: {workers or 'cpu_count'}")
    print(f"  Output: {out_dir}")
    print("=" * 60)

    t0 = time.time()
    summaries = run_batch(specs, params, temperatures, workers=workers)
    print(f"\n{len(summaries)} runs done in {time.time() - t0:.1f} s")

    rows = [s.row for s in summaries]
    if config.output.summary_csv:
        csv_path = write_summary_csv(out_dir / f'{args.sweep}_summary.csv', rows)
        print(f"Saved: {csv_path}")

    if args.heatmap and args.sweep in HEATMAP_AXES:
        from swd_sim.viz import plot_sweep_heatmap
        x_key, y_key, x_label, y_label = HEATMAP_AXES[args.sweep]
        xs = sorted({s.spec.overrides[x_key] for s in summaries})
        ys = sorted({s.spec.overrides[y_key] for s in summaries})
        out_dir.mkdir(parents=True, exist_ok=True)
        png = out_dir / f'{args.sweep}_total_females.png'
        plot_sweep_heatmap(rows, xs, ys, x_label=x_label, y_label=y_label,
                           save_path=png)
        print(f"Saved: {png}")


if __name__ == '__main__':
    main()
