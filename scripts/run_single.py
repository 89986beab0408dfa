#!/usr/bin/env python3
"""Run one single-cell SWD simulation from a YAML config.

Usage:
    python scripts/run_single.py --config configs/default.yaml
    python scripts/run_single.py --config configs/default.yaml \
        --scenario my_site.yaml --params configParams.txt --perf
"""

import time
from pathlib import Path

from swd_sim.config import load_config
from swd_sim.model import run_cell_simulation
from swd_sim.output import write_run_file
from swd_sim.parameters import load_parameter_text, parameters_from_config
from swd_sim.perf import PerfMonitor
from swd_sim.recorders import DiapauseEffectRecorder
from swd_sim.temperature import temperatures_from_config
from swd_sim.types import SUMMARY_SERIES


def main():
    import argparse
    parser = argparse.ArgumentParser(description='Run a single-cell SWD simulation')
    parser.add_argument('--config', default='configs/default.yaml',
                        help='Base YAML configuration')
    parser.add_argument('--scenario', default=None,
                        help='Optional scenario YAML merged over the base')
    parser.add_argument('--params', default=None,
                        help='Legacy "name: value" parameter file applied last')
    parser.add_argument('--output', default=None,
                        help='Run file path (default: <output.directory>/single_run.txt)')
    parser.add_argument('--perf', action='store_true',
                        help='Print per-component timing')
    parser.add_argument('--record-diapause', default=None,
                        help='Write the per-day diapause multiplier to this file')
    parser.add_argument('--plot-dir', default=None,
                        help='Save stage, female and fruit plots (PNG) here')
    args = parser.parse_args()

    config = load_config(args.config, args.scenario)
    params = parameters_from_config(config)
    if args.params:
        params = load_parameter_text(args.params, base=params)
    temperatures = temperatures_from_config(config)

    perf = PerfMonitor(enabled=args.perf)
    recorder = DiapauseEffectRecorder(enabled=args.record_diapause is not None)

    sim_cfg = config.simulation
    print(f"Running {sim_cfg.run_days:g} days at dt={sim_cfg.dt} "
          f"(temperature source: {sim_cfg.temperature_source})")
    t0 = time.time()
    perf.start()
    result = run_cell_simulation(
        params=params,
        temperatures=temperatures,
        num_days=sim_cfg.run_days,
        dt=sim_cfg.dt,
        start_day=sim_cfg.start_day,
        ignore_fruit=sim_cfg.ignore_fruit,
        ignore_diapause=sim_cfg.ignore_diapause,
        thresholds=sim_cfg.thresholds,
        recorder=recorder,
        perf=perf,
    )
    perf.stop()
    print(f"Done in {time.time() - t0:.2f} s ({result.n_steps} steps)")

    print(f"\n{'series':<10}{'peak':>14}{'peak day':>10}{'total':>16}")
    for name in SUMMARY_SERIES:
        print(f"{name:<10}{result.peak[name]:>14.3f}"
              f"{result.peak_day[name]:>10.2f}{result.cumulative[name]:>16.3f}")
    print(f"\nDay diapause crossed: {result.crossed_diapause_day}")
    print(f"Day crossed max fruit: {result.day_crossed_max_fruit}")

    output = Path(args.output or Path(config.output.directory) / 'single_run.txt')
    write_run_file(output, result)
    print(f"Saved: {output}")

    if args.record_diapause:
        recorder.save(args.record_diapause)
        print(f"Saved: {args.record_diapause}")
    if args.plot_dir:
        from swd_sim.viz import (
            plot_female_age_classes,
            plot_fruit_quality,
            plot_stage_timeseries,
        )
        plot_dir = Path(args.plot_dir)
        plot_dir.mkdir(parents=True, exist_ok=True)
        plot_stage_timeseries(result, log_scale=True,
                              save_path=plot_dir / 'stages.png')
        plot_female_age_classes(result, save_path=plot_dir / 'females.png')
        plot_fruit_quality(result, temperatures,
                           save_path=plot_dir / 'fruit.png')
        print(f"Plots saved: {plot_dir}")
    if args.perf:
        print()
        print(perf.report())


if __name__ == '__main__':
    main()
