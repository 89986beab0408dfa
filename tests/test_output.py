"""Tests for swd_sim.output: run files and CSV summaries."""

import csv

import pytest

from swd_sim.model import run_cell_simulation
from swd_sim.output import (
    format_run,
    run_filename,
    summary_row,
    write_run_file,
    write_summary_csv,
)
from swd_sim.parameters import Parameters


@pytest.fixture(scope="module")
def short_result():
    return run_cell_simulation(
        Parameters(), temperatures=[22.0], num_days=10, dt=0.05,
        thresholds=[1.0, 50.0],
    )


class TestRunFilename:
    def test_population(self):
        name = run_filename(
            'population', 365, initial_population=100.0, stage='eggs', start_day=12,
        )
        assert name == "output___100eggs_addedDay12_365daysRun.txt"

    def test_fruit(self):
        name = run_filename('fruit', 365, gt_multiplier=1.25, time_lag=40.0)
        assert name == "f_output___gtMult1.25_harvestLag40_365daysRun.txt"

    def test_diapause(self):
        name = run_filename('diapause', 365, critical_temp=18.0, daylight_hours=10.0)
        assert name == "d_output___tCrit18_daylightHours10_365daysRun.txt"

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown run kind"):
            run_filename('weather', 365)

    def test_missing_label(self):
        with pytest.raises(KeyError):
            run_filename('fruit', 365, gt_multiplier=2.0)


class TestRunFile:
    def test_header(self, short_result):
        first = format_run(short_result).splitlines()[0]
        assert first == (
            "Time:\teggs:\tinstar1:\tinstar2:\tinstar3:\tpupae:\tmales:\tfemales:\t"
        )

    def test_one_row_per_day(self, short_result):
        lines = format_run(short_result).splitlines()
        rows = lines[1:lines.index("")]
        assert len(rows) == 10
        assert rows[1].split("\t")[0] == "1.0"
        assert len(rows[0].rstrip("\t").split("\t")) == 8

    def test_summary_sections(self, short_result):
        text = format_run(short_result)
        for title in ("Total Cumulative Populations", "Peak Populations",
                      "Peak Populations Day", "Threshold populations"):
            assert f"\n{title}\n" in text
        assert f"Day diapause crossed: {short_result.crossed_diapause_day}" in text
        assert "Day crossed max fruit:" in text
        assert "Threshold: 50.0\tDay passed:" in text

    def test_write_creates_parents(self, tmp_path, short_result):
        path = write_run_file(tmp_path / "a" / "b" / "run.txt", short_result)
        assert path.exists()
        assert path.read_text() == format_run(short_result)


class TestSummary:
    def test_row_contents(self, short_result):
        row = summary_row("r1", short_result)
        assert row['label'] == "r1"
        assert row['total_females'] == short_result.cumulative['females']
        assert row['peak_day_eggs'] == short_result.peak_day['eggs']
        assert row['crossed_diapause_day'] == short_result.crossed_diapause_day

    def test_write_csv(self, tmp_path, short_result):
        rows = [summary_row("a", short_result), summary_row("b", short_result)]
        path = write_summary_csv(tmp_path / "summary.csv", rows)
        with open(path, newline='') as f:
            loaded = list(csv.DictReader(f))
        assert [r['label'] for r in loaded] == ["a", "b"]
        assert float(loaded[0]['peak_females']) == pytest.approx(
            short_result.peak['females']
        )

    def test_write_empty(self, tmp_path):
        path = write_summary_csv(tmp_path / "empty.csv", [])
        assert path.read_text() == ""
