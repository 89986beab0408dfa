"""Tests for swd_sim.temperature: daily temperature forcing."""

import numpy as np
import pytest

from swd_sim.config import default_config
from swd_sim.temperature import (
    constant_series,
    load_temperature_file,
    sinusoidal_series,
    temperatures_from_config,
)


class TestSeries:
    def test_constant(self):
        temps = constant_series(15.0)
        assert temps.shape == (365,)
        np.testing.assert_array_equal(temps, 15.0)

    def test_sinusoidal_peak_and_trough(self):
        temps = sinusoidal_series(mean_temp=12.0, amplitude=10.0, peak_doy=200)
        assert int(np.argmax(temps)) == 200
        assert temps.max() == pytest.approx(22.0)
        assert temps.min() == pytest.approx(2.0, abs=0.01)
        assert temps.mean() == pytest.approx(12.0, abs=0.01)

    def test_sinusoidal_repeats_yearly(self):
        temps = sinusoidal_series(n_days=730)
        np.testing.assert_allclose(temps[:365], temps[365:])

    def test_invalid_length(self):
        with pytest.raises(ValueError, match="n_days"):
            constant_series(10.0, n_days=0)


class TestFileLoader:
    def test_load(self, tmp_path):
        path = tmp_path / "temps.txt"
        path.write_text("10.5\n\n12\n-3.25\n")
        np.testing.assert_array_equal(
            load_temperature_file(path), [10.5, 12.0, -3.25],
        )

    def test_bad_line(self, tmp_path):
        path = tmp_path / "temps.txt"
        path.write_text("10.5\nwarm\n")
        with pytest.raises(ValueError, match="line 2"):
            load_temperature_file(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "temps.txt"
        path.write_text("\n\n")
        with pytest.raises(ValueError, match="no temperature values"):
            load_temperature_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_temperature_file(tmp_path / "missing.txt")


class TestFromConfig:
    def test_constant_source(self):
        config = default_config()
        config.simulation.constant_temp = 18.5
        np.testing.assert_array_equal(temperatures_from_config(config), 18.5)

    def test_file_source(self, tmp_path):
        path = tmp_path / "temps.txt"
        path.write_text("1\n2\n3\n")
        config = default_config()
        config.simulation.temperature_source = 'file'
        config.simulation.temperature_file = str(path)
        np.testing.assert_array_equal(temperatures_from_config(config), [1, 2, 3])

    def test_sinusoidal_source(self):
        config = default_config()
        config.simulation.temperature_source = 'sinusoidal'
        config.simulation.temp_peak_doy = 100
        assert int(np.argmax(temperatures_from_config(config))) == 100

    def test_unknown_source(self):
        config = default_config()
        config.simulation.temperature_source = 'satellite'
        with pytest.raises(ValueError, match="temperature_source"):
            temperatures_from_config(config)
