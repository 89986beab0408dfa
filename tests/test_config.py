"""Tests for swd_sim.config: configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from swd_sim.config import (
    BatchSection,
    DiapauseSection,
    FruitSection,
    PopulationSection,
    SimulationConfig,
    SimulationSection,
    StageSection,
    deep_merge,
    default_config,
    load_config,
    validate_config,
)
from swd_sim.parameters import parameters_from_config


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        base = {'a': 1, 'b': 2}
        result = deep_merge(base, {'b': 3})
        assert result == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        result = deep_merge(base, {'x': {'b': 3, 'c': 4}})
        assert result == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_override_dict_with_scalar(self):
        result = deep_merge({'a': {'nested': 1}}, {'a': 'replaced'})
        assert result == {'a': 'replaced'}

    def test_empty_override(self):
        assert deep_merge({'a': 1}, {}) == {'a': 1}


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_creates_valid_config(self):
        assert isinstance(default_config(), SimulationConfig)

    def test_default_values(self):
        config = default_config()
        assert config.simulation.dt == 0.05
        assert config.simulation.start_day == -1
        assert config.population.male_proportion == 0.5
        assert config.fruit.time_lag == 50.0
        assert config.diapause.critical_temp == 18.0
        assert config.batch.diapause_start_day == 75

    def test_every_stage_has_a_section(self):
        config = default_config()
        assert len(config.stages) == 13
        assert config.stages['males'].development_max is None
        assert config.stages['females7'].development_max is None
        assert config.stages['eggs'].egg_viability is None
        assert config.stages['females1'].egg_viability == pytest.approx(0.832)

    def test_thresholds_default_to_zero(self):
        assert default_config().simulation.thresholds == [0.0] * 10


# ── YAML loading tests ───────────────────────────────────────────────

class TestLoadConfig:
    def test_load_from_yaml(self, tmp_path):
        """Load a minimal YAML config."""
        content = {
            'simulation': {'dt': 0.1, 'run_days': 200},
            'fruit': {'time_lag': 30},
        }
        path = tmp_path / "test.yaml"
        with open(path, 'w') as f:
            yaml.dump(content, f)

        config = load_config(path)
        assert config.simulation.dt == 0.1
        assert config.simulation.run_days == 200
        assert config.fruit.time_lag == 30
        # Unspecified sections get defaults
        assert config.diapause.daylight_hours == 10.0

    def test_initial_populations_merge(self, tmp_path):
        path = tmp_path / "test.yaml"
        with open(path, 'w') as f:
            yaml.dump({'population': {'initial': {'Eggs': 100}}}, f)

        config = load_config(path)
        assert config.population.initial['eggs'] == 100
        assert config.population.initial['pupae'] == 8.0

    def test_stage_overrides_merge(self, tmp_path):
        path = tmp_path / "test.yaml"
        with open(path, 'w') as f:
            yaml.dump({'stages': {'pupae': {'predation': 0.02}}}, f)

        config = load_config(path)
        assert config.stages['pupae'].predation == 0.02
        assert config.stages['pupae'].development_max == 0.17

    def test_unknown_stage_section(self, tmp_path):
        path = tmp_path / "test.yaml"
        with open(path, 'w') as f:
            yaml.dump({'stages': {'larvae': {'predation': 0.02}}}, f)

        with pytest.raises(ValueError, match="stages.larvae"):
            load_config(path)

    def test_load_with_scenario_override(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        scen_path = tmp_path / "scenario.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'fruit': {'time_lag': 20, 'n': 3.0}}, f)
        with open(scen_path, 'w') as f:
            yaml.dump({'fruit': {'time_lag': 80}}, f)

        config = load_config(base_path, scenario_path=scen_path)
        assert config.fruit.time_lag == 80
        assert config.fruit.n == 3.0  # unchanged

    def test_load_with_sweep_overrides(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'diapause': {'critical_temp': 18}}, f)

        config = load_config(
            base_path, sweep_overrides={'diapause': {'critical_temp': 12}},
        )
        assert config.diapause.critical_temp == 12

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_load_real_default_yaml(self):
        """Load the shipped configs/default.yaml."""
        default_path = Path(__file__).parent.parent / "configs" / "default.yaml"
        config = load_config(default_path)
        params = parameters_from_config(config)
        assert params.to_dict() == parameters_from_config(default_config()).to_dict()


# ── Validation tests ──────────────────────────────────────────────────

class TestValidation:
    def test_invalid_dt(self):
        config = default_config()
        config.simulation.dt = 0.0
        with pytest.raises(ValueError, match="simulation.dt"):
            validate_config(config)

    def test_invalid_temperature_source(self):
        config = default_config()
        config.simulation.temperature_source = 'weather_station'
        with pytest.raises(ValueError, match="temperature_source"):
            validate_config(config)

    def test_missing_temperature_file_warns(self, tmp_path):
        config = default_config()
        config.simulation.temperature_source = 'file'
        config.simulation.temperature_file = str(tmp_path / "missing.txt")
        with pytest.warns(UserWarning, match="does not exist"):
            validate_config(config)

    def test_threshold_count(self):
        config = default_config()
        config.simulation.thresholds = [1.0, 2.0]
        with pytest.raises(ValueError, match="thresholds"):
            validate_config(config)

    def test_male_proportion_range(self):
        config = default_config()
        config.population.male_proportion = 1.5
        with pytest.raises(ValueError, match="male_proportion"):
            validate_config(config)

    def test_negative_initial_population(self):
        config = default_config()
        config.population.initial['eggs'] = -1.0
        with pytest.raises(ValueError, match="initial.eggs"):
            validate_config(config)

    def test_fruit_unit_interval(self):
        config = default_config()
        config.fruit.harvest_drop = 2.0
        with pytest.raises(ValueError, match="harvest_drop"):
            validate_config(config)

    def test_time_lag_range(self):
        config = default_config()
        config.fruit.time_lag = 400
        with pytest.raises(ValueError, match="time_lag"):
            validate_config(config)

    def test_daylight_hours_range(self):
        config = default_config()
        config.diapause.daylight_hours = 25
        with pytest.raises(ValueError, match="daylight_hours"):
            validate_config(config)

    def test_terminal_stage_cannot_develop(self):
        config = default_config()
        config.stages['males'].development_max = 0.1
        with pytest.raises(ValueError, match="stages.males.development_max"):
            validate_config(config)

    def test_egg_viability_only_for_females(self):
        config = default_config()
        config.stages['pupae'].egg_viability = 0.5
        with pytest.raises(ValueError, match="egg_viability"):
            validate_config(config)

    def test_batch_stage_name(self):
        config = default_config()
        config.batch.fruit_stage = 'adults'
        with pytest.raises(ValueError, match="batch stage"):
            validate_config(config)

    def test_batch_workers(self):
        config = default_config()
        config.batch.workers = 0
        with pytest.raises(ValueError, match="workers"):
            validate_config(config)


# ── Section dataclass tests ───────────────────────────────────────────

class TestSections:
    def test_simulation_section_defaults(self):
        ss = SimulationSection()
        assert ss.temperature_source == 'constant'
        assert ss.ignore_fruit is False

    def test_population_section_initial(self):
        ps = PopulationSection()
        assert ps.initial['pupae'] == 8.0
        assert ps.initial['females7'] == 4.0

    def test_fruit_section_defaults(self):
        fs = FruitSection()
        assert fs.harvest_cutoff == 0.95
        assert fs.gt_multiplier == 4.0

    def test_diapause_section_defaults(self):
        assert DiapauseSection().daylight_hours == 10.0

    def test_stage_section_betas(self):
        st = StageSection(beta0=0.1)
        assert st.betas == [0.1, -0.0077, 0.00032, -0.000002]

    def test_batch_section_defaults(self):
        bs = BatchSection()
        assert bs.population_sizes == [10.0, 100.0, 1000.0, 10000.0]
        assert bs.workers is None
