"""
Test suite for YAML settings loading.
"""

import pytest
import yaml
from pydantic import ValidationError

from ringtrack.config import Settings, load_settings, settings_from_dict
from ringtrack.optics import ClosedOrbitSolver
from ringtrack.machine_portal import BeamlineModel, Drift
from ringtrack.simulators import Accelerator, ConfigurationError, LinearTracker


SETTINGS_YAML = """
closed_orbit:
  transverse_only: true
  max_iterations: 10
  tolerance: 1.0e-24
tracker:
  name: orbit
  log_level: debug
beam:
  reference_momentum: 5.0
  x0: 1.0e-3
"""


class TestSettings:
    """Test building settings from parsed YAML."""

    def test_empty_document(self):
        settings = settings_from_dict(None)
        assert isinstance(settings, Settings)
        assert settings.closed_orbit.max_iterations == 20
        assert settings.tracker.name == "linear"
        assert settings.beam is None

    def test_full_document(self):
        settings = settings_from_dict(yaml.safe_load(SETTINGS_YAML))
        assert settings.closed_orbit.transverse_only
        assert settings.closed_orbit.max_iterations == 10
        assert settings.closed_orbit.tolerance == 1e-24
        assert settings.tracker.log_level == "DEBUG"
        assert settings.beam.reference_momentum == 5.0
        assert settings.beam.x0 == 1e-3

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError, match="Unknown settings sections"):
            settings_from_dict({'optics': {}})

    def test_unknown_key(self):
        with pytest.raises(ValidationError):
            settings_from_dict({'closed_orbit': {'max_iter': 3}})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            settings_from_dict([1, 2, 3])

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            settings_from_dict({'beam': {'reference_momentum': -1.0}})


class TestLoadSettings:
    """Test loading settings files."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML)
        settings = load_settings(str(path))
        assert settings.tracker.name == "orbit"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "missing.yaml"))

    def test_settings_drive_solver_and_accelerator(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML)
        settings = load_settings(str(path))

        model = BeamlineModel(name="line", elements=[Drift(name="D1", length=1.0)])
        tracker = LinearTracker(settings.tracker)
        solver = ClosedOrbitSolver(model, settings.beam.reference_momentum,
                                   config=settings.closed_orbit, tracker=tracker)
        assert solver.config.transverse_only
        assert solver.tracker.name == "orbit"

        acc = Accelerator("line", model, settings.beam, tracker=LinearTracker(settings.tracker))
        references = acc.initialise_tracking(1)
        assert references[0][0][0] == 1e-3
