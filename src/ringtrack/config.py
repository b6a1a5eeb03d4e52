"""
YAML settings for the closed-orbit solver and trackers.

A settings document has up to three sections, each optional:

    closed_orbit:
      transverse_only: true
      max_iterations: 10
    tracker:
      name: linear
      log_level: DEBUG
    beam:
      reference_momentum: 5.0

Unknown sections and unknown keys are rejected.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import os
import yaml

from .optics.closed_orbit import ClosedOrbitConfig
from .simulators.types import BeamData, ConfigurationError, TrackerConfiguration


SECTIONS = ('closed_orbit', 'tracker', 'beam')


@dataclass
class Settings:
    """Validated settings loaded from a YAML document."""
    closed_orbit: ClosedOrbitConfig = field(default_factory=ClosedOrbitConfig)
    tracker: TrackerConfiguration = field(default_factory=TrackerConfiguration)
    beam: Optional[BeamData] = None


def settings_from_dict(data: Optional[Dict[str, Any]]) -> Settings:
    """
    Build validated settings from a parsed YAML mapping.

    Raises:
        ConfigurationError: If the document is not a mapping or has unknown sections
        pydantic.ValidationError: If a section holds invalid or unknown keys
    """
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings must be a mapping, got {type(data).__name__}")
    unknown = set(data) - set(SECTIONS)
    if unknown:
        raise ConfigurationError(f"Unknown settings sections: {sorted(unknown)}")

    settings = Settings()
    if data.get('closed_orbit') is not None:
        settings.closed_orbit = ClosedOrbitConfig.from_dict(data['closed_orbit'])
    if data.get('tracker') is not None:
        settings.tracker = TrackerConfiguration.from_dict(data['tracker'])
    if data.get('beam') is not None:
        settings.beam = BeamData.from_dict(data['beam'])
    return settings


def load_settings(path: str) -> Settings:
    """Load settings from a YAML file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Settings file not found at {path}")
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    return settings_from_dict(data)
