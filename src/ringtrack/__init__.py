"""
ringtrack - closed-orbit finding and incremental bunch tracking

A modular framework for orbit studies on accelerator beamline models.
"""

import logging

from .simulators import (
    Accelerator,
    BeamData,
    Bunch,
    LinearTracker,
    Plane,
    Segment,
    SimulationError,
    TrackingError,
    ConfigurationError,
    SegmentError,
    CacheError,
    ConvergenceError,
)
from .machine_portal import BeamlineModel
from .optics import ClosedOrbitConfig, ClosedOrbitSolver
from .config import Settings, load_settings, settings_from_dict

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    'Accelerator',
    'BeamData',
    'BeamlineModel',
    'Bunch',
    'ClosedOrbitConfig',
    'ClosedOrbitSolver',
    'LinearTracker',
    'Plane',
    'Segment',
    'Settings',
    'load_settings',
    'settings_from_dict',
    'SimulationError',
    'TrackingError',
    'ConfigurationError',
    'SegmentError',
    'CacheError',
    'ConvergenceError',
]
