"""
ringtrack Tracking Package.

This package provides bunch tracking through beamline models and the
incremental, segment-aware tracking cache built on top of it.

Key Components:
- BaseTracker: Abstract base class for all trackers
- LinearTracker: Element-by-element tracker using first-order maps
- Tracking processes: synchrotron radiation, ring path-length scaling,
  non-finite coordinate checks
- Accelerator: Per-state incremental tracking cache, channel and
  klystron queries

Example Usage:
    from ringtrack.simulators import Accelerator, BeamData, Segment

    acc = Accelerator("linac", model, BeamData(reference_momentum=10.0))
    acc.initialise_tracking(2)
    bunch = acc.track_state(0, Segment(first=0, last=20))
"""

from .types import (
    # Data models
    COORDINATE_NAMES,
    Segment,
    BeamData,
    TrackerConfiguration,
    ClosedOrbitResult,

    # Exceptions
    SimulationError,
    TrackingError,
    ConfigurationError,
    SegmentError,
    CacheError,
    ConvergenceError,
)

from .bunch import Bunch

from .processes import (
    C_GAMMA,
    ProcessKind,
    TrackingProcess,
    SynchRadProcess,
    RingDeltaPathProcess,
    NonFiniteCheckProcess,
)

from .base import (
    BaseTracker,
    TrackingMonitor,
    LoggingMonitor,
)

from .linear_tracker import LinearTracker

from .accelerator import (
    Accelerator,
    CachedBunch,
    Plane,
)

# Public API
__all__ = [
    # Core classes
    "BaseTracker",
    "LinearTracker",
    "Accelerator",
    "CachedBunch",
    "Bunch",

    # Monitoring
    "TrackingMonitor",
    "LoggingMonitor",

    # Processes
    "C_GAMMA",
    "ProcessKind",
    "TrackingProcess",
    "SynchRadProcess",
    "RingDeltaPathProcess",
    "NonFiniteCheckProcess",

    # Types
    "COORDINATE_NAMES",
    "Plane",
    "Segment",
    "BeamData",
    "TrackerConfiguration",
    "ClosedOrbitResult",

    # Exceptions
    "SimulationError",
    "TrackingError",
    "ConfigurationError",
    "SegmentError",
    "CacheError",
    "ConvergenceError",
]
