"""
Base tracker abstract class for ringtrack.

This module defines the abstract base class that all trackers must
implement. A tracker advances a bunch element by element through an active
range of a beamline, applying the attached physical processes after every
integration step. It provides a standardized interface for whole-range
tracking, element-by-element stepping and process management, plus a
monitor/callback system for tracking events.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, List, Optional, Tuple
import logging

from .bunch import Bunch
from .processes import TrackingProcess
from .types import (
    BeamData,
    TrackerConfiguration,
    SimulationError,
    TrackingError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


class TrackingMonitor(ABC):
    """
    Abstract base class for tracking monitoring and callbacks.

    Monitors can be attached to trackers to receive structured events about
    tracking progress. Event fields are passed as keyword arguments.
    """

    @abstractmethod
    def on_track_start(self, **fields: Any):
        """Called when tracking through the active range starts."""
        pass

    @abstractmethod
    def on_track_complete(self, **fields: Any):
        """Called when tracking through the active range finishes."""
        pass

    @abstractmethod
    def on_error(self, error: Exception, **fields: Any):
        """Called when an error occurs during tracking."""
        pass


class LoggingMonitor(TrackingMonitor):
    """Monitor forwarding tracking events to a logger as structured records."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def on_track_start(self, **fields: Any):
        logger.log(self.level, "Tracking %s particles through %s",
                   fields.get('particles'), fields.get('range'), extra=fields)

    def on_track_complete(self, **fields: Any):
        logger.log(self.level, "Tracking complete, reference momentum %.6g GeV/c",
                   fields.get('reference_momentum', float('nan')), extra=fields)

    def on_error(self, error: Exception, **fields: Any):
        logger.error(f"Tracking error: {error}", extra=fields)


class BaseTracker(ABC):
    """
    Abstract base class for all trackers.

    A tracker owns mutable state: the active beamline range, the initial
    bunch, the attached processes, the registered monitors and the stepping
    cursor. Trackers are not safe for concurrent use; independent work that
    needs parallelism should use separate instances (see ``spawn``).

    Key features:
    - Abstract methods for bunch creation and single-element tracking
    - Whole-range tracking in place or on a copy of the initial bunch
    - Element-by-element stepping for diagnostics along the line
    - Process attach/detach, including scoped attachment
    - Monitor/callback system and per-tracker logging
    """

    def __init__(self, config: Optional[TrackerConfiguration] = None):
        self.config = config or TrackerConfiguration()
        self.name = self.config.name

        # Initialize internal state
        self._range = None
        self._initial_bunch: Optional[Bunch] = None
        self._processes: List[TrackingProcess] = []
        self._stepper_bunch: Optional[Bunch] = None
        self._stepper_index: Optional[int] = None
        self.monitors: List[TrackingMonitor] = []

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.name}")
        self.logger.setLevel(getattr(logging, self.config.log_level))

        # Add default logging monitor
        if not hasattr(self, '_no_default_monitor'):
            self.add_monitor(LoggingMonitor())

    # === Abstract Methods ===

    @abstractmethod
    def create_bunch(self, beam: BeamData) -> Bunch:
        """
        Create a new bunch from a reference beam description.

        Args:
            beam: Reference beam (momentum, charge and centroid)

        Returns:
            A newly owned bunch
        """
        pass

    @abstractmethod
    def track_element(self, bunch: Bunch, element):
        """
        Advance ``bunch`` in place through a single element.

        Implementations apply the attached processes, in application order,
        after every integration step inside the element.
        """
        pass

    # === Active range and initial bunch ===

    def set_active_range(self, beamline_range):
        """Set the beamline range tracked by subsequent calls."""
        self._range = beamline_range
        self._stepper_bunch = None
        self._stepper_index = None
        self.logger.debug(f"Active range set to {beamline_range}")

    @property
    def active_range(self):
        return self._range

    def set_initial_bunch(self, bunch: Bunch, take_ownership: bool = False):
        """
        Store the bunch used by ``track_copy``.

        Without ownership the tracker keeps its own copy, so later changes to
        ``bunch`` by the caller do not affect it.
        """
        self._initial_bunch = bunch if take_ownership else bunch.copy()

    def _require_range(self):
        if self._range is None:
            raise ConfigurationError(f"Tracker '{self.name}' has no active beamline range")
        return self._range

    # === Tracking ===

    def track_in_place(self, bunch: Bunch) -> Bunch:
        """
        Track ``bunch`` through the active range, mutating it.

        Returns:
            The same bunch object

        Raises:
            ConfigurationError: If no active range is set
            TrackingError: If tracking through an element fails
        """
        beamline_range = self._require_range()
        fields = {
            'tracker': self.name,
            'range': str(beamline_range),
            'particles': len(bunch),
        }
        self._notify_monitors('track_start', **fields)
        index = None
        try:
            for index, element in beamline_range:
                self.track_element(bunch, element)
        except SimulationError as e:
            self._notify_monitors('error', e, index=index, **fields)
            raise
        except Exception as e:
            self._notify_monitors('error', e, index=index, **fields)
            raise TrackingError(f"Tracking failed at element {index}: {e}") from e

        self._notify_monitors('track_complete', reference_momentum=bunch.reference_momentum, **fields)
        return bunch

    def track_copy(self) -> Bunch:
        """
        Track a copy of the initial bunch through the active range.

        Returns:
            The tracked copy, owned by the caller
        """
        if self._initial_bunch is None:
            raise TrackingError(f"Tracker '{self.name}' has no initial bunch")
        return self.track_in_place(self._initial_bunch.copy())

    # === Element stepping ===

    def init_stepper(self, bunch: Bunch):
        """Start element-by-element tracking of ``bunch`` at the first element of the active range."""
        beamline_range = self._require_range()
        self._stepper_bunch = bunch
        self._stepper_index = beamline_range.first_index

    def current_component(self):
        """Return the element the next ``step_component`` call will track."""
        if self._stepper_index is None:
            raise TrackingError("Stepper has not been initialised")
        if self._stepper_index > self._range.last_index:
            raise TrackingError("Stepper has passed the end of the active range")
        return self._range.elements()[self._stepper_index - self._range.first_index]

    def step_component(self) -> bool:
        """
        Track the stepper bunch through the current element and advance.

        Returns:
            False once the last element of the active range has been tracked
        """
        element = self.current_component()
        self.track_element(self._stepper_bunch, element)
        self._stepper_index += 1
        return self._stepper_index <= self._range.last_index

    def tracked_bunch(self) -> Bunch:
        if self._stepper_bunch is None:
            raise TrackingError("Stepper has not been initialised")
        return self._stepper_bunch

    # === Processes ===

    def add_process(self, process: TrackingProcess):
        """Attach a process; it is applied after every integration step."""
        self._processes.append(process)
        self.logger.debug(f"Added process: {process!r}")

    def remove_process(self, process: TrackingProcess):
        """Detach a process; detaching a process that is not attached does nothing."""
        for i, attached in enumerate(self._processes):
            if attached is process:
                del self._processes[i]
                self.logger.debug(f"Removed process: {process!r}")
                return
        self.logger.debug(f"Process {process!r} was not attached")

    @property
    def processes(self) -> Tuple[TrackingProcess, ...]:
        """Attached processes, in application order."""
        return tuple(sorted(self._processes, key=lambda process: process.kind))

    @contextmanager
    def attached(self, *processes: TrackingProcess):
        """Attach ``processes`` for the duration of a ``with`` block."""
        added = []
        try:
            for process in processes:
                self.add_process(process)
                added.append(process)
            yield self
        finally:
            for process in added:
                self.remove_process(process)

    # === Monitors ===

    def add_monitor(self, monitor: TrackingMonitor):
        """Add a monitoring callback."""
        self.monitors.append(monitor)
        self.logger.debug(f"Added monitor: {type(monitor).__name__}")

    def remove_monitor(self, monitor: TrackingMonitor):
        """Remove a monitoring callback."""
        if monitor in self.monitors:
            self.monitors.remove(monitor)
            self.logger.debug(f"Removed monitor: {type(monitor).__name__}")

    def _notify_monitors(self, event: str, *args, **kwargs):
        """Notify all registered monitors of an event."""
        for monitor in self.monitors:
            try:
                if hasattr(monitor, f'on_{event}'):
                    getattr(monitor, f'on_{event}')(*args, **kwargs)
            except Exception as e:
                self.logger.warning(f"Monitor {type(monitor).__name__} error in on_{event}: {e}")

    def spawn(self) -> "BaseTracker":
        """Return a fresh tracker of the same type and configuration, with no processes attached."""
        return type(self)(self.config)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', processes={len(self._processes)})"
