"""
Accelerator: incremental, segment-aware tracking of several beam states.

The accelerator keeps one cached bunch per logical state (for example the
nominal beam and beams at shifted energies) together with the beamline index
the bunch was last advanced to. When a state is tracked through a segment,
the cached bunch is first advanced through any gap between its location and
the segment start, so that moving from one segment to the next along the
line never re-tracks the beamline from the beginning.

Typical workflow:
    1. Create: acc = Accelerator("linac", model, beam)
    2. Initialise: acc.initialise_tracking(3)
    3. Select segment: acc.set_active_segment(Segment(first=5, last=10))
    4. Track: bunch = acc.track_state(0)
    5. Read monitors: acc.get_monitor_channels(Plane.X_ONLY).read_all()
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union
import logging
import pandas as pd

from ringtrack.machine_portal.channels import ChannelArray
from ringtrack.machine_portal.element import RFPowerSource, sort_by_first_index
from .base import BaseTracker
from .bunch import Bunch
from .linear_tracker import LinearTracker
from .types import BeamData, Segment, SegmentError, CacheError, ConfigurationError

if TYPE_CHECKING:
    from ringtrack.machine_portal.beamline import BeamlineModel

logger = logging.getLogger(__name__)


class Plane(Enum):
    """Transverse plane selection for monitor and corrector channels"""
    X_ONLY = "x"
    Y_ONLY = "y"
    X_AND_Y = "xy"


MONITOR_PATTERNS = {'x': r"BPM.*\.X", 'y': r"BPM.*\.Y"}
CORRECTOR_PATTERNS = {'x': r"XCor.*\.B0", 'y': r"YCor.*\.B0"}


@dataclass
class CachedBunch:
    """
    Cache entry for one beam state.

    Attributes:
        location: Index of the last element the bunch was advanced through,
            or None if it has never been advanced
        bunch: The cached bunch, advanced in place
        initial: Pristine copy of the bunch as created; never tracked
    """
    location: Optional[int]
    bunch: Bunch
    initial: Bunch

    def rewind(self):
        """Restore the bunch to its initial state."""
        self.bunch = self.initial.copy()
        self.location = None


class Accelerator:
    """
    Tracking front-end over a beamline model.

    Args:
        name: Name used in log records
        model: Beamline model to track through
        beam: Reference beam used to create the bunch of each state
        tracker: Tracker to use (a LinearTracker by default)
    """

    def __init__(self, name: str, model: "BeamlineModel", beam: BeamData,
                 tracker: Optional[BaseTracker] = None):
        self.name = name
        self.model = model
        self.beam = beam
        self.tracker = tracker or LinearTracker()
        self._incremental = True
        self._segment: Optional[Segment] = None
        self._cache: Dict[int, CachedBunch] = {}

    # === Tracker and tracking mode ===

    def set_tracker(self, tracker: BaseTracker):
        """Switch tracker; all cached bunches are discarded."""
        self.tracker = tracker
        self.clear_cache()

    def allow_incremental_tracking(self, flag: bool):
        self._incremental = bool(flag)
        logger.info(f"{self.name}: incremental tracking {'enabled' if flag else 'disabled'}")

    @property
    def incremental_tracking(self) -> bool:
        return self._incremental

    # === Segments ===

    def set_active_segment(self, segment: Union[Segment, Tuple[int, int]]):
        """
        Set the segment used by segment-dependent operations.

        Raises:
            SegmentError: If the segment does not lie within the beamline
        """
        self._segment = self._validate_segment(segment)
        logger.debug(f"{self.name}: active segment {self._segment}",
                     extra={'segment_first': self._segment.first, 'segment_last': self._segment.last})

    @property
    def active_segment(self) -> Optional[Segment]:
        return self._segment

    def _validate_segment(self, segment) -> Segment:
        if not isinstance(segment, Segment):
            try:
                first, last = segment
            except (TypeError, ValueError):
                raise SegmentError(f"Segment must be a Segment or a (first, last) pair, got {segment!r}") from None
            if first > last or first < 0:
                raise SegmentError(f"Invalid segment [{first}, {last}]")
            segment = Segment(first=first, last=last)
        full = self.model.get_range()
        if segment.last > full.last:
            raise SegmentError(f"Segment {segment} extends beyond beamline {full}")
        return segment

    def _resolve_segment(self, segment) -> Segment:
        if segment is not None:
            return self._validate_segment(segment)
        if self._segment is None:
            raise ConfigurationError(f"{self.name}: no segment given and no active segment set")
        return self._segment

    def get_beamline_range(self) -> Segment:
        """Return the index range of the whole beamline."""
        return self.model.get_range()

    def get_beamline_indexes(self, pattern: str) -> List[int]:
        """Return the ascending indexes of elements whose name matches ``pattern``."""
        return self.model.find_indexes(pattern)

    # === Cache ===

    def initialise_tracking(self, nstates: int) -> List[Bunch]:
        """
        Discard all cached bunches and create one fresh bunch per state.

        Returns:
            Copies of the newly created bunches, one per state
        """
        if nstates < 0:
            raise ValueError("Number of states must be non-negative")
        self.clear_cache()
        references = []
        for nstate in range(nstates):
            bunch = self.tracker.create_bunch(self.beam)
            self._cache[nstate] = CachedBunch(location=None, bunch=bunch, initial=bunch.copy())
            references.append(bunch.copy())
        logger.info(f"{self.name}: initialised tracking for {nstates} states", extra={'states': nstates})
        return references

    def clear_cache(self):
        self._cache.clear()

    def cached_entry(self, nstate: int) -> CachedBunch:
        try:
            return self._cache[nstate]
        except KeyError:
            raise CacheError(f"{self.name}: state {nstate} has not been initialised") from None

    def track_state(self, nstate: int, segment: Optional[Segment] = None) -> Bunch:
        """
        Track the bunch of state ``nstate`` to the end of a segment.

        With incremental tracking the cached bunch is first advanced through
        the gap between its location and the segment start, then a copy of it
        is tracked through the segment. Without incremental tracking a copy
        of the state's initial bunch is tracked from the start of the line.
        Both give the same bunch.

        Args:
            nstate: State index
            segment: Segment to track through (the active segment by default)

        Returns:
            The tracked bunch, owned by the caller

        Raises:
            CacheError: If the state was never initialised
            SegmentError: If the segment does not lie within the beamline
            ConfigurationError: If no segment is given or active
        """
        segment = self._resolve_segment(segment)
        entry = self.cached_entry(nstate)
        log_fields = {'state': nstate, 'segment_first': segment.first, 'segment_last': segment.last}
        logger.debug(f"{self.name}: tracking state {nstate} through {segment}", extra=log_fields)

        if self._incremental:
            self._advance_to_segment(entry, segment, log_fields)
            first, source = segment.first, entry.bunch
        else:
            first, source = 0, entry.initial

        self.tracker.set_active_range(self.model.get_subrange(first, segment.last))
        self.tracker.set_initial_bunch(source, take_ownership=True)
        bunch = self.tracker.track_copy()
        logger.debug(f"{self.name}: final momentum {bunch.reference_momentum:.6g} GeV/c", extra=log_fields)
        return bunch

    def _advance_to_segment(self, entry: CachedBunch, segment: Segment, log_fields: dict):
        if entry.location is not None and entry.location >= segment.first:
            if not segment.starts_at_origin:
                logger.warning(f"{self.name}: state {log_fields['state']} at index {entry.location} "
                               f"is past the start of {segment}; rewinding", extra=log_fields)
            entry.rewind()

        if segment.starts_at_origin or entry.location == segment.first - 1:
            return

        n1 = 0 if entry.location is None else entry.location + 1
        n2 = segment.first - 1
        logger.debug(f"{self.name}: advancing state {log_fields['state']} from {n1} to {n2}", extra=log_fields)
        self.tracker.set_active_range(self.model.get_subrange(n1, n2))
        self.tracker.set_initial_bunch(entry.bunch, take_ownership=True)
        # The entry only changes once the whole gap has been tracked
        entry.bunch = self.tracker.track_copy()
        entry.location = n2

    def track_new_bunch_through_model(self) -> Bunch:
        """Create a fresh bunch and track it through the whole beamline."""
        bunch = self.tracker.create_bunch(self.beam)
        self.tracker.set_active_range(self.model.get_beamline())
        self.tracker.track_in_place(bunch)
        logger.info(f"{self.name}: final momentum {bunch.reference_momentum:.6g} GeV/c")
        return bunch

    def review_cache(self) -> pd.DataFrame:
        """
        Review the cached states as a pandas DataFrame.

        Returns:
            DataFrame with columns: State, Location, Particles, Momentum, X, Y
        """
        data = []
        for nstate, entry in sorted(self._cache.items()):
            centroid = entry.bunch.centroid() if len(entry.bunch) else None
            data.append({
                'State': nstate,
                'Location': 'unadvanced' if entry.location is None else entry.location,
                'Particles': len(entry.bunch),
                'Momentum': entry.bunch.reference_momentum,
                'X': None if centroid is None else centroid[0],
                'Y': None if centroid is None else centroid[2],
            })
        return pd.DataFrame(data, columns=['State', 'Location', 'Particles', 'Momentum', 'X', 'Y'])

    # === Channels and sources ===

    def _channels(self, plane: Plane, patterns: Dict[str, str], segment, writable: bool) -> ChannelArray:
        segment = self._resolve_segment(segment)
        beamline = self.model.get_subrange(segment.first, segment.last)
        lookup = self.model.get_write_channels if writable else self.model.get_read_channels
        channels = []
        if plane in (Plane.X_ONLY, Plane.X_AND_Y):
            channels.extend(lookup(beamline, patterns['x']))
        if plane in (Plane.Y_ONLY, Plane.X_AND_Y):
            channels.extend(lookup(beamline, patterns['y']))
        return ChannelArray(channels)

    def get_monitor_channels(self, plane: Plane, segment: Optional[Segment] = None) -> ChannelArray:
        """Return the BPM reading channels of the segment; x channels come before y channels."""
        return self._channels(plane, MONITOR_PATTERNS, segment, writable=False)

    def get_corrector_channels(self, plane: Plane, segment: Optional[Segment] = None) -> ChannelArray:
        """Return the corrector strength channels of the segment; x channels come before y channels."""
        return self._channels(plane, CORRECTOR_PATTERNS, segment, writable=True)

    def get_klystrons(self) -> List[RFPowerSource]:
        """Return the RF power sources ordered by the first beamline location they drive."""
        return sort_by_first_index(self.model.extract_elements_of_type(RFPowerSource))

    def __repr__(self) -> str:
        return f"Accelerator(name='{self.name}', states={len(self._cache)}, segment={self._segment})"
