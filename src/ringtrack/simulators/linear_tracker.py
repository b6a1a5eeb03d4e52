"""
Linear element-by-element tracker.

Each element is applied as its 6x6 transfer matrix followed by its constant
kick. When attached processes request more than one integration step, the
element is split into equal slices and the processes run after every slice.
"""

from typing import Optional
import numpy as np

from .base import BaseTracker
from .bunch import Bunch
from .types import BeamData, TrackerConfiguration


class LinearTracker(BaseTracker):
    """
    Tracker applying first-order transfer maps.

    Example:
        >>> tracker = LinearTracker()
        >>> tracker.set_active_range(model.get_beamline())
        >>> bunch = tracker.track_in_place(tracker.create_bunch(beam))
    """

    def __init__(self, config: Optional[TrackerConfiguration] = None):
        super().__init__(config or TrackerConfiguration(name="linear"))

    def create_bunch(self, beam: BeamData) -> Bunch:
        """Create a one-particle bunch sitting at the beam centroid."""
        return Bunch.from_vector(beam.centroid(), beam.reference_momentum, beam.charge)

    def num_steps(self, element) -> int:
        """Number of integration steps for ``element`` requested by the attached processes."""
        if not element.sliceable:
            return 1
        return max((process.requested_steps(element) for process in self._processes), default=1)

    def track_element(self, bunch: Bunch, element):
        processes = self.processes
        steps = self.num_steps(element)
        ds = element.length / steps
        matrix = element.transfer_matrix(ds)
        kick = element.kick(ds)

        for _ in range(steps):
            bunch.particles = bunch.particles @ matrix.T + kick
            for process in processes:
                process.apply(bunch, element, ds)

        element.observe(bunch)
