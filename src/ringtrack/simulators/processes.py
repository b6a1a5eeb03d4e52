"""
Physical processes applied by trackers during each integration step.

The set of processes is closed: synchrotron radiation, ring path-length
rescaling and a non-finite coordinate check. They are applied after every
step in ``ProcessKind`` order, whatever order they were attached in.
"""

from enum import IntEnum
import logging
import math
import numpy as np

from .types import TrackingError

logger = logging.getLogger(__name__)

#: Classical radiation constant for electrons, m / GeV^3.
C_GAMMA = 8.846e-5


class ProcessKind(IntEnum):
    """Process variants; the integer value is the application order."""
    RADIATION = 1
    RING_DELTA = 2
    DIAGNOSTIC = 3


class TrackingProcess:
    """
    Base class for processes attached to a tracker.

    Subclasses set ``kind`` and implement ``apply``. ``requested_steps``
    lets a process ask the tracker to split an element into several
    integration steps.
    """
    kind: ProcessKind

    def requested_steps(self, element) -> int:
        return 1

    def apply(self, bunch, element, ds: float):
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.kind.name})"


class SynchRadProcess(TrackingProcess):
    """
    Mean synchrotron-radiation energy loss in bending magnets.

    The loss over a step of length ``ds`` in a bend of curvature ``h`` is

        dp -= C_gamma / (2 pi) * p0^3 * (1 + dp)^2 * h^2 * ds

    Each element is split either into a fixed number of steps or into steps
    no longer than a maximum step size; setting one resets the other.

    Args:
        num_steps: Fixed number of steps per element
        max_step_size: Maximum step length in m (0 to use ``num_steps``)
        adjust_reference_energy: Rescale the bunch reference momentum to
            follow the centroid energy loss
    """
    kind = ProcessKind.RADIATION

    def __init__(self, num_steps: int = 1, max_step_size: float = 0.0,
                 adjust_reference_energy: bool = False):
        self.num_steps = 1
        self.max_step_size = 0.0
        if max_step_size > 0:
            self.set_max_component_step_size(max_step_size)
        else:
            self.set_num_component_steps(num_steps)
        self.adjust_reference_energy = adjust_reference_energy

    def set_num_component_steps(self, num_steps: int):
        if num_steps < 1:
            raise ValueError("Number of radiation steps must be at least 1")
        self.num_steps = int(num_steps)
        self.max_step_size = 0.0

    def set_max_component_step_size(self, step_size: float):
        if step_size <= 0:
            raise ValueError("Radiation step size must be positive")
        self.max_step_size = float(step_size)
        self.num_steps = 0

    def requested_steps(self, element) -> int:
        if self.max_step_size > 0:
            return max(1, math.ceil(element.length / self.max_step_size))
        return self.num_steps

    def apply(self, bunch, element, ds: float):
        if not element.is_bend or ds == 0 or len(bunch) == 0:
            return
        h = element.curvature
        p0 = bunch.reference_momentum
        dp = bunch.particles[:, 5]
        loss = C_GAMMA / (2 * math.pi) * p0 ** 3 * (1 + dp) ** 2 * h * h * ds
        bunch.particles[:, 5] = dp - loss

        if self.adjust_reference_energy:
            # Re-reference the bunch to its mean momentum.
            mean_dp = float(bunch.particles[:, 5].mean())
            scale = 1 + mean_dp
            bunch.reference_momentum *= scale
            bunch.particles[:, 5] = (1 + bunch.particles[:, 5]) / scale - 1
            bunch.particles[:, 1] /= scale
            bunch.particles[:, 3] /= scale


class RingDeltaPathProcess(TrackingProcess):
    """
    Path-length rescaling in ring bends.

    In every bend step the longitudinal coordinate is shifted by
    ``-scale * ds``, so the reference particle can be made to arrive in
    time with the RF after one turn.
    """
    kind = ProcessKind.RING_DELTA

    def __init__(self, scale: float):
        self.scale = float(scale)

    def set_bend_scale(self, scale: float):
        self.scale = float(scale)

    def apply(self, bunch, element, ds: float):
        if not element.is_bend or ds == 0:
            return
        bunch.particles[:, 4] -= self.scale * ds


class NonFiniteCheckProcess(TrackingProcess):
    """
    Diagnostic check raising TrackingError when a coordinate turns NaN or infinite.

    Args:
        detailed: Log the offending particle coordinates before raising
    """
    kind = ProcessKind.DIAGNOSTIC

    def __init__(self, detailed: bool = False):
        self.detailed = detailed

    def apply(self, bunch, element, ds: float):
        bad = ~np.isfinite(bunch.particles).all(axis=1)
        if not bad.any():
            return
        indexes = np.flatnonzero(bad).tolist()
        if self.detailed:
            for i in indexes:
                logger.error("Non-finite particle %d after %s: %s", i, element.name, bunch.particles[i])
        raise TrackingError(f"Non-finite coordinates after element '{element.name}' in particles {indexes}")
