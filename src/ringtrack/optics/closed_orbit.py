"""
Closed-orbit finder.

The closed orbit is the fixed point of one-turn tracking. It is found by a
Newton-Raphson search: each iteration tracks a probe bunch made of the
current guess plus one particle displaced by ``delta`` in each solved
coordinate, builds the Jacobian of ``T(z) - z`` by finite differences and
solves for the correction with an SVD pseudo-inverse.

Example:
    >>> solver = ClosedOrbitSolver(model, reference_momentum=5.0)
    >>> solver.transverse_only(True)
    >>> result = solver.find_closed_orbit(np.zeros(6))
    >>> result.raise_for_convergence().orbit
"""

from typing import TYPE_CHECKING, Optional, Tuple, Union
import logging
from pydantic import Field
import numpy as np

from ..models.base import PhysicsBaseModel
from ..simulators.base import BaseTracker
from ..simulators.bunch import Bunch
from ..simulators.linear_tracker import LinearTracker
from ..simulators.processes import (
    TrackingProcess,
    SynchRadProcess,
    RingDeltaPathProcess,
    NonFiniteCheckProcess,
)
from ..simulators.types import (
    ClosedOrbitResult,
    Segment,
    SegmentError,
    TrackerConfiguration,
)

if TYPE_CHECKING:
    from ..machine_portal.beamline import BeamlineModel

logger = logging.getLogger(__name__)


class ClosedOrbitConfig(PhysicsBaseModel):
    """
    Settings of the closed-orbit search.

    Radiation integration uses either a fixed number of steps per element
    (``rad_num_steps``) or a maximum step length (``rad_step_size``); a
    non-zero step size takes precedence.
    """
    transverse_only: bool = Field(default=False, description="Solve for (x, xp, y, yp) only")
    radiation: bool = Field(default=False, description="Include synchrotron radiation energy loss")
    rad_num_steps: int = Field(default=1, ge=0, description="Radiation steps per element")
    rad_step_size: float = Field(default=0.0, ge=0, description="Maximum radiation step length in m")
    full_acceleration: bool = Field(default=False, description="Reserved full-acceleration mode flag")
    delta: float = Field(default=1e-9, gt=0, description="Finite-difference step")
    tolerance: float = Field(default=1e-26, gt=0, description="Tolerance on the squared residual norm")
    max_iterations: int = Field(default=20, ge=1, description="Iteration budget")
    bend_scale: float = Field(default=0.0, description="Path-length scale in bends (0 disables)")
    check_finite: bool = Field(default=False, description="Fail on non-finite coordinates during tracking")
    svd_threshold: float = Field(default=1e-8, ge=0, lt=1,
                                 description="Singular values below this fraction of the largest are discarded")


def svd_solve(matrix: np.ndarray, rhs: np.ndarray, threshold: float) -> np.ndarray:
    """
    Least-squares solution of ``matrix @ x = rhs`` through the SVD pseudo-inverse.

    Singular values smaller than ``threshold`` times the largest one are
    treated as zero, so a singular matrix yields the minimum-norm solution
    instead of an error.
    """
    u, s, vt = np.linalg.svd(matrix)
    inverse = np.zeros_like(s)
    if s.size and s[0] > 0:
        keep = s > threshold * s[0]
        inverse[keep] = 1.0 / s[keep]
    return vt.T @ (inverse * (u.T @ rhs))


class ClosedOrbitSolver:
    """
    Newton-Raphson closed-orbit finder for a beamline model.

    The solver owns its tracker. Processes added with ``add_process`` stay
    attached across calls; the radiation, path-length and diagnostic
    processes implied by the configuration are attached for the duration of
    each ``find_closed_orbit`` call only.

    Args:
        model: Beamline model describing one turn of the ring
        reference_momentum: Reference momentum in GeV/c
        config: Solver settings (defaults if omitted)
        tracker: Tracker to use (a LinearTracker by default)
    """

    def __init__(self, model: "BeamlineModel", reference_momentum: float,
                 config: Optional[ClosedOrbitConfig] = None,
                 tracker: Optional[BaseTracker] = None):
        if reference_momentum <= 0:
            raise ValueError("Reference momentum must be positive")
        self.model = model
        self.reference_momentum = float(reference_momentum)
        self.config = config or ClosedOrbitConfig()
        self.tracker = tracker or LinearTracker(TrackerConfiguration(name="closed_orbit"))

    # === Settings ===

    def transverse_only(self, flag: bool):
        self.config.transverse_only = flag

    def radiation(self, flag: bool):
        """Switch radiation on or off; switching on resets to one step per element."""
        self.config.radiation = flag
        if flag:
            self.set_rad_num_steps(1)

    def full_acceleration(self, flag: bool):
        self.config.full_acceleration = flag

    def set_delta(self, delta: float):
        self.config.delta = delta

    def set_tolerance(self, tolerance: float):
        self.config.tolerance = tolerance

    def set_max_iterations(self, max_iterations: int):
        self.config.max_iterations = max_iterations

    def set_rad_step_size(self, step_size: float):
        if step_size <= 0:
            raise ValueError("Radiation step size must be positive")
        self.config.rad_step_size = step_size
        self.config.rad_num_steps = 0

    def set_rad_num_steps(self, num_steps: int):
        if num_steps < 1:
            raise ValueError("Number of radiation steps must be at least 1")
        self.config.rad_num_steps = num_steps
        self.config.rad_step_size = 0.0

    def scale_bend_path_length(self, scale: float):
        self.config.bend_scale = scale

    def add_process(self, process: TrackingProcess):
        """Attach a process to the solver's tracker for all subsequent calls."""
        self.tracker.add_process(process)

    # === Solving ===

    def _transient_processes(self):
        config = self.config
        processes = []
        if config.radiation:
            if config.rad_step_size > 0:
                radiation = SynchRadProcess(max_step_size=config.rad_step_size)
            else:
                radiation = SynchRadProcess(num_steps=max(1, config.rad_num_steps))
            radiation.adjust_reference_energy = False
            processes.append(radiation)
        if config.bend_scale != 0:
            processes.append(RingDeltaPathProcess(config.bend_scale))
        if config.check_finite:
            processes.append(NonFiniteCheckProcess(detailed=True))
        return processes

    def _beamline(self, segment: Union[Segment, Tuple[int, int], None]):
        if segment is None:
            return self.model.get_beamline()
        if isinstance(segment, Segment):
            return self.model.get_subrange(segment.first, segment.last)
        first, last = segment
        return self.model.get_subrange(first, last)

    def find_closed_orbit(self, guess, segment: Union[Segment, Tuple[int, int], None] = None) -> ClosedOrbitResult:
        """
        Search for the closed orbit starting from ``guess``.

        Args:
            guess: Initial phase-space vector (6 components)
            segment: Part of the model forming one turn (the whole line by default)

        Returns:
            ClosedOrbitResult; ``converged`` is False when the iteration budget
            ran out before the tolerance was met

        Raises:
            SegmentError: If ``segment`` is not a valid range of the model
            TrackingError: If tracking the probe bunch fails
        """
        orbit = np.array(guess, dtype=float)
        if orbit.shape != (6,):
            raise ValueError(f"Guess must have shape (6,), got {orbit.shape}")
        beamline = self._beamline(segment)

        config = self.config
        cpt = 4 if config.transverse_only else 6
        delta = config.delta
        identity = np.eye(cpt)
        probe = Bunch.from_vector(orbit, self.reference_momentum, copies=cpt + 1)

        self.tracker.set_active_range(beamline)
        w = np.inf
        correction_norm = 0.0
        count = 1
        steps = 0

        with self.tracker.attached(*self._transient_processes()):
            while w > config.tolerance and count < config.max_iterations:
                # Particle 0 is the reference ray; particle k+1 is displaced in coordinate k.
                probe.reference_momentum = self.reference_momentum
                probe.particles = np.tile(orbit, (cpt + 1, 1))
                probe.particles[1:, :cpt] += delta * identity

                self.tracker.track_in_place(probe)

                tracked = probe.particles
                reference = tracked[0, :cpt]
                jacobian = (tracked[1:, :cpt] - reference).T / delta - identity
                residual = reference - orbit[:cpt]

                correction = svd_solve(jacobian, residual, config.svd_threshold)
                orbit[:cpt] -= correction

                w = float(residual @ residual)
                correction_norm = float(correction @ correction)
                count += 1
                steps += 1
                logger.debug(f"Closed orbit iteration {steps}: residual {w:.3e}",
                             extra={'iteration': steps, 'residual': w})

        converged = bool(w <= config.tolerance)
        result = ClosedOrbitResult(
            orbit=orbit,
            converged=converged,
            iterations=steps,
            residual=w,
            correction=correction_norm,
        )
        fields = {'iterations': steps, 'residual': result.residual, 'converged': converged}
        if converged:
            logger.info(f"Closed orbit converged after {steps} iterations (residual {w:.3e})", extra=fields)
        else:
            logger.warning(f"Closed orbit not converged after {steps} iterations (residual {w:.3e})",
                           extra=fields)
        return result

    def find_rms_orbit(self, vector) -> np.ndarray:
        """
        RMS excursion of an orbit along the whole beamline.

        The orbit starting at ``vector`` is stepped element by element; for
        each coordinate the squared mean of the values at both ends of an
        element is weighted by the element length and accumulated.

        Returns:
            Six-component vector ``sqrt(sum / total_length)``

        Raises:
            SegmentError: If the beamline has zero total length
        """
        start = np.array(vector, dtype=float)
        if start.shape != (6,):
            raise ValueError(f"Vector must have shape (6,), got {start.shape}")
        beamline = self.model.get_beamline()
        total_length = beamline.total_length()
        if total_length <= 0:
            raise SegmentError(f"Beamline '{self.model.name}' has zero total length")

        tracker = self.tracker.spawn()
        tracker.set_active_range(beamline)
        tracker.init_stepper(Bunch.from_vector(start, self.reference_momentum))

        rms = np.zeros(6)
        previous = start
        more = True
        while more:
            dl = tracker.current_component().length
            more = tracker.step_component()
            present = tracker.tracked_bunch().first_particle()
            rms += dl * ((present + previous) / 2) ** 2
            previous = present

        return np.sqrt(rms / total_length)

    def __repr__(self) -> str:
        return (f"ClosedOrbitSolver(model='{self.model.name}', "
                f"reference_momentum={self.reference_momentum:.6g}, tracker={self.tracker!r})")
