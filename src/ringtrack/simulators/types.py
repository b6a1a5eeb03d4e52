"""
Type definitions and exceptions for ringtrack tracking and orbit solving.

This module provides the common data structures and the exception hierarchy
used across trackers, the incremental tracking cache and the closed-orbit
solver.
"""

from typing import Optional, Tuple
from pydantic import Field, field_validator, model_validator
import numpy as np

from ..models.base import PhysicsBaseModel


#: Names of the six phase-space coordinates, in storage order.
COORDINATE_NAMES = ("x", "xp", "y", "yp", "ct", "dp")


class Segment(PhysicsBaseModel):
    """
    A closed range ``[first, last]`` of beamline element indexes.

    The segment selects the part of the beamline that is currently being
    worked on. ``first == 0`` is the start of the line, which the incremental
    tracking cache treats specially.
    """
    model_config = {"frozen": True}

    first: int = Field(ge=0, description="Index of the first element in the segment")
    last: int = Field(ge=0, description="Index of the last element in the segment (inclusive)")

    @model_validator(mode='after')
    def validate_ordering(self):
        if self.first > self.last:
            raise ValueError(f"Segment first index {self.first} exceeds last index {self.last}")
        return self

    @classmethod
    def from_tuple(cls, bounds: Tuple[int, int]) -> "Segment":
        first, last = bounds
        return cls(first=first, last=last)

    @property
    def starts_at_origin(self) -> bool:
        """True when the segment begins at the first element of the line."""
        return self.first == 0

    def __len__(self) -> int:
        return self.last - self.first + 1

    def __str__(self) -> str:
        return f"[{self.first}, {self.last}]"


class BeamData(PhysicsBaseModel):
    """
    Reference beam description.

    Trackers build their bunches from this description. Only the beam
    centroid is carried here; distribution generation is left to callers.
    """
    reference_momentum: float = Field(gt=0, description="Reference momentum in GeV/c")
    charge: float = Field(default=1.0, description="Charge per macroparticle")

    x0: float = Field(default=0.0, description="Centroid horizontal position in m")
    xp0: float = Field(default=0.0, description="Centroid horizontal angle in rad")
    y0: float = Field(default=0.0, description="Centroid vertical position in m")
    yp0: float = Field(default=0.0, description="Centroid vertical angle in rad")
    ct0: float = Field(default=0.0, description="Centroid longitudinal position in m")
    dp0: float = Field(default=0.0, description="Centroid relative momentum deviation")

    def centroid(self) -> np.ndarray:
        """Return the beam centroid as a phase-space vector."""
        return np.array([self.x0, self.xp0, self.y0, self.yp0, self.ct0, self.dp0], dtype=float)


class TrackerConfiguration(PhysicsBaseModel):
    """Base configuration for trackers."""
    name: str = Field(default="linear", min_length=1, description="Tracker name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v


class ClosedOrbitResult(PhysicsBaseModel):
    """
    Outcome of a closed-orbit search.

    A result is returned for both converged and exhausted searches; callers
    distinguish them through ``converged`` or by calling
    ``raise_for_convergence()``.
    """
    orbit: np.ndarray = Field(description="Final phase-space guess (6 components)")
    converged: bool = Field(description="True if the residual met the tolerance")
    iterations: int = Field(ge=0, description="Number of Newton steps performed")
    residual: float = Field(ge=0, description="Squared residual norm of the last step")
    correction: float = Field(default=0.0, ge=0, description="Squared norm of the last correction")

    @field_validator('orbit', mode='before')
    @classmethod
    def validate_orbit(cls, v):
        v = np.asarray(v, dtype=float)
        if v.shape != (6,):
            raise ValueError(f"orbit must have shape (6,), got {v.shape}")
        return v

    def raise_for_convergence(self) -> "ClosedOrbitResult":
        """Raise ConvergenceError unless the search converged."""
        if not self.converged:
            raise ConvergenceError(
                f"Closed orbit did not converge after {self.iterations} iterations "
                f"(residual {self.residual:.3e})",
                result=self,
            )
        return self


class SimulationError(Exception):
    """Base exception class for simulation errors."""
    pass


class TrackingError(SimulationError):
    """Raised when particle tracking fails."""
    pass


class ConfigurationError(SimulationError):
    """Raised when simulation configuration is invalid."""
    pass


class SegmentError(SimulationError, ValueError):
    """Raised when a segment or beamline range is invalid for the current beamline."""
    pass


class CacheError(SimulationError, LookupError):
    """Raised when tracking is requested for a state that was never initialised."""
    pass


class ConvergenceError(SimulationError):
    """Raised when a closed-orbit search exhausts its iteration budget."""

    def __init__(self, message: str, result: Optional[ClosedOrbitResult] = None):
        super().__init__(message)
        self.result = result
