"""
Particle bunch container.

A bunch is an ordered, growable set of 6D phase-space vectors sharing a
reference momentum and a charge per macroparticle. Tracking mutates the
particle array in place.
"""

from typing import Iterable, Iterator, Optional
import numpy as np


class Bunch:
    """
    Ordered collection of particles advanced together through a beamline.

    Particles are stored as rows of an ``(N, 6)`` array in the coordinate
    order ``(x, xp, y, yp, ct, dp)``. Index 0 of a probe bunch is the
    reference particle.

    Args:
        reference_momentum: Reference momentum in GeV/c
        charge: Charge per macroparticle
        particles: Optional initial particles, any array-like of shape (N, 6)
    """

    def __init__(self, reference_momentum: float, charge: float = 1.0,
                 particles: Optional[Iterable] = None):
        if reference_momentum <= 0:
            raise ValueError("Reference momentum must be positive")
        self.reference_momentum = float(reference_momentum)
        self.charge = float(charge)

        if particles is None:
            self.particles = np.empty((0, 6), dtype=float)
        else:
            arr = np.array(particles, dtype=float)
            if arr.size == 0:
                arr = np.empty((0, 6), dtype=float)
            elif arr.ndim == 1:
                arr = arr.reshape(1, -1)
            if arr.shape[1] != 6:
                raise ValueError(f"Particles must have 6 coordinates, got shape {arr.shape}")
            self.particles = arr

    @classmethod
    def from_vector(cls, vector, reference_momentum: float, charge: float = 1.0,
                    copies: int = 1) -> "Bunch":
        """Create a bunch holding ``copies`` identical particles."""
        vector = _as_vector(vector)
        return cls(reference_momentum, charge, np.tile(vector, (copies, 1)))

    def append(self, vector):
        """Append one particle to the end of the bunch."""
        self.particles = np.vstack([self.particles, _as_vector(vector)])

    def set_particle(self, index: int, vector):
        self.particles[index] = _as_vector(vector)

    def first_particle(self) -> np.ndarray:
        """Return a copy of particle 0."""
        if len(self) == 0:
            raise IndexError("Bunch is empty")
        return self.particles[0].copy()

    def centroid(self) -> np.ndarray:
        """Return the mean phase-space vector of the bunch."""
        if len(self) == 0:
            raise IndexError("Bunch is empty")
        return self.particles.mean(axis=0)

    def copy(self) -> "Bunch":
        """Return an independent copy of the bunch."""
        return Bunch(self.reference_momentum, self.charge, self.particles.copy())

    def __len__(self) -> int:
        return self.particles.shape[0]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.particles)

    def __getitem__(self, index):
        return self.particles[index]

    def __repr__(self) -> str:
        return (f"Bunch(particles={len(self)}, "
                f"reference_momentum={self.reference_momentum:.6g} GeV/c, "
                f"charge={self.charge:g})")


def _as_vector(vector) -> np.ndarray:
    vector = np.asarray(vector, dtype=float)
    if vector.shape != (6,):
        raise ValueError(f"Phase-space vector must have shape (6,), got {vector.shape}")
    return vector.copy()
