"""
Orbit analysis for ringtrack.

Closed-orbit search and RMS orbit excursion along a beamline model.
"""

from .closed_orbit import ClosedOrbitConfig, ClosedOrbitSolver, svd_solve

__all__ = [
    'ClosedOrbitConfig',
    'ClosedOrbitSolver',
    'svd_solve',
]
