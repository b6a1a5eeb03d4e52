"""
ringtrack Machine Portal - Beamline modeling and element definitions
"""

from ringtrack.machine_portal.element import (
    Element,
    Drift,
    Marker,
    Quadrupole,
    SectorBend,
    Corrector,
    Monitor,
    MatrixElement,
    RFPowerSource,
    sort_by_first_index,
)
from ringtrack.machine_portal.beamline import BeamlineModel, BeamlineRange
from ringtrack.machine_portal.channels import ROChannel, RWChannel, ChannelArray

__all__ = [
    'Element',
    'Drift',
    'Marker',
    'Quadrupole',
    'SectorBend',
    'Corrector',
    'Monitor',
    'MatrixElement',
    'RFPowerSource',
    'sort_by_first_index',
    'BeamlineModel',
    'BeamlineRange',
    'ROChannel',
    'RWChannel',
    'ChannelArray',
]
