# Define the elements of the accelerator beamline.
# Each element carries its name, type and length plus the few strengths its
# linear transfer map needs.
# Current types are:
## Drift : Field-free drift space
## Quadrupole : Quadrupole magnet, strength k1 (m^-2)
## SectorBend : Sector dipole with optional gradient, bending angle (rad) and k1
## Corrector : Thin (or short) orbit corrector, kick angle B0 (rad) in one plane
## Monitor : Beam position monitor, records the centroid of the passing bunch
## Marker : Zero length reference point
## MatrixElement : Explicit 6x6 map plus constant kick, e.g. a one-turn map
#
# RF power sources are not beamline elements: they drive several beamline
# locations and are stored on the model by type.

from dataclasses import dataclass, field
import math
import numpy as np


@dataclass
class Element:
    """Base class for accelerator elements.

    The default transfer map is the identity with no kick. Subclasses
    override ``transfer_matrix`` and ``kick`` for their own slice of length
    ``ds``.
    """
    name: str
    type: str = 'Element'
    length: float = 0.0

    def __post_init__(self):
        if not self.name:
            raise ValueError("Element must have a name.")
        if self.length < 0:
            raise ValueError(f"Length of element '{self.name}' must be non-negative.")

    # Whether the tracker may split this element into several integration steps.
    sliceable = True
    # Whether the element bends the reference trajectory.
    is_bend = False
    # Channel attributes readable (and writable) through the control system.
    read_attributes = ()
    write_attributes = ()

    def transfer_matrix(self, ds: float) -> np.ndarray:
        """Linear 6x6 transfer matrix for a slice of length ``ds``."""
        return np.eye(6)

    def kick(self, ds: float) -> np.ndarray:
        """Constant phase-space kick applied after the matrix for a slice of length ``ds``."""
        return np.zeros(6)

    def observe(self, bunch):
        """Hook called by the tracker once the whole element has been tracked."""
        pass

    def get_attribute(self, attribute: str) -> float:
        if attribute not in self.read_attributes + self.write_attributes:
            raise KeyError(f"Element '{self.name}' has no channel attribute '{attribute}'.")
        return float(getattr(self, _attribute_field(attribute)))

    def set_attribute(self, attribute: str, value: float):
        if attribute not in self.write_attributes:
            raise KeyError(f"Channel attribute '{attribute}' of element '{self.name}' is not writable.")
        setattr(self, _attribute_field(attribute), float(value))

    def get_length(self) -> float:
        return self.length

    def get_type(self) -> str:
        return self.type

    def get_name(self) -> str:
        return self.name


def _attribute_field(attribute: str) -> str:
    return {'X': 'x_reading', 'Y': 'y_reading', 'B0': 'strength'}.get(attribute, attribute)


def _drift_matrix(ds: float) -> np.ndarray:
    m = np.eye(6)
    m[0, 1] = ds
    m[2, 3] = ds
    return m


def _focusing_block(k: float, ds: float) -> np.ndarray:
    """2x2 block for x'' = -k x over a length ``ds``."""
    if k > 0:
        w = math.sqrt(k)
        c, s = math.cos(w * ds), math.sin(w * ds)
        return np.array([[c, s / w], [-w * s, c]])
    if k < 0:
        w = math.sqrt(-k)
        c, s = math.cosh(w * ds), math.sinh(w * ds)
        return np.array([[c, s / w], [w * s, c]])
    return np.array([[1.0, ds], [0.0, 1.0]])


@dataclass
class Drift(Element):
    """Drift space element."""
    type: str = 'Drift'

    def transfer_matrix(self, ds: float) -> np.ndarray:
        return _drift_matrix(ds)


@dataclass
class Marker(Element):
    """Zero length marker element."""
    type: str = 'Marker'

    def __post_init__(self):
        super().__post_init__()
        if self.length != 0:
            raise ValueError("Length of a marker element must be zero.")


@dataclass
class Quadrupole(Element):
    """Quadrupole element.

    Positive ``k1`` focuses in the horizontal plane and defocuses in the
    vertical plane.
    """
    type: str = 'Quadrupole'
    k1: float = 0.0

    def transfer_matrix(self, ds: float) -> np.ndarray:
        m = np.eye(6)
        m[0:2, 0:2] = _focusing_block(self.k1, ds)
        m[2:4, 2:4] = _focusing_block(-self.k1, ds)
        return m


@dataclass
class SectorBend(Element):
    """Sector dipole, optionally with a focusing gradient.

    The map includes the dispersive terms and the first order path-length
    terms in ``ct``, where a longer path gives a negative ``ct``.
    """
    type: str = 'SectorBend'
    angle: float = 0.0
    k1: float = 0.0

    is_bend = True

    def __post_init__(self):
        super().__post_init__()
        if self.length <= 0:
            raise ValueError("Length of a sector bend must be positive.")

    @property
    def curvature(self) -> float:
        return self.angle / self.length

    def transfer_matrix(self, ds: float) -> np.ndarray:
        h = self.curvature
        kx = h * h + self.k1
        m = np.eye(6)
        block = _focusing_block(kx, ds)
        m[0:2, 0:2] = block
        m[2:4, 2:4] = _focusing_block(-self.k1, ds)

        c, s = block[0, 0], block[0, 1]
        if kx != 0:
            m[0, 5] = h * (1 - c) / kx
            m[4, 1] = -h * (1 - c) / kx
            m[4, 5] = -h * h * (ds - s) / kx
        else:
            m[0, 5] = h * ds * ds / 2
            m[4, 1] = -h * ds * ds / 2
            m[4, 5] = -h * h * ds ** 3 / 6
        m[1, 5] = h * s
        m[4, 0] = -h * s
        return m


@dataclass
class Corrector(Element):
    """Orbit corrector giving a kick of ``strength`` radians in one plane.

    Correctors are addressed through the writable ``B0`` channel. A corrector
    with non-zero length is treated as a drift with the kick spread along it.
    """
    type: str = 'Corrector'
    plane: str = 'x'
    strength: float = 0.0

    write_attributes = ('B0',)

    def __post_init__(self):
        super().__post_init__()
        if self.plane not in ('x', 'y'):
            raise ValueError("Corrector plane must be either 'x' or 'y'.")

    def transfer_matrix(self, ds: float) -> np.ndarray:
        return _drift_matrix(ds)

    def kick(self, ds: float) -> np.ndarray:
        fraction = 1.0 if self.length == 0 else ds / self.length
        k = np.zeros(6)
        k[1 if self.plane == 'x' else 3] = self.strength * fraction
        return k


@dataclass
class Monitor(Element):
    """Beam position monitor.

    The monitor records the centroid of every bunch tracked through it; the
    readings are exposed through the read-only ``X`` and ``Y`` channels.
    """
    type: str = 'Monitor'
    x_reading: float = 0.0
    y_reading: float = 0.0

    read_attributes = ('X', 'Y')

    def transfer_matrix(self, ds: float) -> np.ndarray:
        return _drift_matrix(ds)

    def observe(self, bunch):
        if len(bunch) == 0:
            return
        centroid = bunch.centroid()
        self.x_reading = float(centroid[0])
        self.y_reading = float(centroid[2])


@dataclass(eq=False)
class MatrixElement(Element):
    """Element defined by an explicit 6x6 matrix and a constant kick.

    The map applies to the whole element and is never split into steps.
    """
    type: str = 'MatrixElement'
    matrix: np.ndarray = field(default_factory=lambda: np.eye(6))
    constant_kick: np.ndarray = field(default_factory=lambda: np.zeros(6))

    sliceable = False

    def __post_init__(self):
        super().__post_init__()
        self.matrix = np.asarray(self.matrix, dtype=float)
        self.constant_kick = np.asarray(self.constant_kick, dtype=float)
        if self.matrix.shape != (6, 6):
            raise ValueError(f"Matrix of element '{self.name}' must be 6x6.")
        if self.constant_kick.shape != (6,):
            raise ValueError(f"Kick of element '{self.name}' must have 6 components.")

    def transfer_matrix(self, ds: float) -> np.ndarray:
        return self.matrix

    def kick(self, ds: float) -> np.ndarray:
        return self.constant_kick


@dataclass
class RFPowerSource:
    """An RF power source (klystron) driving cavities at several beamline locations."""
    name: str
    beamline_indexes: list[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("RF power source must have a name.")
        if not self.beamline_indexes:
            raise ValueError(f"RF power source '{self.name}' must drive at least one beamline location.")

    @property
    def first_index(self) -> int:
        return self.beamline_indexes[0]


def sort_by_first_index(sources):
    """Return the sources sorted by their first beamline index.

    The sort is stable, so sources sharing a first index keep the order in
    which they were found.
    """
    return sorted(sources, key=lambda source: source.first_index)
