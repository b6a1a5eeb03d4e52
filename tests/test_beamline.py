"""
Test suite for beamline elements, the beamline model and control channels.
"""

import math
import pytest
import numpy as np

from ringtrack.machine_portal import (
    BeamlineModel,
    ChannelArray,
    Corrector,
    Drift,
    Marker,
    MatrixElement,
    Monitor,
    Quadrupole,
    RFPowerSource,
    ROChannel,
    RWChannel,
    SectorBend,
    sort_by_first_index,
)
from ringtrack.simulators.bunch import Bunch
from ringtrack.simulators.types import Segment, SegmentError


def create_test_beamline():
    """Create a short line with monitors, correctors and klystrons."""
    elements = [
        Drift(name="D0", length=1.0),
        Quadrupole(name="QF", length=0.5, k1=0.8),
        Monitor(name="BPM1"),
        Corrector(name="XCor1", plane='x'),
        Corrector(name="YCor1", plane='y'),
        Drift(name="D1", length=1.0),
        Quadrupole(name="QD", length=0.5, k1=-0.8),
        Monitor(name="BPM2"),
        Marker(name="END"),
    ]
    sources = [RFPowerSource(name="K1", beamline_indexes=[5, 6]),
               RFPowerSource(name="K2", beamline_indexes=[0, 1])]
    return BeamlineModel(name="test_line", elements=elements, sources=sources)


def is_symplectic_2d(block):
    return abs(np.linalg.det(block) - 1.0) < 1e-12


class TestElements:
    """Test element transfer maps and validation."""

    def test_drift_matrix(self):
        m = Drift(name="D", length=2.0).transfer_matrix(2.0)
        assert m[0, 1] == 2.0
        assert m[2, 3] == 2.0
        np.testing.assert_array_equal(np.diag(m), np.ones(6))

    def test_quadrupole_focusing(self):
        quad = Quadrupole(name="Q", length=0.5, k1=0.8)
        m = quad.transfer_matrix(0.5)
        w = math.sqrt(0.8)
        assert m[0, 0] == pytest.approx(math.cos(w * 0.5))
        assert m[1, 0] == pytest.approx(-w * math.sin(w * 0.5))
        # Defocusing in the vertical plane
        assert m[2, 2] == pytest.approx(math.cosh(w * 0.5))
        assert is_symplectic_2d(m[0:2, 0:2])
        assert is_symplectic_2d(m[2:4, 2:4])

    def test_zero_strength_quadrupole_is_a_drift(self):
        np.testing.assert_array_equal(Quadrupole(name="Q", length=1.0).transfer_matrix(1.0),
                                      Drift(name="D", length=1.0).transfer_matrix(1.0))

    def test_sector_bend_dispersion(self):
        bend = SectorBend(name="B", length=2.0, angle=0.1)
        h = bend.curvature
        assert h == pytest.approx(0.05)
        m = bend.transfer_matrix(2.0)
        theta = 0.1
        assert m[0, 5] == pytest.approx((1 - math.cos(theta)) / h)
        assert m[1, 5] == pytest.approx(math.sin(theta))
        assert m[4, 0] == pytest.approx(-math.sin(theta))
        assert m[4, 1] == pytest.approx(-(1 - math.cos(theta)) / h)
        assert m[4, 5] == pytest.approx(-(2.0 - math.sin(theta) / h))
        assert np.linalg.det(m) == pytest.approx(1.0)
        assert bend.is_bend

    def test_gradient_bend_with_zero_horizontal_focusing(self):
        """With k1 = -h^2 the horizontal plane behaves as a drift."""
        bend = SectorBend(name="B", length=1.0, angle=0.5, k1=-0.25)
        m = bend.transfer_matrix(1.0)
        assert m[0, 5] == pytest.approx(0.25)
        assert m[1, 5] == pytest.approx(0.5)
        assert m[4, 5] == pytest.approx(-0.25 / 6)

    def test_bend_requires_length(self):
        with pytest.raises(ValueError, match="positive"):
            SectorBend(name="B", length=0.0, angle=0.1)

    def test_element_validation(self):
        with pytest.raises(ValueError, match="name"):
            Drift(name="", length=1.0)
        with pytest.raises(ValueError, match="non-negative"):
            Drift(name="D", length=-1.0)
        with pytest.raises(ValueError, match="zero"):
            Marker(name="M", length=1.0)

    def test_corrector_kick(self):
        xcor = Corrector(name="XC", plane='x', strength=1e-3)
        ycor = Corrector(name="YC", plane='y', strength=-2e-3)
        assert xcor.kick(0.0)[1] == 1e-3
        assert ycor.kick(0.0)[3] == -2e-3
        with pytest.raises(ValueError, match="plane"):
            Corrector(name="ZC", plane='z')

    def test_long_corrector_kick_spread_over_steps(self):
        cor = Corrector(name="XC", length=2.0, plane='x', strength=1e-3)
        assert cor.kick(0.5)[1] == pytest.approx(2.5e-4)

    def test_monitor_observes_centroid(self):
        bpm = Monitor(name="BPM")
        bunch = Bunch(reference_momentum=1.0, particles=[[1e-3, 0, 2e-3, 0, 0, 0], [3e-3, 0, 0, 0, 0, 0]])
        bpm.observe(bunch)
        assert bpm.x_reading == pytest.approx(2e-3)
        assert bpm.y_reading == pytest.approx(1e-3)

    def test_matrix_element(self):
        matrix = np.eye(6)
        matrix[0, 1] = 3.0
        element = MatrixElement(name="M", matrix=matrix, constant_kick=np.full(6, 1e-6))
        assert not element.sliceable
        np.testing.assert_array_equal(element.transfer_matrix(0.0), matrix)
        with pytest.raises(ValueError, match="6x6"):
            MatrixElement(name="M", matrix=np.eye(4))
        with pytest.raises(ValueError, match="6 components"):
            MatrixElement(name="M", constant_kick=np.zeros(4))

    def test_element_attributes(self):
        cor = Corrector(name="XC", plane='x', strength=1e-3)
        assert cor.get_attribute('B0') == 1e-3
        cor.set_attribute('B0', 2e-3)
        assert cor.strength == 2e-3
        with pytest.raises(KeyError):
            Monitor(name="BPM").set_attribute('X', 1.0)
        assert cor.get_type() == 'Corrector'
        assert cor.get_name() == 'XC'


class TestRFPowerSources:

    def test_first_index(self):
        assert RFPowerSource(name="K", beamline_indexes=[7, 3]).first_index == 7

    def test_source_needs_locations(self):
        with pytest.raises(ValueError, match="at least one"):
            RFPowerSource(name="K", beamline_indexes=[])

    def test_sort_is_stable(self):
        sources = [RFPowerSource(name="A", beamline_indexes=[12]),
                   RFPowerSource(name="B", beamline_indexes=[3]),
                   RFPowerSource(name="C", beamline_indexes=[12, 40]),
                   RFPowerSource(name="D", beamline_indexes=[0])]
        assert [s.name for s in sort_by_first_index(sources)] == ["D", "B", "A", "C"]


class TestBeamlineModel:
    """Test the beamline model queries."""

    def test_model_creation(self):
        model = create_test_beamline()
        assert len(model) == 9
        assert model.total_length() == pytest.approx(3.0)
        assert model.get_range() == Segment(first=0, last=8)
        assert model.get_element(2).name == "BPM1"

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="already exists"):
            BeamlineModel(name="dup", elements=[Drift(name="D", length=1.0), Drift(name="D", length=2.0)])
        model = create_test_beamline()
        with pytest.raises(ValueError, match="already exists"):
            model.add_element(Drift(name="D0", length=1.0))
        with pytest.raises(TypeError):
            model.add_element("D9")

    def test_source_outside_beamline(self):
        model = create_test_beamline()
        with pytest.raises(ValueError, match="outside"):
            model.add_source(RFPowerSource(name="K9", beamline_indexes=[42]))

    def test_empty_model_range(self):
        with pytest.raises(SegmentError, match="no elements"):
            BeamlineModel(name="empty").get_range()

    def test_subrange(self):
        model = create_test_beamline()
        beamline = model.get_subrange(2, 4)
        assert len(beamline) == 3
        assert [index for index, _ in beamline] == [2, 3, 4]
        assert [e.name for e in beamline.elements()] == ["BPM1", "XCor1", "YCor1"]
        assert model.get_beamline().total_length() == pytest.approx(3.0)

    def test_invalid_subranges(self):
        """Invalid ranges are rejected with SegmentError."""
        model = create_test_beamline()
        with pytest.raises(SegmentError, match="first index exceeds"):
            model.get_subrange(5, 2)
        with pytest.raises(SegmentError, match="outside"):
            model.get_subrange(0, 9)
        with pytest.raises(SegmentError, match="outside"):
            model.get_subrange(-1, 3)

    def test_extract_elements_of_type(self):
        model = create_test_beamline()
        assert {q.name for q in model.extract_elements_of_type(Quadrupole)} == {"QF", "QD"}
        assert {s.name for s in model.extract_elements_of_type(RFPowerSource)} == {"K1", "K2"}

    def test_find_indexes(self):
        model = create_test_beamline()
        assert model.find_indexes(r"BPM.*") == [2, 7]
        assert model.find_indexes(r"D\d") == [0, 5]
        # Pattern must match the whole name
        assert model.find_indexes(r"BPM") == []


class TestChannels:
    """Test channel lookup and access."""

    def test_read_channels(self):
        model = create_test_beamline()
        channels = model.get_read_channels(model.get_beamline(), r"BPM.*\.X")
        assert [c.id for c in channels] == ["BPM1.X", "BPM2.X"]
        assert all(type(c) is ROChannel for c in channels)

    def test_read_channels_restricted_to_range(self):
        model = create_test_beamline()
        channels = model.get_read_channels(model.get_subrange(5, 8), r"BPM.*\.Y")
        assert [c.id for c in channels] == ["BPM2.Y"]

    def test_write_channels(self):
        model = create_test_beamline()
        channels = model.get_write_channels(model.get_beamline(), r"XCor.*\.B0")
        assert [c.id for c in channels] == ["XCor1.B0"]
        assert isinstance(channels[0], RWChannel)
        # Monitor readings are not writable
        assert model.get_write_channels(model.get_beamline(), r"BPM.*\.X") == []

    def test_rw_channel_write_and_increment(self):
        cor = Corrector(name="XCor1", plane='x')
        channel = RWChannel(cor, 'B0')
        channel.write(1e-4)
        channel.increment(5e-5)
        assert cor.strength == pytest.approx(1.5e-4)
        assert channel.read() == pytest.approx(1.5e-4)

    def test_channel_validation(self):
        with pytest.raises(ValueError, match="no channel attribute"):
            ROChannel(Drift(name="D", length=1.0), 'X')
        with pytest.raises(ValueError, match="not writable"):
            RWChannel(Monitor(name="BPM"), 'X')

    def test_channel_array(self):
        bpm = Monitor(name="BPM", x_reading=1.0, y_reading=2.0)
        cor = Corrector(name="XCor", plane='x')
        array = ChannelArray()
        array.set_channels([ROChannel(bpm, 'X'), ROChannel(bpm, 'Y')])
        assert len(array) == 2
        assert array.read_all() == [1.0, 2.0]
        assert array.ids() == ["BPM.X", "BPM.Y"]
        with pytest.raises(TypeError, match="read-only"):
            array.write_all([0.0, 0.0])

        writable = ChannelArray([RWChannel(cor, 'B0')])
        writable.write_all([3e-4])
        assert cor.strength == 3e-4
        assert writable[0].id == "XCor.B0"
        with pytest.raises(ValueError, match="Expected 1 values"):
            writable.write_all([1.0, 2.0])
