# Beamline model: an ordered line of elements addressed by index, plus the
# RF power sources that drive elements at several locations along it.
# Sub-ranges of the line are handed to trackers as BeamlineRange handles.

from dataclasses import dataclass, field
from typing import Iterator
import re

from ringtrack.machine_portal.element import Element, RFPowerSource
from ringtrack.machine_portal.channels import ROChannel, RWChannel
from ringtrack.simulators.types import Segment, SegmentError


class BeamlineRange:
    """Contiguous, inclusive range of elements ``[first_index, last_index]`` of a beamline."""

    def __init__(self, elements: list[Element], first_index: int, last_index: int):
        self._elements = elements
        self.first_index = first_index
        self.last_index = last_index

    def __iter__(self) -> Iterator[tuple[int, Element]]:
        """Iterate over ``(index, element)`` pairs in beamline order."""
        for index in range(self.first_index, self.last_index + 1):
            yield index, self._elements[index]

    def __len__(self) -> int:
        return self.last_index - self.first_index + 1

    def elements(self) -> list[Element]:
        return self._elements[self.first_index:self.last_index + 1]

    def total_length(self) -> float:
        return sum(element.length for element in self.elements())

    def __repr__(self) -> str:
        return f"BeamlineRange([{self.first_index}, {self.last_index}], {len(self)} elements)"


@dataclass
class BeamlineModel:
    """Class representing the accelerator model seen by trackers and orbit solvers.

    Elements are held in beamline order; their position in ``elements`` is
    their beamline index. RF power sources are stored separately, by type.
    """
    name: str
    elements: list[Element] = field(default_factory=list)
    sources: list[RFPowerSource] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Beamline model must have a name.")
        seen = set()
        for element in self.elements:
            if not isinstance(element, Element):
                raise TypeError("All elements in the beamline must be instances of Element.")
            if element.name in seen:
                raise ValueError(f"Element '{element.name}' already exists in the beamline.")
            seen.add(element.name)
        for source in self.sources:
            self._check_source(source)

    def _check_source(self, source: RFPowerSource):
        for index in source.beamline_indexes:
            if index < 0 or index >= len(self.elements):
                raise ValueError(f"RF power source '{source.name}' drives index {index} outside the beamline.")

    def add_element(self, element: Element):
        """Append an element to the end of the line."""
        if not isinstance(element, Element):
            raise TypeError("Element must be an instance of Element.")
        if any(existing.name == element.name for existing in self.elements):
            raise ValueError(f"Element '{element.name}' already exists in the beamline.")
        self.elements.append(element)

    def add_source(self, source: RFPowerSource):
        self._check_source(source)
        self.sources.append(source)

    def get_element(self, index: int) -> Element:
        self._check_index(index)
        return self.elements[index]

    def _check_index(self, index: int):
        if index < 0 or index >= len(self.elements):
            raise SegmentError(f"Index {index} outside beamline '{self.name}' of {len(self.elements)} elements.")

    def get_range(self) -> Segment:
        """Return the full index range ``(first, last)`` of the beamline."""
        if not self.elements:
            raise SegmentError(f"Beamline '{self.name}' contains no elements.")
        return Segment(first=0, last=len(self.elements) - 1)

    def get_subrange(self, first: int, last: int) -> BeamlineRange:
        """Return the inclusive sub-range ``[first, last]`` of the line.

        Raises:
            SegmentError: If ``first > last`` or either index lies outside the beamline.
        """
        if first > last:
            raise SegmentError(f"Invalid range [{first}, {last}]: first index exceeds last index.")
        self._check_index(first)
        self._check_index(last)
        return BeamlineRange(self.elements, first, last)

    def get_beamline(self) -> BeamlineRange:
        """Return the whole line as a range."""
        full = self.get_range()
        return BeamlineRange(self.elements, full.first, full.last)

    def total_length(self) -> float:
        return sum(element.length for element in self.elements)

    # Element selection functions
    def extract_elements_of_type(self, element_class: type) -> list:
        """Return all elements and sources that are instances of ``element_class``.

        No particular order is promised; callers that need beamline order
        must sort the result.
        """
        components = list(self.elements) + list(self.sources)
        return [component for component in components if isinstance(component, element_class)]

    def find_indexes(self, pattern: str) -> list[int]:
        """Return the ascending indexes of elements whose name fully matches the regular expression."""
        regex = re.compile(pattern)
        return [index for index, element in enumerate(self.elements) if regex.fullmatch(element.name)]

    def _match_channels(self, beamline: BeamlineRange, pattern: str, writable: bool) -> list:
        regex = re.compile(pattern)
        channels = []
        for _, element in beamline:
            attributes = element.write_attributes if writable else element.read_attributes + element.write_attributes
            for attribute in attributes:
                if regex.fullmatch(f"{element.name}.{attribute}"):
                    channels.append(RWChannel(element, attribute) if writable else ROChannel(element, attribute))
        return channels

    def get_read_channels(self, beamline: BeamlineRange, pattern: str) -> list[ROChannel]:
        """Return read-only channels in ``beamline`` whose id ``<element>.<attribute>`` matches ``pattern``."""
        return self._match_channels(beamline, pattern, writable=False)

    def get_write_channels(self, beamline: BeamlineRange, pattern: str) -> list[RWChannel]:
        """Return read-write channels in ``beamline`` whose id ``<element>.<attribute>`` matches ``pattern``."""
        return self._match_channels(beamline, pattern, writable=True)

    def __len__(self) -> int:
        return len(self.elements)
