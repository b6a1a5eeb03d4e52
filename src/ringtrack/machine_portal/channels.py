"""
Control-system channels onto beamline element attributes.

A read-only channel exposes one attribute of one element (for example the
``X`` reading of a beam position monitor); a read-write channel can also
set it (for example the ``B0`` strength of a corrector).
"""

from typing import List, Sequence

from .element import Element


class ROChannel:
    """Read-only channel onto an element attribute."""

    def __init__(self, element: Element, attribute: str):
        if attribute not in element.read_attributes + element.write_attributes:
            raise ValueError(f"Element '{element.name}' has no channel attribute '{attribute}'.")
        self.element = element
        self.attribute = attribute

    @property
    def id(self) -> str:
        return f"{self.element.name}.{self.attribute}"

    def read(self) -> float:
        return self.element.get_attribute(self.attribute)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}('{self.id}')"


class RWChannel(ROChannel):
    """Read-write channel onto an element attribute."""

    def __init__(self, element: Element, attribute: str):
        if attribute not in element.write_attributes:
            raise ValueError(f"Attribute '{attribute}' of element '{element.name}' is not writable.")
        super().__init__(element, attribute)

    def write(self, value: float):
        self.element.set_attribute(self.attribute, value)

    def increment(self, delta: float):
        self.write(self.read() + delta)


class ChannelArray:
    """Ordered collection of channels, read and written together."""

    def __init__(self, channels: Sequence[ROChannel] = ()):
        self.channels: List[ROChannel] = list(channels)

    def set_channels(self, channels: Sequence[ROChannel]):
        self.channels = list(channels)

    def read_all(self) -> List[float]:
        return [channel.read() for channel in self.channels]

    def write_all(self, values: Sequence[float]):
        if len(values) != len(self.channels):
            raise ValueError(f"Expected {len(self.channels)} values, got {len(values)}")
        for channel, value in zip(self.channels, values):
            if not isinstance(channel, RWChannel):
                raise TypeError(f"Channel {channel.id} is read-only")
            channel.write(value)

    def ids(self) -> List[str]:
        return [channel.id for channel in self.channels]

    def __len__(self) -> int:
        return len(self.channels)

    def __iter__(self):
        return iter(self.channels)

    def __getitem__(self, index):
        return self.channels[index]
