"""
Capability records of the audio input and output devices.
"""

from dataclasses import dataclass, field

UNKNOWN_DEVICE = "(UNKNOWN)"


@dataclass(frozen=True)
class DeviceInfo:
    """Capabilities of one audio device in one direction."""

    name: str = UNKNOWN_DEVICE
    api: str = UNKNOWN_DEVICE
    channels: int = 0
    sample_rates: list[int] = field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return self.name != UNKNOWN_DEVICE


@dataclass(frozen=True)
class AudioInfo:
    input: DeviceInfo
    output: DeviceInfo
