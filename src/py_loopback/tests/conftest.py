"""
Shared fixtures: a fake loopback capture backend and device capabilities,
so the measurement pipeline can run without sound hardware.
"""

from pathlib import Path

import numpy as np
import pytest

from py_loopback.core.config import MeasurementConfig
from py_loopback.hardware.capture_backend import CaptureBackend
from py_loopback.hardware.device_info import AudioInfo, DeviceInfo
from py_loopback.hardware.platform import LINUX_X86_64

SAMPLE_RATE = 44100


class LoopbackBackend(CaptureBackend):
    """
    Writes TestTone-style capture output in which every input channel is the
    first stimulus channel times a per-channel gain.
    """

    def __init__(self, gains=(1.0, 1.0), with_sentinel: bool = True):
        self.gains = gains
        self.with_sentinel = with_sentinel
        self.calls: list[dict] = []

    def invoke(self, stimulus_path: Path, sample_rate: float, output_path: Path, timeout: float | None = None):
        self.calls.append(
            {
                "stimulus_path": stimulus_path,
                "output_path": output_path,
                "sample_rate": sample_rate,
                "timeout": timeout,
            }
        )
        stimulus = np.loadtxt(stimulus_path, ndmin=2)
        source = stimulus[:, 0]
        time = np.arange(len(source)) / sample_rate

        lines = [
            "TestTone (loopback fake)",
            f"Number of sound input channels = {len(self.gains)}",
        ]
        if self.with_sentinel:
            lines.append("time (s)\t" + "\t".join(f"ch{i + 1}" for i in range(len(self.gains))))
        for i, t in enumerate(time):
            values = [f"{g * source[i]:.17g}" for g in self.gains]
            lines.append(f"{t:.17g}\t" + "\t".join(values))

        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def audio_info():
    """Two-channel ALSA devices that list 44.1 and 48 kHz."""
    device = DeviceInfo(name="Loopback Interface", api="ALSA", channels=2, sample_rates=[44100, 48000])
    return AudioInfo(input=device, output=device)


@pytest.fixture
def loopback_backend():
    return LoopbackBackend()


@pytest.fixture
def make_config(audio_info, loopback_backend, tmp_path):
    """Factory for MeasurementConfig objects wired to the fakes."""

    def _make(**overrides):
        params = {
            "backend": loopback_backend,
            "audio_info": lambda: audio_info,
            "platform": LINUX_X86_64,
            "calibration_dir": tmp_path,
            "verbose": False,
        }
        params.update(overrides)
        return MeasurementConfig(**params)

    return _make


@pytest.fixture
def sine_1k():
    """1000 samples of a 1 kHz sine with peak amplitude 0.5 at 44.1 kHz."""
    t = np.arange(1000) / SAMPLE_RATE
    return 0.5 * np.sin(2 * np.pi * 1000 * t)
