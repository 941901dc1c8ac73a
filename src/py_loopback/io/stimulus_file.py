"""
Stimulus preparation and the stimulus file format.

Before playback the stimulus is padded with silence on both ends so that the
round-trip latency of the sound hardware does not truncate the useful signal.
The padded stimulus is written as a plain whitespace-separated numeric matrix
(one row per sample, one column per channel). The exact same file is read
back after capture to obtain the signal at the DUT input.
"""

import logging
from pathlib import Path

import numpy as np

from ..core.advisories import AdvisoryKind, AdvisoryLog
from ..core.errors import UnsupportedChannelCount
from ..settings import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


def default_latency(sample_rate: float) -> float:
    """Generic latency margin in seconds; grows with the sample rate above 44.1 kHz."""
    base = settings.AUDIO.LATENCY_BASE_SECONDS
    return base * max(1.0, sample_rate / settings.AUDIO.LATENCY_REFERENCE_RATE)


def as_channel_matrix(stimulus) -> np.ndarray:
    """
    Returns the stimulus as a float array of shape (n_samples, n_channels).

    :raises ValueError: If the stimulus is not 1D/2D or leaves the [-1, 1] range.
    """
    matrix = np.asarray(stimulus, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix[:, np.newaxis]
    if matrix.ndim != 2:
        raise ValueError(f"Stimulus must be a vector or a (samples, channels) matrix, got shape {matrix.shape}.")
    if matrix.size and np.max(np.abs(matrix)) > 1.0:
        raise ValueError("Stimulus samples must lie within -1.0 ... +1.0.")
    return matrix


class StimulusPreparer:
    """Validates and pads a stimulus for one playback/capture cycle."""

    def __init__(self, sample_rate: float, output_channels: int, advisories: AdvisoryLog | None = None):
        self.sample_rate = sample_rate
        self.output_channels = output_channels
        self.advisories = advisories if advisories is not None else AdvisoryLog()

    def resolve_latency(self, latency: float | None) -> float:
        """
        Returns the latency margin to use, adding an advisory when it is
        unspecified or shorter than the generic default.
        """
        default = default_latency(self.sample_rate)

        if latency is None:
            self.advisories.add(
                AdvisoryKind.LATENCY,
                f"Latency not specified. Assuming latency = {default:g} seconds. Check for truncated data!",
            )
            return default

        if latency < 0:
            raise ValueError(f"Latency must not be negative, got {latency}.")

        if latency < default:
            self.advisories.add(
                AdvisoryKind.LATENCY,
                f"Latency ({latency:g}s) is less than generic default ({default:g}s). "
                "Make sure this is really what you want and check for truncated data!",
            )
        return float(latency)

    def pad_samples(self, latency: float) -> int:
        return int(round(latency * self.sample_rate))

    def prepare(self, stimulus, latency: float | None) -> np.ndarray:
        """
        Validates the channel count and pads the stimulus with silence.

        :return: The padded stimulus, shape (n_samples + 2 * pad, n_channels).
        :raises UnsupportedChannelCount: If the stimulus has more channels than the output device.
        """
        matrix = as_channel_matrix(stimulus)
        channels = matrix.shape[1]
        if channels > self.output_channels:
            raise UnsupportedChannelCount(
                f"Input data has more channels ({channels}) than supported by the audio output device "
                f"({self.output_channels})."
            )

        pad = self.pad_samples(self.resolve_latency(latency))
        logger.debug(f"Padding stimulus with {pad} zero samples on each side.")
        return np.pad(matrix, ((pad, pad), (0, 0)), mode="constant")


def write_stimulus_file(path: Path, padded: np.ndarray):
    """Writes a stimulus matrix to `path` in the TestTone input format."""
    np.savetxt(path, padded, fmt="%.17g", delimiter=" ")


def read_stimulus_file(path: Path) -> np.ndarray:
    """Reads a stimulus file back as a (n_samples, n_channels) matrix."""
    return np.loadtxt(path, dtype=np.float64, ndmin=2)
