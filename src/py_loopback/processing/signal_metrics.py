"""
Amplitude metrics used by the measurement pipeline.

Provides the guarded RMS computation that underpins the calibration scale
factor, and the per-channel peak/clipping inspection of captured data.
"""

import logging
from dataclasses import dataclass

import numpy as np

from ..core.errors import EmptySignal

logger = logging.getLogger(__name__)


def rms(signal: np.ndarray) -> float:
    """
    Calculates the Root Mean Square of a signal over all of its samples.

    :param signal: 1D or 2D numpy array of samples.
    :return: The RMS amplitude.
    :raises EmptySignal: If the signal holds no samples.
    """
    values = np.asarray(signal, dtype=np.float64)
    if values.size == 0:
        raise EmptySignal("Cannot compute the RMS amplitude of an empty signal.")
    return float(np.sqrt(np.mean(values**2)))


@dataclass(frozen=True)
class ChannelPeak:
    """Peak inspection of one captured channel."""

    channel: int
    peak: float
    clipped_fraction: float
    is_clipping: bool


class ClippingDetector:
    """
    Inspects captured channels for samples close to full scale.

    A channel is flagged when its peak absolute value reaches the threshold
    (0.95 of full scale by default).
    """

    def __init__(self, threshold: float = 0.95):
        self.threshold = threshold

    def inspect(self, data: np.ndarray, channels: list[int]) -> list[ChannelPeak]:
        """
        :param data: Captured samples, shape (n_samples, n_channels).
        :param channels: The 1-based channel numbers of the columns of `data`.
        """
        data = np.atleast_2d(np.asarray(data, dtype=np.float64).T).T
        peaks = []
        for column, channel in enumerate(channels):
            magnitude = np.abs(data[:, column])
            peak = float(magnitude.max()) if magnitude.size else 0.0
            is_clipping = peak >= self.threshold
            fraction = float(np.count_nonzero(magnitude >= self.threshold)) / magnitude.size if magnitude.size else 0.0
            peaks.append(
                ChannelPeak(channel=channel, peak=peak, clipped_fraction=fraction, is_clipping=is_clipping)
            )
        return peaks
