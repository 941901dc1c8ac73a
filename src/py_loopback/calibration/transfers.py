"""
Sub-calibrations that map raw normalized samples to physical units.

Every sub-calibration exposes `apply(signal, time) -> (signal, time, unit)`.
A calibration may rewrite the time vector (the FIR-based transfer removes its
own group delay that way); the returned vector then replaces the input one for
that signal branch.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np
from scipy.signal import firwin2, lfilter

from ..settings import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


class SignalCalibration(ABC):
    """Interface for one stage of the measurement chain (DAC, SENSOR or ADC)."""

    unit: str

    @abstractmethod
    def apply(self, signal: np.ndarray, time: np.ndarray) -> tuple[np.ndarray, np.ndarray, str]:
        """
        :param signal: Samples, shape (n,) or (n, channels).
        :param time: Sample times in seconds, shape (n,).
        :return: The calibrated signal, its time vector and its unit label.
        """


class GainCalibration(SignalCalibration):
    """A frequency-independent linear gain."""

    def __init__(self, gain: float, unit: str):
        self.gain = float(gain)
        self.unit = unit

    def apply(self, signal, time):
        return np.asarray(signal, dtype=np.float64) * self.gain, np.asarray(time, dtype=np.float64), self.unit

    def __repr__(self):
        return f"GainCalibration(gain={self.gain!r}, unit={self.unit!r})"


class TransferCalibration(SignalCalibration):
    """
    A sensitivity plus an optional tabulated frequency response.

    Output-side stages (DAC/BUFFER) multiply by their sensitivity and impose their
    frequency response. Input-side stages (SENSOR, ADC) are set up with
    `invert=True`: they divide by their sensitivity and undo their response.

    The frequency response is applied with a linear-phase FIR filter designed
    by `scipy.signal.firwin2` for the sample rate implied by the time vector.
    """

    def __init__(
        self,
        sensitivity: float,
        unit: str,
        frequencies: list[float] | None = None,
        gains_db: list[float] | None = None,
        num_taps: int | None = None,
        invert: bool = False,
    ):
        if sensitivity == 0:
            raise ValueError("Calibration sensitivity must be non-zero.")
        if (frequencies is None) != (gains_db is None):
            raise ValueError("Frequency response needs both frequencies and gains.")
        if frequencies is not None and len(frequencies) != len(gains_db):
            raise ValueError("Frequency response tables must have equal length.")

        self.sensitivity = float(sensitivity)
        self.unit = unit
        self.frequencies = None if frequencies is None else np.asarray(frequencies, dtype=np.float64)
        self.gains_db = None if gains_db is None else np.asarray(gains_db, dtype=np.float64)
        self.invert = invert

        num_taps = num_taps or settings.CALIBRATION.NUM_TAPS
        # firwin2 needs an odd length to allow a non-zero gain at Nyquist
        self.num_taps = num_taps if num_taps % 2 else num_taps + 1

    @property
    def has_frequency_response(self) -> bool:
        return self.frequencies is not None and self.frequencies.size > 0

    @property
    def scale(self) -> float:
        return 1.0 / self.sensitivity if self.invert else self.sensitivity

    def design_filter(self, sample_rate: float) -> np.ndarray:
        """Designs the FIR taps realizing the (possibly inverted) frequency response."""
        nyquist = sample_rate / 2.0
        order = np.argsort(self.frequencies)
        freqs = self.frequencies[order]
        gains_db = self.gains_db[order]

        inside = (freqs > 0) & (freqs < nyquist)
        freqs, gains_db = freqs[inside], gains_db[inside]
        if freqs.size == 0:
            logger.warning("Frequency response lies outside 0...Nyquist; applying sensitivity only.")
            return np.array([1.0])

        freqs, unique_index = np.unique(freqs, return_index=True)
        gains_db = gains_db[unique_index]

        full_freqs = np.concatenate(([0.0], freqs, [nyquist]))
        full_gains_db = np.concatenate(([gains_db[0]], gains_db, [gains_db[-1]]))
        if self.invert:
            full_gains_db = -full_gains_db
        linear_gains = 10.0 ** (full_gains_db / 20.0)

        logger.debug(f"Designing {self.num_taps}-tap calibration filter at {sample_rate:g} Hz.")
        return firwin2(self.num_taps, full_freqs, linear_gains, fs=sample_rate)

    def apply(self, signal, time):
        signal = np.asarray(signal, dtype=np.float64) * self.scale
        time = np.asarray(time, dtype=np.float64)

        if not self.has_frequency_response:
            return signal, time, self.unit

        if time.size < 2:
            raise ValueError("At least two samples are needed to derive the sample rate.")
        sample_rate = 1.0 / float(np.median(np.diff(time)))

        taps = self.design_filter(sample_rate)
        filtered = lfilter(taps, 1.0, signal, axis=0)
        group_delay = (len(taps) - 1) / 2.0
        return filtered, time - group_delay / sample_rate, self.unit

    def __repr__(self):
        return (
            f"TransferCalibration(sensitivity={self.sensitivity!r}, unit={self.unit!r}, "
            f"response={'yes' if self.has_frequency_response else 'no'}, invert={self.invert!r})"
        )


class ChainedCalibration(SignalCalibration):
    """Applies several stages in order; the unit is that of the last stage."""

    def __init__(self, *stages: SignalCalibration):
        if not stages:
            raise ValueError("A calibration chain needs at least one stage.")
        self.stages = stages
        self.unit = stages[-1].unit

    def apply(self, signal, time):
        unit = self.unit
        for stage in self.stages:
            signal, time, unit = stage.apply(signal, time)
        return signal, time, unit
