"""
Applies chain calibrations to the two signal branches of a measurement.

The stimulus branch (signal at the DUT input) is calibrated with the DAC stage.
The capture branch (signal at the DUT output) is calibrated with the combined
SENSOR and ADC stages. Calibration is optional: missing stages leave their
branch uncalibrated with the unknown-unit label.

The RMS amplitude of the original stimulus is derived from the DAC stage: the
ratio of calibrated to raw RMS of the padded round-trip signal is the gain of
the DAC, which is then applied to the RMS of the unpadded stimulus. This keeps
the zero padding from diluting the reported amplitude. For a multi-channel
stimulus both RMS values are taken over all channels together, so the result is
one scalar amplitude for the whole stimulus.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..core.advisories import AdvisoryKind, AdvisoryLog
from ..core.errors import EmptySignal
from ..processing.signal_metrics import rms
from .descriptor import CalibrationDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_UNIT = "???"


def is_per_channel(calibration) -> bool:
    """True for a non-empty sequence holding one descriptor per captured channel."""
    return calibration is not None and not isinstance(calibration, CalibrationDescriptor) and len(calibration) > 0


@dataclass
class CalibratedSignals:
    dut_in: np.ndarray
    time_in: np.ndarray
    dut_in_unit: str
    dut_out: np.ndarray
    time_out: np.ndarray | list[np.ndarray]
    dut_out_unit: str | list[str]
    stimulus_rms: float | None


class CalibrationEngine:
    """Calibrates raw dut_in / dut_out signals with one or per-channel descriptors."""

    def __init__(self, advisories: AdvisoryLog | None = None):
        self.advisories = advisories if advisories is not None else AdvisoryLog()

    def calibrate(
        self,
        dut_in: np.ndarray,
        dut_out: np.ndarray,
        time: np.ndarray,
        stimulus: np.ndarray,
        calibration: CalibrationDescriptor | Sequence[CalibrationDescriptor] | None,
    ) -> CalibratedSignals:
        """
        :param dut_in: Raw padded stimulus as played, shape (n, in_channels).
        :param dut_out: Raw captured channels, shape (n, out_channels).
        :param time: Shared time vector, shape (n,).
        :param stimulus: The original stimulus before zero padding.
        :param calibration: A descriptor, a list with one descriptor per captured
                            channel, or None (or an empty list) for uncalibrated output.
        :raises EmptySignal: If an RMS amplitude needed for the DAC scale factor is undefined.
        """
        descriptors = self._as_list(calibration, dut_out.shape[1])
        per_channel = is_per_channel(calibration)

        result = CalibratedSignals(
            dut_in=dut_in,
            time_in=time,
            dut_in_unit=UNKNOWN_UNIT,
            dut_out=dut_out,
            time_out=[time] * dut_out.shape[1] if per_channel else time,
            dut_out_unit=[UNKNOWN_UNIT] * dut_out.shape[1] if per_channel else UNKNOWN_UNIT,
            stimulus_rms=None,
        )

        if all(d.is_empty for d in descriptors):
            logger.info("No calibration data available. Returning raw, uncalibrated data!")
            return result

        self._calibrate_dut_in(result, descriptors, stimulus)
        if per_channel:
            self._calibrate_dut_out_per_channel(result, descriptors)
        else:
            self._calibrate_dut_out(result, descriptors[0])
        return result

    @staticmethod
    def _as_list(calibration, num_channels: int) -> list[CalibrationDescriptor]:
        if not is_per_channel(calibration):
            return [calibration or CalibrationDescriptor()]
        descriptors = list(calibration)
        if len(descriptors) != num_channels:
            raise ValueError(
                f"Got {len(descriptors)} calibration descriptors for {num_channels} captured channel(s)."
            )
        return descriptors

    def _calibrate_dut_in(self, result: CalibratedSignals, descriptors, stimulus: np.ndarray):
        descriptor = next((d for d in descriptors if d.dac is not None), None)
        if descriptor is None:
            self.advisories.add(
                AdvisoryKind.CALIBRATION_SKIPPED,
                "Calibration data has no DAC data! Skipping calibration of signal at DUT input!",
            )
            return

        raw_rms = rms(result.dut_in)
        if raw_rms == 0:
            raise EmptySignal("Signal at DUT input is silent; cannot derive the DAC calibration scale factor.")

        dut_in, time_in, unit = descriptor.dac.apply(result.dut_in, result.time_in)
        scale = rms(dut_in) / raw_rms

        result.dut_in, result.time_in, result.dut_in_unit = dut_in, time_in, unit
        result.stimulus_rms = scale * rms(stimulus)
        logger.debug(f"DUT input calibrated with '{descriptor.name}': RMS = {result.stimulus_rms:.6g} {unit}.")

    def _skip_reason(self, descriptor: CalibrationDescriptor) -> str | None:
        if descriptor.adc is None:
            return "ADC"
        if descriptor.sensor is None:
            return "SENSOR"
        return None

    def _calibrate_dut_out(self, result: CalibratedSignals, descriptor: CalibrationDescriptor):
        missing = self._skip_reason(descriptor)
        if missing:
            self.advisories.add(
                AdvisoryKind.CALIBRATION_SKIPPED,
                f"Calibration data has no {missing} data! Skipping calibration of signal at DUT output!",
            )
            return

        result.dut_out, result.time_out, result.dut_out_unit = descriptor.dut_out_chain().apply(
            result.dut_out, result.time_out
        )

    def _calibrate_dut_out_per_channel(self, result: CalibratedSignals, descriptors):
        columns = []
        for column, descriptor in enumerate(descriptors):
            raw = result.dut_out[:, column]
            missing = self._skip_reason(descriptor)
            if missing:
                self.advisories.add(
                    AdvisoryKind.CALIBRATION_SKIPPED,
                    f"Calibration data for channel column {column + 1} has no {missing} data! "
                    "Skipping calibration of this channel at DUT output!",
                )
                columns.append(raw)
                continue

            calibrated, time_out, unit = descriptor.dut_out_chain().apply(raw, result.time_out[column])
            columns.append(calibrated)
            result.time_out[column] = time_out
            result.dut_out_unit[column] = unit

        result.dut_out = np.column_stack(columns) if columns else result.dut_out
