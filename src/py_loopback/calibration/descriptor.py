"""
Calibration data for the full analysis chain DAC / SENSOR / ADC.
"""

from dataclasses import dataclass

from .transfers import ChainedCalibration, SignalCalibration


@dataclass(frozen=True)
class CalibrationDescriptor:
    """
    Calibration of one measurement chain.

    dac:    DAC(+BUFFER) stage, normalized samples -> signal at the DUT input.
    sensor: transducer picking up the DUT output.
    adc:    capture stage, sensor signal -> normalized samples.
    """

    name: str = ""
    dac: SignalCalibration | None = None
    sensor: SignalCalibration | None = None
    adc: SignalCalibration | None = None

    @property
    def is_empty(self) -> bool:
        return self.dac is None and self.sensor is None and self.adc is None

    def dut_out_chain(self) -> SignalCalibration | None:
        """The combined ADC then SENSOR correction, or None if either stage is missing."""
        if self.adc is None or self.sensor is None:
            return None
        return ChainedCalibration(self.adc, self.sensor)
