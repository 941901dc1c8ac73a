"""
py_loopback: audio loopback measurements of analog devices under test.

Plays a test signal through the sound hardware, records the response and
returns time-aligned, calibrated signals at the DUT input and output.
"""

from importlib.metadata import PackageNotFoundError, version

from .calibration.descriptor import CalibrationDescriptor
from .calibration.loader import CalibrationLoader
from .calibration.transfers import GainCalibration, TransferCalibration
from .core.config import MeasurementConfig
from .core.measurement import MeasurementResult, SignalResponseMeasurement, measure_signal_response
from .hardware.capture_backend import CaptureBackend, TestToneBackend

__all__ = [
    "CalibrationDescriptor",
    "CalibrationLoader",
    "CaptureBackend",
    "GainCalibration",
    "MeasurementConfig",
    "MeasurementResult",
    "SignalResponseMeasurement",
    "TestToneBackend",
    "TransferCalibration",
    "measure_signal_response",
]


try:
    __version__ = version("py-loopback")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "unknown"
