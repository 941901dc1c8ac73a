"""
Exception hierarchy for loopback measurements.

Every condition that aborts a measurement call derives from MeasurementError,
so callers can catch the whole family in one place.
"""


class MeasurementError(Exception):
    """Base class for fatal, call-aborting measurement errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class UnsupportedPlatform(MeasurementError):
    """Raised when the host platform has no known playback/capture program."""


class NoDeviceAvailable(MeasurementError):
    """Raised when no usable input or output audio device is selected."""


class UnsupportedChannelCount(MeasurementError):
    """Raised when the stimulus has more channels than the output device."""


class CaptureFailed(MeasurementError):
    """Raised when the playback/capture program fails or cannot be started."""


class CaptureTimeout(MeasurementError):
    """Raised when the playback/capture program exceeds its time limit."""


class ChannelCountUnresolved(MeasurementError):
    """Raised when the capture header never declares the input channel count."""


class EmptyCapture(MeasurementError):
    """Raised when the capture output holds no data rows."""


class MalformedCapture(MeasurementError):
    """Raised when the captured values cannot be arranged into complete rows."""


class AlignmentError(MeasurementError):
    """Raised when the captured and stimulus signals do not share one time base."""


class EmptySignal(MeasurementError):
    """Raised when an RMS amplitude is requested for a signal without energy."""


class CalibrationFileError(MeasurementError):
    """Raised when a calibration file cannot be parsed into a descriptor."""
