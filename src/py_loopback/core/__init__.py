"""
Exposes the configuration, advisories and error types of the measurement pipeline.

The pipeline itself lives in py_loopback.core.measurement.
"""

from .advisories import Advisory, AdvisoryKind, AdvisoryLog
from .config import MeasurementArgs, MeasurementConfig
from .errors import MeasurementError

__all__ = [
    "Advisory",
    "AdvisoryKind",
    "AdvisoryLog",
    "MeasurementArgs",
    "MeasurementConfig",
    "MeasurementError",
]
