"""
Feeds a test signal to the device under test and records its response.

One measurement call runs a sequential pipeline:

1. Check the platform and the input/output devices.
2. Pad the stimulus with silence and write it to a temporary stimulus file.
3. Let the capture backend play the file and record all input channels.
4. Parse the capture output, re-read the stimulus file as played and keep the
   requested capture channels.
5. Inspect the captured channels for possible clipping.
6. Calibrate the signals at the DUT input and output, if calibration data is given.

Temporary files live in a per-call directory which is removed on every exit
path, including failures.
"""

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from ..calibration.descriptor import CalibrationDescriptor
from ..calibration.engine import CalibrationEngine, is_per_channel
from ..calibration.loader import CalibrationLoader
from ..hardware.device_info import AudioInfo
from ..hardware.platform import RECOMMENDED_API, require_supported_platform
from ..io.capture_parser import CaptureParser
from ..io.stimulus_file import StimulusPreparer, as_channel_matrix, read_stimulus_file, write_stimulus_file
from ..processing.signal_metrics import ClippingDetector
from .advisories import Advisory, AdvisoryKind, AdvisoryLog
from .config import MeasurementConfig
from .errors import AlignmentError, NoDeviceAvailable

logger = logging.getLogger(__name__)

STIMULUS_FILE_NAME = "stimulus.txt"
CAPTURE_FILE_NAME = "capture.txt"

CalibrationInput = CalibrationDescriptor | Sequence[CalibrationDescriptor] | str | Path | None


@dataclass
class MeasurementResult:
    """
    dut_out:      signal(s) at the DUT output, one column per retained capture channel.
    dut_in:       signal(s) at the DUT input (the padded stimulus as played).
    time:         time vector shared by the raw dut_out and dut_in samples (seconds).
    dut_out_unit: unit of dut_out; a list with one unit per channel for per-channel calibration.
    dut_in_unit:  unit of dut_in.
    stimulus_rms: RMS amplitude of the unpadded stimulus at the DUT input, in dut_in_unit,
                  or None if no DAC calibration was available. A multi-channel stimulus
                  yields one value pooled over all of its channels.
    """

    dut_out: np.ndarray
    dut_in: np.ndarray
    time: np.ndarray
    dut_out_unit: str | list[str]
    dut_in_unit: str
    stimulus_rms: float | None
    time_in: np.ndarray
    time_out: np.ndarray | list[np.ndarray]
    channels: list[int]
    advisories: list[Advisory] = field(default_factory=list)


class SignalResponseMeasurement:
    """Runs signal response measurements with a fixed configuration."""

    def __init__(self, config: MeasurementConfig):
        self._config = config
        self._loader = CalibrationLoader(config.calibration_dir)

    def _progress(self, message: str):
        logger.log(logging.INFO if self._config.verbose else logging.DEBUG, message)

    def measure(
        self,
        stimulus,
        sample_rate: float,
        latency: float | None = None,
        channels: list[int] | None = None,
        calibration: CalibrationInput = None,
    ) -> MeasurementResult:
        """
        Plays the stimulus through the DUT and returns the aligned, calibrated signals.

        :param stimulus: Test signal with values in -1...+1; a vector, or a matrix with
                         one column per output channel.
        :param sample_rate: Sample rate for playback and capture (Hz).
        :param latency: Silence (seconds) padded before and after the stimulus.
                        None selects the generic default and adds an advisory.
        :param channels: Capture channels (1-based) to return. Default: all.
        :param calibration: A CalibrationDescriptor, one descriptor per returned channel,
                            a calibration file path or name, or None (or an empty list) for raw data.
        :raises ValueError: If the stimulus, latency, channels or per-channel calibration are invalid.
        :raises MeasurementError: On any fatal condition; see core.errors.
        """
        advisories = AdvisoryLog()

        platform = require_supported_platform(self._config.platform)
        audio_info = self._config.audio_info()
        self._check_devices(audio_info, platform, sample_rate, advisories)

        descriptor = self._resolve_calibration(calibration)
        if channels is not None and is_per_channel(descriptor) and len(descriptor) != len(channels):
            raise ValueError(
                f"Got {len(descriptor)} calibration descriptors for {len(channels)} requested channel(s)."
            )

        original = as_channel_matrix(stimulus)
        preparer = StimulusPreparer(sample_rate, audio_info.output.channels, advisories)
        padded = preparer.prepare(original, latency)

        with tempfile.TemporaryDirectory(prefix="py_loopback_") as tmp:
            stimulus_path = Path(tmp) / STIMULUS_FILE_NAME
            capture_path = Path(tmp) / CAPTURE_FILE_NAME

            self._progress("Writing sound data to disk...")
            write_stimulus_file(stimulus_path, padded)

            self._progress("Sound input / output started...")
            self._progress(f"Sound output device: {audio_info.output.name}")
            self._progress(f"Sound input device: {audio_info.input.name}")
            self._progress(f"Sampling rate: {sample_rate:.3f} samples per second")
            self._config.backend.invoke(stimulus_path, sample_rate, capture_path, timeout=self._config.timeout_seconds)
            self._progress("...sound I/O done.")

            self._progress("Reading sound data from disk...")
            captured = CaptureParser(advisories).parse_file(capture_path)
            dut_in = read_stimulus_file(stimulus_path)
            self._progress("...data reading done.")

        if channels is None:
            channels = list(range(1, captured.num_channels + 1))
        dut_out = captured.select(channels)

        if not (len(captured.time) == len(dut_out) == len(dut_in)):
            raise AlignmentError(
                f"Capture ({len(captured.time)} samples) and played stimulus ({len(dut_in)} samples) "
                "do not share one time base."
            )

        self._check_clipping(dut_out, channels, advisories)

        calibrated = CalibrationEngine(advisories).calibrate(
            dut_in=dut_in,
            dut_out=dut_out,
            time=captured.time,
            stimulus=original,
            calibration=descriptor,
        )

        return MeasurementResult(
            dut_out=calibrated.dut_out,
            dut_in=calibrated.dut_in,
            time=captured.time,
            dut_out_unit=calibrated.dut_out_unit,
            dut_in_unit=calibrated.dut_in_unit,
            stimulus_rms=calibrated.stimulus_rms,
            time_in=calibrated.time_in,
            time_out=calibrated.time_out,
            channels=list(channels),
            advisories=advisories.items,
        )

    def _check_devices(self, audio_info: AudioInfo, platform: str, sample_rate: float, advisories: AdvisoryLog):
        desired_api = RECOMMENDED_API[platform]
        for direction, device in (("input", audio_info.input), ("output", audio_info.output)):
            if not device.is_known:
                raise NoDeviceAvailable(f"No audio {direction} device selected or no device available.")

            if device.api != desired_api:
                advisories.add(
                    AdvisoryKind.API_MISMATCH,
                    f"The recommended sound API on your computer platform ({platform}) is {desired_api}, "
                    f"but your default {direction} device uses another API ({device.api}).",
                )

        if audio_info.input.channels < 1:
            raise NoDeviceAvailable("The default audio input device has less than one input channel.")

        for direction, device in (("input", audio_info.input), ("output", audio_info.output)):
            if sample_rate not in device.sample_rates:
                advisories.add(
                    AdvisoryKind.SAMPLE_RATE,
                    f"The requested sample rate ({sample_rate:g} Hz) is not listed for your audio {direction} "
                    "device. This is not always a problem, e.g. if the rate is available from sample-rate "
                    "conversion by the operating system.",
                )

    def _resolve_calibration(self, calibration: CalibrationInput):
        if isinstance(calibration, (str, Path)):
            return self._loader.load(calibration)
        return calibration

    def _check_clipping(self, dut_out: np.ndarray, channels: list[int], advisories: AdvisoryLog):
        detector = ClippingDetector(self._config.clip_threshold)
        for peak in detector.inspect(dut_out, channels):
            if peak.is_clipping:
                advisories.add(
                    AdvisoryKind.POSSIBLE_CLIPPING,
                    f"Signal in channel {peak.channel} may be clipped "
                    f"({peak.clipped_fraction * 100:0.3g}% of all samples)!",
                )
                if self._config.clipping_handler is not None:
                    self._config.clipping_handler(peak)
                continue

            role = self._config.channel_role(peak.channel)
            suffix = f" ({role})" if role else ""
            self._progress(f"Max amplitude in channel {peak.channel}{suffix}: {peak.peak * 100:0.3g}%")


def measure_signal_response(
    stimulus,
    sample_rate: float,
    latency: float | None = None,
    channels: list[int] | None = None,
    calibration: CalibrationInput = None,
    config: MeasurementConfig | None = None,
) -> MeasurementResult:
    """Runs one measurement; builds a host configuration when none is given."""
    config = config or MeasurementConfig.for_host()
    return SignalResponseMeasurement(config).measure(
        stimulus, sample_rate, latency=latency, channels=channels, calibration=calibration
    )
