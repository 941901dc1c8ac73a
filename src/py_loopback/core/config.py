"""
Defines the measurement configuration object and the command-line arguments
that produce it.

Everything the measurement pipeline needs from its environment (capture
backend, device capability query, platform, channel roles, timeouts and the
clipping handler) is carried by MeasurementConfig, so one pipeline call never
reaches for global state.
"""

import argparse
import logging
from pathlib import Path
from typing import Callable

from ..hardware.capture_backend import CaptureBackend, TestToneBackend
from ..hardware.device_info import AudioInfo
from ..hardware.platform import detect_platform, executable_name
from ..processing.signal_metrics import ChannelPeak
from ..settings import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


class MeasurementConfig:
    """
    Holds the validated settings for signal response measurements.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        audio_info: Callable[[], AudioInfo],
        platform: str | None,
        timeout_seconds: float | None = None,
        clip_threshold: float | None = None,
        channel_dut: int | None = None,
        channel_ref: int | None = None,
        clipping_handler: Callable[[ChannelPeak], None] | None = None,
        calibration_dir: str | Path | None = None,
        verbose: bool = True,
    ):
        """
        :param backend: The component performing playback and capture.
        :param audio_info: Callable returning the capabilities of the current input/output devices.
        :param platform: Platform label of the host (see hardware.platform).
        :param timeout_seconds: Upper bound for one playback/capture cycle.
        :param clip_threshold: Peak level (fraction of full scale) flagged as possible clipping.
        :param channel_dut: Capture channel (1-based) wired to the DUT output.
        :param channel_ref: Capture channel (1-based) wired as loopback reference.
        :param clipping_handler: Called for every channel flagged as possibly clipped.
                                 Interactive apps use it to ask whether to continue.
        :param calibration_dir: Where calibration files are looked up by name.
        :param verbose: Report progress at INFO level instead of DEBUG.
        """
        self.backend: CaptureBackend = backend
        self.audio_info: Callable[[], AudioInfo] = audio_info
        self.platform: str | None = platform
        self.timeout_seconds: float | None = (
            timeout_seconds if timeout_seconds is not None else settings.CAPTURE.TIMEOUT_SECONDS
        )
        self.clip_threshold: float = clip_threshold if clip_threshold is not None else settings.CAPTURE.CLIP_THRESHOLD
        self.channel_dut: int = channel_dut if channel_dut is not None else settings.CHANNELS.DUT
        self.channel_ref: int = channel_ref if channel_ref is not None else settings.CHANNELS.REF
        self.clipping_handler: Callable[[ChannelPeak], None] | None = clipping_handler
        self.calibration_dir: Path = Path(
            calibration_dir if calibration_dir is not None else settings.CALIBRATION.SEARCH_DIR
        )
        self.verbose: bool = verbose

    @classmethod
    def for_host(cls, testtone_path: str | None = None, **kwargs) -> "MeasurementConfig":
        """Builds a configuration using TestTone and the sound devices of this machine."""
        from ..hardware.capabilities import DeviceCapabilities

        platform = detect_platform()
        executable = executable_name(testtone_path or settings.CAPTURE.TESTTONE_PATH, platform or "")
        return cls(
            backend=TestToneBackend(executable),
            audio_info=DeviceCapabilities(),
            platform=platform,
            **kwargs,
        )

    def channel_role(self, channel: int) -> str:
        if channel == self.channel_dut:
            return "DUT"
        if channel == self.channel_ref:
            return "REF"
        return ""


class MeasurementArgs:
    """
    Handles parsing and validation of command-line arguments for measurement apps.
    """

    @staticmethod
    def get_parser() -> argparse.ArgumentParser:
        """
        Creates and returns the ArgumentParser with the standard measurement arguments.
        Does NOT parse arguments immediately, so apps can add their own flags.

        :return: An argparse.ArgumentParser object with standard flags configured.
        """
        parser = argparse.ArgumentParser(description="Measure the response of a device under test.")
        parser.add_argument(
            "-r",
            "--sample-rate",
            type=float,
            default=settings.AUDIO.SAMPLE_RATE,
            help=f"Sample rate (Hz) for playback and capture. Default: {settings.AUDIO.SAMPLE_RATE} Hz.",
        )
        parser.add_argument(
            "-l",
            "--latency",
            type=float,
            default=None,
            help=(
                "Length of the silence (seconds) padded before and after the test signal to absorb "
                "the round-trip latency of the sound hardware. Default: generic value for the sample rate."
            ),
        )
        parser.add_argument(
            "--channels",
            type=int,
            nargs="+",
            default=None,
            help="Capture channels (1-based) to keep. Default: all channels.",
        )
        parser.add_argument(
            "-c",
            "--calibration",
            type=str,
            default=None,
            help=(
                "Calibration file path or name (looked up in the calibration directory). "
                "Without calibration, raw normalized data is returned."
            ),
        )
        parser.add_argument(
            "--calibration-dir",
            type=str,
            default=settings.CALIBRATION.SEARCH_DIR,
            help=f"Directory searched for calibration names. Default: '{settings.CALIBRATION.SEARCH_DIR}'.",
        )
        parser.add_argument(
            "--testtone",
            type=str,
            default=settings.CAPTURE.TESTTONE_PATH,
            help=f"Path to the TestTone executable. Default: '{settings.CAPTURE.TESTTONE_PATH}'.",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=settings.CAPTURE.TIMEOUT_SECONDS,
            help=f"Maximum duration (seconds) of sound I/O. Default: {settings.CAPTURE.TIMEOUT_SECONDS}s.",
        )
        parser.add_argument(
            "-q",
            "--quiet",
            action="store_true",
            help="Only report warnings and errors.",
        )
        return parser

    @staticmethod
    def validate_args(
        args: argparse.Namespace, clipping_handler: Callable[[ChannelPeak], None] | None = None
    ) -> MeasurementConfig:
        """
        Validates the parsed arguments and creates the MeasurementConfig.

        :param args: Parsed arguments from get_parser().
        :param clipping_handler: Optional handler for possibly clipped channels.
        :return: A populated MeasurementConfig.
        :raises ValueError: If an argument is out of range.
        """
        logger.debug("Validating command-line arguments...")

        if args.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {args.sample_rate}.")
        if args.latency is not None and args.latency < 0:
            raise ValueError(f"Latency must not be negative, got {args.latency}.")
        if args.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {args.timeout}.")
        if args.channels is not None and any(channel < 1 for channel in args.channels):
            raise ValueError(f"Channel numbers start at 1, got {args.channels}.")

        config = MeasurementConfig.for_host(
            testtone_path=args.testtone,
            timeout_seconds=args.timeout,
            clipping_handler=clipping_handler,
            calibration_dir=args.calibration_dir,
            verbose=not args.quiet,
        )

        logger.debug(
            f"Final Configuration: Platform={config.platform}, Backend={args.testtone}, "
            f"Timeout={config.timeout_seconds:g}s, Calibration={args.calibration or 'none'}"
        )
        return config
