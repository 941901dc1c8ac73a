"""
Capture backends: the components that actually play a stimulus file and
record the response.

The measurement pipeline only knows the CaptureBackend interface. The
TestToneBackend runs the external TestTone program, which plays the stimulus
file on the default output device while recording all input channels, and
prints the recorded data as text to stdout.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from ..core.errors import CaptureFailed, CaptureTimeout

logger = logging.getLogger(__name__)


class CaptureBackend(ABC):
    """Plays a stimulus file and writes the capture output to a file."""

    @abstractmethod
    def invoke(self, stimulus_path: Path, sample_rate: float, output_path: Path, timeout: float | None = None):
        """
        Runs one playback/capture cycle.

        :param stimulus_path: The prepared (zero-padded) stimulus file.
        :param sample_rate: Sample rate for playback and capture, in Hz.
        :param output_path: Where the capture output must be written.
        :param timeout: Maximum duration in seconds, or None to wait forever.
        :raises CaptureFailed: If playback/capture did not succeed.
        :raises CaptureTimeout: If the cycle exceeded the timeout.
        """


class TestToneBackend(CaptureBackend):
    """Runs the TestTone executable as a subprocess."""

    __test__ = False  # not a pytest test class

    def __init__(self, executable: str):
        self.executable = executable

    def build_command(self, stimulus_path: Path, sample_rate: float) -> list[str]:
        rate = f"{sample_rate:g}"
        return [self.executable, rate, str(stimulus_path)]

    def invoke(self, stimulus_path: Path, sample_rate: float, output_path: Path, timeout: float | None = None):
        command = self.build_command(stimulus_path, sample_rate)
        logger.debug(f"Running capture command: {command}")

        try:
            with open(output_path, "w", encoding="utf-8") as output:
                completed = subprocess.run(
                    command,
                    stdout=output,
                    stderr=subprocess.PIPE,
                    timeout=timeout,
                    check=False,
                    text=True,
                )
        except subprocess.TimeoutExpired as e:
            raise CaptureTimeout(f"Sound I/O did not finish within {timeout:g} seconds.") from e
        except OSError as e:
            raise CaptureFailed(f"Could not start the TestTone program '{self.executable}': {e}") from e

        if completed.returncode != 0:
            details = (completed.stderr or "").strip()
            raise CaptureFailed(
                f"An error has occurred during sound I/O (exit status {completed.returncode})."
                + (f" {details}" if details else "")
            )
