"""
Queries the capabilities of the default audio input and output devices
using the sounddevice library.

For each direction it reports the device name, the host API it belongs to,
its channel count and which of the standard sample rates it accepts. When no
device is available the name is the "(UNKNOWN)" sentinel, which the
measurement pipeline rejects before attempting any capture.
"""

import logging

import sounddevice as sd

from ..settings import get_settings
from .device_info import UNKNOWN_DEVICE, AudioInfo, DeviceInfo

settings = get_settings()

logger = logging.getLogger(__name__)

__all__ = ["UNKNOWN_DEVICE", "AudioInfo", "DeviceInfo", "DeviceCapabilities"]


class DeviceCapabilities:
    """Builds AudioInfo records from the devices reported by PortAudio."""

    def __init__(self, standard_rates: list[int] | None = None):
        self._standard_rates = standard_rates or list(settings.AUDIO.STANDARD_SAMPLE_RATES)

    def query(self) -> AudioInfo:
        """Returns the capabilities of the current default input and output devices."""
        try:
            input_id, output_id = sd.default.device
        except (TypeError, ValueError):
            input_id = output_id = -1

        return AudioInfo(
            input=self._describe(input_id, is_input=True),
            output=self._describe(output_id, is_input=False),
        )

    __call__ = query

    def _describe(self, device_id: int | None, is_input: bool) -> DeviceInfo:
        if device_id is None or device_id < 0:
            return DeviceInfo()

        try:
            device = sd.query_devices(device_id)
            api = sd.query_hostapis(device["hostapi"])["name"]
        except (sd.PortAudioError, ValueError) as e:
            logger.error(f"Could not query audio device {device_id}: {e}")
            return DeviceInfo()

        channels = int(device["max_input_channels"] if is_input else device["max_output_channels"])
        rates = [rate for rate in self._standard_rates if self._accepts(device_id, rate, is_input)]

        return DeviceInfo(name=device["name"], api=api, channels=channels, sample_rates=rates)

    @staticmethod
    def _accepts(device_id: int, sample_rate: int, is_input: bool) -> bool:
        check = sd.check_input_settings if is_input else sd.check_output_settings
        try:
            check(device=device_id, samplerate=sample_rate)
        except (sd.PortAudioError, ValueError):
            return False
        return True

    @staticmethod
    def show_audio_devices():
        """
        Logs a formatted list of all audio devices with their channel counts.
        Default input and output devices are marked with '>' and '<'.
        """
        logger.info("--- Listing all available audio devices ---")
        try:
            audio_devices = list(sd.query_devices())
            input_id, output_id = sd.default.device
            if not audio_devices:
                logger.info("No audio devices were found on this system.")
            for audio_device in audio_devices:
                index = audio_device["index"]
                marker = ">" if index == input_id else "<" if index == output_id else " "
                api = sd.query_hostapis(audio_device["hostapi"])["name"]
                logger.info(
                    f"{marker} ID {index} - {audio_device['name']} ({api}, "
                    f"{audio_device['max_input_channels']} in, {audio_device['max_output_channels']} out)"
                )
        except Exception as e:
            logger.error(f"Could not query audio devices: {e}")
