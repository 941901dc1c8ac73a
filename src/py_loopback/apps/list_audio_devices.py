"""
Utility script to list the audio devices detected by the sounddevice library,
or to show the capabilities of the default input and output devices used for
measurements.
"""

import argparse
import logging
import sys

from py_loopback.hardware.capabilities import DeviceCapabilities, DeviceInfo
from py_loopback.hardware.platform import RECOMMENDED_API, detect_platform

logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
logger = logging.getLogger(__name__)


def show_device(direction: str, device: DeviceInfo, recommended_api: str | None):
    logger.info(f"Default {direction} device: {device.name}")
    api_note = "" if recommended_api in (None, device.api) else f" (recommended: {recommended_api})"
    logger.info(f"  API: {device.api}{api_note}")
    logger.info(f"  Channels: {device.channels}")
    rates = ", ".join(str(rate) for rate in device.sample_rates) or "none"
    logger.info(f"  Sample rates: {rates}")


def main():
    """
    Lists all devices, or with --defaults the measurement capabilities of the default devices.
    """
    parser = argparse.ArgumentParser(description="List available audio devices.")
    parser.add_argument(
        "--defaults",
        action="store_true",
        help="Show channels, API and supported sample rates of the default input and output devices.",
    )
    args = parser.parse_args()

    if not args.defaults:
        DeviceCapabilities.show_audio_devices()
        return

    platform = detect_platform()
    recommended_api = RECOMMENDED_API.get(platform)
    logger.info(f"Platform: {platform or 'unsupported'}")

    info = DeviceCapabilities().query()
    show_device("input", info.input, recommended_api)
    show_device("output", info.output, recommended_api)

    if not (info.input.is_known and info.output.is_known):
        sys.exit(1)


if __name__ == "__main__":
    main()
