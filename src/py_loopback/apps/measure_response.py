"""
Application script for measuring the response of a device under test to a
sine-wave test signal.

The sine is played through the default output device, the response is
recorded from the default input device and the (optionally calibrated)
signals are written to a CSV file with one column per signal.

Example:
    measure-response --frequency 1000 --duration 0.2 --latency 0.1 --channels 1 2 \
        --calibration GENERIC_CHAIN_DIRECT -o response.csv
"""

import csv
import logging
import sys
from pathlib import Path

import numpy as np

from py_loopback.core.config import MeasurementArgs
from py_loopback.core.errors import MeasurementError
from py_loopback.core.measurement import MeasurementResult, SignalResponseMeasurement
from py_loopback.processing.signal_metrics import ChannelPeak

logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
logger = logging.getLogger(__name__)


def sine_stimulus(sample_rate: float, duration: float, frequency: float, amplitude: float) -> np.ndarray:
    """Returns a sine-wave test signal."""
    t = np.arange(int(round(duration * sample_rate))) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t)


def confirm_clipping(peak: ChannelPeak):
    """Asks the user whether to continue with a possibly clipped channel."""
    print("\a", end="")
    input("If you want to continue, press ENTER. To abort, press CTRL-C.")


def write_result_csv(path: Path, result: MeasurementResult):
    """
    Writes the DUT input and output signals as CSV columns.

    Each branch gets its own time column, since calibration may shift the time
    base of a branch. With per-channel calibration every output channel carries
    its own time column.
    """
    dut_in = np.atleast_2d(result.dut_in.T).T
    dut_out = np.atleast_2d(result.dut_out.T).T
    per_channel_time = isinstance(result.time_out, list)
    out_units = result.dut_out_unit if isinstance(result.dut_out_unit, list) else [result.dut_out_unit] * len(
        result.channels
    )

    header = ["time_in (s)"]
    columns = [result.time_in]
    for i in range(dut_in.shape[1]):
        header.append(f"dut_in_{i + 1} ({result.dut_in_unit})")
        columns.append(dut_in[:, i])

    if not per_channel_time:
        header.append("time_out (s)")
        columns.append(result.time_out)
    for column, (channel, unit) in enumerate(zip(result.channels, out_units)):
        if per_channel_time:
            header.append(f"time_out_ch{channel} (s)")
            columns.append(result.time_out[column])
        header.append(f"dut_out_ch{channel} ({unit})")
        columns.append(dut_out[:, column])

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in zip(*columns):
            writer.writerow([f"{value:.9g}" for value in row])


def main():
    logger.info("Initializing Signal Response Measurement...")

    parser = MeasurementArgs.get_parser()
    parser.add_argument("-f", "--frequency", type=float, default=1000.0, help="Sine frequency (Hz). Default: 1000.")
    parser.add_argument("-d", "--duration", type=float, default=0.2, help="Sine duration (s). Default: 0.2.")
    parser.add_argument(
        "-a", "--amplitude", type=float, default=0.5, help="Sine peak amplitude (full scale = 1). Default: 0.5."
    )
    parser.add_argument("-o", "--output", type=str, default="response.csv", help="CSV output path.")
    parser.add_argument(
        "--no-prompt",
        action="store_true",
        help="Do not ask for confirmation if a channel may be clipped.",
    )

    args = parser.parse_args()

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    try:
        if not 0 < args.amplitude <= 1:
            raise ValueError(f"Amplitude must be within 0...1, got {args.amplitude}.")

        config = MeasurementArgs.validate_args(args, clipping_handler=None if args.no_prompt else confirm_clipping)
        stimulus = sine_stimulus(args.sample_rate, args.duration, args.frequency, args.amplitude)

        result = SignalResponseMeasurement(config).measure(
            stimulus,
            args.sample_rate,
            latency=args.latency,
            channels=args.channels,
            calibration=args.calibration,
        )
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Configuration Error: {e}")
        sys.exit(1)
    except MeasurementError as e:
        logger.error(f"Measurement failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nUser aborted measurement.")
        sys.exit(1)

    output = Path(args.output)
    write_result_csv(output, result)

    rms_text = "not available" if result.stimulus_rms is None else f"{result.stimulus_rms:.6g} {result.dut_in_unit}"
    logger.info(f"DUT input unit: {result.dut_in_unit}, DUT output unit: {result.dut_out_unit}")
    logger.info(f"Stimulus RMS at DUT input: {rms_text}")
    if result.advisories:
        logger.info(f"{len(result.advisories)} advisory message(s) raised during the measurement.")
    logger.info(f"Result saved to: {output.resolve()}")


if __name__ == "__main__":
    main()
