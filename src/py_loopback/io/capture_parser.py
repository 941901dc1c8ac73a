"""
Parser for the text output of the TestTone playback/capture program.

The output starts with a header. One header line declares the number of
recorded channels ("Number of sound input channels = K") and a final header
line labels the columns ("time (s) ..."). Every following row holds the
sample time and one value per channel, whitespace separated.

Parsing is a two-state line classifier: lines are read as header until the
column label line is seen, or until a line turns out to consist purely of
numbers. In the latter case that line is already the first data row.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

import numpy as np

from ..core.advisories import AdvisoryKind, AdvisoryLog
from ..core.errors import ChannelCountUnresolved, EmptyCapture, MalformedCapture

logger = logging.getLogger(__name__)

CHANNEL_COUNT_MARKER = "Number of sound input channels ="
HEADER_SENTINEL = "time (s)"


class ParserState(Enum):
    READING_HEADER = "reading_header"
    READING_DATA = "reading_data"


@dataclass
class CapturedMatrix:
    """Time-aligned capture data: one time base shared by all channels."""

    time: np.ndarray
    data: np.ndarray
    num_channels: int

    def select(self, channels: list[int]) -> np.ndarray:
        """
        Returns the columns of the given 1-based channel numbers.

        :raises ValueError: If a channel number is outside 1..num_channels.
        """
        invalid = [c for c in channels if not 1 <= c <= self.num_channels]
        if invalid:
            raise ValueError(
                f"Requested channel(s) {invalid} not available; the capture holds {self.num_channels} channel(s)."
            )
        return self.data[:, [c - 1 for c in channels]]


def parse_numeric(line: str) -> list[float] | None:
    """Returns the values of a purely numeric line, or None for any other line."""
    tokens = line.split()
    if not tokens:
        return None
    try:
        return [float(token) for token in tokens]
    except ValueError:
        return None


def parse_channel_count(line: str) -> int:
    value = line.split("=", 1)[1].strip()
    try:
        return int(float(value.split()[0]))
    except (IndexError, ValueError) as e:
        raise ChannelCountUnresolved(f"Invalid channel count declaration in capture header: '{line.strip()}'") from e


class CaptureParser:
    """Turns TestTone capture output into a CapturedMatrix."""

    def __init__(self, advisories: AdvisoryLog | None = None):
        self.advisories = advisories if advisories is not None else AdvisoryLog()

    def parse_file(self, path: Path) -> CapturedMatrix:
        with open(path, encoding="utf-8", errors="replace") as f:
            return self.parse(f)

    def parse(self, lines: Iterable[str]) -> CapturedMatrix:
        """
        :raises ChannelCountUnresolved: If no channel count is declared before the data.
        :raises EmptyCapture: If no data values follow the header.
        :raises MalformedCapture: If the values do not form complete rows.
        """
        state = ParserState.READING_HEADER
        num_channels: int | None = None
        values: list[float] = []

        for line in lines:
            if state is ParserState.READING_HEADER:
                if CHANNEL_COUNT_MARKER in line:
                    num_channels = parse_channel_count(line)
                elif HEADER_SENTINEL in line:
                    state = ParserState.READING_DATA
                else:
                    row = parse_numeric(line)
                    if row is not None:
                        logger.debug("Capture header has no column label line; data starts here.")
                        state = ParserState.READING_DATA
                        values.extend(row)
                continue

            row = parse_numeric(line)
            if row is None:
                if line.strip():
                    raise MalformedCapture(f"Unexpected non-numeric line in capture data: '{line.strip()}'")
                continue
            values.extend(row)

        if state is ParserState.READING_HEADER:
            self.advisories.add(
                AdvisoryKind.TRUNCATED_CAPTURE,
                "End of capture data reached prematurely! Is the data file corrupted?",
            )

        if num_channels is None:
            raise ChannelCountUnresolved("Could not determine number of channels in recorded data.")

        if not values:
            raise EmptyCapture("No data found in TestTone output.")

        width = num_channels + 1
        if len(values) % width:
            raise MalformedCapture(
                f"Capture holds {len(values)} values, which is not a multiple of {width} columns "
                f"(time + {num_channels} channels)."
            )

        table = np.asarray(values, dtype=np.float64).reshape(-1, width)
        return CapturedMatrix(time=table[:, 0], data=table[:, 1:], num_channels=num_channels)
