"""
Non-fatal measurement advisories.

An advisory reports a data-quality or configuration concern that does not stop
the measurement. Advisories are logged as warnings when raised and collected so
the caller can inspect them on the measurement result.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AdvisoryKind(str, Enum):
    API_MISMATCH = "api_mismatch"
    SAMPLE_RATE = "sample_rate"
    LATENCY = "latency"
    CALIBRATION_SKIPPED = "calibration_skipped"
    TRUNCATED_CAPTURE = "truncated_capture"
    POSSIBLE_CLIPPING = "possible_clipping"


@dataclass(frozen=True)
class Advisory:
    kind: AdvisoryKind
    message: str


class AdvisoryLog:
    """Collects advisories raised during one measurement call."""

    def __init__(self):
        self._items: list[Advisory] = []

    def add(self, kind: AdvisoryKind, message: str) -> Advisory:
        advisory = Advisory(kind=kind, message=message)
        logger.warning(message)
        self._items.append(advisory)
        return advisory

    def of_kind(self, kind: AdvisoryKind) -> list[Advisory]:
        return [a for a in self._items if a.kind == kind]

    @property
    def items(self) -> list[Advisory]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
