"""
Loads calibration descriptors from JSON files.

A calibration file describes the DAC / SENSOR / ADC stages of one measurement
chain. Each stage has a sensitivity, a unit and optionally a frequency
response given as [frequency_hz, gain_db] pairs:

    {
        "name": "GENERIC_CHAIN_DIRECT",
        "DAC":    {"sensitivity": 1.5, "unit": "V"},
        "SENSOR": {"sensitivity": 1.0, "unit": "V"},
        "ADC":    {"sensitivity": 0.66, "unit": "V",
                   "frequency_response": [[20, -0.3], [1000, 0.0], [20000, -0.5]]}
    }

DAC sensitivity is in unit per full scale; SENSOR sensitivity in volts per
unit; ADC sensitivity in full scale per volt.
Unknown keys are rejected at every level.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.errors import CalibrationFileError
from ..settings import get_settings
from .descriptor import CalibrationDescriptor
from .transfers import TransferCalibration

settings = get_settings()

logger = logging.getLogger(__name__)


class StageModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sensitivity: float
    unit: str
    frequency_response: list[tuple[float, float]] | None = None
    num_taps: int | None = Field(default=None, gt=2)

    @field_validator("sensitivity")
    @classmethod
    def non_zero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("sensitivity must be non-zero")
        return value

    def to_transfer(self, invert: bool) -> TransferCalibration:
        frequencies = gains_db = None
        if self.frequency_response:
            frequencies = [f for f, _ in self.frequency_response]
            gains_db = [g for _, g in self.frequency_response]
        return TransferCalibration(
            sensitivity=self.sensitivity,
            unit=self.unit,
            frequencies=frequencies,
            gains_db=gains_db,
            num_taps=self.num_taps,
            invert=invert,
        )


class CalibrationFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    DAC: StageModel | None = None
    SENSOR: StageModel | None = None
    ADC: StageModel | None = None

    def to_descriptor(self, default_name: str) -> CalibrationDescriptor:
        return CalibrationDescriptor(
            name=self.name or default_name,
            dac=self.DAC.to_transfer(invert=False) if self.DAC else None,
            sensor=self.SENSOR.to_transfer(invert=True) if self.SENSOR else None,
            adc=self.ADC.to_transfer(invert=True) if self.ADC else None,
        )


class CalibrationLoader:
    """Resolves calibration names or paths into CalibrationDescriptor objects."""

    def __init__(self, search_dir: str | Path | None = None):
        self.search_dir = Path(search_dir if search_dir is not None else settings.CALIBRATION.SEARCH_DIR)

    def resolve_path(self, reference: str | Path) -> Path:
        """
        Finds the calibration file for a path or a bare name.

        :raises FileNotFoundError: If no matching file exists.
        """
        path = Path(reference)
        candidates = [path]
        if not path.is_absolute():
            candidates += [self.search_dir / path, self.search_dir / f"{path}.json"]

        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise FileNotFoundError(
            f"Calibration '{reference}' not found (looked in: {', '.join(str(c) for c in candidates)})."
        )

    def load(self, reference: str | Path) -> CalibrationDescriptor:
        """
        :raises FileNotFoundError: If the calibration file cannot be found.
        :raises CalibrationFileError: If the file is not a valid calibration description.
        """
        path = self.resolve_path(reference)
        logger.info(f"Loading calibration data from {path}")

        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
            model = CalibrationFileModel.model_validate(raw)
        except json.JSONDecodeError as e:
            raise CalibrationFileError(f"Calibration file {path} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise CalibrationFileError(f"Calibration file {path} is invalid: {e}") from e

        return model.to_descriptor(default_name=path.stem)
