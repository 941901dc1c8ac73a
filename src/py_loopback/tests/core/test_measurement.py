"""
End-to-end tests of the measurement pipeline with a fake loopback backend.
"""

import json
from dataclasses import replace
from unittest.mock import MagicMock

import numpy as np
import pytest

from py_loopback.calibration.descriptor import CalibrationDescriptor
from py_loopback.calibration.transfers import GainCalibration, TransferCalibration
from py_loopback.core.advisories import AdvisoryKind
from py_loopback.core.errors import (
    CaptureFailed,
    CaptureTimeout,
    ChannelCountUnresolved,
    NoDeviceAvailable,
    UnsupportedChannelCount,
    UnsupportedPlatform,
)
from py_loopback.core.measurement import SignalResponseMeasurement, measure_signal_response
from py_loopback.hardware.device_info import AudioInfo, DeviceInfo
from py_loopback.processing.signal_metrics import rms
from py_loopback.tests.conftest import SAMPLE_RATE, LoopbackBackend

LATENCY_100_SAMPLES = 100 / SAMPLE_RATE


def test_uncalibrated_measurement_returns_padded_round_trip(make_config, sine_1k):
    result = SignalResponseMeasurement(make_config()).measure(sine_1k, SAMPLE_RATE, latency=LATENCY_100_SAMPLES)

    expected = np.concatenate([np.zeros(100), sine_1k, np.zeros(100)])
    assert result.dut_in.shape == (1200, 1)
    np.testing.assert_array_equal(result.dut_in[:, 0], expected)
    np.testing.assert_array_equal(result.dut_out[:, 0], expected)
    assert len(result.time) == len(result.dut_out) == len(result.dut_in) == 1200
    assert result.dut_out_unit == "???"
    assert result.dut_in_unit == "???"
    assert result.stimulus_rms is None
    assert result.channels == [1, 2]


def test_dac_gain_calibration_scales_dut_in_and_rms(make_config, sine_1k):
    calibration = CalibrationDescriptor(name="dac", dac=GainCalibration(2.0, "V"))

    result = SignalResponseMeasurement(make_config()).measure(
        sine_1k, SAMPLE_RATE, latency=LATENCY_100_SAMPLES, calibration=calibration
    )

    raw = np.concatenate([np.zeros(100), sine_1k, np.zeros(100)])
    np.testing.assert_allclose(result.dut_in[:, 0], 2.0 * raw)
    assert result.dut_in_unit == "V"
    assert result.stimulus_rms == pytest.approx(2.0 * rms(sine_1k))
    assert result.stimulus_rms == pytest.approx(2.0 * 0.3536, abs=0.01)
    assert result.dut_out_unit == "???"
    assert len([a for a in result.advisories if a.kind == AdvisoryKind.CALIBRATION_SKIPPED]) == 1


@pytest.mark.parametrize("latency", [0.0, 0.01, 0.2])
def test_padding_length_matches_latency(make_config, sine_1k, latency):
    result = SignalResponseMeasurement(make_config()).measure(sine_1k, SAMPLE_RATE, latency=latency)
    assert len(result.dut_in) == 1000 + 2 * round(latency * SAMPLE_RATE)


def test_channel_selection(make_config, sine_1k):
    backend = LoopbackBackend(gains=(0.5, 1.0, -1.0))
    result = SignalResponseMeasurement(make_config(backend=backend)).measure(
        sine_1k, SAMPLE_RATE, latency=0.1, channels=[3, 1]
    )

    assert result.dut_out.shape[1] == 2
    np.testing.assert_allclose(result.dut_out[:, 0], -result.dut_in[:, 0])
    np.testing.assert_allclose(result.dut_out[:, 1], 0.5 * result.dut_in[:, 0])
    assert result.channels == [3, 1]


def test_full_chain_from_calibration_name(make_config, sine_1k, tmp_path):
    content = {
        "DAC": {"sensitivity": 1.5, "unit": "V"},
        "SENSOR": {"sensitivity": 0.5, "unit": "Pa"},
        "ADC": {"sensitivity": 0.25, "unit": "V"},
    }
    (tmp_path / "CHAIN.json").write_text(json.dumps(content), encoding="utf-8")

    result = SignalResponseMeasurement(make_config()).measure(
        sine_1k, SAMPLE_RATE, latency=0.1, channels=[1], calibration="CHAIN"
    )

    np.testing.assert_allclose(result.dut_out[:, 0] * 0.125, result.dut_in[:, 0] / 1.5, atol=1e-12)
    assert result.dut_out_unit == "Pa"
    assert result.dut_in_unit == "V"
    assert result.stimulus_rms == pytest.approx(1.5 * rms(sine_1k))


def test_per_channel_calibration_units(make_config, sine_1k):
    mic = CalibrationDescriptor(
        dac=GainCalibration(1.0, "V"),
        sensor=TransferCalibration(0.01, "Pa", invert=True),
        adc=TransferCalibration(1.0, "V", invert=True),
    )
    loopback = CalibrationDescriptor(
        sensor=GainCalibration(1.0, "V"), adc=TransferCalibration(1.0, "V", invert=True)
    )

    result = SignalResponseMeasurement(make_config()).measure(
        sine_1k, SAMPLE_RATE, latency=0.1, calibration=[mic, loopback]
    )

    assert result.dut_out_unit == ["Pa", "V"]
    np.testing.assert_allclose(result.dut_out[:, 0], 100 * result.dut_out[:, 1])


def test_latency_advisory_when_unspecified(make_config, sine_1k):
    result = SignalResponseMeasurement(make_config()).measure(sine_1k, SAMPLE_RATE)

    assert len(result.dut_in) == 1000 + 2 * 4410
    assert any(a.kind == AdvisoryKind.LATENCY for a in result.advisories)


def test_unsupported_platform(make_config, sine_1k):
    with pytest.raises(UnsupportedPlatform):
        SignalResponseMeasurement(make_config(platform=None)).measure(sine_1k, SAMPLE_RATE, latency=0.1)


@pytest.mark.parametrize("direction", ["input", "output"])
def test_unknown_device_is_rejected(make_config, audio_info, loopback_backend, sine_1k, direction):
    info = AudioInfo(**{**vars(audio_info), direction: DeviceInfo()})

    with pytest.raises(NoDeviceAvailable):
        SignalResponseMeasurement(make_config(audio_info=lambda: info)).measure(sine_1k, SAMPLE_RATE, latency=0.1)

    assert loopback_backend.calls == []


def test_input_device_without_channels_is_rejected(make_config, audio_info, sine_1k):
    info = AudioInfo(input=replace(audio_info.input, channels=0), output=audio_info.output)
    with pytest.raises(NoDeviceAvailable):
        SignalResponseMeasurement(make_config(audio_info=lambda: info)).measure(sine_1k, SAMPLE_RATE, latency=0.1)


def test_too_many_stimulus_channels(make_config, loopback_backend, sine_1k):
    stimulus = np.column_stack([sine_1k, sine_1k, sine_1k])
    with pytest.raises(UnsupportedChannelCount):
        SignalResponseMeasurement(make_config()).measure(stimulus, SAMPLE_RATE, latency=0.1)
    assert loopback_backend.calls == []


def test_device_advisories(make_config, audio_info, sine_1k):
    info = AudioInfo(input=replace(audio_info.input, api="PulseAudio"), output=audio_info.output)

    result = SignalResponseMeasurement(make_config(audio_info=lambda: info)).measure(
        sine_1k, 22050, latency=0.2
    )

    kinds = [a.kind for a in result.advisories]
    assert kinds.count(AdvisoryKind.API_MISMATCH) == 1
    assert kinds.count(AdvisoryKind.SAMPLE_RATE) == 2


def test_backend_receives_timeout_and_sample_rate(make_config, loopback_backend, sine_1k):
    SignalResponseMeasurement(make_config(timeout_seconds=12.5)).measure(sine_1k, 48000, latency=0.2)

    (call,) = loopback_backend.calls
    assert call["timeout"] == 12.5
    assert call["sample_rate"] == 48000


def test_temporary_files_removed_after_success(make_config, loopback_backend, sine_1k):
    SignalResponseMeasurement(make_config()).measure(sine_1k, SAMPLE_RATE, latency=0.1)

    (call,) = loopback_backend.calls
    assert not call["stimulus_path"].exists()
    assert not call["output_path"].parent.exists()


@pytest.mark.parametrize("error", [CaptureFailed("I/O error"), CaptureTimeout("too slow")])
def test_backend_errors_propagate_and_clean_up(make_config, sine_1k, error):
    backend = MagicMock()
    backend.invoke.side_effect = error

    with pytest.raises(type(error)):
        SignalResponseMeasurement(make_config(backend=backend)).measure(sine_1k, SAMPLE_RATE, latency=0.1)

    stimulus_path = backend.invoke.call_args.args[0]
    assert not stimulus_path.parent.exists()


def test_parse_failure_cleans_up(make_config, sine_1k):
    backend = MagicMock()
    backend.invoke.side_effect = lambda stimulus, fs, output, timeout=None: output.write_text("0.0 0.1\n")

    with pytest.raises(ChannelCountUnresolved):
        SignalResponseMeasurement(make_config(backend=backend)).measure(sine_1k, SAMPLE_RATE, latency=0.1)

    assert not backend.invoke.call_args.args[0].parent.exists()


def test_capture_without_header_sentinel(make_config, sine_1k):
    backend = LoopbackBackend(gains=(1.0,), with_sentinel=False)

    result = SignalResponseMeasurement(make_config(backend=backend)).measure(sine_1k, SAMPLE_RATE, latency=0.1)

    assert len(result.dut_out) == len(result.dut_in) == 1000 + 2 * 4410


def test_clipping_is_reported_to_handler(make_config, sine_1k):
    handler = MagicMock()
    backend = LoopbackBackend(gains=(2.0, 1.0))

    result = SignalResponseMeasurement(make_config(backend=backend, clipping_handler=handler)).measure(
        sine_1k, SAMPLE_RATE, latency=0.1
    )

    handler.assert_called_once()
    assert handler.call_args.args[0].channel == 1
    clipping = [a for a in result.advisories if a.kind == AdvisoryKind.POSSIBLE_CLIPPING]
    assert len(clipping) == 1
    assert "channel 1" in clipping[0].message


def test_measure_signal_response_uses_given_config(make_config, sine_1k):
    result = measure_signal_response(sine_1k, SAMPLE_RATE, latency=0.1, channels=[2], config=make_config())
    assert result.channels == [2]


def test_empty_calibration_list_returns_raw_data(make_config, sine_1k):
    result = SignalResponseMeasurement(make_config()).measure(sine_1k, SAMPLE_RATE, latency=0.1, calibration=[])

    assert result.dut_in_unit == "???"
    assert result.dut_out_unit == "???"
    assert result.stimulus_rms is None
    assert not any(a.kind == AdvisoryKind.CALIBRATION_SKIPPED for a in result.advisories)


def test_per_channel_calibration_count_checked_before_capture(make_config, loopback_backend, sine_1k):
    calibration = [CalibrationDescriptor(dac=GainCalibration(1.0, "V"))] * 2

    with pytest.raises(ValueError, match="2 calibration descriptors for 1 requested"):
        SignalResponseMeasurement(make_config()).measure(
            sine_1k, SAMPLE_RATE, latency=0.1, channels=[1], calibration=calibration
        )

    assert loopback_backend.calls == []
