"""Tests for PID envelope extraction."""

import pytest

from biometric_bridge.services.pid_extractor import extract_pid_envelope
from biometric_bridge.utils.errors import MissingEnvelope
from biometric_bridge.utils.profiles import Modality
from biometric_bridge.utils.xml_parser import parse_document
from tests.conftest import pid_response


def extract(xml: str, modality: Modality = Modality.FINGERPRINT):
    return extract_pid_envelope(parse_document(xml), modality)


class TestSuccess:
    def test_status_fields(self):
        envelope = extract(pid_response(q_score="72", nm_points="4"))

        assert envelope.ok
        assert envelope.status.error_code == 0
        assert envelope.status.quality_score == 72
        assert envelope.status.match_points == 4
        assert envelope.status.error_message == "Capture Success"

    def test_device_metadata(self):
        device = extract(pid_response()).device

        assert device.model == "MFS110"
        assert device.provider_id == "MANTRA.MSIPL"
        assert device.driver_version == "1.0.8"
        assert device.driver_id == "RENESAS.MANTRA.001"
        assert device.device_code == "a6b6f1c2-4c59-4c0b"
        assert device.certificate == "MIIEGDCCAwCgAwIBAgIE"

    def test_additional_info(self):
        extra = extract(pid_response()).device.additional

        assert extra.serial_number == "8204621"
        assert extra.system_id == "PC-0042"
        assert extra.timestamp == "2025-08-20T12:13:34+05:30"
        assert extra.modality_type == "Finger"
        assert extra.device_type == "L1"

    def test_unknown_params_ignored(self):
        params = (("srno", "1"), ("vendor_secret", "x"), ("ts", "2025-01-01T00:00:00Z"))
        extra = extract(pid_response(params=params)).device.additional

        assert extra.serial_number == "1"
        assert extra.timestamp == "2025-01-01T00:00:00Z"
        assert extra.system_id == ""

    def test_biometric_payload(self):
        payload = extract(pid_response()).biometric

        assert payload.encrypted_data == "ZW5jcnlwdGVkLXBpZA=="
        assert payload.session_key == "c2Vzc2lvbi1rZXk="
        assert payload.session_key_cipher_id == "20250923"
        assert payload.integrity_code == "aG1hYy12YWx1ZQ=="
        assert payload.data_type == "X"

    def test_out_of_range_quality_kept(self):
        assert extract(pid_response(q_score="150")).status.quality_score == 150

    def test_missing_optional_attributes(self):
        xml = (
            "<PidData><Resp errCode=''/><DeviceInfo/>"
            "<Data>cGF5bG9hZA==</Data></PidData>"
        )
        envelope = extract(xml)

        assert envelope.status.quality_score == 0
        assert envelope.status.match_points == 0
        assert envelope.device.model == "Unknown"
        assert envelope.biometric.session_key == ""
        assert envelope.biometric.integrity_code == ""

    def test_params_directly_under_device_info(self):
        xml = (
            '<PidData><Resp errCode="0"/>'
            '<DeviceInfo mi="MIS100V2"><Param name="srno" value="77"/></DeviceInfo>'
            "<Data>eA==</Data></PidData>"
        )
        assert extract(xml, Modality.IRIS).device.additional.serial_number == "77"


class TestNesting:
    def test_redundant_wrapper_is_accepted(self):
        envelope = extract(pid_response(wrapper="Response"))
        assert envelope.ok
        assert envelope.biometric.encrypted_data == "ZW5jcnlwdGVkLXBpZA=="

    def test_too_deep_is_missing(self):
        xml = "<A><B>" + pid_response()[len('<?xml version="1.0"?>'):] + "</B></A>"
        with pytest.raises(MissingEnvelope, match="Resp"):
            extract(xml)


class TestDeviceFailure:
    def test_error_short_circuits_without_device_parts(self):
        envelope = extract(
            pid_response(err_code="1", err_info="Device not ready", with_device=False, with_data=False)
        )

        assert not envelope.ok
        assert envelope.status.error_code == 1
        assert envelope.status.error_message == "Device not ready"
        assert envelope.device is None
        assert envelope.biometric is None

    def test_default_failure_message(self):
        envelope = extract(pid_response(err_code="720", with_device=False, with_data=False))
        assert envelope.status.error_message == "Unknown error"


class TestMissingEnvelope:
    def test_no_resp(self):
        with pytest.raises(MissingEnvelope):
            extract("<PidData><DeviceInfo/></PidData>")

    def test_success_without_data(self):
        with pytest.raises(MissingEnvelope, match="Data"):
            extract(pid_response(with_data=False))

    def test_success_without_device_info(self):
        with pytest.raises(MissingEnvelope, match="DeviceInfo"):
            extract(pid_response(with_device=False))

    def test_non_numeric_code(self):
        with pytest.raises(MissingEnvelope, match="errCode"):
            extract('<PidData><Resp errCode="oops"/></PidData>')


class TestMeasurements:
    @pytest.mark.parametrize(
        "raw, expected",
        [("72.5", 72), ("88.9", 88), (" 41 ", 41), ("n/a", 0), ("", 0)],
    )
    def test_quality_keeps_integer_part(self, raw, expected):
        envelope = extract(pid_response(q_score=raw))
        assert envelope.ok
        assert envelope.status.quality_score == expected

    def test_decimal_minutiae_count(self):
        assert extract(pid_response(nm_points="4.0")).status.match_points == 4

    def test_decimal_error_code_still_rejected(self):
        with pytest.raises(MissingEnvelope, match="errCode"):
            extract('<PidData><Resp errCode="1.5"/></PidData>')
