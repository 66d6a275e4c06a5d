from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from biometric_bridge.utils.errors import MissingEnvelope
from biometric_bridge.utils.profiles import Modality
from biometric_bridge.utils.xml_parser import ParsedElement

# PidData sits at the root or under one redundant wrapper element, so its
# children are at most two levels below the document root.
ENVELOPE_SEARCH_DEPTH = 2

SUCCESS_MESSAGE = "Capture Success"
FAILURE_MESSAGE = "Unknown error"

# additional_info Param name -> AdditionalInfo field
ADDITIONAL_INFO_KEYS = {
    "srno": "serial_number",
    "sysid": "system_id",
    "ts": "timestamp",
    "modality_type": "modality_type",
    "device_type": "device_type",
}

_LEADING_INT = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class ResponseStatus:
    error_code: int
    error_message: str
    quality_score: int
    match_points: int

    @property
    def ok(self) -> bool:
        return self.error_code == 0


@dataclass(frozen=True)
class AdditionalInfo:
    serial_number: str = ""
    system_id: str = ""
    timestamp: str = ""
    modality_type: str = ""
    device_type: str = ""


@dataclass(frozen=True)
class DeviceMetadata:
    model: str
    provider_id: str
    driver_version: str
    driver_id: str
    device_code: str = ""
    certificate: str = ""
    additional: AdditionalInfo = field(default_factory=AdditionalInfo)


@dataclass(frozen=True)
class BiometricPayload:
    encrypted_data: str
    session_key: str = ""
    session_key_cipher_id: str = ""
    integrity_code: str = ""
    data_type: str = ""


@dataclass(frozen=True)
class PidEnvelope:
    modality: Modality
    status: ResponseStatus
    device: Optional[DeviceMetadata] = None
    biometric: Optional[BiometricPayload] = None

    @property
    def ok(self) -> bool:
        return self.status.ok


def _int_attr(element: ParsedElement, name: str) -> int:
    raw = (element.attr(name) or "").strip()
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        raise MissingEnvelope(
            f"{element.tag}.{name} is not an integer: {raw!r}"
        ) from None


def _measure_attr(element: ParsedElement, name: str) -> int:
    # some drivers report qScore as "72.5"; keep the integer part
    match = _LEADING_INT.match((element.attr(name) or "").strip())
    return int(match.group()) if match else 0


def read_response_status(resp: ParsedElement) -> ResponseStatus:
    code = _int_attr(resp, "errCode")
    message = resp.attr("errInfo") or (SUCCESS_MESSAGE if code == 0 else FAILURE_MESSAGE)
    return ResponseStatus(
        error_code=code,
        error_message=message,
        quality_score=_measure_attr(resp, "qScore"),
        match_points=_measure_attr(resp, "nmPoints"),
    )


def read_additional_info(device_info: ParsedElement) -> AdditionalInfo:
    """Collect the known vendor Params; unknown names are skipped."""
    holder = device_info.child("additional_info") or device_info
    values: Dict[str, str] = {}
    for param in holder.children_named("Param"):
        key = ADDITIONAL_INFO_KEYS.get(param.attr("name", ""))
        if key and param.attr("value"):
            values[key] = param.attr("value")
    return AdditionalInfo(**values)


def read_device_metadata(device_info: ParsedElement) -> DeviceMetadata:
    return DeviceMetadata(
        model=device_info.attr("mi") or "Unknown",
        provider_id=device_info.attr("dpId") or "Unknown",
        driver_version=device_info.attr("rdsVer") or "Unknown",
        driver_id=device_info.attr("rdsId") or "Unknown",
        device_code=device_info.attr("dc") or "",
        certificate=device_info.attr("mc") or "",
        additional=read_additional_info(device_info),
    )


def read_biometric_payload(
    data: ParsedElement, skey: Optional[ParsedElement], hmac: Optional[ParsedElement]
) -> BiometricPayload:
    return BiometricPayload(
        encrypted_data=data.text,
        session_key=skey.text if skey else "",
        session_key_cipher_id=(skey.attr("ci") or "") if skey else "",
        integrity_code=hmac.text if hmac else "",
        data_type=data.attr("type") or "",
    )


def _locate(doc: ParsedElement, name: str) -> Optional[ParsedElement]:
    return doc.find(name, max_depth=ENVELOPE_SEARCH_DEPTH)


def extract_pid_envelope(doc: ParsedElement, modality: Modality) -> PidEnvelope:
    """
    Validate a parsed /rd/capture response and pull out its parts.

    A device-reported error (errCode != 0) comes back as an envelope with no
    device or biometric parts, since drivers omit them on error. A success
    response missing DeviceInfo or Data raises MissingEnvelope: the driver
    said it worked but the body is truncated.
    """
    resp = _locate(doc, "Resp")
    if resp is None:
        raise MissingEnvelope("Response status element <Resp> not found")

    status = read_response_status(resp)
    if not status.ok:
        return PidEnvelope(modality=modality, status=status)

    device_info = _locate(doc, "DeviceInfo")
    if device_info is None:
        raise MissingEnvelope("Device info element <DeviceInfo> not found")
    data = _locate(doc, "Data")
    if data is None:
        raise MissingEnvelope("Biometric data element <Data> not found")

    return PidEnvelope(
        modality=modality,
        status=status,
        device=read_device_metadata(device_info),
        biometric=read_biometric_payload(data, _locate(doc, "Skey"), _locate(doc, "Hmac")),
    )
