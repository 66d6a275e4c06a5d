from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional, Union

from biometric_bridge.schemas.biometric_models import (
    CaptureFailure,
    CaptureResult,
    CaptureSuccess,
    DeviceInfo,
    FailureSource,
    Templates,
)
from biometric_bridge.services.pid_extractor import PidEnvelope
from biometric_bridge.utils.errors import MalformedDocument, MissingEnvelope
from biometric_bridge.utils.profiles import Modality
from biometric_bridge.utils.transport import FaultKind, TransportFault

logger = logging.getLogger(__name__)

DRIVER_UNREACHABLE = 100
CONNECTION_INTERRUPTED = 110
CAPTURE_TIMEOUT = 120
UNCLASSIFIED = 999

TRANSPORT_CODES = {
    FaultKind.REFUSED: (DRIVER_UNREACHABLE, "RDService not running or not accessible"),
    FaultKind.RESET: (CONNECTION_INTERRUPTED, "Connection to RDService was interrupted"),
    FaultKind.TIMEOUT: (CAPTURE_TIMEOUT, "Capture timeout - device did not respond"),
}


def _now_iso(now: Optional[datetime]) -> str:
    return (now or datetime.now(UTC)).isoformat()


def _failure(code: int, message: str, modality: Modality, source: FailureSource,
             now: Optional[datetime], quality_score: int = 0) -> CaptureFailure:
    return CaptureFailure(
        error_code=code,
        error_message=message,
        quality_score=quality_score,
        modality=modality,
        captured_at=_now_iso(now),
        source=source,
    )


def _from_envelope(envelope: PidEnvelope, now: Optional[datetime]) -> CaptureResult:
    status = envelope.status
    if not status.ok:
        return _failure(
            status.error_code,
            status.error_message,
            envelope.modality,
            FailureSource.DEVICE,
            now,
            quality_score=status.quality_score,
        )

    device = envelope.device
    payload = envelope.biometric
    if device is None or payload is None:
        # extract_pid_envelope never builds this; guards hand-made envelopes
        raise MissingEnvelope("Success envelope without device or biometric data")

    extra = device.additional
    return CaptureSuccess(
        error_message=status.error_message,
        quality_score=status.quality_score,
        match_points=status.match_points,
        modality=envelope.modality,
        templates=Templates(
            raw=payload.encrypted_data,
            session_key=payload.session_key,
            session_key_cipher_id=payload.session_key_cipher_id,
            integrity_code=payload.integrity_code,
        ),
        device_info=DeviceInfo(
            model=device.model,
            manufacturer=device.provider_id,
            device_provider_id=device.provider_id,
            serial_number=extra.serial_number,
            system_id=extra.system_id,
            driver_version=device.driver_version,
            driver_id=device.driver_id,
            modality_type=extra.modality_type,
            device_type=extra.device_type,
        ),
        captured_at=extra.timestamp or _now_iso(now),
    )


def normalize(
    outcome: Union[PidEnvelope, BaseException],
    modality: Modality,
    now: Optional[datetime] = None,
) -> CaptureResult:
    """
    Turn an extracted envelope or a fault into a CaptureResult.

    Error codes: 100 driver unreachable, 110 connection reset, 120 timeout,
    the driver's own code for device-reported failures, 999 for everything
    else (empty or malformed body, missing envelope, unclassified faults).
    """
    if isinstance(outcome, PidEnvelope):
        try:
            return _from_envelope(outcome, now)
        except MissingEnvelope as e:
            outcome = e

    if isinstance(outcome, TransportFault):
        code, message = TRANSPORT_CODES.get(
            outcome.kind, (UNCLASSIFIED, f"RDService request failed: {outcome.message}")
        )
        return _failure(code, message, modality, FailureSource.TRANSPORT, now)

    if isinstance(outcome, (MalformedDocument, MissingEnvelope)):
        return _failure(UNCLASSIFIED, str(outcome), modality, FailureSource.ENVELOPE, now)

    logger.error(f"Unclassified capture fault: {type(outcome).__name__}: {outcome}")
    return _failure(
        UNCLASSIFIED,
        f"Failed to process biometric data: {outcome}",
        modality,
        FailureSource.ENVELOPE,
        now,
    )
