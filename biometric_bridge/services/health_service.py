from __future__ import annotations

import logging
from typing import Dict, Tuple

from biometric_bridge.schemas.biometric_models import ConnectionStatus, DeviceHealth
from biometric_bridge.utils.errors import MalformedDocument
from biometric_bridge.utils.profiles import DeviceProfile, Modality
from biometric_bridge.utils.transport import TransportClient
from biometric_bridge.utils.xml_parser import parse_document

logger = logging.getLogger(__name__)

INFO_PATH = "/rd/info"
NOT_CONNECTED = "rdservice-not-connected"
PARSE_ERROR = "info-parse-error"

DeviceSummary = Dict[Modality, DeviceHealth]


def _uniform(status: str) -> DeviceSummary:
    return {m: DeviceHealth(available=False, status=status) for m in Modality}


class HealthAggregator:
    """
    Polls the driver's /rd/info and reduces it to per-modality availability.

    Only the fingerprint device is described by the info document. Iris and
    photograph have no info element of their own, so they are reported
    available whenever the driver answers.
    """

    def __init__(self, transport: TransportClient, profile: DeviceProfile):
        self.transport = transport
        self.profile = profile

    async def check_connection(self) -> ConnectionStatus:
        response = await self.transport.send(
            self.profile.endpoints, INFO_PATH, "", timeout_ms=self.profile.timeout_ms
        )
        if response.transport_error is not None:
            return ConnectionStatus(
                connected=False,
                endpoint_used=response.endpoint,
                error=response.transport_error.message,
            )
        if not response.ok:
            return ConnectionStatus(
                connected=False,
                endpoint_used=response.endpoint,
                response_time_ms=response.elapsed_ms,
                error=f"HTTP {response.status_code}",
                raw_response=response.body_text,
                status_code=response.status_code,
            )
        return ConnectionStatus(
            connected=True,
            endpoint_used=response.endpoint,
            response_time_ms=response.elapsed_ms,
            raw_response=response.body_text,
            raw_body=response.body,
            status_code=response.status_code,
        )

    def summarize_devices(self, status: ConnectionStatus) -> DeviceSummary:
        if not status.connected:
            return _uniform(NOT_CONNECTED)

        # raw bytes when available, so a bad encoding is not masked by body_text
        markup = status.raw_body if status.raw_body is not None else status.raw_response
        try:
            doc = parse_document(markup)
        except MalformedDocument as e:
            logger.error(f"Device info parse error: {e}")
            return _uniform(PARSE_ERROR)

        rd_info = doc.find("RDService", max_depth=1)
        if rd_info is None:
            logger.warning(f"No RDService element in info response (root <{doc.tag}>)")
            return _uniform("unknown")

        if rd_info.attributes:
            fingerprint = DeviceHealth(
                available=True,
                manufacturer=rd_info.attr("dpId") or "Unknown",
                model=rd_info.attr("mi") or "Unknown",
                status=rd_info.attr("status") or "READY",
                driver_version=rd_info.attr("rdsVer") or "Unknown",
                driver_id=rd_info.attr("rdsId") or "Unknown",
            )
        else:
            # driver answered but did not describe the scanner
            fingerprint = DeviceHealth(available=False, status="unknown")

        return {
            Modality.FINGERPRINT: fingerprint,
            Modality.IRIS: DeviceHealth(available=True, status="ready"),
            Modality.PHOTOGRAPH: DeviceHealth(available=True, status="ready"),
        }

    async def probe(self) -> Tuple[ConnectionStatus, DeviceSummary]:
        status = await self.check_connection()
        return status, self.summarize_devices(status)
