from __future__ import annotations

import logging
from typing import Any, Dict, Tuple, Union

from biometric_bridge.schemas.biometric_models import CaptureResult, ConnectionStatus
from biometric_bridge.services.health_service import INFO_PATH, DeviceSummary, HealthAggregator
from biometric_bridge.services.normalizer import normalize
from biometric_bridge.services.pid_extractor import extract_pid_envelope
from biometric_bridge.utils.errors import MalformedDocument, MissingEnvelope
from biometric_bridge.utils.pid_options import (
    CaptureOptions,
    build_pid_options,
    resolve_timeout_ms,
)
from biometric_bridge.utils.profiles import Modality, ProfileRegistry
from biometric_bridge.utils.transport import RawDriverResponse, TransportClient, TransportFault
from biometric_bridge.utils.xml_parser import parse_document

logger = logging.getLogger(__name__)

CAPTURE_PATH = "/rd/capture"


class RDServiceService:
    """
    All communication with RDService, the local biometric device driver.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        transport: TransportClient,
        health: HealthAggregator,
        capture_grace_ms: int = 0,
    ):
        self.registry = registry
        self.transport = transport
        self.health = health
        # extra transport time past the PID timeout, so the driver can report
        # its own capture timeout before the bridge gives up on the socket
        self.capture_grace_ms = capture_grace_ms

    @property
    def info_endpoint(self) -> str:
        return self.health.profile.secure_endpoint

    def _envelope_from(self, response: RawDriverResponse, modality: Modality):
        if response.transport_error is not None:
            raise response.transport_error
        try:
            doc = parse_document(response.body)
        except MalformedDocument as e:
            if not response.ok:
                raise MalformedDocument(
                    f"RDService returned HTTP {response.status_code}: {e}"
                ) from e
            raise
        return extract_pid_envelope(doc, modality)

    async def capture(
        self, modality: Union[Modality, str], options: CaptureOptions = None
    ) -> CaptureResult:
        """
        Capture one biometric sample.

        Only the secure endpoint is used: the driver will not hand out
        biometric payloads over plain http. Transport, parse and envelope
        faults come back as CaptureFailure; an unknown modality raises.
        """
        profile = self.registry.resolve(modality)
        options = options or CaptureOptions()
        modality = profile.modality

        logger.info(f"Capturing {modality.value}...")
        response = await self.transport.send(
            [profile.secure_endpoint],
            CAPTURE_PATH,
            build_pid_options(profile, options),
            timeout_ms=resolve_timeout_ms(profile, options) + self.capture_grace_ms,
        )

        try:
            outcome = self._envelope_from(response, modality)
        except (TransportFault, MalformedDocument, MissingEnvelope) as e:
            outcome = e
        except Exception as e:
            logger.exception(f"Unexpected error while processing {modality.value} capture")
            outcome = e

        result = normalize(outcome, modality)
        if result.success:
            logger.info(f"Capture {modality.value} successful - Quality: {result.quality_score}")
        else:
            logger.warning(
                f"Capture {modality.value} failed - "
                f"{result.error_code}: {result.error_message}"
            )
        return result

    async def get_device_info(self) -> Dict[str, Any]:
        response = await self.transport.send(
            self.health.profile.endpoints, INFO_PATH, "", timeout_ms=self.health.profile.timeout_ms
        )
        if response.transport_error is not None:
            return {"success": False, "error": response.transport_error.message}
        if not response.ok:
            return {"success": False, "error": f"RDService returned HTTP {response.status_code}"}
        try:
            doc = parse_document(response.body)
        except MalformedDocument as e:
            logger.error(f"Device info parse error: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "data": doc.to_dict()}

    async def check_connection(self) -> ConnectionStatus:
        return await self.health.check_connection()

    async def health_probe(self) -> Tuple[ConnectionStatus, DeviceSummary]:
        return await self.health.probe()
