import logging

from biometric_bridge.services.health_service import HealthAggregator
from biometric_bridge.services.rdservice import RDServiceService
from biometric_bridge.utils.config import Config
from biometric_bridge.utils.profiles import Modality, ProfileRegistry
from biometric_bridge.utils.transport import TransportClient


logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns the bridge's long-lived resources.

    The device profiles are fixed when the context is built; the transport
    session is opened in initialize() and closed in cleanup().
    """

    def __init__(self, config: Config):
        self.config = config
        self.registry = ProfileRegistry.from_config(config)
        self.transport = TransportClient()
        # /rd/info is answered by the fingerprint driver
        self.health = HealthAggregator(
            self.transport, self.registry.resolve(Modality.FINGERPRINT)
        )
        self.rdservice = RDServiceService(
            self.registry, self.transport, self.health,
            capture_grace_ms=config.CAPTURE_GRACE_MS,
        )

    async def initialize(self):
        try:
            await self.transport.start()
            for profile in self.registry:
                logger.info(
                    f"{profile.modality.value}: {profile.secure_endpoint} "
                    f"(fallback {profile.insecure_endpoint}, timeout {profile.timeout_ms}ms)"
                )
            logger.info("Application context initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize application context: {e}")
            await self.cleanup()
            raise RuntimeError(f"Failed to initialize application context: {str(e)}")

    async def cleanup(self):
        logger.info("Starting application context cleanup")
        try:
            await self.transport.close()
        except Exception as e:
            logger.error(f"Error closing transport session: {e}")
        logger.info("Application context cleanup completed")
