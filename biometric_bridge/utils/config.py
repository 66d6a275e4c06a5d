from typing import List
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    SERVICE_NAME: str = "biometric-bridge"
    BRIDGE_HOST: str = "127.0.0.1"
    BRIDGE_PORT: int = 3030
    FRONTEND_URL: str = "http://localhost:3001"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]
    LOG_FILE: str = "bridge.logs"
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    # RDService endpoints, one driver port per device
    RDSERVICE_FINGERPRINT_URL: str = "https://127.0.0.1:11101"
    RDSERVICE_IRIS_URL: str = "https://127.0.0.1:11102"
    RDSERVICE_PHOTO_URL: str = "https://127.0.0.1:11103"
    FINGERPRINT_TIMEOUT_MS: int = 10000
    IRIS_TIMEOUT_MS: int = 15000
    PHOTO_TIMEOUT_MS: int = 10000
    CAPTURE_GRACE_MS: int = 1500

    PHOTOGRAPH_CAPTURE_ENABLED: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(self.CORS_ORIGINS)
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.insert(0, self.FRONTEND_URL)
        return origins
