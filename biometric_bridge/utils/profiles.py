from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

from biometric_bridge.utils.config import Config
from biometric_bridge.utils.errors import UnknownModality


class Modality(str, Enum):
    FINGERPRINT = "fingerprint"
    IRIS = "iris"
    PHOTOGRAPH = "photograph"


@dataclass(frozen=True)
class CaptureDefaults:
    finger_count: str = "0"
    finger_type: str = "0"  # FMR
    iris_count: str = "0"
    photo_count: str = "0"
    format_code: str = "0"  # XML


@dataclass(frozen=True)
class DeviceProfile:
    modality: Modality
    secure_endpoint: str
    insecure_endpoint: str
    timeout_ms: int
    defaults: CaptureDefaults

    @property
    def endpoints(self) -> Tuple[str, str]:
        """Secure endpoint first, then the plain-http fallback."""
        return (self.secure_endpoint, self.insecure_endpoint)


DEFAULT_CAPTURE = {
    Modality.FINGERPRINT: CaptureDefaults(finger_count="1"),
    Modality.IRIS: CaptureDefaults(iris_count="2"),  # both eyes
    Modality.PHOTOGRAPH: CaptureDefaults(photo_count="1"),
}


def derive_insecure_endpoint(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(("http", parts.netloc, parts.path, parts.query, parts.fragment))


def build_profile(
    modality: Modality, url: str, timeout_ms: int, defaults: CaptureDefaults = None
) -> DeviceProfile:
    url = url.rstrip("/")
    return DeviceProfile(
        modality=modality,
        secure_endpoint=url,
        insecure_endpoint=derive_insecure_endpoint(url),
        timeout_ms=int(timeout_ms),
        defaults=defaults or DEFAULT_CAPTURE[modality],
    )


class ProfileRegistry:
    """
    Read-only set of device profiles, one per modality.

    Built once at startup and handed to the services that need it.
    """

    def __init__(self, profiles: Mapping[Modality, DeviceProfile]):
        missing = [m.value for m in Modality if m not in profiles]
        if missing:
            raise ValueError(f"No device profile for: {', '.join(missing)}")
        self._profiles = MappingProxyType(dict(profiles))

    @classmethod
    def from_config(cls, config: Config) -> "ProfileRegistry":
        return cls(
            {
                Modality.FINGERPRINT: build_profile(
                    Modality.FINGERPRINT,
                    config.RDSERVICE_FINGERPRINT_URL,
                    config.FINGERPRINT_TIMEOUT_MS,
                ),
                Modality.IRIS: build_profile(
                    Modality.IRIS, config.RDSERVICE_IRIS_URL, config.IRIS_TIMEOUT_MS
                ),
                Modality.PHOTOGRAPH: build_profile(
                    Modality.PHOTOGRAPH,
                    config.RDSERVICE_PHOTO_URL,
                    config.PHOTO_TIMEOUT_MS,
                ),
            }
        )

    def resolve(self, modality: Union[Modality, str]) -> DeviceProfile:
        try:
            key = Modality(modality)
        except ValueError:
            raise UnknownModality(modality) from None
        return self._profiles[key]

    def __iter__(self):
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)
