from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

from biometric_bridge.utils.profiles import DeviceProfile

PID_OPTIONS_VERSION = "1.0"
PID_VERSION = "2.0"
DEFAULT_POST_CAPTURE_TIMEOUT = "20000"
DEFAULT_PAGE_COUNT = "2"
UNKNOWN_POSTURE = "UNKNOWN"
ENVIRONMENT = "P"
AUTH_KEY_PARAM = "mantrakey"
AUTH_HASH_PARAM = "mantrakeyhash"


@dataclass(frozen=True)
class CaptureOptions:
    timeout_ms: Optional[int] = None
    post_capture_timeout_ms: Optional[int] = None
    page_count: Optional[int] = None
    device_auth_key: Optional[str] = None
    device_auth_hash: Optional[str] = None


def resolve_timeout_ms(profile: DeviceProfile, options: CaptureOptions) -> int:
    if options.timeout_ms is not None:
        return int(options.timeout_ms)
    return profile.timeout_ms


def _pick(value, fallback: str) -> str:
    return fallback if value is None else str(value)


def build_pid_options(profile: DeviceProfile, options: CaptureOptions = None) -> str:
    """
    Serialize the PidOptions document the driver expects on /rd/capture.

    Each value comes from the caller's options when set, else from the
    profile defaults, else from the fixed driver defaults above. All numbers
    go out as their decimal string form.
    """
    options = options or CaptureOptions()
    defaults = profile.defaults

    root = ET.Element("PidOptions", {"ver": PID_OPTIONS_VERSION})
    ET.SubElement(
        root,
        "Opts",
        {
            "fCount": defaults.finger_count,
            "fType": defaults.finger_type,
            "iCount": defaults.iris_count,
            "pCount": defaults.photo_count,
            "pgCount": _pick(options.page_count, DEFAULT_PAGE_COUNT),
            "format": defaults.format_code,
            "pidVer": PID_VERSION,
            "timeout": str(resolve_timeout_ms(profile, options)),
            "pTimeout": _pick(
                options.post_capture_timeout_ms, DEFAULT_POST_CAPTURE_TIMEOUT
            ),
            "posh": UNKNOWN_POSTURE,
            "env": ENVIRONMENT,
        },
    )
    cust = ET.SubElement(root, "CustOpts")
    ET.SubElement(
        cust, "Param", {"name": AUTH_KEY_PARAM, "value": options.device_auth_key or ""}
    )
    if options.device_auth_hash:
        ET.SubElement(
            cust, "Param", {"name": AUTH_HASH_PARAM, "value": options.device_auth_hash}
        )

    return '<?xml version="1.0"?>' + ET.tostring(root, encoding="unicode")
