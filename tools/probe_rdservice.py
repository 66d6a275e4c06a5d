#!/usr/bin/env python3
"""
RDService connection diagnostic.

Probes candidate driver URLs for /rd/info and, with --capture, /rd/capture,
then prints which ones answer. Use it to find the port/scheme a driver
actually listens on before editing the bridge's .env.
"""
import argparse
import sys

import requests
import urllib3

from biometric_bridge.utils.pid_options import CaptureOptions, build_pid_options
from biometric_bridge.utils.profiles import Modality, build_profile
from biometric_bridge.utils.transport import XML_HEADERS

DEFAULT_URLS = [
    "https://127.0.0.1:11101",
    "https://127.0.0.1:11102",
    "https://127.0.0.1:11100",
    "https://127.0.0.1:11103",
    "http://127.0.0.1:11101",
    "http://127.0.0.1:11102",
    "http://127.0.0.1:11100",
    "http://127.0.0.1:11103",
]

ENV_KEYS = {
    Modality.FINGERPRINT: "RDSERVICE_FINGERPRINT_URL",
    Modality.IRIS: "RDSERVICE_IRIS_URL",
    Modality.PHOTOGRAPH: "RDSERVICE_PHOTO_URL",
}

# the driver's certificate is self-signed
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


def post(url: str, body: str, timeout_s: float) -> requests.Response:
    # one fresh connection per request, like the bridge itself
    with requests.Session() as session:
        return session.post(
            url,
            data=body.encode("utf-8"),
            headers={**XML_HEADERS, "Connection": "close"},
            verify=False,
            timeout=timeout_s,
        )


def probe(base_url: str, modality: Modality, capture: bool, timeout_s: float) -> dict:
    print("=" * 70)
    print(f"Testing: {base_url}")
    print("=" * 70)

    try:
        info = post(f"{base_url}/rd/info", "", timeout_s)
    except requests.RequestException as e:
        print(f"  /rd/info FAILED: {type(e).__name__}: {e}")
        return {"url": base_url, "ok": False, "error": str(e)}

    print(f"  /rd/info -> {info.status_code} ({len(info.content)} bytes)")
    print(f"  {info.text[:200]}")
    result = {"url": base_url, "ok": info.ok, "info_status": info.status_code}
    if not capture or not info.ok:
        return result

    profile = build_profile(modality, base_url, int(timeout_s * 1000))
    body = build_pid_options(profile, CaptureOptions(timeout_ms=int(timeout_s * 1000)))
    try:
        cap = post(f"{base_url}/rd/capture", body, timeout_s + 2)
        print(f"  /rd/capture -> {cap.status_code}")
        print(f"  {cap.text[:500]}")
        result["capture_status"] = cap.status_code
    except requests.Timeout:
        # no finger/eye presented: the endpoint exists
        print("  /rd/capture timed out waiting for a scan (expected without a sample)")
        result["capture_status"] = "timeout"
    except requests.RequestException as e:
        print(f"  /rd/capture FAILED: {type(e).__name__}: {e}")
        result["capture_status"] = "error"
    return result


def main():
    ap = argparse.ArgumentParser(description="Find working RDService URLs")
    ap.add_argument("urls", nargs="*", help="Driver base URLs to probe")
    ap.add_argument("--modality", choices=[m.value for m in Modality], default="fingerprint")
    ap.add_argument("--capture", action="store_true", help="Also try /rd/capture")
    ap.add_argument("--timeout", type=float, default=5.0, help="Seconds per request")
    args = ap.parse_args()

    results = [
        probe(url.rstrip("/"), Modality(args.modality), args.capture, args.timeout)
        for url in (args.urls or DEFAULT_URLS)
    ]

    print()
    print("Summary")
    for r in results:
        print(f"  {'WORKING' if r['ok'] else 'FAILED ':8} {r['url']}")

    working = [r["url"] for r in results if r["ok"]]
    if not working:
        print("\nNo working URLs found. Check that RDService is running and the device is connected.")
        sys.exit(1)
    print(f"\nSet {ENV_KEYS[Modality(args.modality)]}={working[0]}")


if __name__ == "__main__":
    main()
