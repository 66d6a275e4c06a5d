"""Shared pytest fixtures and helpers for the bridge test suite.

The device driver is played by small aiohttp servers (DriverStub) so the
transport runs over real sockets without any biometric hardware.
"""

from __future__ import annotations

import asyncio
import socket
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, List, Optional, Tuple, TypeVar, Union

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from biometric_bridge.utils.profiles import (  # noqa: E402
    DEFAULT_CAPTURE,
    DeviceProfile,
    Modality,
    ProfileRegistry,
)

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# =============================================================================
# Driver responses
# =============================================================================

ADDITIONAL_INFO = (
    ("srno", "8204621"),
    ("sysid", "PC-0042"),
    ("ts", "2025-08-20T12:13:34+05:30"),
    ("modality_type", "Finger"),
    ("device_type", "L1"),
)


def pid_response(
    err_code: str = "0",
    q_score: str = "72",
    nm_points: str = "4",
    err_info: Optional[str] = None,
    with_device: bool = True,
    with_data: bool = True,
    params=ADDITIONAL_INFO,
    wrapper: Optional[str] = None,
) -> str:
    """Build a PidData document shaped like a Mantra RDService reply."""
    info_attr = f' errInfo="{err_info}"' if err_info is not None else ""
    parts = [
        f'<Resp errCode="{err_code}"{info_attr} fCount="1" fType="0" '
        f'nmPoints="{nm_points}" qScore="{q_score}"/>'
    ]
    if with_device:
        param_xml = "".join(f'<Param name="{k}" value="{v}"/>' for k, v in params)
        parts.append(
            '<DeviceInfo dpId="MANTRA.MSIPL" rdsId="RENESAS.MANTRA.001" rdsVer="1.0.8" '
            'mi="MFS110" mc="MIIEGDCCAwCgAwIBAgIE" dc="a6b6f1c2-4c59-4c0b">'
            f"<additional_info>{param_xml}</additional_info></DeviceInfo>"
        )
    if with_data:
        parts.append('<Skey ci="20250923">c2Vzc2lvbi1rZXk=</Skey>')
        parts.append("<Hmac>aG1hYy12YWx1ZQ==</Hmac>")
        parts.append('<Data type="X">ZW5jcnlwdGVkLXBpZA==</Data>')
    body = "<PidData>" + "".join(parts) + "</PidData>"
    if wrapper:
        body = f"<{wrapper}>{body}</{wrapper}>"
    return '<?xml version="1.0"?>' + body


RD_INFO = (
    '<?xml version="1.0"?>'
    '<RDService status="READY" info="Mantra Authentication Vendor Device Manager" '
    'dpId="MANTRA.MSIPL" mi="MFS110" rdsVer="1.0.8" rdsId="RENESAS.MANTRA.001">'
    '<Interface id="CAPTURE" path="/rd/capture"/>'
    '<Interface id="DEVICEINFO" path="/rd/info"/>'
    "</RDService>"
)


# =============================================================================
# Driver stub
# =============================================================================


class DriverStub:
    """Minimal stand-in for RDService that records every request it sees."""

    def __init__(
        self,
        capture_body: Union[str, bytes] = "",
        info_body: Union[str, bytes] = RD_INFO,
        status: int = 200,
        delay: float = 0.0,
    ):
        self.capture_body = capture_body
        self.info_body = info_body
        self.status = status
        self.delay = delay
        self.requests: List[Tuple[str, str, str, dict]] = []

    @property
    def paths(self) -> List[str]:
        return [path for _, path, _, _ in self.requests]

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/rd/capture", self._capture)
        app.router.add_route("*", "/rd/info", self._info)
        return app

    async def _reply(self, request: web.Request, body) -> web.Response:
        self.requests.append(
            (request.method, request.path, await request.text(), dict(request.headers))
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return web.Response(status=self.status, body=body, content_type="text/xml")

    async def _capture(self, request: web.Request) -> web.Response:
        return await self._reply(request, self.capture_body)

    async def _info(self, request: web.Request) -> web.Response:
        return await self._reply(request, self.info_body)


@asynccontextmanager
async def running(stub: DriverStub) -> AsyncIterator[str]:
    """Serve `stub` on a random local port and yield its base URL."""
    async with TestServer(stub.make_app()) as server:
        yield f"http://{server.host}:{server.port}"


def closed_port_url() -> str:
    """URL of a local port nothing listens on (connection refused)."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}"


def make_profile(
    secure: str,
    insecure: str,
    modality: Modality = Modality.FINGERPRINT,
    timeout_ms: int = 2000,
) -> DeviceProfile:
    return DeviceProfile(
        modality=modality,
        secure_endpoint=secure,
        insecure_endpoint=insecure,
        timeout_ms=timeout_ms,
        defaults=DEFAULT_CAPTURE[modality],
    )


def make_registry(secure: str, insecure: str, timeout_ms: int = 2000) -> ProfileRegistry:
    return ProfileRegistry(
        {m: make_profile(secure, insecure, m, timeout_ms) for m in Modality}
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def success_xml() -> str:
    return pid_response()


@pytest.fixture(autouse=True)
def _logs_in_tmp(tmp_path, monkeypatch):
    # get_custom_logger writes to ./logs
    monkeypatch.chdir(tmp_path)
