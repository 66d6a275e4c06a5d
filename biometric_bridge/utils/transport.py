from __future__ import annotations

import asyncio
import errno
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import aiohttp

logger = logging.getLogger(__name__)

XML_HEADERS = {
    "Content-Type": "text/xml; charset=UTF-8",
    "Accept": "*/*",
}

_REFUSED_ERRNOS = {errno.ECONNREFUSED}
_RESET_ERRNOS = {errno.ECONNRESET, errno.EPIPE, errno.ECONNABORTED}
_TIMEOUT_ERRNOS = {errno.ETIMEDOUT}


class FaultKind(str, Enum):
    REFUSED = "connection-refused"
    TIMEOUT = "timed-out"
    RESET = "connection-reset"
    OTHER = "other"


def _classify_one(exc: BaseException) -> Optional[FaultKind]:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FaultKind.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return FaultKind.REFUSED
    if isinstance(
        exc,
        (ConnectionResetError, BrokenPipeError, ConnectionAbortedError,
         aiohttp.ServerDisconnectedError),
    ):
        return FaultKind.RESET

    code = getattr(exc, "errno", None)
    if code in _REFUSED_ERRNOS:
        return FaultKind.REFUSED
    if code in _RESET_ERRNOS:
        return FaultKind.RESET
    if code in _TIMEOUT_ERRNOS:
        return FaultKind.TIMEOUT
    return None


def classify_transport_fault(exc: BaseException) -> FaultKind:
    """
    Map a raw client exception to one of the four transport fault kinds.

    aiohttp wraps socket errors (ClientConnectorError.os_error), and asyncio
    may chain them as __cause__, so the wrapped errors are checked too.
    """
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))

        kind = _classify_one(current)
        if kind is not None:
            return kind
        pending.extend(
            [getattr(current, "os_error", None), current.__cause__, current.__context__]
        )
    return FaultKind.OTHER


class TransportFault(Exception):
    def __init__(self, kind: FaultKind, endpoint: str, message: str, cause=None):
        super().__init__(message)
        self.kind = kind
        self.endpoint = endpoint
        self.message = message
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException, endpoint: str) -> "TransportFault":
        kind = classify_transport_fault(exc)
        detail = str(exc) or type(exc).__name__
        return cls(kind, endpoint, f"{kind.value}: {detail}", cause=exc)


@dataclass(frozen=True)
class AttemptRecord:
    endpoint: str
    elapsed_ms: int
    status_code: Optional[int] = None
    fault: Optional[TransportFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None


@dataclass(frozen=True)
class RawDriverResponse:
    status_code: Optional[int]
    body: bytes
    endpoint: Optional[str]
    elapsed_ms: Optional[int] = None
    attempts: Tuple[AttemptRecord, ...] = field(default_factory=tuple)
    transport_error: Optional[TransportFault] = None

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return (
            self.transport_error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )


class TransportClient:
    """
    Outbound HTTP client for the local device driver.

    The driver ships a fixed self-signed certificate and misbehaves when it
    sees parallel or reused connections, so the connector skips certificate
    checks, holds at most one socket and closes it after every request.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    async def start(self):
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=False, limit=1, force_close=True)
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
            logger.info("Transport session opened (limit=1, keep-alive off)")

    async def close(self):
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
            logger.info("Transport session closed")
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            raise RuntimeError("TransportClient.start() has not been awaited")
        return self._session

    async def _attempt(
        self, method: str, url: str, body: bytes, headers: Dict[str, str], timeout_ms: int
    ) -> Tuple[int, bytes]:
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        async with self.session.request(
            method, url, data=body, headers=headers, timeout=timeout
        ) as response:
            return response.status, await response.read()

    async def send(
        self,
        candidates: Sequence[str],
        path: str,
        body: str = "",
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = 10000,
        method: str = "POST",
    ) -> RawDriverResponse:
        """
        Try each candidate endpoint in order, one at a time.

        The first endpoint that produces any HTTP response wins, whatever its
        status code. Only transport faults move on to the next candidate.
        When every candidate fails, the last fault is returned in
        `transport_error` instead of being raised.
        """
        if not candidates:
            raise ValueError("At least one candidate endpoint is required")

        headers = {**XML_HEADERS, **(headers or {})}
        payload = (body or "").encode("utf-8")
        attempts = []
        last_fault = None

        for endpoint in candidates:
            url = endpoint.rstrip("/") + path
            started = time.perf_counter()
            try:
                status, raw = await self._attempt(method, url, payload, headers, timeout_ms)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                elapsed = int((time.perf_counter() - started) * 1000)
                last_fault = TransportFault.from_exception(e, endpoint)
                attempts.append(AttemptRecord(endpoint, elapsed, fault=last_fault))
                logger.warning(
                    f"{method} {url} failed after {elapsed}ms ({last_fault.message})"
                )
                continue

            elapsed = int((time.perf_counter() - started) * 1000)
            attempts.append(AttemptRecord(endpoint, elapsed, status_code=status))
            logger.info(f"{method} {url} -> {status} in {elapsed}ms")
            return RawDriverResponse(
                status_code=status,
                body=raw,
                endpoint=endpoint,
                elapsed_ms=elapsed,
                attempts=tuple(attempts),
            )

        logger.error(
            f"All {len(attempts)} endpoint(s) failed for {path}: "
            + "; ".join(f"{a.endpoint} ({a.fault.kind.value})" for a in attempts)
        )
        return RawDriverResponse(
            status_code=None,
            body=b"",
            endpoint=last_fault.endpoint,
            attempts=tuple(attempts),
            transport_error=last_fault,
        )
