"""
Record Transport.

Delivers an encoded record to the collector over HTTP(S) or gRPC. The
channel is chosen once from the address scheme. Each delivery is a single
attempt: failures are reported in the SendResult and never retried.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import grpc
import httpx
from grpc import aio

from .config import AGENT_VERSION, SCHEME_GRPC, SCHEME_HTTP, AgentConfig
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 3
CONNECT_TIMEOUT = 5
GRPC_REPORT_METHOD = "/server_status.ServerStatus/Report"


@dataclass(frozen=True)
class Credentials:
    """Static credential pair plus the meaning of the username."""
    username: str
    password: str
    auth_mode: str = "single"

    @classmethod
    def from_config(cls, config: AgentConfig) -> "Credentials":
        return cls(
            username=config.auth_user,
            password=config.password,
            auth_mode=config.auth_mode,
        )


@dataclass
class SendResult:
    """Result of a send operation."""
    success: bool
    status_code: int = 0
    error: Optional[str] = None


def basic_auth_header(credentials: Credentials) -> str:
    """``Authorization`` value for the static credential pair."""
    token = base64.b64encode(f"{credentials.username}:{credentials.password}".encode()).decode()
    return f"Basic {token}"


class HttpTransport:
    """
    Push channel.

    One POST per record with HTTP Basic auth and an ``ssr-auth`` header
    telling the collector whether the username is a host or a group. At most
    one idle keep-alive connection is pooled; the client only ever talks to
    the one destination host.
    """

    def __init__(self, url: str, timeout: float = REQUEST_TIMEOUT, connect_timeout: float = CONNECT_TIMEOUT):
        self.url = url
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                limits=httpx.Limits(max_connections=None, max_keepalive_connections=1),
                headers={'User-Agent': f'statreport/{AGENT_VERSION}'},
            )
        return self._client

    async def deliver(self, body: bytes, content_type: str, credentials: Credentials) -> SendResult:
        try:
            return await self._send_once(body, content_type, credentials)
        except TransportError as e:
            return SendResult(success=False, error=str(e))

    async def _send_once(self, body: bytes, content_type: str, credentials: Credentials) -> SendResult:
        """Send a single request."""
        headers = {
            'Authorization': basic_auth_header(credentials),
            'Content-Type': content_type,
            'ssr-auth': credentials.auth_mode,
        }
        try:
            response = await self._get_client().post(self.url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError("Request timeout") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if response.is_success:
            return SendResult(success=True, status_code=response.status_code)

        return SendResult(
            success=False,
            status_code=response.status_code,
            error=response.text[:500],
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


class GrpcTransport:
    """
    RPC channel.

    Sends the encoded record as the raw request of a unary call; the reply
    body is ignored.
    """

    def __init__(self, addr: str, timeout: float = REQUEST_TIMEOUT, method: str = GRPC_REPORT_METHOD):
        parts = urlsplit(addr)
        if not parts.netloc:
            raise ConfigurationError(f"no host in grpc addr: {addr!r}")
        self.target = parts.netloc
        self.timeout = timeout
        self.method = method
        self._channel: Optional[aio.Channel] = None
        self._call = None

    def _get_call(self):
        if self._channel is None:
            self._channel = aio.insecure_channel(self.target)
            # no serializers: request and reply are raw bytes
            self._call = self._channel.unary_unary(self.method)
        return self._call

    async def deliver(self, body: bytes, content_type: str, credentials: Credentials) -> SendResult:
        metadata = (
            ("authorization", basic_auth_header(credentials)),
            ("ssr-auth", credentials.auth_mode),
            ("ssr-content-type", content_type),
        )
        try:
            await self._get_call()(body, timeout=self.timeout, metadata=metadata)
        except grpc.RpcError as e:
            code = e.code() if hasattr(e, "code") else None
            details = e.details() if hasattr(e, "details") else str(e)
            return SendResult(success=False, error=f"{code}: {details}")
        return SendResult(success=True)

    async def close(self):
        if self._channel is not None:
            await self._channel.close()
            self._channel = None


def select_transport(config: AgentConfig):
    """Pick the channel from the address scheme."""
    scheme = config.scheme
    if scheme == SCHEME_HTTP:
        return HttpTransport(config.addr)
    if scheme == SCHEME_GRPC:
        return GrpcTransport(config.addr)
    raise ConfigurationError(f"invalid addr scheme: {config.addr!r}")
