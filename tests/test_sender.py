import asyncio
import base64
import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from statreport.agent.config import AgentConfig
from statreport.agent.errors import ConfigurationError
from statreport.agent.sender import (
    Credentials,
    GrpcTransport,
    HttpTransport,
    basic_auth_header,
    select_transport,
)


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def post_to_collector(credentials, body=b"\x81\xa4name\xa2h1", status=200):
    seen = {}

    async def handler(request):
        seen["method"] = request.method
        seen["path"] = request.path
        seen["authorization"] = request.headers["Authorization"]
        seen["ssr_auth"] = request.headers.get("ssr-auth")
        seen["content_type"] = request.headers.get("Content-Type")
        seen["body"] = await request.read()
        return web.Response(status=status, text="ok")

    app = web.Application()
    app.router.add_post("/report", handler)

    async with TestServer(app) as server:
        transport = HttpTransport(str(server.make_url("/report")))
        try:
            result = await transport.deliver(body, "application/octet-stream", credentials)
        finally:
            await transport.close()
    return result, seen


def decode_basic(header):
    scheme, _, token = header.partition(" ")
    assert scheme == "Basic"
    return tuple(base64.b64decode(token).decode().split(":", 1))


def test_single_host_post():
    config = AgentConfig(addr="http://h:8080/report", user="h1", password="p1")

    result, seen = asyncio.run(post_to_collector(Credentials.from_config(config)))

    assert result.success
    assert seen["method"] == "POST"
    assert seen["path"] == "/report"
    assert decode_basic(seen["authorization"]) == ("h1", "p1")
    assert seen["ssr_auth"] == "single"
    assert seen["content_type"] == "application/octet-stream"
    assert seen["body"] == b"\x81\xa4name\xa2h1"


def test_group_post_uses_gid():
    config = AgentConfig(user="h1", password="p1", gid="g1")

    result, seen = asyncio.run(post_to_collector(Credentials.from_config(config)))

    assert result.success
    assert decode_basic(seen["authorization"])[0] == "g1"
    assert seen["ssr_auth"] == "group"


def test_error_status_is_a_failed_result():
    result, _ = asyncio.run(post_to_collector(Credentials("h1", "p1"), status=401))

    assert not result.success
    assert result.status_code == 401


def test_unreachable_collector_is_a_failed_result():
    transport = HttpTransport(f"http://127.0.0.1:{free_port()}/report")

    async def send():
        try:
            return await transport.deliver(b"{}", "application/json", Credentials("h1", "p1"))
        finally:
            await transport.close()

    result = asyncio.run(send())

    assert not result.success
    assert result.error


def test_select_transport():
    assert isinstance(select_transport(AgentConfig(addr="http://h/report")), HttpTransport)
    assert isinstance(select_transport(AgentConfig(addr="https://h/report")), HttpTransport)

    grpc_transport = select_transport(AgentConfig(addr="grpc://h:9394"))
    assert isinstance(grpc_transport, GrpcTransport)
    assert grpc_transport.target == "h:9394"


def test_select_transport_rejects_other_schemes():
    with pytest.raises(ConfigurationError):
        select_transport(AgentConfig(addr="udp://h:9394"))


def test_grpc_unreachable_is_a_failed_result():
    transport = GrpcTransport(f"grpc://127.0.0.1:{free_port()}", timeout=0.5)

    async def send():
        try:
            return await transport.deliver(b"\x80", "application/octet-stream", Credentials("h1", "p1"))
        finally:
            await transport.close()

    result = asyncio.run(send())

    assert not result.success


def test_basic_auth_header():
    assert basic_auth_header(Credentials("h1", "p:1")) == "Basic " + base64.b64encode(b"h1:p:1").decode()


def test_http_timeouts():
    transport = HttpTransport("http://h/report")
    timeout = transport._get_client().timeout

    assert timeout.read == 3
    assert timeout.connect == 5
    asyncio.run(transport.close())


def test_at_most_one_idle_connection_after_concurrent_deliveries():
    peers = set()

    async def slow_handler(request):
        peers.add(request.transport.get_extra_info("peername"))
        await asyncio.sleep(0.2)
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_post("/report", slow_handler)

    async def run():
        async with TestServer(app) as server:
            transport = HttpTransport(str(server.make_url("/report")))
            try:
                results = await asyncio.gather(*(
                    transport.deliver(b"{}", "application/json", Credentials("h1", "p1"))
                    for _ in range(4)
                ))
                pool = transport._client._transport._pool
                idle = [conn for conn in pool.connections if conn.is_idle()]
            finally:
                await transport.close()
        return results, idle

    results, idle = asyncio.run(run())

    assert all(result.success for result in results)
    assert len(peers) == 4
    assert len(idle) <= 1
