import asyncio
import logging
import socket

import pytest

from statreport.agent.agent import ReportAgent
from statreport.agent.assembler import RecordAssembler
from statreport.agent.encoding import JsonEncoder, MsgpackEncoder
from statreport.agent.config import AgentConfig
from statreport.agent.errors import ConfigurationError, IpInfoError
from statreport.agent.models import IpInfo
from statreport.agent.sender import HttpTransport, SendResult


class RecordingTransport:
    def __init__(self, delay=0.0, success=True):
        self.delay = delay
        self.success = success
        self.deliveries = []
        self.closed = False

    async def deliver(self, body, content_type, credentials):
        await asyncio.sleep(self.delay)
        self.deliveries.append((body, content_type, credentials))
        return SendResult(success=self.success, status_code=200 if self.success else 0,
                          error=None if self.success else "boom")

    async def close(self):
        self.closed = True


def make_agent(config, template, cache, samplers, transport, encoder=None, ip_lookup=None):
    assembler = RecordAssembler(template, cache, samplers, extra_enabled=not config.disable_extra)
    return ReportAgent(config, assembler, transport, encoder or JsonEncoder(), cache, ip_lookup=ip_lookup)


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_each_tick_delivers_one_record(config, template, cache, samplers):
    transport = RecordingTransport()
    agent = make_agent(config, template, cache, samplers, transport)

    async def scenario():
        await agent.run_scheduler(max_ticks=3)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert len(transport.deliveries) == 3
    assert {ct for _, ct, _ in transport.deliveries} == {"application/json"}
    assert {cred.auth_mode for _, _, cred in transport.deliveries} == {"single"}


def test_scheduler_does_not_wait_for_delivery(config, template, cache, samplers):
    transport = RecordingTransport(delay=1.0)
    agent = make_agent(config, template, cache, samplers, transport, encoder=MsgpackEncoder())

    async def scenario():
        loop = asyncio.get_running_loop()
        started = loop.time()
        await agent.run_scheduler(max_ticks=5)
        elapsed = loop.time() - started
        in_flight = agent.in_flight
        for task in list(agent._in_flight):
            task.cancel()
        return elapsed, in_flight

    elapsed, in_flight = asyncio.run(scenario())

    assert elapsed < 1.0
    assert in_flight == 5


def test_in_flight_cap_skips_ticks(config, template, cache, samplers):
    config.max_in_flight = 2
    transport = RecordingTransport(delay=0.5)
    agent = make_agent(config, template, cache, samplers, transport)

    async def scenario():
        await agent.run_scheduler(max_ticks=5)
        in_flight = agent.in_flight
        await asyncio.gather(*agent._in_flight)
        return in_flight

    assert asyncio.run(scenario()) == 2
    assert len(transport.deliveries) == 2


def test_unreachable_collector_keeps_ticking(config, template, cache, samplers, caplog):
    cache.set_ip_info(IpInfo(city="Berlin"))
    transport = HttpTransport(f"http://127.0.0.1:{free_port()}/report")
    agent = make_agent(config, template, cache, samplers, transport)

    async def scenario():
        await agent.run_scheduler(max_ticks=10)
        await asyncio.gather(*agent._in_flight)
        await transport.close()

    with caplog.at_level(logging.ERROR, logger="statreport.agent.agent"):
        asyncio.run(scenario())

    errors = [r for r in caplog.records if "report error" in r.getMessage()]
    assert len(errors) == 10
    assert cache.read().ip_info.city == "Berlin"


def test_group_credentials(config, template, cache, samplers):
    config.gid = "g1"
    transport = RecordingTransport()
    agent = make_agent(config, template, cache, samplers, transport)

    async def scenario():
        await agent.run_scheduler(max_ticks=1)
        await asyncio.gather(*agent._in_flight)

    asyncio.run(scenario())

    credentials = transport.deliveries[0][2]
    assert (credentials.username, credentials.auth_mode) == ("g1", "group")


def test_refresh_success_replaces_ip_info(config, template, cache, samplers):
    async def lookup():
        return IpInfo(city="Berlin")

    agent = make_agent(config, template, cache, samplers, RecordingTransport(), ip_lookup=lookup)

    asyncio.run(agent.run_refresh_loop(max_cycles=1))

    assert cache.read().ip_info.city == "Berlin"


def test_refresh_failure_keeps_previous_ip_info(config, template, cache, samplers):
    results = [IpInfo(city="Berlin"), IpInfoError("rate limited"), IpInfoError("timeout")]

    async def lookup():
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    agent = make_agent(config, template, cache, samplers, RecordingTransport(), ip_lookup=lookup)

    asyncio.run(agent.run_refresh_loop(max_cycles=3))

    assert results == []
    assert cache.read().ip_info.city == "Berlin"


def test_stop_closes_transport_and_samplers(config, template, cache, samplers):
    transport = RecordingTransport()
    agent = make_agent(config, template, cache, samplers, transport)
    samplers.start()

    asyncio.run(agent.stop())

    assert transport.closed
    assert samplers.system.started is False


def test_create_rejects_unresolvable_collector(monkeypatch):
    def fail(*args, **kwargs):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr("statreport.agent.agent.get_network", lambda: (True, False))
    monkeypatch.setattr(socket, "getaddrinfo", fail)

    with pytest.raises(ConfigurationError, match="cannot resolve nowhere.invalid:80"):
        asyncio.run(ReportAgent.create(AgentConfig(addr="http://nowhere.invalid/report")))


def test_create_rejects_unknown_scheme_before_startup_work(monkeypatch):
    calls = []
    monkeypatch.setattr("statreport.agent.agent.get_network", lambda: calls.append("network"))
    monkeypatch.setattr("statreport.agent.agent.collect_sys_info", lambda version: calls.append("sys_info"))

    with pytest.raises(ConfigurationError, match="invalid addr scheme"):
        asyncio.run(ReportAgent.create(AgentConfig(addr="ftp://h/report")))

    assert calls == []


def test_create_rejects_bad_latency_target(monkeypatch):
    monkeypatch.setattr("statreport.agent.agent.get_network", lambda: (True, False))
    monkeypatch.setattr(socket, "getaddrinfo", lambda *args, **kwargs: [
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.1", 80)),
    ])
    config = AgentConfig(addr="http://h/report")
    config.probes.ct_addr = "ct.example.com:abc"

    with pytest.raises(ConfigurationError, match="bad probe addr"):
        asyncio.run(ReportAgent.create(config))
