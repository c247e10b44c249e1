import pytest

from statreport.agent.cache import SharedCache
from statreport.agent.collectors.system import HostSnapshot
from statreport.agent.config import AgentConfig
from statreport.agent.models import HostDescriptor
from statreport.agent.samplers import Samplers


class StubSystem:
    """Stands in for SystemCollector with fixed readings."""

    def __init__(self, cpu=12.5, rates=(100, 200), totals=(1000, 2000)):
        self.cpu = cpu
        self.rates = rates
        self.totals = totals
        self.started = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def current_cpu_percent(self):
        return self.cpu

    def current_net_throughput(self, skip=None):
        return self.rates

    def current_net_totals(self, skip=None):
        return self.totals

    def snapshot(self):
        return HostSnapshot(uptime=3600, memory_total=8 << 30, memory_used=2 << 30, process=42)


class BrokenSystem(StubSystem):
    def current_cpu_percent(self):
        raise RuntimeError("cpu gone")

    def current_net_throughput(self, skip=None):
        raise RuntimeError("net gone")

    def current_net_totals(self, skip=None):
        raise RuntimeError("net gone")

    def snapshot(self):
        raise RuntimeError("psutil gone")


@pytest.fixture
def config():
    return AgentConfig(report_interval=0.01, refresh_interval=0.01)


@pytest.fixture
def samplers():
    return Samplers(system=StubSystem(), connectivity=(True, False))


@pytest.fixture
def cache():
    return SharedCache()


@pytest.fixture
def template():
    return HostDescriptor(name="h1", version="1.0.0")
