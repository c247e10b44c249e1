"""
Sampler facade.

The record assembler reads live metrics only through this boundary. Every
read returns the latest completed measurement and never raises: a failing
sampler yields its zero value.
"""

import logging
from typing import Optional

from .collectors import PingCollector, SystemCollector, make_iface_filter
from .collectors.system import HostSnapshot, IfaceFilter
from .config import AgentConfig
from .models import PingStats

logger = logging.getLogger(__name__)


class Samplers:
    """Owns the background collectors and exposes their latest values."""

    def __init__(
        self,
        system: SystemCollector,
        ping: Optional[PingCollector] = None,
        iface_filter: Optional[IfaceFilter] = None,
        connectivity: tuple[bool, bool] = (False, False),
    ):
        self.system = system
        self.ping = ping
        self.iface_filter = iface_filter
        self._connectivity = connectivity

    @classmethod
    def from_config(cls, config: AgentConfig, connectivity: tuple[bool, bool]) -> "Samplers":
        ping = None if config.disable_ping else PingCollector(config.probes.targets())
        return cls(
            system=SystemCollector(collect_counts=not config.disable_tupd),
            ping=ping,
            iface_filter=make_iface_filter(config.iface, config.exclude_iface),
            connectivity=connectivity,
        )

    def start(self) -> None:
        self.system.start()
        if self.ping is not None:
            self.ping.start()

    def stop(self) -> None:
        self.system.stop()
        if self.ping is not None:
            self.ping.stop()

    def current_cpu_percent(self) -> float:
        try:
            return self.system.current_cpu_percent()
        except Exception as e:
            logger.debug(f"CPU sampler error: {e}")
            return 0.0

    def current_net_throughput(self, iface_filter: Optional[IfaceFilter] = None) -> tuple[int, int]:
        try:
            return self.system.current_net_throughput(iface_filter or self.iface_filter)
        except Exception as e:
            logger.debug(f"Network sampler error: {e}")
            return 0, 0

    def current_net_totals(self, iface_filter: Optional[IfaceFilter] = None) -> tuple[int, int]:
        try:
            return self.system.current_net_totals(iface_filter or self.iface_filter)
        except Exception as e:
            logger.debug(f"Network sampler error: {e}")
            return 0, 0

    def current_ping_stats(self, probe_set: Optional[list[str]] = None) -> dict[str, PingStats]:
        if self.ping is None:
            return {}
        try:
            return self.ping.current_ping_stats(probe_set)
        except Exception as e:
            logger.debug(f"Ping sampler error: {e}")
            return {}

    def current_connectivity(self) -> tuple[bool, bool]:
        return self._connectivity

    def current_host_snapshot(self) -> HostSnapshot:
        try:
            return self.system.snapshot()
        except Exception as e:
            logger.debug(f"Host snapshot error: {e}")
            return HostSnapshot()
