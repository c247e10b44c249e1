"""
Record assembly.

Merges the static host template, live sampler reads and the shared cache
into one Record per tick.
"""

import time
from dataclasses import asdict
from typing import Callable, Optional

from .cache import SharedCache
from .config import AGENT_VERSION, AgentConfig
from .models import (
    DEFAULT_ALIAS,
    DEFAULT_NAME,
    ConnectivityInfo,
    DynamicMetrics,
    HostDescriptor,
    Record,
)
from .samplers import Samplers


def build_host_descriptor(config: AgentConfig, sys_id: str, version: str = AGENT_VERSION) -> HostDescriptor:
    """
    Build the static template once at startup.

    With grouped reporting the placeholder name is replaced by the system
    identity, and an unset alias mirrors the resulting name.
    """
    name = config.user
    alias = ""
    if config.gid:
        if name == DEFAULT_NAME:
            name = sys_id
        alias = name if config.alias == DEFAULT_ALIAS else config.alias

    return HostDescriptor(
        name=name,
        alias=alias,
        gid=config.gid,
        host_type=config.host_type,
        location=config.location,
        weight=config.weight,
        version=version,
        notify=not config.disable_notify,
        vnstat=config.vnstat,
    )


def sample_metrics(samplers: Samplers) -> DynamicMetrics:
    """Read every sampler once."""
    snapshot = samplers.current_host_snapshot()
    metrics = DynamicMetrics(**asdict(snapshot))
    metrics.cpu = samplers.current_cpu_percent()
    metrics.network_rx, metrics.network_tx = samplers.current_net_throughput()
    metrics.network_in, metrics.network_out = samplers.current_net_totals()
    metrics.pings = samplers.current_ping_stats()
    return metrics


def assemble(
    template: HostDescriptor,
    cache: SharedCache,
    samplers: Samplers,
    extra_enabled: bool,
    timestamp: Optional[int] = None,
) -> Record:
    """Build one Record. Missing optional inputs are omitted."""
    online4, online6 = samplers.current_connectivity()
    record = Record(
        host=template,
        connectivity=ConnectivityInfo(online4=online4, online6=online6),
        metrics=sample_metrics(samplers),
        latest_ts=int(time.time()) if timestamp is None else timestamp,
    )

    if extra_enabled:
        aux = cache.read()
        record.ip_info = aux.ip_info
        record.sys_info = aux.sys_info

    return record


class RecordAssembler:
    """Per-process assembler keeping record timestamps non-decreasing."""

    def __init__(
        self,
        template: HostDescriptor,
        cache: SharedCache,
        samplers: Samplers,
        extra_enabled: bool,
        clock: Callable[[], float] = time.time,
    ):
        self.template = template
        self.cache = cache
        self.samplers = samplers
        self.extra_enabled = extra_enabled
        self._clock = clock
        self._last_ts = 0

    def assemble(self) -> Record:
        # a wall clock stepped backwards is clamped to the previous tick
        ts = max(int(self._clock()), self._last_ts)
        self._last_ts = ts
        return assemble(self.template, self.cache, self.samplers, self.extra_enabled, timestamp=ts)
