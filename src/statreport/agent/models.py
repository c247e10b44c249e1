"""
Report data model.

The per-tick Record is the union of a static HostDescriptor, the startup
ConnectivityInfo, freshly sampled DynamicMetrics and, when extra info
reporting is on, the cached auxiliary blocks.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional


DEFAULT_NAME = "h1"
DEFAULT_ALIAS = "unknown"
FRAME_DATA = "data"


@dataclass
class IpInfo:
    """Geolocation of the host's public address."""
    query: str = ""
    source: str = "ip-api.com"
    continent: str = ""
    country: str = ""
    region_name: str = ""
    city: str = ""
    isp: str = ""
    org: str = ""
    as_: str = ""
    asname: str = ""
    lat: float = 0.0
    lon: float = 0.0
    timezone: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["as"] = data.pop("as_")
        return data


@dataclass
class SysInfo:
    """Static system descriptor, collected once at startup."""
    name: str = ""
    version: str = ""
    os_name: str = ""
    os_arch: str = ""
    os_family: str = ""
    os_release: str = ""
    kernel_version: str = ""
    cpu_num: int = 0
    cpu_brand: str = ""
    cpu_vender_id: str = ""
    host_name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class HostDescriptor:
    """Static host identity copied into every record."""
    name: str
    alias: str = ""
    gid: str = ""
    host_type: str = ""
    location: str = ""
    weight: int = 0
    version: str = ""
    notify: bool = True
    vnstat: bool = False
    frame: str = FRAME_DATA


@dataclass(frozen=True)
class ConnectivityInfo:
    """IPv4/IPv6 reachability, resolved once at startup."""
    online4: bool = False
    online6: bool = False

    def merge(self, online4: bool, online6: bool) -> "ConnectivityInfo":
        """OR in additional reachability evidence."""
        return ConnectivityInfo(
            online4=self.online4 or online4,
            online6=self.online6 or online6,
        )


@dataclass
class AuxiliaryInfo:
    """Snapshot of the shared cache. Either field may be absent."""
    ip_info: Optional[IpInfo] = None
    sys_info: Optional[SysInfo] = None


@dataclass
class PingStats:
    """Latest result of one probe."""
    latency_ms: int = 0
    loss_rate: float = 0.0


@dataclass
class DynamicMetrics:
    """Live metrics, recomputed every tick."""
    cpu: float = 0.0
    network_rx: int = 0
    network_tx: int = 0
    network_in: int = 0
    network_out: int = 0
    uptime: int = 0
    load_1: float = 0.0
    load_5: float = 0.0
    load_15: float = 0.0
    memory_total: int = 0
    memory_used: int = 0
    swap_total: int = 0
    swap_used: int = 0
    hdd_total: int = 0
    hdd_used: int = 0
    tcp: int = 0
    udp: int = 0
    process: int = 0
    thread: int = 0
    pings: dict[str, PingStats] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("pings")
        for probe, stats in self.pings.items():
            # loss is reported as a percentage
            data[f"ping_{probe}"] = round(stats.loss_rate * 100, 2)
            data[f"time_{probe}"] = stats.latency_ms
        return data


@dataclass
class Record:
    """One outgoing report."""
    host: HostDescriptor
    connectivity: ConnectivityInfo
    metrics: DynamicMetrics
    latest_ts: int
    ip_info: Optional[IpInfo] = None
    sys_info: Optional[SysInfo] = None

    def to_dict(self) -> dict:
        """Flatten into the wire schema shared by both encodings."""
        data = {
            "name": self.host.name,
            "gid": self.host.gid,
            "alias": self.host.alias,
            "frame": self.host.frame,
            "online4": self.connectivity.online4,
            "online6": self.connectivity.online6,
            "vnstat": self.host.vnstat,
            "weight": self.host.weight,
            "notify": self.host.notify,
            "version": self.host.version,
            "latest_ts": self.latest_ts,
            "type": self.host.host_type,
            "location": self.host.location,
        }
        data.update(self.metrics.to_dict())
        if self.ip_info is not None:
            data["ip_info"] = self.ip_info.to_dict()
        if self.sys_info is not None:
            data["sys_info"] = self.sys_info.to_dict()
        return data
