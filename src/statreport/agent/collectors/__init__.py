"""
Samplers and lookups feeding the record assembler.
"""

from .system import SystemCollector, make_iface_filter
from .ping import PingCollector
from .network import get_network, resolve_destination
from .sysinfo import collect_sys_info, gen_sys_id
from .ip_api import get_ip_info

__all__ = [
    "SystemCollector",
    "PingCollector",
    "make_iface_filter",
    "get_network",
    "resolve_destination",
    "collect_sys_info",
    "gen_sys_id",
    "get_ip_info",
]
