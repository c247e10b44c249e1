"""
Static system descriptor and the identity string derived from it.
"""

import hashlib
import platform
import socket

import psutil

from ..models import SysInfo


def _cpu_brand() -> tuple[str, str]:
    """Best-effort CPU model name and vendor id."""
    brand = vendor = ""
    try:
        with open("/proc/cpuinfo") as f:
            for line in f:
                key, _, value = line.partition(":")
                key = key.strip()
                if key == "model name" and not brand:
                    brand = value.strip()
                elif key == "vendor_id" and not vendor:
                    vendor = value.strip()
                if brand and vendor:
                    break
    except OSError:
        pass
    # no /proc on macOS or Windows
    return brand or platform.processor(), vendor


def collect_sys_info(version: str) -> SysInfo:
    """Describe the host once at startup."""
    uname = platform.uname()
    brand, vendor = _cpu_brand()
    return SysInfo(
        name="statreport",
        version=version,
        os_name=uname.system,
        os_arch=uname.machine,
        os_family=platform.system().lower(),
        os_release=uname.release,
        kernel_version=uname.version,
        cpu_num=psutil.cpu_count() or 0,
        cpu_brand=brand,
        cpu_vender_id=vendor,
        host_name=socket.gethostname(),
    )


def gen_sys_id(info: SysInfo) -> str:
    """Stable host identity: MD5 of fields that do not change between runs."""
    parts = [
        info.host_name,
        info.os_name,
        info.os_arch,
        info.os_family,
        info.cpu_brand,
        info.cpu_vender_id,
        str(info.cpu_num),
    ]
    return hashlib.md5("|".join(parts).encode("utf-8")).hexdigest()
