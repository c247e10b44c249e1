"""
Agent Configuration.

Resolved once at startup and handed to the core as a snapshot.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

import yaml

from .. import __version__
from .errors import ConfigurationError
from .models import DEFAULT_ALIAS, DEFAULT_NAME

AGENT_VERSION = __version__

CT_ADDR = "ct.tz.cloudcpp.com:80"
CM_ADDR = "cm.tz.cloudcpp.com:80"
CU_ADDR = "cu.tz.cloudcpp.com:80"

DEFAULT_EXCLUDE_IFACE = ["lo", "docker", "vnet", "veth", "vmbr", "kube", "br-"]

SCHEME_HTTP = "http"
SCHEME_GRPC = "grpc"


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ProbeConfig:
    """Latency probe targets, keyed by the name used in the record."""
    ct_addr: str = CT_ADDR
    cm_addr: str = CM_ADDR
    cu_addr: str = CU_ADDR

    def targets(self) -> dict[str, str]:
        return {
            "189": self.ct_addr,
            "10086": self.cm_addr,
            "10010": self.cu_addr,
        }


@dataclass
class AgentConfig:
    """Main agent configuration."""
    # Destination and credentials
    addr: str = "http://127.0.0.1:8080/report"
    user: str = DEFAULT_NAME
    password: str = "p1"

    # Grouped reporting
    gid: str = ""
    alias: str = DEFAULT_ALIAS

    # Host descriptor
    weight: int = 0
    host_type: str = ""
    location: str = ""

    # Feature toggles
    vnstat: bool = False
    disable_tupd: bool = False
    disable_ping: bool = False
    disable_extra: bool = False
    disable_notify: bool = False
    json: bool = False
    ipv6: bool = False
    debug: bool = False

    # Interface filters
    iface: list[str] = field(default_factory=list)
    exclude_iface: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_IFACE))

    probes: ProbeConfig = field(default_factory=ProbeConfig)

    # Loop cadence
    report_interval: float = 1.0
    refresh_interval: float = 3600.0
    max_in_flight: Optional[int] = None

    @property
    def scheme(self) -> str:
        """Transport family selected by the address prefix."""
        if self.addr.startswith(SCHEME_GRPC):
            return SCHEME_GRPC
        if self.addr.startswith(SCHEME_HTTP):
            return SCHEME_HTTP
        raise ConfigurationError(f"invalid addr scheme: {self.addr!r}")

    @property
    def auth_user(self) -> str:
        return self.gid if self.gid else self.user

    @property
    def auth_mode(self) -> str:
        return "group" if self.gid else "single"

    def normalize(self) -> "AgentConfig":
        """Drop blank interface entries."""
        self.iface = [i.strip() for i in self.iface if i.strip()]
        self.exclude_iface = [i.strip() for i in self.exclude_iface if i.strip()]
        return self

    def destination(self) -> tuple[str, int]:
        """Host and port of the destination, defaulting the port by scheme."""
        parts = urlsplit(self.addr)
        if not parts.hostname:
            raise ConfigurationError(f"no host in addr: {self.addr!r}")
        try:
            port = parts.port
        except ValueError as e:
            raise ConfigurationError(f"bad port in addr {self.addr!r}: {e}") from e
        if port is None:
            port = 443 if parts.scheme == "https" else 80
        return parts.hostname, port

    @classmethod
    def from_yaml(cls, path: str, base: Optional["AgentConfig"] = None) -> "AgentConfig":
        """
        Load configuration from YAML file.

        Keys in the file override ``base``; everything else keeps the
        value from ``base``, or the default when no base is given.
        """
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"cannot load config {path}: {e}") from e
        return cls._from_dict(data, base)

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Load configuration from SSR_* environment variables."""
        config = cls()

        strings = {
            "SSR_ADDR": "addr",
            "SSR_USER": "user",
            "SSR_PASS": "password",
            "SSR_GID": "gid",
            "SSR_ALIAS": "alias",
            "SSR_TYPE": "host_type",
            "SSR_LOC": "location",
        }
        for env, attr in strings.items():
            if os.getenv(env) is not None:
                setattr(config, attr, os.getenv(env))

        if os.getenv("SSR_WEIGHT"):
            try:
                config.weight = int(os.getenv("SSR_WEIGHT"))
            except ValueError as e:
                raise ConfigurationError(f"SSR_WEIGHT must be an integer: {e}") from e

        flags = {
            "SSR_VNSTAT": "vnstat",
            "SSR_DISABLE_TUPD": "disable_tupd",
            "SSR_DISABLE_PING": "disable_ping",
            "SSR_DISABLE_EXTRA": "disable_extra",
            "SSR_DISABLE_NOTIFY": "disable_notify",
            "SSR_JSON": "json",
            "SSR_IPV6": "ipv6",
            "SSR_DEBUG": "debug",
        }
        for env, attr in flags.items():
            value = _env_flag(env)
            if value is not None:
                setattr(config, attr, value)

        if os.getenv("SSR_IFACE") is not None:
            config.iface = _split_list(os.getenv("SSR_IFACE"))
        if os.getenv("SSR_EXCLUDE_IFACE") is not None:
            config.exclude_iface = _split_list(os.getenv("SSR_EXCLUDE_IFACE"))

        if os.getenv("SSR_CT_ADDR"):
            config.probes.ct_addr = os.getenv("SSR_CT_ADDR")
        if os.getenv("SSR_CM_ADDR"):
            config.probes.cm_addr = os.getenv("SSR_CM_ADDR")
        if os.getenv("SSR_CU_ADDR"):
            config.probes.cu_addr = os.getenv("SSR_CU_ADDR")

        return config.normalize()

    @classmethod
    def _from_dict(cls, data: dict, base: Optional["AgentConfig"] = None) -> "AgentConfig":
        """Create config from dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"config must be a mapping, got {type(data).__name__}")
        config = dataclasses.replace(base) if base is not None else cls()
        known = {f.name for f in dataclasses.fields(cls)} - {"probes"}

        for key, value in data.items():
            if key == "probes":
                if not isinstance(value, dict):
                    raise ConfigurationError("probes section must be a mapping")
                try:
                    config.probes = dataclasses.replace(config.probes, **value)
                except TypeError as e:
                    raise ConfigurationError(f"bad probes section: {e}") from e
            elif key == "pass":
                config.password = value
            elif key in known:
                setattr(config, key, value)
            else:
                raise ConfigurationError(f"unknown config key: {key}")

        for key in ("iface", "exclude_iface"):
            value = getattr(config, key)
            if isinstance(value, str):
                setattr(config, key, _split_list(value))

        return config.normalize()

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, 'w') as f:
            yaml.dump(dataclasses.asdict(self), f, default_flow_style=False)
