"""
statreport agent - samples host and network-quality metrics every second
and pushes them to a status collector over HTTP or gRPC.
"""

from .agent import ReportAgent, run_agent
from .assembler import RecordAssembler, assemble, build_host_descriptor
from .cache import SharedCache
from .config import AgentConfig
from .errors import ConfigurationError, StatReportError, TransportError
from .sender import GrpcTransport, HttpTransport

__all__ = [
    "ReportAgent",
    "run_agent",
    "RecordAssembler",
    "assemble",
    "build_host_descriptor",
    "SharedCache",
    "AgentConfig",
    "ConfigurationError",
    "StatReportError",
    "TransportError",
    "GrpcTransport",
    "HttpTransport",
]
