"""Exceptions raised by the reporting agent."""


class StatReportError(Exception):
    """Base class for agent errors."""


class ConfigurationError(StatReportError):
    """Invalid startup configuration. Fatal before the loops begin."""


class UnsupportedPlatformError(StatReportError):
    """The host OS cannot be sampled."""


class TransportError(StatReportError):
    """A single delivery attempt failed."""


class IpInfoError(StatReportError):
    """Geolocation lookup failed."""
