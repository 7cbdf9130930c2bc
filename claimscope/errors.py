"""Error taxonomy shared by the store, resolver and service layers."""


class ClaimMetricsError(Exception):
    """Base class for claim metrics failures."""


class ValidationError(ClaimMetricsError, ValueError):
    """Malformed request input. The message is safe to show to clients."""


class DataUnavailableError(ClaimMetricsError):
    """The backing store could not be reached or a query failed.

    The message carries internal detail and is only exposed in debug mode.
    """
