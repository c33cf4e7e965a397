"""Exception types shared by the upstream clients and the deals pipeline."""


class DealsProxyError(Exception):
    """Base class for every error raised by the proxy."""


class ConfigurationError(DealsProxyError):
    """A call was made with arguments that can never succeed (e.g. no stores)."""


class TransientUpstreamError(DealsProxyError):
    """Network failure or a non-throttling error status from an upstream API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ThrottlingError(TransientUpstreamError):
    """The metadata API asked us to back off (HTTP 429 or 403)."""


class ParseError(DealsProxyError):
    """An upstream response did not have the shape we expect."""
