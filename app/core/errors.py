"""Domain exceptions shared by the services and routers."""


class StreamsiteError(Exception):
    """Base class for failures that map onto an HTTP error response."""

    status_code = 500
    error_code = "unknown_error"

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception

    def to_dict(self) -> dict:
        return {"error": self.error_code, "detail": self.message}


class ConfigurationError(StreamsiteError):
    """A required base URL or credential is not configured."""

    status_code = 500
    error_code = "configuration_error"


class InvalidParameterError(StreamsiteError):
    """A caller-supplied parameter is missing or malformed."""

    status_code = 400
    error_code = "invalid_parameter"


class UpstreamError(StreamsiteError):
    """An upstream service answered with a non-2xx status."""

    status_code = 502
    error_code = "upstream_error"

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        body: str | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message, original_exception)
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.upstream_status is not None:
            payload["upstream_status"] = self.upstream_status
        return payload


class UpstreamUnavailableError(UpstreamError):
    """The upstream could not be reached (DNS, connection, TLS...)."""

    error_code = "upstream_unavailable"


class UpstreamTimeoutError(UpstreamError):
    """The upstream did not answer within the request deadline."""

    status_code = 500
    error_code = "upstream_timeout"
