class ProxyError(Exception):
    """Base class for failures reported to the client as a plain-text body."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClientInputError(ProxyError):
    """The request was rejected before any upstream host was contacted."""

    status_code = 400


class NoHostError(ClientInputError):
    def __init__(self):
        super().__init__("No host in query parameters.")


class InvalidHostError(ClientInputError):
    def __init__(self, host: str):
        super().__init__("Invalid hostname.")
        self.host = host


class DisallowedHostError(ClientInputError):
    status_code = 403

    def __init__(self, host: str):
        super().__init__("Non YouTube domains are not supported.")
        self.host = host


class MethodNotAllowedError(ClientInputError):
    status_code = 405

    def __init__(self, method: str):
        super().__init__("Only GET and HEAD requests are allowed.")
        self.method = method


class UpstreamError(ProxyError):
    """Fetching or reading the upstream resource failed."""

    status_code = 502


class UpstreamTimeoutError(UpstreamError):
    status_code = 504


class TranscodeError(UpstreamError):
    """The upstream image could not be decoded or re-encoded."""
