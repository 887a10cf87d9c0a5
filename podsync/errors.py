"""Exceptions raised by the feed client."""


class PodsyncError(RuntimeError):
    """Base class for feed failures."""


class TransportError(PodsyncError):
    """The request could not be sent or its body could not be read."""


class ProtocolError(PodsyncError):
    """The server answered in a way the delta protocol does not allow."""


class UpstreamError(PodsyncError):
    """The server answered with a non-success status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code
