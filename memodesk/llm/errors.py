"""Relay failures. Every one of them is terminal for the call that raised it."""


class RelayError(Exception):
    """Base class for chat relay failures."""
    pass


class ConfigurationError(RelayError):
    """Relay settings are incomplete; raised before any network activity."""
    pass


class TransportSendError(RelayError):
    """The request could not be dispatched."""
    pass


class RemoteError(RelayError):
    """The endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        detail = body.strip() or "(empty response body)"
        super().__init__(f"API Error ({status_code}): {detail}")


class TransportReadError(RelayError):
    """The response stream broke while it was being read."""
    pass


class StreamCancelledError(RelayError):
    """The caller aborted the stream."""
    pass
