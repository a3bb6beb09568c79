"""Exceptions raised by the Pyright WebSocket Bridge."""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class SpawnError(BridgeError):
    """The backend language server could not be launched."""


class FramingError(BridgeError):
    """A message frame could not be decoded."""


class ChannelClosed(BridgeError):
    """The client channel is closed and cannot carry more messages."""
