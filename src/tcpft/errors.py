from __future__ import annotations


class TransferError(Exception):
    """Base class for everything that ends a transfer."""


class ArgumentError(TransferError):
    pass


class ResolutionError(TransferError):
    pass


class TransportError(TransferError):
    pass


class ConnectionClosedError(TransferError):
    pass


class ProtocolViolationError(TransferError):
    pass
