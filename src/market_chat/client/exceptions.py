from __future__ import annotations


class ClientError(Exception):
    """Base error of the chat client."""


class TransportError(ClientError):
    """The realtime connection could not be opened or has broken."""
