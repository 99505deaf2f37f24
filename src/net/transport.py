"""Protocols for the peer-to-peer transport (the real one wraps a WebRTC data channel, see memory_transport.py for an in-process one)"""

from typing import Any, Callable, Protocol

DataHandler = Callable[[Any], None]
EventHandler = Callable[[], None]


class Connection(Protocol):
    """A bidirectional, reliable and ordered message channel to one peer"""

    @property
    def remote_id(self) -> str: ...

    @property
    def is_open(self) -> bool: ...

    def on_data(self, handler: DataHandler) -> None:
        """Called for every message received from the peer."""
        ...

    def on_open(self, handler: EventHandler) -> None:
        """Called once the channel can be used to send."""
        ...

    def on_close(self, handler: EventHandler) -> None:
        """Called once when the channel is closed (by either side)."""
        ...

    def send(self, message: dict[str, Any]) -> None:
        """Fire-and-forget. No acknowledgment."""
        ...

    def close(self) -> None: ...


class Transport(Protocol):
    """Our end of the network. The identity string is assigned by the signaling service and is opaque."""

    @property
    def peer_id(self) -> str: ...

    def connect(self, remote_id: str) -> Connection:
        """Open a connection to another peer (we become the joiner)."""
        ...

    def on_connection(self, handler: Callable[[Connection], None]) -> None:
        """Accept incoming connections (we become the host)."""
        ...
