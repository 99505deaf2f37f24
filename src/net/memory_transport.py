"""Implementation of the Transport protocol inside a single process (local loopback play and tests)

Every event (incoming connection, open, data, close) is put on the network's FIFO queue and only handled when the queue
is pumped. This keeps the single-threaded, event-driven model: a handler never runs inside another handler, and
messages arrive in the order they were sent.
"""

import json
import logging
from collections import deque
from typing import Any, Callable, Optional
from uuid import uuid4

from src.core.exceptions import TransportError
from src.net.transport import Connection, DataHandler, EventHandler

logger = logging.getLogger(__name__)

Event = Callable[[], None]


class MemoryNetwork:
    """Stands in for the signaling service (looks up peers by id) and for the wire (queues events)."""

    def __init__(self) -> None:
        self._peers: dict[str, "MemoryTransport"] = {}
        self._events: deque[Event] = deque()

    def register(self, transport: "MemoryTransport") -> None:
        if transport.peer_id in self._peers:
            raise TransportError(f"Peer id {transport.peer_id!r} is already taken.")
        self._peers[transport.peer_id] = transport

    def lookup(self, peer_id: str) -> "MemoryTransport":
        if peer_id not in self._peers:
            raise TransportError(f"No peer with id {peer_id!r}.")
        return self._peers[peer_id]

    def schedule(self, event: Event) -> None:
        self._events.append(event)

    @property
    def pending(self) -> int:
        return len(self._events)

    def run_until_idle(self, max_events: int = 10_000) -> int:
        """Handle queued events (and the ones they queue) until nothing is left. Returns the number handled."""
        handled = 0
        while self._events:
            if handled >= max_events:
                raise TransportError(f"Network did not settle after {max_events} events.")
            event = self._events.popleft()
            event()
            handled += 1
        return handled


class MemoryConnection:
    """One end of an in-process connection. Messages go through JSON, like they would on a real wire."""

    def __init__(self, network: MemoryNetwork, local_id: str, remote_id: str) -> None:
        self._network = network
        self._local_id = local_id
        self._remote_id = remote_id
        self._partner: Optional["MemoryConnection"] = None
        self._data_handlers: list[DataHandler] = []
        self._open_handlers: list[EventHandler] = []
        self._close_handlers: list[EventHandler] = []
        self._is_open = False
        self._is_closed = False

    @classmethod
    def pair(
        cls, network: MemoryNetwork, local_id: str, remote_id: str
    ) -> tuple["MemoryConnection", "MemoryConnection"]:
        local_end = cls(network, local_id, remote_id)
        remote_end = cls(network, remote_id, local_id)
        local_end._partner = remote_end
        remote_end._partner = local_end
        return local_end, remote_end

    @property
    def remote_id(self) -> str:
        return self._remote_id

    @property
    def is_open(self) -> bool:
        return self._is_open and not self._is_closed

    def on_data(self, handler: DataHandler) -> None:
        self._data_handlers.append(handler)

    def on_open(self, handler: EventHandler) -> None:
        self._open_handlers.append(handler)

    def on_close(self, handler: EventHandler) -> None:
        self._close_handlers.append(handler)

    def send(self, message: dict[str, Any]) -> None:
        if not self.is_open:
            raise TransportError(f"Connection to {self._remote_id!r} is not open.")
        assert self._partner is not None
        encoded = json.dumps(message)
        partner = self._partner
        self._network.schedule(lambda: partner._deliver(encoded))

    def close(self) -> None:
        """Closes both ends. Each end's close handlers run once."""
        if self._is_closed:
            return
        assert self._partner is not None
        for end in (self, self._partner):
            end._is_closed = True
            self._network.schedule(end._fire_close)

    # -- called by the network --
    def _establish(self) -> None:
        if self._is_closed:
            return
        self._is_open = True
        for handler in list(self._open_handlers):
            handler()

    def _deliver(self, encoded: str) -> None:
        if self._is_closed:
            logger.debug("Dropped message for closed connection %s", self._local_id)
            return
        data = json.loads(encoded)
        for handler in list(self._data_handlers):
            handler(data)

    def _fire_close(self) -> None:
        for handler in list(self._close_handlers):
            handler()


class MemoryTransport:
    """Our end of the in-process network."""

    def __init__(self, network: MemoryNetwork, peer_id: Optional[str] = None) -> None:
        self._network = network
        self._peer_id = peer_id or uuid4().hex
        self._connection_handler: Optional[Callable[[Connection], None]] = None
        network.register(self)

    @property
    def peer_id(self) -> str:
        return self._peer_id

    def on_connection(self, handler: Callable[[Connection], None]) -> None:
        self._connection_handler = handler

    def connect(self, remote_id: str) -> MemoryConnection:
        remote = self._network.lookup(remote_id)
        local_end, remote_end = MemoryConnection.pair(
            self._network, self._peer_id, remote_id
        )
        self._network.schedule(lambda: remote._accept(remote_end))
        self._network.schedule(remote_end._establish)
        self._network.schedule(local_end._establish)
        logger.debug("%s connecting to %s", self._peer_id, remote_id)
        return local_end

    def _accept(self, connection: MemoryConnection) -> None:
        if self._connection_handler is None:
            logger.warning(
                "%s is not accepting connections, refusing %s",
                self._peer_id,
                connection.remote_id,
            )
            connection.close()
            return
        self._connection_handler(connection)
