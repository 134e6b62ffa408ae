from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from .constants import MAX_STRING_LENGTH, READY_TEXT, REQUEST_TEXT
from .net import TcpEndpoint
from .wire import read_size, read_string, write_size, write_string

logger = logging.getLogger(__name__)


class HandshakeState(enum.Enum):
    CONNECTED = "connected"
    NAMES_EXCHANGED = "names-exchanged"
    METADATA_SENT = "metadata-sent"
    READY_SIGNAL_RECEIVED = "ready-signal-received"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class Offer:
    sender_name: str
    resource_name: str
    size: int


@dataclass(slots=True)
class Handshake:
    """Per-connection handshake state; each step is valid from exactly one state.

    Receiver: send_request -> read_offer -> send_ready
    Sender:   accept_request -> send_offer -> await_ready
    Both sides end in STREAMING.
    """

    endpoint: TcpEndpoint
    max_string_length: int = MAX_STRING_LENGTH
    state: HandshakeState = HandshakeState.CONNECTED
    peer_name: str | None = None
    request: str | None = None
    offer: Offer | None = None
    ready: str | None = None
    history: list[HandshakeState] = field(default_factory=lambda: [HandshakeState.CONNECTED])

    def _expect(self, state: HandshakeState) -> None:
        if self.state is not state:
            raise RuntimeError(f"handshake step requires {state.value}, currently {self.state.value}")

    def _advance(self, state: HandshakeState) -> None:
        logger.debug("handshake %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _read_string(self) -> str:
        return read_string(self.endpoint, self.max_string_length)

    # sender side

    def accept_request(self) -> str:
        self._expect(HandshakeState.CONNECTED)
        self.peer_name = self._read_string()
        self.request = self._read_string()
        logger.debug("request from %r: %r", self.peer_name, self.request)
        self._advance(HandshakeState.NAMES_EXCHANGED)
        return self.peer_name

    def send_offer(self, offer: Offer) -> None:
        self._expect(HandshakeState.NAMES_EXCHANGED)
        write_string(self.endpoint, offer.sender_name)
        write_string(self.endpoint, offer.resource_name)
        write_size(self.endpoint, offer.size)
        self.offer = offer
        self._advance(HandshakeState.METADATA_SENT)

    def await_ready(self) -> None:
        self._expect(HandshakeState.METADATA_SENT)
        # any string counts as the ready signal
        self.ready = self._read_string()
        self._advance(HandshakeState.READY_SIGNAL_RECEIVED)
        self._advance(HandshakeState.STREAMING)

    # receiver side

    def send_request(self, name: str, request: str = REQUEST_TEXT) -> None:
        self._expect(HandshakeState.CONNECTED)
        if self.request is not None:
            raise RuntimeError("request already sent")
        write_string(self.endpoint, name)
        write_string(self.endpoint, request)
        self.request = request

    def read_offer(self) -> Offer:
        self._expect(HandshakeState.CONNECTED)
        if self.request is None:
            raise RuntimeError("handshake step requires the request to be sent first")
        sender_name = self._read_string()
        self._advance(HandshakeState.NAMES_EXCHANGED)
        resource_name = self._read_string()
        size = read_size(self.endpoint)
        self.peer_name = sender_name
        self.offer = Offer(sender_name=sender_name, resource_name=resource_name, size=size)
        self._advance(HandshakeState.METADATA_SENT)
        return self.offer

    def send_ready(self, text: str = READY_TEXT) -> None:
        self._expect(HandshakeState.METADATA_SENT)
        write_string(self.endpoint, text)
        self.ready = text
        self._advance(HandshakeState.READY_SIGNAL_RECEIVED)
        self._advance(HandshakeState.STREAMING)

    def close(self) -> None:
        if self.state is not HandshakeState.CLOSED:
            self._advance(HandshakeState.CLOSED)
