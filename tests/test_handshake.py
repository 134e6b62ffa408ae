from __future__ import annotations

import pytest

from tcpft.errors import ConnectionClosedError
from tcpft.handshake import Handshake, HandshakeState, Offer


def test_full_exchange(endpoint_pair):
    client_ep, server_ep = endpoint_pair
    client = Handshake(client_ep)
    server = Handshake(server_ep)

    client.send_request("bob")
    assert server.accept_request() == "bob"
    assert server.request == "Query file name"

    offer = Offer(sender_name="alice", resource_name="docs/notes.txt", size=250)
    server.send_offer(offer)
    assert client.read_offer() == offer

    client.send_ready()
    server.await_ready()
    assert server.ready == "Start"

    assert client.state is HandshakeState.STREAMING
    assert server.history == [
        HandshakeState.CONNECTED,
        HandshakeState.NAMES_EXCHANGED,
        HandshakeState.METADATA_SENT,
        HandshakeState.READY_SIGNAL_RECEIVED,
        HandshakeState.STREAMING,
    ]


def test_request_bytes_on_the_wire(endpoint_pair):
    client_ep, server_ep = endpoint_pair
    Handshake(client_ep).send_request("bob")
    assert server_ep.read_exact(7) == b"\x00\x00\x00\x03bob"
    assert server_ep.read_exact(19) == b"\x00\x00\x00\x0fQuery file name"


def test_offer_bytes_on_the_wire(endpoint_pair):
    client_ep, server_ep = endpoint_pair
    hs = Handshake(server_ep, state=HandshakeState.NAMES_EXCHANGED)
    hs.send_offer(Offer(sender_name="s", resource_name="f", size=258))
    assert client_ep.read_exact(18) == (
        b"\x00\x00\x00\x01s" + b"\x00\x00\x00\x01f" + b"\x00\x00\x00\x00\x00\x00\x01\x02"
    )


def test_any_ready_string_starts_streaming(endpoint_pair):
    client_ep, server_ep = endpoint_pair
    client = Handshake(client_ep)
    server = Handshake(server_ep)
    client.send_request("bob")
    server.accept_request()
    server.send_offer(Offer("alice", "a.bin", 0))
    client.read_offer()
    client.send_ready("go already")
    server.await_ready()
    assert server.state is HandshakeState.STREAMING
    assert server.ready == "go already"


def test_out_of_order_step(endpoint_pair):
    _, server_ep = endpoint_pair
    with pytest.raises(RuntimeError):
        Handshake(server_ep).await_ready()


def test_peer_closes_during_handshake(endpoint_pair):
    client_ep, server_ep = endpoint_pair
    Handshake(client_ep).send_request("bob")
    server = Handshake(server_ep)
    server.accept_request()
    server.send_offer(Offer("alice", "a.bin", 10))
    client_ep.close()
    with pytest.raises(ConnectionClosedError):
        server.await_ready()


def test_close_from_any_state(endpoint_pair):
    _, server_ep = endpoint_pair
    hs = Handshake(server_ep)
    hs.close()
    hs.close()
    assert hs.state is HandshakeState.CLOSED
    assert hs.history == [HandshakeState.CONNECTED, HandshakeState.CLOSED]


def test_request_sent_once(endpoint_pair):
    client_ep, _ = endpoint_pair
    hs = Handshake(client_ep)
    hs.send_request("bob")
    with pytest.raises(RuntimeError):
        hs.send_request("bob")


def test_offer_needs_request_first(endpoint_pair):
    client_ep, _ = endpoint_pair
    with pytest.raises(RuntimeError):
        Handshake(client_ep).read_offer()
