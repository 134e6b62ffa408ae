"""TCP file transfer (tcpft)

A listener streams one file to each connecting peer in turn:
- length-prefixed handshake (names, resource name, uint64 size, ready signal)
- marker-byte chunk framing terminated by a double end marker
- serial accept loop where a failed peer never takes the listener down
"""

__all__ = []
