from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Tuple

import psutil

from .constants import (
    DEFAULT_TIMEOUT_MS,
    LISTEN_BACKLOG,
    LOCALHOST,
    SKIPPED_INTERFACE_PREFIXES,
)
from .errors import ConnectionClosedError, ResolutionError, TransportError

logger = logging.getLogger(__name__)


def _apply_timeout(sock: socket.socket, timeout_ms: int) -> None:
    if timeout_ms > 0:
        sock.settimeout(timeout_ms / 1000.0)


def format_address(addr: Tuple[str, int] | None) -> str:
    if not addr:
        return "?:?"
    return f"{addr[0]}:{addr[1]}"


class TcpEndpoint:
    """One connected stream socket with exact-length read/write."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self._closed = False

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "TcpEndpoint":
        try:
            infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise ResolutionError(f"cannot resolve {host!r}: {exc}") from exc
        if not infos:
            raise ResolutionError(f"no IPv4 address for {host!r}")

        family, socktype, proto, _, sockaddr = infos[0]
        sock = socket.socket(family, socktype, proto)
        _apply_timeout(sock, timeout_ms)
        try:
            sock.connect(sockaddr)
        except OSError as exc:
            sock.close()
            raise TransportError(f"connect to {format_address(sockaddr)} failed: {exc}") from exc
        return cls(sock)

    @property
    def peer(self) -> str:
        try:
            return format_address(self.sock.getpeername())
        except OSError:
            return "?:?"

    def write_exact(self, data: bytes | memoryview) -> None:
        view = memoryview(data)
        while view:
            try:
                n = self.sock.send(view)
            except InterruptedError:
                continue
            except OSError as exc:
                raise TransportError(f"send failed: {exc}") from exc
            view = view[n:]

    def read_exact(self, length: int) -> bytes:
        buf = bytearray()
        while len(buf) < length:
            try:
                chunk = self.sock.recv(length - len(buf))
            except InterruptedError:
                continue
            except (ConnectionResetError, ConnectionAbortedError) as exc:
                raise ConnectionClosedError(
                    f"peer reset after {len(buf)} of {length} bytes: {exc}"
                ) from exc
            except OSError as exc:
                raise TransportError(f"recv failed: {exc}") from exc
            if not chunk:
                raise ConnectionClosedError(
                    f"peer closed after {len(buf)} of {length} bytes"
                )
            buf += chunk
        return bytes(buf)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.sock.close()

    def __enter__(self) -> "TcpEndpoint":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class TcpListener:
    def __init__(self, sock: socket.socket, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.sock = sock
        self.timeout_ms = timeout_ms

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "TcpListener":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as exc:
            sock.close()
            raise TransportError(f"cannot listen on {host}:{port}: {exc}") from exc
        return cls(sock, timeout_ms)

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def accept(self) -> TcpEndpoint:
        while True:
            try:
                conn, _ = self.sock.accept()
            except InterruptedError:
                continue
            except OSError as exc:
                raise TransportError(f"accept failed: {exc}") from exc
            # accepted sockets start blocking regardless of the listener
            _apply_timeout(conn, self.timeout_ms)
            return TcpEndpoint(conn)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpListener":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def detect_local_ip() -> str:
    """Pick a non-loopback IPv4 address of an interface that is up, for display only."""
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except OSError as exc:
        logger.debug("interface enumeration failed: %s", exc)
        return LOCALHOST

    for name, entries in addrs.items():
        if name.startswith(SKIPPED_INTERFACE_PREFIXES):
            continue
        st = stats.get(name)
        if st is None or not st.isup:
            continue
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            if ipaddress.ip_address(entry.address).is_loopback:
                continue
            return entry.address
    return LOCALHOST
