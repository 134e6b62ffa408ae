from __future__ import annotations

import argparse
import contextlib
import dataclasses
import json
import logging
import sys
from typing import BinaryIO, ContextManager

from .bench import run_benchmark
from .constants import CHUNK_SIZE, DEFAULT_TIMEOUT_MS, MAX_PORT, MIN_PORT
from .errors import ArgumentError, TransferError
from .net import TcpEndpoint, TcpListener, detect_local_ip
from .receiver import FileReceiver
from .sender import FileSender

logger = logging.getLogger("tcpft")


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ArgumentError(f"{self.prog}: {message}")


def port_type(text: str) -> int:
    try:
        port = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port {text!r}") from None
    if not MIN_PORT < port <= MAX_PORT:
        raise argparse.ArgumentTypeError(f"port must be > {MIN_PORT} and <= {MAX_PORT}, got {port}")
    return port


def _open_sink(path: str | None) -> ContextManager[BinaryIO]:
    if path is None:
        return contextlib.nullcontext(sys.stdout.buffer)
    try:
        return open(path, "wb")
    except OSError as exc:
        raise ArgumentError(f"cannot open output file {path}: {exc}") from exc


def cmd_send(args: argparse.Namespace) -> int:
    sender = FileSender.from_path(args.name, args.file)
    with TcpListener.open(args.host, args.port, timeout_ms=args.timeout_ms) as listener:
        logger.info(
            "listening on %s:%d  file=%r  size=%d bytes",
            detect_local_ip(),
            args.port,
            args.file,
            len(sender.data),
        )
        logger.info("server name: %s", sender.name)
        summary = sender.serve(listener, max_connections=args.max_connections)

    logger.info("served %d connection(s), %d failed", summary.handled, summary.failed)
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    with TcpEndpoint.connect(args.host, args.port, timeout_ms=args.timeout_ms) as ep:
        logger.info("connected to %s", ep.peer)
        with _open_sink(args.out) as out:
            FileReceiver(args.name, out).run(ep)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(size_bytes=args.size_bytes, chunk_size=args.chunk_size, timeout_ms=args.timeout_ms)
    payload = {"role": "bench", **dataclasses.asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def add_common(x: argparse.ArgumentParser) -> None:
    x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="socket timeout, 0 blocks forever")
    x.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


def add_send_args(send: argparse.ArgumentParser) -> None:
    add_common(send)
    send.add_argument("name", help="display name of this server")
    send.add_argument("file", help="file to offer to every client")
    send.add_argument("port", type=port_type)
    send.add_argument("--host", default="0.0.0.0", help="bind address")
    send.add_argument("--max-connections", type=int, default=None, help="exit after serving this many clients")
    send.set_defaults(func=cmd_send)


def add_recv_args(recv: argparse.ArgumentParser) -> None:
    add_common(recv)
    recv.add_argument("host")
    recv.add_argument("port", type=port_type)
    recv.add_argument("name", help="display name of this client")
    recv.add_argument("--out", default=None, help="write the file here instead of stdout")
    recv.set_defaults(func=cmd_recv)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(prog="tcpft", description="Stream a file to TCP peers in 100-byte chunks.")
    sub = p.add_subparsers(dest="cmd", required=True)

    add_send_args(sub.add_parser("send", help="serve a file to one client at a time"))
    add_recv_args(sub.add_parser("recv", help="fetch the file offered by a server"))

    bench = sub.add_parser("bench", help="loopback transfer benchmark")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.add_argument("--chunk-size", type=int, default=CHUNK_SIZE)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    return p


def _run(parser: argparse.ArgumentParser, argv: list[str] | None) -> int:
    try:
        args = parser.parse_args(argv)
    except ArgumentError as exc:
        parser.print_usage(sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except TransferError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def main(argv: list[str] | None = None) -> int:
    return _run(build_parser(), argv)


def send_main(argv: list[str] | None = None) -> int:
    p = _Parser(prog="tcpft-send", description="Serve a file to one TCP client at a time.")
    add_send_args(p)
    return _run(p, argv)


def recv_main(argv: list[str] | None = None) -> int:
    p = _Parser(prog="tcpft-recv", description="Receive a file from a tcpft server.")
    add_recv_args(p)
    return _run(p, argv)


if __name__ == "__main__":
    raise SystemExit(main())
