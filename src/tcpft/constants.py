from __future__ import annotations

LENGTH_FORMAT = "!I"  # uint32 string length prefix
SIZE_FORMAT = "!Q"  # uint64 resource size

MARKER_MORE = b"1"
MARKER_END = b"0"

CHUNK_SIZE = 100
MAX_STRING_LENGTH = 64 * 1024

# ports must be strictly greater than MIN_PORT
MIN_PORT = 5000
MAX_PORT = 65535

REQUEST_TEXT = "Query file name"
READY_TEXT = "Start"

LOCALHOST = "127.0.0.1"
SKIPPED_INTERFACE_PREFIXES = ("docker", "br-", "veth")

LISTEN_BACKLOG = 8
DEFAULT_TIMEOUT_MS = 0
