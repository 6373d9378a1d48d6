"""Connect to, or accept one connection on, a TCP address and copy stdin/stdout over it."""

from __future__ import annotations

import socket
import sys

from spongenet.stream_copy import bidirectional_stream_copy

_PROG = "tcp_native"


def _show_usage() -> None:
    print(
        f"Usage: {_PROG} [-l] <host> <port>\n\n"
        "  -l specifies listen mode; <host>:<port> is the listening address.",
        file=sys.stderr,
    )


def open_socket(server_mode: bool, host: str, port: int | str) -> socket.socket:
    """Return a connected TCP socket.

    In client mode, connect to ``host:port``. In server mode, listen on
    ``host:port`` and accept exactly one connection.
    """
    if not server_mode:
        return socket.create_connection((host, port))
    family, sock_type, proto, _, address = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0]
    with socket.socket(family, sock_type, proto) as listener:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(address)
        listener.listen()
        connection, _ = listener.accept()
    return connection


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2 or (args[0] == "-l" and len(args) < 3):
        _show_usage()
        return 1
    server_mode = args[0] == "-l"
    host, port = (args[1], args[2]) if server_mode else (args[0], args[1])
    try:
        with open_socket(server_mode, host, port) as sock:
            bidirectional_stream_copy(sock)
    except OSError as error:
        print(f"Exception: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())