"""Relay UDP datagrams between paired ports, learning each side's peer address."""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
import sys

_log = logging.getLogger(__name__)

_MAX_DATAGRAM = 65536


class Bouncer:
    """Pairs of UDP sockets on ports (n, n+1); each forwards to the other's last peer."""

    def __init__(self, first_port: int = 1024, last_port: int = 64000, host: str = "0.0.0.0") -> None:
        if not 1 <= first_port <= last_port or last_port + 1 > 0xFFFF:
            raise ValueError(f"invalid port range {first_port}..{last_port}")
        self._selector = selectors.DefaultSelector()
        self._sockets: list[socket.socket] = []
        self.peers: list[tuple | None] = []
        try:
            for lower_port in range(first_port, last_port + 1, 2):
                for port in (lower_port, lower_port + 1):
                    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
                    self._sockets.append(sock)
                    sock.bind((host, port))
                    self._selector.register(sock, selectors.EVENT_READ, len(self.peers))
                    self.peers.append(None)
        except BaseException:
            self.close()
            raise

    def __enter__(self) -> Bouncer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def handle(self, index: int) -> tuple[bytes, tuple]:
        """Receive one datagram on socket ``index`` and relay it; return payload and source."""
        sock = self._sockets[index]
        payload, source = sock.recvfrom(_MAX_DATAGRAM)
        if self.peers[index] != source:
            self.peers[index] = source
            _log.info(
                "Learned new address for %s ( %s at %s",
                "XY"[index % 2],
                "%s:%d" % sock.getsockname()[:2],
                "%s:%d" % source[:2],
            )
        partner = index ^ 1
        peer = self.peers[partner]
        if peer is not None and payload:
            self._sockets[partner].sendto(payload, peer)
        return payload, source

    def serve_once(self, timeout: float | None = None) -> int:
        """Handle every socket ready within ``timeout``; return how many were handled."""
        events = self._selector.select(timeout)
        for key, _ in events:
            self.handle(key.data)
        return len(events)

    def serve_forever(self) -> None:
        while True:
            self.serve_once()

    def close(self) -> None:
        self._selector.close()
        for sock in self._sockets:
            sock.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="bouncer", description="Relay UDP datagrams between paired ports.")
    parser.add_argument("--first-port", type=int, default=1024)
    parser.add_argument("--last-port", type=int, default=64000)
    parser.add_argument("--host", default="0.0.0.0")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(message)s")
    try:
        with Bouncer(args.first_port, args.last_port, args.host) as bouncer:
            _log.info("Starting event loop...")
            bouncer.serve_forever()
    except KeyboardInterrupt:
        return 0
    except (OSError, ValueError) as error:
        print(error, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())