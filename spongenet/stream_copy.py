"""Copy data both ways between a socket and a local source and sink."""

from __future__ import annotations

import os
import selectors
import socket
import sys
from dataclasses import dataclass
from typing import Any, Callable

from spongenet.byte_stream import ByteStream

MAX_COPY_LENGTH = 65536
BUFFER_SIZE = 1048576


def _fileno(endpoint: Any) -> int:
    return endpoint if isinstance(endpoint, int) else endpoint.fileno()


@dataclass
class _Rule:
    """An I/O callback that runs when ``fd`` is ready and ``interest`` holds.

    The callback returns True once the rule has finished for good.
    """

    fd: int
    event: int
    callback: Callable[[], bool]
    interest: Callable[[], bool]
    cancel: Callable[[], None]
    active: bool = True


class _StreamCopy:
    def __init__(self, sock: socket.socket, source: Any, sink: Any) -> None:
        self.sock = sock
        self.source_fd = _fileno(source)
        self.sink = sink
        self.sink_fd = _fileno(sink)
        self.outbound = ByteStream(BUFFER_SIZE)
        self.inbound = ByteStream(BUFFER_SIZE)
        self.outbound_shutdown = False
        self.inbound_shutdown = False
        out, inb = self.outbound, self.inbound
        self.rules = [
            _Rule(
                self.source_fd,
                selectors.EVENT_READ,
                self._read_source,
                lambda: not out.error() and out.remaining_capacity() > 0 and not inb.error(),
                out.end_input,
            ),
            _Rule(
                sock.fileno(),
                selectors.EVENT_WRITE,
                self._write_socket,
                lambda: not out.buffer_empty() or (out.eof() and not self.outbound_shutdown),
                out.end_input,
            ),
            _Rule(
                sock.fileno(),
                selectors.EVENT_READ,
                self._read_socket,
                lambda: not inb.error() and inb.remaining_capacity() > 0 and not out.error(),
                inb.end_input,
            ),
            _Rule(
                self.sink_fd,
                selectors.EVENT_WRITE,
                self._write_sink,
                lambda: not inb.buffer_empty() or (inb.eof() and not self.inbound_shutdown),
                inb.end_input,
            ),
        ]

    def _read_source(self) -> bool:
        try:
            data = os.read(self.source_fd, self.outbound.remaining_capacity())
        except BlockingIOError:
            return False
        self.outbound.write(data)
        if not data:
            self.outbound.end_input()
            return True
        return False

    def _write_socket(self) -> bool:
        count = min(MAX_COPY_LENGTH, self.outbound.buffer_size())
        try:
            written = self.sock.send(self.outbound.peek_output(count)) if count else 0
        except BlockingIOError:
            written = 0
        self.outbound.pop_output(written)
        if self.outbound.eof():
            self.sock.shutdown(socket.SHUT_WR)
            self.outbound_shutdown = True
            return True
        return False

    def _read_socket(self) -> bool:
        try:
            data = self.sock.recv(self.inbound.remaining_capacity())
        except BlockingIOError:
            return False
        self.inbound.write(data)
        if not data:
            self.inbound.end_input()
            return True
        return False

    def _write_sink(self) -> bool:
        count = min(MAX_COPY_LENGTH, self.inbound.buffer_size())
        try:
            written = os.write(self.sink_fd, self.inbound.peek_output(count)) if count else 0
        except BlockingIOError:
            written = 0
        self.inbound.pop_output(written)
        if self.inbound.eof():
            if isinstance(self.sink, int):
                os.close(self.sink)
            else:
                self.sink.close()
            self.inbound_shutdown = True
            return True
        return False

    def run(self) -> None:
        while True:
            wanted: dict[int, list[_Rule]] = {}
            for rule in self.rules:
                if rule.active and rule.interest():
                    wanted.setdefault(rule.fd, []).append(rule)
            if not wanted:
                return
            with selectors.DefaultSelector() as selector:
                for fd, rules in wanted.items():
                    events = 0
                    for rule in rules:
                        events |= rule.event
                    selector.register(fd, events, rules)
                ready = selector.select()
            for key, mask in ready:
                for rule in key.data:
                    if not (mask & rule.event) or not rule.active:
                        continue
                    try:
                        if rule.callback():
                            rule.active = False
                    except OSError:
                        rule.active = False
                        rule.cancel()


def bidirectional_stream_copy(sock: socket.socket, source: Any = None, sink: Any = None) -> None:
    """Copy ``source`` to ``sock`` and ``sock`` to ``sink`` until both directions end.

    ``source`` and ``sink`` are file descriptors or objects with ``fileno()``;
    they default to standard input and output. When the input from ``source``
    ends, the socket is shut down for writing; when the socket's input ends,
    ``sink`` is closed.
    """
    source = sys.stdin if source is None else source
    sink = sys.stdout if sink is None else sink
    if hasattr(sink, "flush"):
        sink.flush()

    source_fd = _fileno(source)
    sink_fd = _fileno(sink)
    source_blocking = os.get_blocking(source_fd)
    sock_timeout = sock.gettimeout()
    copier = _StreamCopy(sock, source, sink)
    sock.setblocking(False)
    os.set_blocking(source_fd, False)
    os.set_blocking(sink_fd, False)
    try:
        copier.run()
    finally:
        try:
            os.set_blocking(source_fd, source_blocking)
        except OSError:
            pass
        if not copier.inbound_shutdown:
            try:
                os.set_blocking(sink_fd, True)
            except OSError:
                pass
        if sock.fileno() != -1:
            sock.settimeout(sock_timeout)