"""Reassemble possibly out-of-order, overlapping substrings into a byte stream."""

from __future__ import annotations

import bisect

from spongenet.byte_stream import ByteStream


class StreamReassembler:
    """Assemble indexed substrings into an in-order :class:`ByteStream`.

    Stored substrings never overlap one another. The capacity bounds the
    window of indices accepted beyond the first unread byte.
    """

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._output = ByteStream(capacity)
        self._pending: dict[int, bytes] = {}
        self._keys: list[int] = []
        self._next_index = 0
        self._unassembled = 0
        self._eof_index: int | None = None

    def _store(self, index: int, data: bytes) -> None:
        if index not in self._pending:
            bisect.insort(self._keys, index)
        else:
            self._unassembled -= len(self._pending[index])
        self._pending[index] = data
        self._unassembled += len(data)

    def _discard(self, index: int) -> None:
        self._unassembled -= len(self._pending.pop(index))
        del self._keys[bisect.bisect_left(self._keys, index)]

    def push_substring(self, data: bytes, index: int, eof: bool) -> None:
        """Accept ``data`` starting at stream position ``index``.

        Newly contiguous bytes are written to the output stream; the rest is
        kept for later. Bytes beyond the capacity window are discarded.
        """
        new_index = max(index, self._next_index)

        # Trim the front against the nearest stored substring at or before index.
        pos = bisect.bisect_right(self._keys, index)
        if pos > 0:
            prev = self._keys[pos - 1]
            new_index = max(new_index, prev + len(self._pending[prev]))

        start = new_index - index
        size = len(data) - start

        # Trim the back against following substrings, dropping those fully covered.
        pos = bisect.bisect_left(self._keys, new_index)
        while pos < len(self._keys):
            key = self._keys[pos]
            end = new_index + size
            if key >= end:
                break
            if end < key + len(self._pending[key]):
                size = key - new_index
                break
            self._discard(key)

        first_unacceptable = self._next_index + self._capacity - self._output.buffer_size()
        if first_unacceptable <= new_index:
            return

        if size > 0:
            new_data = data[start : start + size]
            if new_index == self._next_index:
                written = self._output.write(new_data)
                self._next_index += written
                if written < len(new_data):
                    self._store(self._next_index, new_data[written:])
            else:
                self._store(new_index, new_data)

        self._assemble()

        if eof:
            self._eof_index = index + len(data)
        if self._eof_index is not None and self._eof_index <= self._next_index:
            self._output.end_input()

    def _assemble(self) -> None:
        while self._keys and self._keys[0] == self._next_index:
            key = self._keys[0]
            chunk = self._pending[key]
            written = self._output.write(chunk)
            if written == 0:
                break
            self._discard(key)
            self._next_index += written
            if written < len(chunk):
                self._store(self._next_index, chunk[written:])
                break

    def stream_out(self) -> ByteStream:
        """The reassembled in-order byte stream."""
        return self._output

    def unassembled_bytes(self) -> int:
        """Number of bytes stored but not yet written to the output."""
        return self._unassembled

    def empty(self) -> bool:
        """True if no substrings are waiting to be assembled."""
        return self._unassembled == 0