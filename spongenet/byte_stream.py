"""A flow-controlled, in-memory, in-order byte stream."""

from __future__ import annotations


def _check_length(length: int) -> int:
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    return length


class ByteStream:
    """Bytes are written on the input side and read from the output side.

    The stream holds at most ``capacity`` bytes at a time. Once the writer
    ends the input, no further bytes are accepted.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self._capacity = capacity
        self._buffer = bytearray()
        self._bytes_written = 0
        self._bytes_read = 0
        self._input_ended = False
        self._error = False

    # Writer side

    def write(self, data: bytes) -> int:
        """Write as much of ``data`` as fits; return the number of bytes accepted."""
        if self._input_ended:
            return 0
        accepted = min(len(data), self.remaining_capacity())
        if accepted <= 0:
            return 0
        self._buffer += data[:accepted]
        self._bytes_written += accepted
        return accepted

    def remaining_capacity(self) -> int:
        """Number of additional bytes the stream has room for."""
        return self._capacity - len(self._buffer)

    def end_input(self) -> None:
        """Signal that no more bytes will be written."""
        self._input_ended = True

    def set_error(self) -> None:
        """Mark the stream as having suffered an error."""
        self._error = True

    # Reader side

    def peek_output(self, length: int) -> bytes:
        """Return up to ``length`` bytes from the front without removing them."""
        return bytes(self._buffer[: _check_length(length)])

    def pop_output(self, length: int) -> None:
        """Remove up to ``length`` bytes from the front of the buffer."""
        count = min(_check_length(length), len(self._buffer))
        del self._buffer[:count]
        self._bytes_read += count

    def read(self, length: int) -> bytes:
        """Remove and return up to ``length`` bytes from the front."""
        result = self.peek_output(length)
        self.pop_output(length)
        return result

    def input_ended(self) -> bool:
        return self._input_ended

    def error(self) -> bool:
        return self._error

    def buffer_size(self) -> int:
        """Number of bytes currently available to read."""
        return len(self._buffer)

    def buffer_empty(self) -> bool:
        return not self._buffer

    def eof(self) -> bool:
        """True once input has ended and every byte has been read."""
        return self._input_ended and self.buffer_empty()

    # Accounting

    def bytes_written(self) -> int:
        """Total number of bytes accepted by ``write``."""
        return self._bytes_written

    def bytes_read(self) -> int:
        """Total number of bytes popped from the stream."""
        return self._bytes_read