import random

import pytest

from spongenet.byte_stream import ByteStream


def expect(
    bs,
    *,
    input_ended,
    buffer_empty,
    eof,
    bytes_read,
    bytes_written,
    remaining_capacity,
    buffer_size,
):
    assert bs.input_ended() == input_ended
    assert bs.buffer_empty() == buffer_empty
    assert bs.eof() == eof
    assert bs.bytes_read() == bytes_read
    assert bs.bytes_written() == bytes_written
    assert bs.remaining_capacity() == remaining_capacity
    assert bs.buffer_size() == buffer_size


def peek(bs, expected):
    assert bs.peek_output(len(expected)) == expected


# construction


def test_construction():
    bs = ByteStream(15)
    expect(bs, input_ended=False, buffer_empty=True, eof=False, bytes_read=0,
           bytes_written=0, remaining_capacity=15, buffer_size=0)


def test_construction_end():
    bs = ByteStream(15)
    bs.end_input()
    expect(bs, input_ended=True, buffer_empty=True, eof=True, bytes_read=0,
           bytes_written=0, remaining_capacity=15, buffer_size=0)


# one write


def test_write_end_pop():
    bs = ByteStream(15)
    bs.write(b"cat")
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=3, remaining_capacity=12, buffer_size=3)
    peek(bs, b"cat")

    bs.end_input()
    expect(bs, input_ended=True, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=3, remaining_capacity=12, buffer_size=3)
    peek(bs, b"cat")

    bs.pop_output(3)
    expect(bs, input_ended=True, buffer_empty=True, eof=True, bytes_read=3,
           bytes_written=3, remaining_capacity=15, buffer_size=0)


def test_write_pop_end():
    bs = ByteStream(15)
    bs.write(b"cat")
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=3, remaining_capacity=12, buffer_size=3)
    peek(bs, b"cat")

    bs.pop_output(3)
    expect(bs, input_ended=False, buffer_empty=True, eof=False, bytes_read=3,
           bytes_written=3, remaining_capacity=15, buffer_size=0)

    bs.end_input()
    expect(bs, input_ended=True, buffer_empty=True, eof=True, bytes_read=3,
           bytes_written=3, remaining_capacity=15, buffer_size=0)


def test_write_pop2_end():
    bs = ByteStream(15)
    bs.write(b"cat")
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=3, remaining_capacity=12, buffer_size=3)
    peek(bs, b"cat")

    bs.pop_output(1)
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=1,
           bytes_written=3, remaining_capacity=13, buffer_size=2)
    peek(bs, b"at")

    bs.pop_output(2)
    expect(bs, input_ended=False, buffer_empty=True, eof=False, bytes_read=3,
           bytes_written=3, remaining_capacity=15, buffer_size=0)

    bs.end_input()
    expect(bs, input_ended=True, buffer_empty=True, eof=True, bytes_read=3,
           bytes_written=3, remaining_capacity=15, buffer_size=0)


# capacity


def test_overwrite():
    bs = ByteStream(2)
    assert bs.write(b"cat") == 2
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=2, remaining_capacity=0, buffer_size=2)
    peek(bs, b"ca")

    assert bs.write(b"t") == 0
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
           bytes_written=2, remaining_capacity=0, buffer_size=2)
    peek(bs, b"ca")


def test_overwrite_clear_overwrite():
    bs = ByteStream(2)
    assert bs.write(b"cat") == 2
    bs.pop_output(2)
    assert bs.write(b"tac") == 2
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=2,
           bytes_written=4, remaining_capacity=0, buffer_size=2)
    peek(bs, b"ta")


def test_overwrite_pop_overwrite():
    bs = ByteStream(2)
    assert bs.write(b"cat") == 2
    bs.pop_output(1)
    assert bs.write(b"tac") == 1
    expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=1,
           bytes_written=3, remaining_capacity=0, buffer_size=2)
    peek(bs, b"at")


def test_long_stream():
    bs = ByteStream(3)
    assert bs.write(b"abcdef") == 3
    peek(bs, b"abc")
    bs.pop_output(1)

    for _ in range(99997):
        for chunk, front in ((b"abc", b"bca"), (b"bca", b"cab"), (b"cab", b"abc")):
            assert bs.remaining_capacity() == 1
            assert bs.buffer_size() == 2
            assert bs.write(chunk) == 1
            assert bs.remaining_capacity() == 0
            assert bs.peek_output(len(front)) == front
            bs.pop_output(1)

    bs.end_input()
    peek(bs, b"bc")
    bs.pop_output(2)
    assert bs.eof() is True


# many writes


def test_many_writes():
    rng = random.Random(144)
    nreps = 1000
    min_write = 10
    max_write = 200
    capacity = max_write * nreps

    bs = ByteStream(capacity)
    acc = 0
    for _ in range(nreps):
        size = min_write + rng.randrange(max_write - min_write)
        data = bytes(ord("a") + rng.randrange(26) for _ in range(size))
        assert bs.write(data) == size
        acc += size
        expect(bs, input_ended=False, buffer_empty=False, eof=False, bytes_read=0,
               bytes_written=acc, remaining_capacity=capacity - acc, buffer_size=acc)


# additional behaviour


def test_read_returns_and_pops():
    bs = ByteStream(10)
    bs.write(b"hello")
    assert bs.read(3) == b"hel"
    assert bs.bytes_read() == 3
    assert bs.read(100) == b"lo"
    assert bs.buffer_empty() is True


def test_write_after_end_is_rejected():
    bs = ByteStream(10)
    bs.end_input()
    assert bs.write(b"data") == 0
    assert bs.bytes_written() == 0


def test_pop_more_than_buffered_is_clamped():
    bs = ByteStream(10)
    bs.write(b"ab")
    bs.pop_output(50)
    assert bs.bytes_read() == 2
    assert bs.remaining_capacity() == 10


def test_error_flag():
    bs = ByteStream(4)
    assert bs.error() is False
    bs.set_error()
    assert bs.error() is True


def test_negative_length_rejected():
    bs = ByteStream(4)
    with pytest.raises(ValueError):
        bs.peek_output(-1)


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        ByteStream(-1)