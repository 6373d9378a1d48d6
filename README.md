# spongenet

A compact networking stack in pure Python, built from pieces that a TCP/IP
implementation is made of, plus three small command-line tools.

## Modules

- **`spongenet.byte_stream.ByteStream`**: a flow-controlled, in-order byte
  stream with a fixed capacity. `write` accepts as many bytes as fit and
  returns how many it took; `peek_output`, `pop_output` and `read` work on the
  front of the buffer; `end_input` ends the stream, and `eof` is true once the
  input has ended and the buffer is drained. `bytes_written`, `bytes_read`,
  `buffer_size`, `remaining_capacity` and an error flag (`set_error`,
  `error`) complete the interface. Negative lengths raise `ValueError`.
- **`spongenet.stream_reassembler.StreamReassembler`**: accepts indexed
  substrings of a stream, possibly out of order and overlapping, stores them
  without duplication, and writes each newly contiguous run into its output
  `ByteStream` (`stream_out()`). Bytes beyond the capacity window are
  discarded. `unassembled_bytes()` and `empty()` report what is still
  waiting.
- **`spongenet.network_interface`**: Ethernet, ARP and IPv4 framing
  (`EthernetFrame`, `ARPMessage`, `InternetDatagram`, each with `serialize`,
  a `parse` classmethod that raises `ValueError` on malformed input, and
  `summary`), the `EtherType` and `ARPOpcode` enums,
  `format_ethernet_address`, and **`NetworkInterface`**. The interface wraps
  datagrams in Ethernet frames, resolves next-hop addresses with ARP (caching
  mappings for 30 seconds and repeating unanswered requests every 5 seconds,
  driven by `tick`), queues datagrams while a lookup is pending, and answers
  ARP requests for its own address. Outgoing frames collect on the
  `frames_out` deque; `recv_frame` returns the IPv4 datagram a frame carries,
  or `None`.
- **`spongenet.router`**: `AsyncNetworkInterface`, which queues received
  datagrams on `datagrams_out` instead of returning them; `Route`, a
  forwarding rule with a `matches` test; and **`Router`**, which forwards
  datagrams by longest-prefix match, decrementing the TTL and dropping
  datagrams whose TTL runs out or that match no route.
- **`spongenet.network_simulator`**: `Host`, `Network` and `run_simulation`,
  a simulated network used to check routing end to end.
- **`spongenet.bouncer.Bouncer`**: a UDP relay between paired ports.
- **`spongenet.stream_copy.bidirectional_stream_copy`**: copies a source to
  a socket and the socket to a sink (standard input and output by default)
  until both directions have ended.
- **`spongenet.tcp_native.open_socket`**: connects to, or accepts one
  connection on, a TCP address.

IPv4 addresses may be given as `ipaddress.IPv4Address`, integers or strings;
Ethernet addresses are 6-byte `bytes` values.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Using the library

```python
from spongenet.byte_stream import ByteStream
from spongenet.stream_reassembler import StreamReassembler

stream = ByteStream(2)
stream.write(b"cat")         # 2: only what fits is accepted
stream.peek_output(2)        # b"ca"
stream.pop_output(1)
stream.remaining_capacity()  # 1

reassembler = StreamReassembler(64)
reassembler.push_substring(b"world", 5, True)
reassembler.unassembled_bytes()    # 5: waiting for bytes 0..4
reassembler.push_substring(b"hello", 0, False)
reassembler.stream_out().read(10)  # b"helloworld"
reassembler.stream_out().eof()     # True
```

A router is assembled by adding interfaces (`Router.add_interface` returns
each interface's index) and routes
(`Router.add_route(route_prefix, prefix_length, next_hop, interface_num)`,
with `next_hop` set to `None` for directly attached networks). Calling
`Router.route()` forwards every datagram the interfaces have received;
outgoing Ethernet frames collect on each interface's `frames_out`.

## Commands

### `spongenet-simulator`

Builds a simulated network of one router with several attached networks and
hosts, sends datagrams between them, and checks that each arrives exactly
where longest-prefix routing says it should, including TTL expiry. It exits
with status 1 and an error message if any datagram goes astray.

```
spongenet-simulator [--seed N] [-v]
```

`--seed` fixes the random Ethernet addresses and payloads; `-v` logs every
frame carried across a link.

### `spongenet-bouncer`

A UDP relay. It binds pairs of neighbouring UDP ports, learns the address of
whoever last sent to each port of a pair, and forwards every non-empty
datagram received on one port of the pair to the peer learned on the other.
By default it binds every port from 1024 up to 64001 on `0.0.0.0`.

```
spongenet-bouncer [--first-port N] [--last-port N] [--host ADDR]
```

### `spongenet-tcp`

Connects standard input and standard output to a TCP connection, copying in
both directions until both sides are finished. As a client it connects to
`<host> <port>`; with `-l` it listens on `<host> <port>` and accepts exactly
one connection.

```
spongenet-tcp <host> <port>
spongenet-tcp -l <host> <port>
```

## What is not included

The package has no TCP implementation of its own: there is no TCP sender,
receiver or connection state machine, and no TCP or IPv4 header handling
beyond the IPv4 datagram framing above. `spongenet-tcp` uses the operating
system's TCP sockets. Nothing here reads from or writes to real Ethernet,
TUN or TAP devices; the network interfaces and the router exchange frames
only in memory, as the simulator does.