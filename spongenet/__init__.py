"""A small networking stack: byte streams, stream reassembly, ARP-resolving interfaces, routing and tools."""

__version__ = "0.1.0"

__all__ = [
    "byte_stream",
    "stream_reassembler",
    "network_interface",
    "router",
    "network_simulator",
    "bouncer",
    "stream_copy",
    "tcp_native",
]