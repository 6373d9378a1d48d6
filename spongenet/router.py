"""A longest-prefix-match IPv4 router over several network interfaces."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from ipaddress import IPv4Address

from spongenet.network_interface import EthernetFrame, InternetDatagram, NetworkInterface

_log = logging.getLogger(__name__)


class AsyncNetworkInterface(NetworkInterface):
    """A network interface that stores received datagrams in :attr:`datagrams_out`."""

    def __init__(self, ethernet_address: bytes, ip_address: IPv4Address | int | str) -> None:
        super().__init__(ethernet_address, ip_address)
        self.datagrams_out: deque[InternetDatagram] = deque()

    def recv_frame(self, frame: EthernetFrame) -> None:  # type: ignore[override]
        """Handle a frame, queueing any datagram it carries instead of returning it."""
        dgram = super().recv_frame(frame)
        if dgram is not None:
            self.datagrams_out.append(dgram)


@dataclass(frozen=True)
class Route:
    """A forwarding rule: datagrams matching the prefix leave on ``interface_num``."""

    prefix: IPv4Address
    prefix_length: int
    next_hop: IPv4Address | None
    interface_num: int

    def __post_init__(self) -> None:
        if not 0 <= self.prefix_length <= 32:
            raise ValueError(f"prefix length must be between 0 and 32, got {self.prefix_length}")
        object.__setattr__(self, "prefix", IPv4Address(self.prefix))
        if self.next_hop is not None:
            object.__setattr__(self, "next_hop", IPv4Address(self.next_hop))

    def matches(self, address: IPv4Address | int | str) -> bool:
        """True if the high ``prefix_length`` bits of ``address`` equal the prefix's."""
        if self.prefix_length == 0:
            return True
        shift = 32 - self.prefix_length
        return int(IPv4Address(address)) >> shift == int(self.prefix) >> shift


class Router:
    """Routes datagrams between interfaces by longest matching prefix."""

    def __init__(self) -> None:
        self._interfaces: list[AsyncNetworkInterface] = []
        self._routes: list[Route] = []

    def add_interface(self, interface: AsyncNetworkInterface) -> int:
        """Add an interface and return its index."""
        self._interfaces.append(interface)
        return len(self._interfaces) - 1

    def interface(self, n: int) -> AsyncNetworkInterface:
        if n < 0:
            raise IndexError(f"no interface {n}")
        return self._interfaces[n]

    def add_route(
        self,
        route_prefix: IPv4Address | int | str,
        prefix_length: int,
        next_hop: IPv4Address | int | str | None,
        interface_num: int,
    ) -> None:
        """Add a forwarding rule; a ``next_hop`` of None means directly attached."""
        route = Route(IPv4Address(route_prefix), prefix_length, next_hop, interface_num)
        _log.debug(
            "adding route %s/%d => %s on interface %d",
            route.prefix,
            route.prefix_length,
            route.next_hop if route.next_hop is not None else "(direct)",
            route.interface_num,
        )
        self._routes.append(route)

    def route_one_datagram(self, dgram: InternetDatagram) -> None:
        """Forward one datagram, or drop it if no route matches or its TTL runs out."""
        matching = [route for route in self._routes if route.matches(dgram.dst)]
        if not matching:
            return
        best = max(matching, key=lambda route: route.prefix_length)
        if dgram.ttl == 0:
            return
        dgram.ttl -= 1
        if dgram.ttl == 0:
            return
        next_hop = best.next_hop if best.next_hop is not None else dgram.dst
        self.interface(best.interface_num).send_datagram(dgram, next_hop)

    def route(self) -> None:
        """Route every datagram waiting on every interface."""
        for interface in self._interfaces:
            while interface.datagrams_out:
                self.route_one_datagram(interface.datagrams_out.popleft())