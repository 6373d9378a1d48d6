"""A simulated network of hosts joined by one router, checking routing end to end."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import random
import sys
from ipaddress import IPv4Address

from spongenet.network_interface import EthernetFrame, InternetDatagram
from spongenet.router import AsyncNetworkInterface, Router

_log = logging.getLogger(__name__)

GREEN = "\033[32;1m"
RED = "\033[31;1m"
NORMAL = "\033[m"

SIMULATION_ROUNDS = 256


class SimulationError(RuntimeError):
    """Raised when a host receives a datagram it did not expect, or misses one."""


def _random_octets(rng: random.Random, count: int) -> bytearray:
    return bytearray(rng.getrandbits(8) for _ in range(count))


def random_host_ethernet_address(rng: random.Random | None = None) -> bytes:
    """A random, locally administered, unicast Ethernet address."""
    rng = rng if rng is not None else random.Random()
    octets = _random_octets(rng, 6)
    octets[0] = (octets[0] | 0x02) & 0xFE
    return bytes(octets)


def random_router_ethernet_address(rng: random.Random | None = None) -> bytes:
    """A random Ethernet address beginning with 02:00:00."""
    rng = rng if rng is not None else random.Random()
    return bytes((0x02, 0x00, 0x00)) + bytes(_random_octets(rng, 3))


def _payload_text(dgram: InternetDatagram) -> str:
    return dgram.payload.decode("utf-8", errors="replace")


class Host:
    """An end host with one interface, which records the datagrams it expects."""

    def __init__(
        self,
        name: str,
        address: IPv4Address | int | str,
        next_hop: IPv4Address | int | str,
        rng: random.Random | None = None,
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self.name = name
        self.address = IPv4Address(address)
        self.next_hop = IPv4Address(next_hop)
        self.interface = AsyncNetworkInterface(random_host_ethernet_address(self._rng), self.address)
        self._expected: list[InternetDatagram] = []

    def send_to(self, destination: IPv4Address | int | str, ttl: int = 64) -> InternetDatagram:
        """Send a datagram with a random payload to ``destination`` and return it."""
        dgram = InternetDatagram(
            src=self.address,
            dst=IPv4Address(destination),
            payload=f"random payload: {{{self._rng.getrandbits(32)}}}".encode(),
            ttl=ttl,
        )
        self.interface.send_datagram(dgram, self.next_hop)
        _log.info(
            'Host %s trying to send datagram (with next hop = %s): %s payload="%s"',
            self.name,
            self.next_hop,
            dgram.summary(),
            _payload_text(dgram),
        )
        return dgram

    def expect(self, expected: InternetDatagram) -> None:
        """Record that ``expected`` should arrive at this host."""
        self._expected.append(dataclasses.replace(expected))

    def _take_expectation(self, received: InternetDatagram) -> bool:
        wire = received.serialize()
        match = next((e for e in self._expected if e.serialize() == wire), None)
        if match is None:
            return False
        self._expected.remove(match)
        return True

    def check(self) -> None:
        """Consume received datagrams, raising SimulationError on any mismatch."""
        queue = self.interface.datagrams_out
        while queue:
            received = queue[0]
            if not self._take_expectation(received):
                raise SimulationError(
                    f"Host {self.name} received unexpected Internet datagram: "
                    f'{received.summary()} payload="{_payload_text(received)}"'
                )
            queue.popleft()
        if self._expected:
            missing = self._expected[0]
            raise SimulationError(
                f"Host {self.name} did NOT receive an expected Internet datagram: "
                f'{missing.summary()} payload="{_payload_text(missing)}"'
            )


class Network:
    """A router with seven interfaces and the hosts attached to some of them."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()
        self.router = Router()

        def add(ip: str) -> int:
            return self.router.add_interface(
                AsyncNetworkInterface(random_router_ethernet_address(self._rng), ip)
            )

        self._default_id = add("171.67.76.46")
        self._eth0_id = add("10.0.0.1")
        self._eth1_id = add("172.16.0.1")
        self._eth2_id = add("192.168.0.1")
        self._uun3_id = add("198.178.229.1")
        self._hs4_id = add("143.195.0.2")
        self._mit5_id = add("128.30.76.255")

        self._hosts: dict[str, Host] = {}
        for name, address, next_hop in (
            ("applesauce", "10.0.0.2", "10.0.0.1"),
            ("default_router", "171.67.76.1", "0.0.0.0"),
            ("cherrypie", "192.168.0.2", "192.168.0.1"),
            ("hs_router", "143.195.0.1", "0.0.0.0"),
            ("dm42", "198.178.229.42", "198.178.229.1"),
            ("dm43", "198.178.229.43", "198.178.229.1"),
        ):
            self._hosts[name] = Host(name, address, next_hop, self._rng)

        default_router = self.host("default_router").address
        hs_router = self.host("hs_router").address
        self.router.add_route("0.0.0.0", 0, default_router, self._default_id)
        self.router.add_route("10.0.0.0", 8, None, self._eth0_id)
        self.router.add_route("172.16.0.0", 16, None, self._eth1_id)
        self.router.add_route("192.168.0.0", 24, None, self._eth2_id)
        self.router.add_route("198.178.229.0", 24, None, self._uun3_id)
        self.router.add_route("143.195.0.0", 17, hs_router, self._hs4_id)
        self.router.add_route("143.195.128.0", 18, hs_router, self._hs4_id)
        self.router.add_route("143.195.192.0", 19, hs_router, self._hs4_id)
        self.router.add_route("128.30.76.255", 16, "128.30.0.1", self._mit5_id)

    def host(self, name: str) -> Host:
        """Look up a host by name."""
        try:
            return self._hosts[name]
        except KeyError:
            raise SimulationError(f"unknown host: {name}") from None

    @staticmethod
    def _deliver(src_name: str, frames: list[EthernetFrame], dst_name: str, dst: AsyncNetworkInterface) -> None:
        for frame in frames:
            on_wire = EthernetFrame.parse(frame.serialize())
            _log.debug("Transferring frame from %s to %s: %s", src_name, dst_name, on_wire.summary())
            dst.recv_frame(on_wire)

    def _exchange_frames(self, *ends: tuple[str, AsyncNetworkInterface]) -> None:
        """Deliver every pending frame on a shared link to every other end of it."""
        snapshots = [list(interface.frames_out) for _, interface in ends]
        for (src_name, _), frames in zip(ends, snapshots):
            for dst_name, dst in ends:
                if dst_name != src_name:
                    self._deliver(src_name, frames, dst_name, dst)
        for (_, interface), frames in zip(ends, snapshots):
            for _ in frames:
                interface.frames_out.popleft()

    def simulate_physical_connections(self) -> None:
        """Carry frames across every link between the router and the hosts."""
        router = self.router
        self._exchange_frames(
            ("router.default", router.interface(self._default_id)),
            ("default_router", self.host("default_router").interface),
        )
        self._exchange_frames(
            ("router.eth0", router.interface(self._eth0_id)),
            ("applesauce", self.host("applesauce").interface),
        )
        self._exchange_frames(
            ("router.eth2", router.interface(self._eth2_id)),
            ("cherrypie", self.host("cherrypie").interface),
        )
        self._exchange_frames(
            ("router.hs4", router.interface(self._hs4_id)),
            ("hs_router", self.host("hs_router").interface),
        )
        self._exchange_frames(
            ("router.uun3", router.interface(self._uun3_id)),
            ("dm42", self.host("dm42").interface),
            ("dm43", self.host("dm43").interface),
        )

    def simulate(self) -> None:
        """Run the network for a while, then check every host got what it expected."""
        for _ in range(SIMULATION_ROUNDS):
            self.router.route()
            self.simulate_physical_connections()
        for host in self._hosts.values():
            host.check()


def _announce(text: str) -> None:
    print(f"{GREEN}\n\n{text}{NORMAL}\n")


def _deliver_one(network: Network, sender: str, destination: IPv4Address | str, receiver: str) -> None:
    sent = network.host(sender).send_to(destination)
    sent.ttl -= 1
    network.host(receiver).expect(sent)
    network.simulate()


def run_simulation(rng: random.Random | None = None) -> None:
    """Run every routing scenario, raising SimulationError at the first failure."""
    _log.info("Constructing network.")
    network = Network(rng)

    _announce("Testing traffic between two ordinary hosts (applesauce to cherrypie)...")
    _deliver_one(network, "applesauce", network.host("cherrypie").address, "cherrypie")

    _announce("Testing traffic between two ordinary hosts (cherrypie to applesauce)...")
    _deliver_one(network, "cherrypie", network.host("applesauce").address, "applesauce")

    _announce("Success! Testing applesauce sending to the Internet.")
    _deliver_one(network, "applesauce", "1.2.3.4", "default_router")

    _announce("Success! Testing sending to the HS network and Internet.")
    _deliver_one(network, "applesauce", "143.195.131.17", "hs_router")
    _deliver_one(network, "cherrypie", "143.195.193.52", "hs_router")
    _deliver_one(network, "cherrypie", "143.195.223.255", "hs_router")
    _deliver_one(network, "cherrypie", "143.195.224.0", "default_router")

    _announce("Success! Testing two hosts on the same network (dm42 to dm43)...")
    _deliver_one(network, "dm42", network.host("dm43").address, "dm43")

    _announce("Success! Testing TTL expiration...")
    network.host("applesauce").send_to("1.2.3.4", 1)
    network.simulate()
    network.host("applesauce").send_to("1.2.3.4", 0)
    network.simulate()

    print(f"\n\n{GREEN}Congratulations! All datagrams were routed successfully.{NORMAL}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="network-simulator",
        description="Route datagrams through a simulated network and check they arrive.",
    )
    parser.add_argument("--seed", type=int, default=None, help="seed for addresses and payloads")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every frame transferred")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, stream=sys.stderr)
    try:
        run_simulation(random.Random(args.seed))
    except SimulationError as error:
        print("\n\n", file=sys.stderr)
        print(f"{RED}Error: {error}{NORMAL}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())