import random
from ipaddress import IPv4Address

import pytest

from spongenet.network_simulator import (
    Network,
    SimulationError,
    main,
    random_host_ethernet_address,
    random_router_ethernet_address,
    run_simulation,
)


def _run(network: Network) -> None:
    for _ in range(256):
        network.router.route()
        network.simulate_physical_connections()


@pytest.mark.parametrize("seed", range(20))
def test_host_address_is_private_unicast(seed):
    address = random_host_ethernet_address(random.Random(seed))
    assert len(address) == 6
    assert address[0] & 0x02 == 0x02
    assert address[0] & 0x01 == 0


@pytest.mark.parametrize("seed", range(10))
def test_router_address_prefix(seed):
    address = random_router_ethernet_address(random.Random(seed))
    assert len(address) == 6
    assert address[:3] == b"\x02\x00\x00"


def test_addresses_reproducible_with_seed():
    host_first = random_host_ethernet_address(random.Random(5))
    host_second = random_host_ethernet_address(random.Random(5))
    assert len(host_first) == 6
    assert host_first[0] & 0x03 == 0x02
    assert host_first == host_second

    router_first = random_router_ethernet_address(random.Random(5))
    router_second = random_router_ethernet_address(random.Random(5))
    assert router_first[:3] == b"\x02\x00\x00"
    assert router_first == router_second


def test_datagram_crosses_router_with_ttl_decremented():
    network = Network(random.Random(3))
    sent = network.host("applesauce").send_to(network.host("cherrypie").address)
    original_ttl = sent.ttl
    sent.ttl -= 1
    _run(network)
    received = list(network.host("cherrypie").interface.datagrams_out)
    assert received == [sent]
    assert received[0].ttl == original_ttl - 1


@pytest.mark.parametrize(
    "sender, destination, receiver",
    [
        ("applesauce", "1.2.3.4", "default_router"),
        ("applesauce", "143.195.131.17", "hs_router"),
        ("cherrypie", "143.195.193.52", "hs_router"),
        ("cherrypie", "143.195.223.255", "hs_router"),
        ("cherrypie", "143.195.224.0", "default_router"),
        ("dm42", "198.178.229.43", "dm43"),
    ],
)
def test_longest_prefix_routing(sender, destination, receiver):
    network = Network(random.Random(11))
    network.host(sender).send_to(destination)
    _run(network)
    received = network.host(receiver).interface.datagrams_out
    assert [d.dst for d in received] == [IPv4Address(destination)]


def test_simulate_consumes_expected_datagram():
    network = Network(random.Random(4))
    sent = network.host("cherrypie").send_to(network.host("applesauce").address)
    sent.ttl -= 1
    network.host("applesauce").expect(sent)
    network.simulate()
    assert len(network.host("applesauce").interface.datagrams_out) == 0


def test_unexpected_datagram_raises():
    network = Network(random.Random(6))
    network.host("applesauce").send_to(network.host("cherrypie").address)
    with pytest.raises(SimulationError, match="received unexpected"):
        network.simulate()


def test_wrong_ttl_expectation_raises():
    network = Network(random.Random(7))
    sent = network.host("applesauce").send_to(network.host("cherrypie").address)
    network.host("cherrypie").expect(sent)
    with pytest.raises(SimulationError, match="cherrypie"):
        network.simulate()


def test_missing_datagram_raises():
    network = Network(random.Random(8))
    sent = network.host("applesauce").send_to(network.host("cherrypie").address)
    sent.ttl -= 1
    network.host("dm43").expect(sent)
    with pytest.raises(SimulationError):
        network.simulate()


@pytest.mark.parametrize("ttl", [0, 1])
def test_expiring_ttl_is_dropped(ttl):
    network = Network(random.Random(9))
    network.host("applesauce").send_to("1.2.3.4", ttl)
    _run(network)
    assert len(network.host("default_router").interface.datagrams_out) == 0


def test_unknown_host_raises():
    network = Network(random.Random(1))
    with pytest.raises(SimulationError, match="unknown host: nowhere"):
        network.host("nowhere")


def test_run_simulation_reports_success(capsys):
    run_simulation(random.Random(12))
    assert "Congratulations! All datagrams were routed successfully." in capsys.readouterr().out


def test_main_succeeds(capsys):
    assert main(["--seed", "7"]) == 0
    assert "Congratulations" in capsys.readouterr().out