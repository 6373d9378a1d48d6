[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spongenet"
version = "0.1.0"
description = "A small networking stack: byte streams, stream reassembly, ARP-resolving network interfaces, a longest-prefix-match router and a routing simulator"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "networking",
    "arp",
    "ethernet",
    "ipv4",
    "router",
    "reassembly",
    "byte-stream",
    "udp",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
spongenet-simulator = "spongenet.network_simulator:main"
spongenet-bouncer = "spongenet.bouncer:main"
spongenet-tcp = "spongenet.tcp_native:main"

[tool.hatch.build.targets.wheel]
packages = ["spongenet"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
