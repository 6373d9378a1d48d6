"""Ethernet, ARP and IPv4 framing, and a network interface that joins them."""

from __future__ import annotations

import dataclasses
import logging
import struct
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from ipaddress import IPv4Address

_log = logging.getLogger(__name__)

ETHERNET_BROADCAST = b"\xff" * 6
ARP_ENTRY_TTL_MS = 30_000
ARP_REQUEST_TIMEOUT_MS = 5_000
PROTO_TCP = 6

_IPV4_HEADER = struct.Struct("!BBHHHBBH4s4s")
_ARP_MESSAGE = struct.Struct("!HHBBH6s4s6s4s")
_ETHERNET_HEADER = struct.Struct("!6s6sH")
_ARP_HTYPE_ETHERNET = 1


def _check_ethernet_address(address: bytes) -> bytes:
    address = bytes(address)
    if len(address) != 6:
        raise ValueError(f"an Ethernet address has 6 bytes, got {len(address)}")
    return address


def format_ethernet_address(address: bytes) -> str:
    """Render an Ethernet address as colon-separated hex pairs."""
    return ":".join(f"{octet:02x}" for octet in _check_ethernet_address(address))


def _internet_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\0"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


class EtherType(IntEnum):
    IPV4 = 0x0800
    ARP = 0x0806


class ARPOpcode(IntEnum):
    REQUEST = 1
    REPLY = 2


@dataclass
class InternetDatagram:
    """An IPv4 datagram with a header of fixed (20-byte) length."""

    src: IPv4Address = IPv4Address(0)
    dst: IPv4Address = IPv4Address(0)
    payload: bytes = b""
    ttl: int = 64
    proto: int = PROTO_TCP
    tos: int = 0
    ident: int = 0
    df: bool = True
    mf: bool = False
    offset: int = 0

    def __post_init__(self) -> None:
        self.src = IPv4Address(self.src)
        self.dst = IPv4Address(self.dst)
        self.payload = bytes(self.payload)

    @property
    def length(self) -> int:
        return _IPV4_HEADER.size + len(self.payload)

    def _header(self, checksum: int) -> bytes:
        flags_offset = (int(self.df) << 14) | (int(self.mf) << 13) | self.offset
        return _IPV4_HEADER.pack(
            0x45,
            self.tos,
            self.length,
            self.ident,
            flags_offset,
            self.ttl,
            self.proto,
            checksum,
            self.src.packed,
            self.dst.packed,
        )

    def serialize(self) -> bytes:
        if self.length > 0xFFFF:
            raise ValueError("IPv4 datagram too long")
        if not 0 <= self.ttl <= 0xFF:
            raise ValueError(f"invalid TTL {self.ttl}")
        checksum = _internet_checksum(self._header(0))
        return self._header(checksum) + self.payload

    @classmethod
    def parse(cls, data: bytes) -> InternetDatagram:
        """Parse a datagram, raising ValueError if it is malformed."""
        data = bytes(data)
        if len(data) < _IPV4_HEADER.size:
            raise ValueError("truncated IPv4 header")
        (vihl, tos, total, ident, flags_offset, ttl, proto, _, src, dst) = _IPV4_HEADER.unpack_from(data)
        if vihl >> 4 != 4:
            raise ValueError("not an IPv4 datagram")
        header_length = (vihl & 0x0F) * 4
        if header_length < _IPV4_HEADER.size or header_length > len(data):
            raise ValueError("bad IPv4 header length")
        if total < header_length or total > len(data):
            raise ValueError("bad IPv4 total length")
        if _internet_checksum(data[:header_length]) != 0:
            raise ValueError("bad IPv4 checksum")
        return cls(
            src=IPv4Address(src),
            dst=IPv4Address(dst),
            payload=data[header_length:total],
            ttl=ttl,
            proto=proto,
            tos=tos,
            ident=ident,
            df=bool(flags_offset & 0x4000),
            mf=bool(flags_offset & 0x2000),
            offset=flags_offset & 0x1FFF,
        )

    def summary(self) -> str:
        return (
            f"IPv4, len={self.length}, protocol={self.proto}, ttl={self.ttl}, "
            f"src={self.src}, dst={self.dst}"
        )


@dataclass
class ARPMessage:
    """An ARP message mapping IPv4 addresses to Ethernet addresses."""

    opcode: ARPOpcode
    sender_ethernet_address: bytes
    sender_ip_address: IPv4Address
    target_ethernet_address: bytes = bytes(6)
    target_ip_address: IPv4Address = IPv4Address(0)

    def __post_init__(self) -> None:
        self.opcode = ARPOpcode(self.opcode)
        self.sender_ethernet_address = _check_ethernet_address(self.sender_ethernet_address)
        self.target_ethernet_address = _check_ethernet_address(self.target_ethernet_address)
        self.sender_ip_address = IPv4Address(self.sender_ip_address)
        self.target_ip_address = IPv4Address(self.target_ip_address)

    def serialize(self) -> bytes:
        return _ARP_MESSAGE.pack(
            _ARP_HTYPE_ETHERNET,
            EtherType.IPV4,
            6,
            4,
            self.opcode,
            self.sender_ethernet_address,
            self.sender_ip_address.packed,
            self.target_ethernet_address,
            self.target_ip_address.packed,
        )

    @classmethod
    def parse(cls, data: bytes) -> ARPMessage:
        """Parse an ARP message, raising ValueError if it is malformed or unsupported."""
        data = bytes(data)
        if len(data) < _ARP_MESSAGE.size:
            raise ValueError("truncated ARP message")
        (htype, ptype, hlen, plen, opcode, sha, spa, tha, tpa) = _ARP_MESSAGE.unpack_from(data)
        if htype != _ARP_HTYPE_ETHERNET or ptype != EtherType.IPV4 or hlen != 6 or plen != 4:
            raise ValueError("unsupported ARP message type")
        try:
            op = ARPOpcode(opcode)
        except ValueError:
            raise ValueError(f"unsupported ARP opcode {opcode}") from None
        return cls(op, sha, IPv4Address(spa), tha, IPv4Address(tpa))

    def summary(self) -> str:
        return (
            f"opcode={self.opcode.name}, "
            f"sender={format_ethernet_address(self.sender_ethernet_address)}/{self.sender_ip_address}, "
            f"target={format_ethernet_address(self.target_ethernet_address)}/{self.target_ip_address}"
        )


@dataclass
class EthernetFrame:
    """An Ethernet frame: header plus raw payload."""

    dst: bytes
    src: bytes
    ethertype: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        self.dst = _check_ethernet_address(self.dst)
        self.src = _check_ethernet_address(self.src)
        self.payload = bytes(self.payload)

    def serialize(self) -> bytes:
        return _ETHERNET_HEADER.pack(self.dst, self.src, self.ethertype) + self.payload

    @classmethod
    def parse(cls, data: bytes) -> EthernetFrame:
        """Parse a frame, raising ValueError if it is too short."""
        data = bytes(data)
        if len(data) < _ETHERNET_HEADER.size:
            raise ValueError("truncated Ethernet header")
        dst, src, ethertype = _ETHERNET_HEADER.unpack_from(data)
        return cls(dst, src, ethertype, data[_ETHERNET_HEADER.size :])

    def summary(self) -> str:
        try:
            type_name = EtherType(self.ethertype).name
        except ValueError:
            type_name = f"0x{self.ethertype:04x}"
        text = (
            f"dst={format_ethernet_address(self.dst)}, "
            f"src={format_ethernet_address(self.src)}, type={type_name}"
        )
        if self.ethertype == EtherType.IPV4:
            try:
                text += " " + InternetDatagram.parse(self.payload).summary()
            except ValueError:
                text += " (bad IPv4)"
        elif self.ethertype == EtherType.ARP:
            try:
                text += " " + ARPMessage.parse(self.payload).summary()
            except ValueError:
                text += " (bad ARP)"
        return text


class NetworkInterface:
    """Translates IPv4 datagrams to Ethernet frames and back, resolving hops with ARP.

    Frames to be transmitted are appended to :attr:`frames_out`.
    """

    def __init__(self, ethernet_address: bytes, ip_address: IPv4Address | int | str) -> None:
        self.ethernet_address = _check_ethernet_address(ethernet_address)
        self.ip_address = IPv4Address(ip_address)
        self.frames_out: deque[EthernetFrame] = deque()
        self._timer = 0
        self._arp_table: dict[IPv4Address, tuple[bytes, int]] = {}
        self._pending_requests: dict[IPv4Address, int] = {}
        self._waiting: dict[IPv4Address, list[InternetDatagram]] = {}
        _log.debug(
            "Network interface has Ethernet address %s and IP address %s",
            format_ethernet_address(self.ethernet_address),
            self.ip_address,
        )

    def _emit(self, dst: bytes, ethertype: EtherType, payload: bytes) -> None:
        self.frames_out.append(EthernetFrame(dst, self.ethernet_address, ethertype, payload))

    def _send_arp_request(self, target: IPv4Address) -> None:
        request = ARPMessage(
            ARPOpcode.REQUEST,
            self.ethernet_address,
            self.ip_address,
            bytes(6),
            target,
        )
        self._emit(ETHERNET_BROADCAST, EtherType.ARP, request.serialize())

    def send_datagram(self, dgram: InternetDatagram, next_hop: IPv4Address | int | str) -> None:
        """Send ``dgram`` to ``next_hop``, queueing it behind an ARP request if needed."""
        hop = IPv4Address(next_hop)
        entry = self._arp_table.get(hop)
        if entry is not None:
            self._emit(entry[0], EtherType.IPV4, dgram.serialize())
            return
        self._waiting.setdefault(hop, []).append(dataclasses.replace(dgram))
        if hop not in self._pending_requests:
            self._send_arp_request(hop)
            self._pending_requests[hop] = self._timer

    def recv_frame(self, frame: EthernetFrame) -> InternetDatagram | None:
        """Handle an incoming frame; return the datagram it carries, if any."""
        if frame.dst not in (self.ethernet_address, ETHERNET_BROADCAST):
            return None
        if frame.ethertype == EtherType.IPV4:
            try:
                return InternetDatagram.parse(frame.payload)
            except ValueError:
                return None
        if frame.ethertype != EtherType.ARP:
            return None
        try:
            message = ARPMessage.parse(frame.payload)
        except ValueError:
            return None

        sender = message.sender_ip_address
        self._arp_table[sender] = (message.sender_ethernet_address, self._timer)

        if message.opcode == ARPOpcode.REQUEST and message.target_ip_address == self.ip_address:
            reply = ARPMessage(
                ARPOpcode.REPLY,
                self.ethernet_address,
                self.ip_address,
                message.sender_ethernet_address,
                sender,
            )
            self._emit(message.sender_ethernet_address, EtherType.ARP, reply.serialize())

        self._pending_requests.pop(sender, None)
        for waiting in self._waiting.pop(sender, []):
            self.send_datagram(waiting, sender)
        return None

    def tick(self, ms_since_last_tick: int) -> None:
        """Advance time: expire ARP entries and resend unanswered requests."""
        if ms_since_last_tick < 0:
            raise ValueError("time cannot go backwards")
        self._timer += ms_since_last_tick
        self._arp_table = {
            ip: entry
            for ip, entry in self._arp_table.items()
            if self._timer - entry[1] <= ARP_ENTRY_TTL_MS
        }
        for target, sent_at in self._pending_requests.items():
            if self._timer - sent_at >= ARP_REQUEST_TIMEOUT_MS:
                self._send_arp_request(target)
                self._pending_requests[target] = self._timer