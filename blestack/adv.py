"""Crafting and parsing of advertising packets and scan responses (EIR format)."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Optional

from blestack.uuid import UUID, reverse, uuid16

# Maximum length of an advertising packet or scan response.
MAX_EIR_PACKET_LENGTH = 31

# Advertising flags.
FLAG_LIMITED_DISCOVERABLE = 0x01  # LE Limited Discoverable Mode
FLAG_GENERAL_DISCOVERABLE = 0x02  # LE General Discoverable Mode
FLAG_LE_ONLY = 0x04  # BR/EDR Not Supported
FLAG_BOTH_CONTROLLER = 0x08  # Simultaneous LE and BR/EDR (Controller)
FLAG_BOTH_HOST = 0x10  # Simultaneous LE and BR/EDR (Host)

# Advertising data types.
TYPE_FLAGS = 0x01
TYPE_SOME_UUID16 = 0x02
TYPE_ALL_UUID16 = 0x03
TYPE_SOME_UUID32 = 0x04
TYPE_ALL_UUID32 = 0x05
TYPE_SOME_UUID128 = 0x06
TYPE_ALL_UUID128 = 0x07
TYPE_SHORT_NAME = 0x08
TYPE_COMPLETE_NAME = 0x09
TYPE_TX_POWER = 0x0A
TYPE_CLASS_OF_DEVICE = 0x0D
TYPE_SIMPLE_PAIRING_C192 = 0x0E
TYPE_SIMPLE_PAIRING_R192 = 0x0F
TYPE_SEC_MANAGER_TK = 0x10
TYPE_SEC_MANAGER_OOB = 0x11
TYPE_SLAVE_CONN_INT = 0x12
TYPE_SERVICE_SOL16 = 0x14
TYPE_SERVICE_SOL128 = 0x15
TYPE_SERVICE_DATA16 = 0x16
TYPE_PUB_TARGET_ADDR = 0x17
TYPE_RAND_TARGET_ADDR = 0x18
TYPE_APPEARANCE = 0x19
TYPE_ADV_INTERVAL = 0x1A
TYPE_LE_DEVICE_ADDR = 0x1B
TYPE_LE_ROLE = 0x1C
TYPE_SERVICE_SOL32 = 0x1F
TYPE_SERVICE_DATA32 = 0x20
TYPE_SERVICE_DATA128 = 0x21
TYPE_LE_SEC_CONFIRM = 0x22
TYPE_LE_SEC_RANDOM = 0x23
TYPE_MANUFACTURER_DATA = 0xFF

_APPLE_COMPANY_ID = 0x004C


class InvalidArgumentError(ValueError):
    """An argument given to a field builder is invalid."""

    def __init__(self, message: str = "invalid argument") -> None:
        super().__init__(message)


class NotFitError(ValueError):
    """The data does not fit into the packet."""

    def __init__(self, message: str = "data not fit") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class ServiceData:
    """Data associated with a service UUID in an advertisement."""

    uuid: UUID
    data: bytes


class Packet:
    """An advertising packet or scan response."""

    def __init__(self, data: bytes = b"") -> None:
        self._b = bytearray(data)

    def __bytes__(self) -> bytes:
        return bytes(self._b)

    def __len__(self) -> int:
        return len(self._b)

    def __repr__(self) -> str:
        return f"Packet({bytes(self._b).hex()})"

    def append(self, f: Field) -> None:
        """Append a field; raise NotFitError if it doesn't fit."""
        f(self)

    def _append(self, typ: int, b: bytes) -> None:
        if len(self._b) + 2 + len(b) > MAX_EIR_PACKET_LENGTH:
            raise NotFitError()
        self._b.append(len(b) + 1)
        self._b.append(typ)
        self._b.extend(b)

    def _append_raw(self, b: bytes) -> None:
        if len(self._b) + len(b) > MAX_EIR_PACKET_LENGTH:
            raise NotFitError()
        self._b.extend(b)

    def _iter_fields(self) -> Iterator[tuple[int, bytes]]:
        """Yield (type, data) for each well-formed field, stopping at the first malformed one."""
        b = bytes(self._b)
        while len(b) >= 2:
            length, typ = b[0], b[1]
            if length < 1 or len(b) < 1 + length:
                return
            yield typ, b[2 : 1 + length]
            b = b[1 + length :]

    def field(self, typ: int) -> Optional[bytes]:
        """Return the data of the first field of type typ, or None."""
        return next((data for t, data in self._iter_fields() if t == typ), None)

    def _fields_of(self, typ: int) -> Iterator[bytes]:
        return (data for t, data in self._iter_fields() if t == typ)

    def flags(self) -> Optional[int]:
        """Return the flags, or None if they are not present."""
        b = self.field(TYPE_FLAGS)
        if b is None or len(b) < 3:
            return None
        return b[2]

    def local_name(self) -> str:
        """Return the short name if present, otherwise the complete name, or ""."""
        b = self.field(TYPE_SHORT_NAME)
        if b is None:
            b = self.field(TYPE_COMPLETE_NAME) or b""
        return b.decode("utf-8", errors="replace")

    def tx_power(self) -> Optional[int]:
        """Return the Tx power level, or None if not present."""
        b = self.field(TYPE_TX_POWER)
        if b is None or len(b) < 3:
            return None
        return int.from_bytes(b[2:3], "little", signed=True)

    def uuids(self) -> list[UUID]:
        """Return the service UUIDs from all complete and incomplete lists."""
        u: list[UUID] = []
        for typ, width in (
            (TYPE_SOME_UUID16, 2),
            (TYPE_ALL_UUID16, 2),
            (TYPE_SOME_UUID32, 4),
            (TYPE_ALL_UUID32, 4),
            (TYPE_SOME_UUID128, 16),
            (TYPE_ALL_UUID128, 16),
        ):
            for data in self._fields_of(typ):
                u.extend(_uuid_list(data, width))
        return u

    def service_sol(self) -> list[UUID]:
        """Return the solicited service UUIDs."""
        u: list[UUID] = []
        for typ, width in (
            (TYPE_SERVICE_SOL16, 2),
            (TYPE_SERVICE_SOL32, 16),
            (TYPE_SERVICE_SOL128, 16),
        ):
            b = self.field(typ)
            if b is not None:
                u.extend(_uuid_list(b, width))
        return u

    def service_data(self) -> list[ServiceData]:
        """Return the service data entries."""
        s: list[ServiceData] = []
        for typ, width in (
            (TYPE_SERVICE_DATA16, 2),
            (TYPE_SERVICE_DATA32, 4),
            (TYPE_SERVICE_DATA128, 16),
        ):
            b = self.field(typ)
            if b is not None:
                s.append(_service_data(b, width))
        return s

    def manufacturer_data(self) -> Optional[bytes]:
        """Return the manufacturer specific data, or None."""
        return self.field(TYPE_MANUFACTURER_DATA)


Field = Callable[[Packet], None]


def _uuid_list(d: bytes, width: int) -> list[UUID]:
    return [UUID(d[i : i + width]) for i in range(0, len(d), width)]


def _service_data(d: bytes, width: int) -> ServiceData:
    # The payload is taken from after the first two bytes, sized by the UUID width.
    return ServiceData(uuid=UUID(d[:width]), data=bytes(d[2:][: max(len(d) - width, 0)]))


def new_packet(*fields: Field) -> Packet:
    """Build a packet from fields; raise if one of them doesn't fit."""
    p = Packet()
    for f in fields:
        f(p)
    return p


def new_raw_packet(*chunks: bytes) -> Packet:
    """Build a packet by concatenating raw byte strings."""
    return Packet(b"".join(bytes(c) for c in chunks))


def raw(b: bytes) -> Field:
    """A field that appends raw bytes."""

    def apply(p: Packet) -> None:
        p._append_raw(bytes(b))

    return apply


def ibeacon_data(md: bytes) -> Field:
    """An iBeacon field carrying the given manufacturer data."""
    return manufacturer_data(_APPLE_COMPANY_ID, md)


def ibeacon(u: bytes, major: int, minor: int, pwr: int) -> Field:
    """An iBeacon field built from a 128-bit UUID, major, minor and measured power."""

    def apply(p: Packet) -> None:
        if len(u) != 16:
            raise InvalidArgumentError()
        md = (
            bytes([0x02, 0x15])
            + reverse(u)
            + major.to_bytes(2, "big")
            + minor.to_bytes(2, "big")
            + bytes([pwr & 0xFF])
        )
        manufacturer_data(_APPLE_COMPANY_ID, md)(p)

    return apply


def flags(f: int) -> Field:
    """A flags field."""

    def apply(p: Packet) -> None:
        p._append(TYPE_FLAGS, bytes([f]))

    return apply


def short_name(n: str) -> Field:
    """A shortened local name field."""

    def apply(p: Packet) -> None:
        p._append(TYPE_SHORT_NAME, n.encode("utf-8"))

    return apply


def complete_name(n: str) -> Field:
    """A complete local name field."""

    def apply(p: Packet) -> None:
        p._append(TYPE_COMPLETE_NAME, n.encode("utf-8"))

    return apply


def manufacturer_data(company_id: int, b: bytes) -> Field:
    """A manufacturer specific data field."""

    def apply(p: Packet) -> None:
        p._append(TYPE_MANUFACTURER_DATA, company_id.to_bytes(2, "little") + bytes(b))

    return apply


def _uuid_field(u: bytes, t16: int, t32: int, t128: int) -> Field:
    def apply(p: Packet) -> None:
        if len(u) == 2:
            p._append(t16, bytes(u))
        elif len(u) == 4:
            p._append(t32, bytes(u))
        else:
            p._append(t128, bytes(u))

    return apply


def all_uuid(u: bytes) -> Field:
    """An entry of the complete list of service UUIDs."""
    return _uuid_field(u, TYPE_ALL_UUID16, TYPE_ALL_UUID32, TYPE_ALL_UUID128)


def some_uuid(u: bytes) -> Field:
    """An entry of the incomplete list of service UUIDs."""
    return _uuid_field(u, TYPE_SOME_UUID16, TYPE_SOME_UUID32, TYPE_SOME_UUID128)


def service_data16(service_id: int, b: bytes) -> Field:
    """Service data for a 16-bit service UUID, preceded by the UUID itself."""

    def apply(p: Packet) -> None:
        u = uuid16(service_id)
        p._append(TYPE_ALL_UUID16, bytes(u))
        p._append(TYPE_SERVICE_DATA16, bytes(u) + bytes(b))

    return apply