"""Views of HCI event packets and the advertisements they report."""

from __future__ import annotations

from typing import Optional

from blestack.adv import Packet, ServiceData, new_raw_packet
from blestack.uuid import UUID

# Advertising report event types.
EVT_TYPE_ADV_IND = 0x00  # Connectable undirected advertising
EVT_TYPE_ADV_DIRECT_IND = 0x01  # Connectable directed advertising
EVT_TYPE_ADV_SCAN_IND = 0x02  # Scannable undirected advertising
EVT_TYPE_ADV_NONCONN_IND = 0x03  # Non connectable undirected advertising
EVT_TYPE_SCAN_RSP = 0x04  # Scan response

ADDRESS_TYPE_PUBLIC = 0x00
ADDRESS_TYPE_RANDOM = 0x01


class CommandComplete(bytes):
    """Parameters of a Command Complete event."""

    @property
    def num_hci_command_packets(self) -> int:
        return self[0]

    @property
    def command_opcode(self) -> int:
        return int.from_bytes(self[1:3], "little")

    @property
    def return_parameters(self) -> bytes:
        return bytes(self[3:])


class NumberOfCompletedPackets(bytes):
    """Parameters of a Number Of Completed Packets event.

    Handles and counts are read interleaved (handle, count, handle, count),
    which is what controllers actually send.
    """

    @property
    def number_of_handles(self) -> int:
        return self[0]

    def connection_handle(self, i: int) -> int:
        return int.from_bytes(self[1 + i * 4 : 3 + i * 4], "little")

    def completed_packets(self, i: int) -> int:
        return int.from_bytes(self[3 + i * 4 : 5 + i * 4], "little")


class LEAdvertisingReport(bytes):
    """An LE Advertising Report subevent, starting with its subevent code."""

    @property
    def subevent_code(self) -> int:
        return self[0]

    @property
    def num_reports(self) -> int:
        return self[1]

    def event_type(self, i: int) -> int:
        return self[2 + i]

    def address_type(self, i: int) -> int:
        return self[2 + self.num_reports + i]

    def address(self, i: int) -> bytes:
        start = 2 + self.num_reports * 2 + 6 * i
        return bytes(self[start : start + 6])

    def length_data(self, i: int) -> int:
        return self[2 + self.num_reports * 8 + i]

    def data(self, i: int) -> bytes:
        start = 2 + self.num_reports * 9 + sum(self.length_data(j) for j in range(i))
        return bytes(self[start : start + self.length_data(i)])

    def rssi(self, i: int) -> int:
        n = self.num_reports
        total = sum(self.length_data(j) for j in range(n))
        b = self[2 + n * 9 + total + i]
        return b - 256 if b >= 128 else b


class Advertisement:
    """One report of an advertising event, optionally joined with its scan response."""

    def __init__(self, report: bytes, index: int) -> None:
        self._report = LEAdvertisingReport(report)
        self._index = index
        self._sr: Optional[Advertisement] = None
        self._packet: Optional[Packet] = None

    def set_scan_response(self, sr: Advertisement) -> None:
        """Associate a scan response with this advertisement."""
        self._sr = sr
        self._packet = None

    def _packets(self) -> Packet:
        if self._packet is None:
            self._packet = new_raw_packet(self.data(), self.scan_response() or b"")
        return self._packet

    def local_name(self) -> str:
        name = self._packets().local_name()
        if name:
            return name
        if self._sr is not None:
            return self._sr.local_name()
        return ""

    def manufacturer_data(self) -> Optional[bytes]:
        return self._packets().manufacturer_data()

    def service_data(self) -> list[ServiceData]:
        return self._packets().service_data()

    def services(self) -> list[UUID]:
        return self._packets().uuids()

    def overflow_service(self) -> list[UUID]:
        return self._packets().uuids()

    def tx_power_level(self) -> int:
        pwr = self._packets().tx_power()
        return 0 if pwr is None else pwr

    def solicited_service(self) -> list[UUID]:
        return self._packets().service_sol()

    def connectable(self) -> bool:
        return self.event_type() in (EVT_TYPE_ADV_DIRECT_IND, EVT_TYPE_ADV_IND)

    def rssi(self) -> int:
        return self._report.rssi(self._index)

    def addr(self) -> str:
        """The peer address in the usual colon-separated, most significant first form."""
        return ":".join(f"{b:02x}" for b in reversed(self._report.address(self._index)))

    def event_type(self) -> int:
        return self._report.event_type(self._index)

    def address_type(self) -> int:
        return self._report.address_type(self._index)

    def data(self) -> bytes:
        return self._report.data(self._index)

    def scan_response(self) -> Optional[bytes]:
        if self._sr is None:
            return None
        return self._sr.data()