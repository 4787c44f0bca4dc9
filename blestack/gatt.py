"""GATT client and server built on the Attribute Protocol.

The connection given to a GattClient must provide what the ATT client needs:
``read()``, ``write(b)``, ``rx_mtu`` and ``tx_mtu``. ``close()``,
``read_rssi()`` and ``remote_addr`` are used only by ``cancel_connection``,
``read_rssi`` and ``addr``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

from blestack.attclient import Client as AttClient
from blestack.attdb import CCC_INDICATE, CCC_NOTIFY, AttributeDB
from blestack.attpdu import HANDLE_VALUE_INDICATION, AttError, ATTException
from blestack.profile import Characteristic, Descriptor, Profile, Property, Service
from blestack.uuid import (
    CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    PRIMARY_SERVICE_UUID,
    UUID,
    contains,
    uuid16,
)

log = logging.getLogger(__name__)

DEFAULT_NAME = "Gopher"

GAP_UUID = uuid16(0x1800)
GATT_UUID = uuid16(0x1801)
DEVICE_NAME_UUID = uuid16(0x2A00)
APPEARANCE_UUID = uuid16(0x2A01)
PERIPHERAL_PRIVACY_UUID = uuid16(0x2A02)
RECONNECTION_ADDR_UUID = uuid16(0x2A03)
PREFERRED_PARAMS_UUID = uuid16(0x2A04)
SERVICE_CHANGED_UUID = uuid16(0x2A05)

# Appearance value of a generic computer.
_APPEARANCE_GENERIC_COMPUTER = bytes([0x00, 0x80])
_PREFERRED_PARAMS = bytes([0x06, 0x00, 0x06, 0x00, 0x00, 0x00, 0xD0, 0x07])

NotificationHandler = Callable[[bytes], Any]
NotifyHandler = Callable[[Any, Any], Any]


def _u16(b: bytes, at: int) -> int:
    return int.from_bytes(b[at : at + 2], "little")


def _entries(b: bytes, length: int) -> Iterator[bytes]:
    return (b[off : off + length] for off in range(0, len(b), length))


def _not_found(err: ATTException) -> bool:
    return int(err.code) == AttError.ATTRIBUTE_NOT_FOUND


@dataclass
class _Subscription:
    cccd_handle: int
    ccc: int = 0
    notification_handler: Optional[NotificationHandler] = None
    indication_handler: Optional[NotificationHandler] = None


class GattClient:
    """A GATT client discovering and using the profile of a remote server."""

    def __init__(self, conn: Any, *, request_timeout: float = 30.0) -> None:
        self._lock = threading.RLock()
        self.conn = conn
        self.name = ""
        self._profile: Optional[Profile] = None
        self._subs: dict[int, _Subscription] = {}
        self._ac = AttClient(conn, self, request_timeout=request_timeout)
        threading.Thread(target=self._ac.loop, daemon=True).start()

    @property
    def profile(self) -> Optional[Profile]:
        """The discovered profile, if any."""
        with self._lock:
            return self._profile

    @property
    def addr(self) -> Any:
        """The address of the remote device."""
        with self._lock:
            return self.conn.remote_addr

    def discover_profile(self, force: bool = False) -> Profile:
        """Discover the whole hierarchy of the server, reusing a previous result unless forced."""
        with self._lock:
            if self._profile is not None and not force:
                return self._profile
            services = self.discover_services(None)
            for s in services:
                for c in self.discover_characteristics(None, s):
                    self.discover_descriptors(None, c)
            self._profile = Profile(services=services)
            return self._profile

    def discover_services(self, filter_: Optional[Iterable[UUID]]) -> list[Service]:
        """Find the primary services of the server, keeping only those in filter_ if given."""
        filt = None if filter_ is None else list(filter_)
        with self._lock:
            if self._profile is None:
                self._profile = Profile(services=[])
            services = self._profile.services
            start = 0x0001
            while True:
                try:
                    length, b = self._ac.read_by_group_type(start, 0xFFFF, PRIMARY_SERVICE_UUID)
                except ATTException as err:
                    if _not_found(err):
                        return services
                    raise
                for entry in _entries(b, length):
                    h, endh = _u16(entry, 0), _u16(entry, 2)
                    u = UUID(entry[4:])
                    if filt is None or contains(filt, u):
                        s = Service(u)
                        s.handle = h
                        s.end_handle = endh
                        services.append(s)
                    if endh == 0xFFFF:
                        return services
                    start = endh + 1

    def discover_included_services(self, ss: Optional[Iterable[UUID]], s: Service) -> list[Service]:
        """Included services are not discovered; the result is always empty."""
        with self._lock:
            return []

    def discover_characteristics(
        self, filter_: Optional[Iterable[UUID]], s: Service
    ) -> list[Characteristic]:
        """Find the characteristics within service s."""
        filt = None if filter_ is None else list(filter_)
        with self._lock:
            start = s.handle
            last: Optional[Characteristic] = None
            while start <= s.end_handle:
                try:
                    length, b = self._ac.read_by_type(start, s.end_handle, CHARACTERISTIC_UUID)
                except ATTException as err:
                    if _not_found(err):
                        break
                    raise
                for entry in _entries(b, length):
                    u = UUID(entry[5:])
                    c = Characteristic(u)
                    c.property = Property(entry[2])
                    c.handle = _u16(entry, 0)
                    c.value_handle = _u16(entry, 3)
                    c.end_handle = s.end_handle
                    if filt is None or contains(filt, u):
                        s.characteristics.append(c)
                    if last is not None:
                        last.end_handle = c.handle - 1
                    last = c
                    start = c.value_handle + 1
            return s.characteristics

    def discover_descriptors(
        self, filter_: Optional[Iterable[UUID]], c: Characteristic
    ) -> list[Descriptor]:
        """Find the descriptors within characteristic c."""
        filt = None if filter_ is None else list(filter_)
        with self._lock:
            start = c.value_handle + 1
            while start <= c.end_handle:
                try:
                    fmt, b = self._ac.find_information(start, c.end_handle)
                except ATTException as err:
                    if _not_found(err):
                        break
                    raise
                length = 2 + 16 if fmt == 0x02 else 2 + 2
                for entry in _entries(b, length):
                    h = _u16(entry, 0)
                    u = UUID(entry[2:])
                    d = Descriptor(u)
                    d.handle = h
                    if filt is None or contains(filt, u):
                        c.descriptors.append(d)
                    if u == CLIENT_CHARACTERISTIC_CONFIG_UUID:
                        c.cccd = d
                    start = h + 1
            return c.descriptors

    def read_characteristic(self, c: Characteristic) -> bytes:
        """Read a characteristic value and store it in c."""
        with self._lock:
            val = self._ac.read(c.value_handle)
            c.value = val
            return val

    def read_long_characteristic(self, c: Characteristic) -> bytes:
        """Read a characteristic value longer than the MTU and store it in c."""
        with self._lock:
            buf = bytearray()
            part = self._ac.read(c.value_handle)
            buf += part
            while len(part) >= self.conn.tx_mtu - 1:
                part = self._ac.read_blob(c.value_handle, len(buf))
                buf += part
            c.value = bytes(buf)
            return c.value

    def write_characteristic(self, c: Characteristic, v: bytes, no_rsp: bool = False) -> None:
        """Write a characteristic value, with or without a response."""
        with self._lock:
            if no_rsp:
                self._ac.write_command(c.value_handle, v)
            else:
                self._ac.write(c.value_handle, v)

    def read_descriptor(self, d: Descriptor) -> bytes:
        """Read a descriptor value and store it in d."""
        with self._lock:
            val = self._ac.read(d.handle)
            d.value = val
            return val

    def write_descriptor(self, d: Descriptor, v: bytes) -> None:
        """Write a descriptor value."""
        with self._lock:
            self._ac.write(d.handle, v)

    def read_rssi(self) -> int:
        """The current RSSI of the remote device."""
        with self._lock:
            return self.conn.read_rssi()

    def exchange_mtu(self, mtu: int) -> int:
        """Tell the server our receive MTU and return the server's."""
        with self._lock:
            return self._ac.exchange_mtu(mtu)

    def subscribe(self, c: Characteristic, ind: bool, h: NotificationHandler) -> None:
        """Subscribe to indications (ind true) or notifications of c's value."""
        with self._lock:
            if c.cccd is None:
                raise ValueError("CCCD not found")
            flag = CCC_INDICATE if ind else CCC_NOTIFY
            self._set_handlers(c.cccd.handle, c.value_handle, flag, h)

    def unsubscribe(self, c: Characteristic, ind: bool) -> None:
        """Unsubscribe from indications (ind true) or notifications of c's value."""
        with self._lock:
            if c.cccd is None:
                raise ValueError("CCCD not found")
            flag = CCC_INDICATE if ind else CCC_NOTIFY
            self._set_handlers(c.cccd.handle, c.value_handle, flag, None)

    def _set_handlers(
        self, cccd_handle: int, value_handle: int, flag: int, h: Optional[NotificationHandler]
    ) -> None:
        sub = self._subs.setdefault(value_handle, _Subscription(cccd_handle))
        enabled = bool(sub.ccc & flag)
        if (h is not None) == enabled:
            return
        sub.ccc = sub.ccc | flag if h is not None else sub.ccc & ~flag
        if flag == CCC_NOTIFY:
            sub.notification_handler = h
        else:
            sub.indication_handler = h
        self._ac.write(sub.cccd_handle, sub.ccc.to_bytes(2, "little"))

    def clear_subscriptions(self) -> None:
        """Turn off every notification and indication subscription."""
        with self._lock:
            zero = bytes(2)
            for vh, sub in list(self._subs.items()):
                self._ac.write(sub.cccd_handle, zero)
                del self._subs[vh]

    def cancel_connection(self) -> None:
        """Disconnect."""
        with self._lock:
            self.conn.close()

    def handle_notification(self, req: bytes) -> None:
        """Route a notification or indication PDU to its subscriber."""
        req = bytes(req)
        with self._lock:
            vh = _u16(req, 1)
            sub = self._subs.get(vh)
            if sub is None:
                log.warning("got an unregistered notification for handle 0x%04X", vh)
                return
            if req[0] == HANDLE_VALUE_INDICATION:
                fn = sub.indication_handler
            else:
                fn = sub.notification_handler
            if fn is not None:
                fn(req[3:])


def _default_indication_handler(req: Any, notifier: Any) -> None:
    log.info("service change indications are not sent")
    notifier.wait()
    log.info("service change indication unsubscribed")


def default_services(name: str, handler: Optional[NotifyHandler] = None) -> list[Service]:
    """The GAP and GATT services every server offers."""
    gap = Service(GAP_UUID)
    gap.new_characteristic(DEVICE_NAME_UUID).set_value(name.encode("utf-8"))
    gap.new_characteristic(APPEARANCE_UUID).set_value(_APPEARANCE_GENERIC_COMPUTER)
    gap.new_characteristic(PERIPHERAL_PRIVACY_UUID).set_value(bytes([0x00]))
    gap.new_characteristic(RECONNECTION_ADDR_UUID).set_value(bytes(6))
    gap.new_characteristic(PREFERRED_PARAMS_UUID).set_value(_PREFERRED_PARAMS)

    gatt = Service(GATT_UUID)
    indication_handler = handler if handler is not None else _default_indication_handler
    gatt.new_characteristic(SERVICE_CHANGED_UUID).handle_indicate(indication_handler)
    return [gap, gatt]


class GattServer:
    """Holds the services a device offers and the attribute database built from them."""

    def __init__(self, name: str = DEFAULT_NAME, notify_handler: Optional[NotifyHandler] = None) -> None:
        self.lock = threading.Lock()
        self.name = name
        self.services: list[Service] = default_services(name, notify_handler)
        self.db = AttributeDB(default_services(name), 1)

    def add_service(self, svc: Service) -> None:
        """Add a service and rebuild the database."""
        with self.lock:
            self.services.append(svc)
            self.db = AttributeDB(self.services, 1)

    def remove_all_services(self) -> None:
        """Drop every service but the defaults."""
        with self.lock:
            self.services = default_services(self.name)
            self.db = AttributeDB(self.services, 1)

    def set_services(self, svcs: Iterable[Service]) -> None:
        """Replace all services but the defaults with svcs."""
        with self.lock:
            self.services = default_services(self.name) + list(svcs)
            self.db = AttributeDB(self.services, 1)