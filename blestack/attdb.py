"""The attribute database an ATT server serves, built from GATT services.

Requests handed to the read and write handlers of a client characteristic
configuration descriptor carry a connection that provides ``cccs`` (a dict of
characteristic handle to configuration value), ``notifiers`` and
``indicators`` (dicts of characteristic handle to notifier) and ``server``
(an object with ``notify(handle, data)`` and ``indicate(handle, data)``).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

from blestack.attpdu import AttError
from blestack.profile import Characteristic, Descriptor, Property, Service
from blestack.uuid import (
    CHARACTERISTIC_UUID,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
    PRIMARY_SERVICE_UUID,
    UUID,
)

log = logging.getLogger(__name__)

CCC_NOTIFY = 0x0001
CCC_INDICATE = 0x0002

Handler = Callable[..., Any]


@dataclass
class Request:
    """A read or write request handed to an attribute handler."""

    conn: Any
    data: bytes = b""
    offset: int = 0


class ResponseWriter:
    """Collects the value a handler answers with, capped at an optional capacity."""

    def __init__(self, capacity: Optional[int] = None) -> None:
        self.capacity = capacity
        self.status = AttError.SUCCESS
        self._buf = bytearray()

    def write(self, b: bytes) -> int:
        """Append b, truncated to the remaining capacity; return the bytes taken."""
        data = bytes(b)
        if self.capacity is not None:
            data = data[: max(self.capacity - len(self._buf), 0)]
        self._buf += data
        return len(data)

    @property
    def value(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)


@dataclass(eq=False)
class Attribute:
    """A single entry of the attribute table."""

    handle: int
    typ: UUID
    end_handle: int = 0
    value: Optional[bytes] = None
    read_handler: Optional[Handler] = None
    write_handler: Optional[Handler] = None


class _Notifier:
    """Sends notifications or indications until the peer unsubscribes."""

    def __init__(self, send: Callable[[bytes], Any]) -> None:
        self._send = send
        self._done = threading.Event()

    def write(self, b: bytes) -> Any:
        if self._done.is_set():
            raise BrokenPipeError("notifier closed")
        return self._send(bytes(b))

    def close(self) -> None:
        self._done.set()

    @property
    def closed(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until closed or the timeout passes; report whether closed."""
        return self._done.wait(timeout)


def _spawn(handler: Optional[Handler], req: Request, notifier: _Notifier) -> None:
    if handler is not None:
        threading.Thread(target=handler, args=(req, notifier), daemon=True).start()


def new_cccd(c: Characteristic) -> Descriptor:
    """Create the client characteristic configuration descriptor for c."""
    d = Descriptor(CLIENT_CHARACTERISTIC_CONFIG_UUID)

    def read(req: Request, rsp: ResponseWriter) -> None:
        ccc = req.conn.cccs.get(c.handle, 0)
        rsp.write(ccc.to_bytes(2, "little"))

    def write(req: Request, rsp: ResponseWriter) -> None:
        cn = req.conn
        if len(req.data) < 2:
            rsp.status = AttError.INVALID_ATTRIBUTE_VALUE_LENGTH
            return
        old = cn.cccs.get(c.handle, 0)
        ccc = int.from_bytes(req.data[:2], "little")

        old_notify = bool(old & CCC_NOTIFY)
        old_indicate = bool(old & CCC_INDICATE)
        new_notify = bool(ccc & CCC_NOTIFY)
        new_indicate = bool(ccc & CCC_INDICATE)

        if new_notify and not old_notify:
            if not c.property & Property.NOTIFY:
                rsp.status = AttError.UNLIKELY
                return
            n = _Notifier(lambda b: cn.server.notify(c.value_handle, b))
            cn.notifiers[c.handle] = n
            _spawn(c.notify_handler, req, n)
        if not new_notify and old_notify:
            n = cn.notifiers.pop(c.handle, None)
            if n is not None:
                n.close()

        if new_indicate and not old_indicate:
            if not c.property & Property.INDICATE:
                rsp.status = AttError.UNLIKELY
                return
            n = _Notifier(lambda b: cn.server.indicate(c.value_handle, b))
            cn.indicators[c.handle] = n
            _spawn(c.indicate_handler, req, n)
        if not new_indicate and old_indicate:
            n = cn.indicators.pop(c.handle, None)
            if n is not None:
                n.close()

        cn.cccs[c.handle] = ccc

    d.handle_read(read)
    d.handle_write(write)
    return d


def _descriptor_attribute(d: Descriptor, h: int) -> Attribute:
    return Attribute(
        handle=h,
        typ=UUID(d.uuid),
        value=d.value,
        read_handler=d.read_handler,
        write_handler=d.write_handler,
    )


def _characteristic_attributes(c: Characteristic, h: int) -> tuple[int, list[Attribute]]:
    vh = h + 1
    decl = Attribute(
        handle=h,
        typ=CHARACTERISTIC_UUID,
        value=bytes([int(c.property) & 0xFF]) + vh.to_bytes(2, "little") + bytes(c.uuid),
    )
    value_attr = Attribute(
        handle=vh,
        typ=UUID(c.uuid),
        value=c.value,
        read_handler=c.read_handler,
        write_handler=c.write_handler,
    )
    c.handle = h
    c.value_handle = vh
    if c.notify_handler is not None or c.indicate_handler is not None:
        c.cccd = new_cccd(c)
        c.descriptors.append(c.cccd)

    h += 2
    attrs = [decl, value_attr]
    for d in c.descriptors:
        attrs.append(_descriptor_attribute(d, h))
        h += 1
    decl.end_handle = h - 1
    return h, attrs


def _service_attributes(s: Service, h: int) -> tuple[int, list[Attribute]]:
    decl = Attribute(handle=h, typ=PRIMARY_SERVICE_UUID, value=bytes(s.uuid))
    h += 1
    attrs = [decl]
    for c in s.characteristics:
        h, more = _characteristic_attributes(c, h)
        attrs.extend(more)
    decl.end_handle = h - 1
    return h, attrs


def _dump(attrs: Iterable[Attribute]) -> None:
    log.debug("Generating attribute table:")
    log.debug("handle   endh   type")
    for a in attrs:
        if a.value is not None:
            log.debug("0x%04X 0x%04X 0x%s [%s]", a.handle, a.end_handle, a.typ, a.value.hex(" ").upper())
        else:
            log.debug("0x%04X 0x%04X 0x%s", a.handle, a.end_handle, a.typ)


class AttributeDB:
    """A contiguous range of attributes starting at handle base."""

    def __init__(self, services: Iterable[Service] = (), base: int = 1) -> None:
        self.base = base
        self.attrs: list[Attribute] = []
        services = list(services)
        h = base
        for i, s in enumerate(services):
            h, attrs = _service_attributes(s, h)
            if i == len(services) - 1:
                attrs[0].end_handle = 0xFFFF
            self.attrs.extend(attrs)
        _dump(self.attrs)

    def __len__(self) -> int:
        return len(self.attrs)

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self.attrs)

    def at(self, h: int) -> Optional[Attribute]:
        """Return the attribute with handle h, or None if out of range."""
        i = h - self.base
        if 0 <= i < len(self.attrs):
            return self.attrs[i]
        return None

    def subrange(self, start: int, end: int) -> list[Attribute]:
        """Return the attributes with handles in [start, end]; possibly empty."""
        lo = start - self.base
        if lo >= len(self.attrs):
            return []
        lo = max(lo, 0)
        hi = end + 1 - self.base
        if hi < 0:
            return []
        hi = min(hi, len(self.attrs))
        return self.attrs[lo:hi]