"""An Attribute Protocol server serving an attribute database over one connection.

The connection handed to the server must provide ``read()`` (returning the
next ATT PDU, or empty bytes once closed), ``write(b)``, ``close()``, and the
``rx_mtu`` and ``tx_mtu`` attributes, of which ``tx_mtu`` is updated by the
server when the peer exchanges its MTU.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from blestack.attdb import (
    CCC_INDICATE,
    CCC_NOTIFY,
    Attribute,
    AttributeDB,
    Request,
    ResponseWriter,
)
from blestack.attpdu import (
    DEFAULT_MTU,
    EXCHANGE_MTU_REQUEST,
    EXCHANGE_MTU_RESPONSE,
    EXECUTE_WRITE_REQUEST,
    EXECUTE_WRITE_RESPONSE,
    FIND_BY_TYPE_VALUE_REQUEST,
    FIND_BY_TYPE_VALUE_RESPONSE,
    FIND_INFORMATION_REQUEST,
    FIND_INFORMATION_RESPONSE,
    HANDLE_VALUE_CONFIRMATION,
    HANDLE_VALUE_INDICATION,
    HANDLE_VALUE_NOTIFICATION,
    MAX_MTU,
    PREPARE_WRITE_REQUEST,
    PREPARE_WRITE_RESPONSE,
    READ_BLOB_REQUEST,
    READ_BLOB_RESPONSE,
    READ_BY_GROUP_TYPE_REQUEST,
    READ_BY_GROUP_TYPE_RESPONSE,
    READ_BY_TYPE_REQUEST,
    READ_BY_TYPE_RESPONSE,
    READ_REQUEST,
    READ_RESPONSE,
    WRITE_COMMAND,
    WRITE_REQUEST,
    WRITE_RESPONSE,
    AttError,
    SequentialProtocolTimeout,
    error_response,
)
from blestack.uuid import uuid16

log = logging.getLogger(__name__)


def _u16(b: bytes, at: int) -> int:
    return int.from_bytes(b[at : at + 2], "little")


def _le16(v: int) -> bytes:
    return (v & 0xFFFF).to_bytes(2, "little")


@dataclass(eq=False)
class _ServerConn:
    """The connection as seen by attribute handlers, with per-connection CCC state."""

    l2c: Any
    server: "Server"
    cccs: dict[int, int] = field(default_factory=dict)
    notifiers: dict[int, Any] = field(default_factory=dict)
    indicators: dict[int, Any] = field(default_factory=dict)

    def __getattr__(self, name: str) -> Any:
        l2c = self.__dict__.get("l2c")
        if l2c is None or name.startswith("__"):
            raise AttributeError(name)
        return getattr(l2c, name)


_CLOSED = None


class Server:
    """Answers ATT requests from one peer using an attribute database."""

    def __init__(self, db: AttributeDB, l2c: Any, *, confirm_timeout: float = 30.0) -> None:
        mtu = l2c.rx_mtu
        if mtu < DEFAULT_MTU or mtu > MAX_MTU:
            raise ValueError("invalid MTU")
        self.db = db
        self.conn = _ServerConn(l2c, self)
        self.rx_mtu = mtu
        # Only the default ATT_MTU is used until the peer exchanges MTUs.
        self.tx_mtu = DEFAULT_MTU
        self.confirm_timeout = confirm_timeout

        self._notify_lock = threading.Lock()
        self._indicate_lock = threading.Lock()
        self._confirm_lock = threading.Lock()
        self._confirm_waiter: Optional[queue.Queue[bool]] = None
        self._closed = False

        self._prepare_attr: Optional[Attribute] = None
        self._prepare_data = bytearray()

        self._handlers: dict[int, Callable[[bytes], Optional[bytes]]] = {
            EXCHANGE_MTU_REQUEST: self._exchange_mtu,
            FIND_INFORMATION_REQUEST: self._find_information,
            FIND_BY_TYPE_VALUE_REQUEST: self._find_by_type_value,
            READ_BY_TYPE_REQUEST: self._read_by_type,
            READ_REQUEST: self._read,
            READ_BLOB_REQUEST: self._read_blob,
            READ_BY_GROUP_TYPE_REQUEST: self._read_by_group_type,
            WRITE_REQUEST: self._write,
            WRITE_COMMAND: self._write_command,
            PREPARE_WRITE_REQUEST: self._prepare_write,
            EXECUTE_WRITE_REQUEST: self._execute_write,
        }

    # Outgoing notifications and indications.

    def notify(self, handle: int, data: bytes) -> Any:
        """Send a notification of handle's value, truncated to fit the MTU."""
        with self._notify_lock:
            value = bytes(data)[: self.tx_mtu - 3]
            pdu = bytes([HANDLE_VALUE_NOTIFICATION]) + _le16(handle) + value
            return self.conn.l2c.write(pdu)

    def indicate(self, handle: int, data: bytes) -> Any:
        """Send an indication and wait for the peer's confirmation."""
        with self._indicate_lock:
            waiter: queue.Queue[bool] = queue.Queue(maxsize=1)
            with self._confirm_lock:
                if self._closed:
                    raise BrokenPipeError("connection closed")
                self._confirm_waiter = waiter
            try:
                value = bytes(data)[: self.tx_mtu - 3]
                pdu = bytes([HANDLE_VALUE_INDICATION]) + _le16(handle) + value
                n = self.conn.l2c.write(pdu)
                try:
                    confirmed = waiter.get(timeout=self.confirm_timeout)
                except queue.Empty:
                    raise SequentialProtocolTimeout() from None
            finally:
                with self._confirm_lock:
                    self._confirm_waiter = None
            if not confirmed:
                raise BrokenPipeError("connection closed")
            return n

    def _deliver_confirmation(self) -> None:
        with self._confirm_lock:
            waiter = self._confirm_waiter
            if waiter is None:
                log.error("received a spurious confirmation")
                return
            try:
                waiter.put_nowait(True)
            except queue.Full:
                log.error("received a spurious confirmation")

    def _close_confirmations(self) -> None:
        with self._confirm_lock:
            self._closed = True
            if self._confirm_waiter is not None:
                try:
                    self._confirm_waiter.put_nowait(False)
                except queue.Full:
                    pass

    # The request loop.

    def loop(self) -> None:
        """Serve requests until the connection closes, then release subscriptions."""
        requests: queue.Queue[Optional[bytes]] = queue.Queue(maxsize=1)

        def reader() -> None:
            while True:
                try:
                    b = self.conn.l2c.read()
                except (OSError, EOFError):
                    b = b""
                if not b:
                    requests.put(_CLOSED)
                    self._close_confirmations()
                    try:
                        self.conn.l2c.close()
                    except OSError:
                        pass
                    return
                if b[0] == HANDLE_VALUE_CONFIRMATION:
                    self._deliver_confirmation()
                    continue
                requests.put(bytes(b))

        threading.Thread(target=reader, daemon=True).start()
        for req in iter(requests.get, _CLOSED):
            rsp = self.handle_request(req)
            if rsp:
                self.conn.l2c.write(rsp)

        for h, ccc in list(self.conn.cccs.items()):
            if ccc:
                log.info("cleanup ccc 0x%02X of handle 0x%04X", ccc, h)
            if ccc & CCC_INDICATE:
                n = self.conn.indicators.get(h)
                if n is not None:
                    n.close()
            if ccc & CCC_NOTIFY:
                n = self.conn.notifiers.get(h)
                if n is not None:
                    n.close()

    def handle_request(self, b: bytes) -> Optional[bytes]:
        """Answer one request PDU; None means no response is to be sent."""
        b = bytes(b)
        if not b:
            return None
        log.debug("req %s", b.hex(" ").upper())
        handler = self._handlers.get(b[0])
        if handler is None:
            rsp: Optional[bytes] = error_response(b[0], 0x0000, AttError.REQUEST_NOT_SUPPORTED)
        else:
            rsp = handler(b)
        if rsp is not None:
            log.debug("rsp %s", rsp.hex(" ").upper())
        return rsp

    # Dispatch to attribute handlers.

    def _handle_att(self, a: Attribute, req: bytes, rsp: ResponseWriter) -> AttError:
        rsp.status = AttError.SUCCESS
        op = req[0]
        if op in (READ_BY_TYPE_REQUEST, READ_REQUEST):
            if a.read_handler is None:
                return AttError.READ_NOT_PERMITTED
            a.read_handler(Request(self.conn, b"", 0), rsp)
        elif op == READ_BLOB_REQUEST:
            if a.read_handler is None:
                return AttError.READ_NOT_PERMITTED
            a.read_handler(Request(self.conn, b"", _u16(req, 3)), rsp)
        elif op == PREPARE_WRITE_REQUEST:
            if a.write_handler is None:
                return AttError.WRITE_NOT_PERMITTED
            if self._prepare_attr is None:
                self._prepare_attr = a
                self._prepare_data.clear()
            self._prepare_data += req[5:]
        elif op == EXECUTE_WRITE_REQUEST:
            if a.write_handler is None:
                return AttError.WRITE_NOT_PERMITTED
            a.write_handler(Request(self.conn, bytes(self._prepare_data), 0), rsp)
            self._prepare_attr = None
        elif op in (WRITE_REQUEST, WRITE_COMMAND):
            if a.write_handler is None:
                return AttError.WRITE_NOT_PERMITTED
            a.write_handler(Request(self.conn, req[3:], 0), rsp)
        else:
            return AttError.REQUEST_NOT_SUPPORTED
        return AttError(int(rsp.status)) if int(rsp.status) in AttError._value2member_map_ else rsp.status

    @staticmethod
    def _bad_range(r: bytes) -> Optional[bytes]:
        start, end = _u16(r, 1), _u16(r, 3)
        if start == 0 or start > end:
            return error_response(r[0], start, AttError.INVALID_HANDLE)
        return None

    # Individual requests.

    def _exchange_mtu(self, r: bytes) -> bytes:
        if len(r) != 3 or _u16(r, 1) < DEFAULT_MTU:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        tx_mtu = _u16(r, 1)
        self.conn.l2c.tx_mtu = tx_mtu
        rsp = bytes([EXCHANGE_MTU_RESPONSE]) + _le16(self.rx_mtu)
        # The new MTU applies after this response.
        self.tx_mtu = tx_mtu
        return rsp

    def _find_information(self, r: bytes) -> bytes:
        if len(r) != 5:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        bad = self._bad_range(r)
        if bad is not None:
            return bad
        start, end = _u16(r, 1), _u16(r, 3)
        cap = self.tx_mtu - 2
        fmt = 0
        buf = bytearray()
        for a in self.db.subrange(start, end):
            if fmt == 0:
                fmt = 0x02 if len(a.typ) == 16 else 0x01
            if fmt == 0x01 and len(a.typ) != 2:
                break
            if fmt == 0x02 and len(a.typ) != 16:
                break
            if len(buf) + 2 + len(a.typ) > cap:
                break
            buf += _le16(a.handle) + bytes(a.typ)
        if fmt == 0:
            return error_response(r[0], start, AttError.ATTRIBUTE_NOT_FOUND)
        return bytes([FIND_INFORMATION_RESPONSE, fmt]) + bytes(buf)

    def _find_by_type_value(self, r: bytes) -> bytes:
        if len(r) < 7:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        bad = self._bad_range(r)
        if bad is not None:
            return bad
        start, end = _u16(r, 1), _u16(r, 3)
        typ = bytes(uuid16(_u16(r, 5)))
        wanted = r[7:]
        cap = self.tx_mtu - 1
        buf = bytearray()
        for a in self.db.subrange(start, end):
            if bytes(a.typ) != typ:
                continue
            v, starth, endh = a.value, a.handle, a.end_handle
            if v is None:
                limit = self.tx_mtu - 7
                rsp = ResponseWriter(limit + 1)
                e = self._handle_att(a, r, rsp)
                if e != AttError.SUCCESS or len(rsp) > limit:
                    return error_response(r[0], start, AttError.INVALID_HANDLE)
                v = rsp.value
                endh = a.handle
            if bytes(v) != wanted:
                continue
            if len(buf) + 4 > cap:
                break
            buf += _le16(starth) + _le16(endh)
        if not buf:
            return error_response(r[0], start, AttError.ATTRIBUTE_NOT_FOUND)
        return bytes([FIND_BY_TYPE_VALUE_RESPONSE]) + bytes(buf)

    def _read_by_type(self, r: bytes) -> bytes:
        if len(r) not in (7, 21):
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        bad = self._bad_range(r)
        if bad is not None:
            return bad
        start, end = _u16(r, 1), _u16(r, 3)
        typ = r[5:]
        cap = self.tx_mtu - 2
        buf = bytearray()
        dlen = 0
        for a in self.db.subrange(start, end):
            if bytes(a.typ) != typ:
                continue
            v = a.value
            if v is None:
                rsp = ResponseWriter(cap)
                e = self._handle_att(a, r, rsp)
                if e != AttError.SUCCESS:
                    if dlen == 0:
                        return error_response(r[0], start, e)
                    break
                v = rsp.value
            if dlen == 0:
                dlen = min(2 + len(v), 255, cap)
            elif 2 + len(v) != dlen:
                break
            if len(buf) + dlen > cap:
                break
            buf += _le16(a.handle) + bytes(v[: dlen - 2])
        if dlen == 0:
            return error_response(r[0], start, AttError.ATTRIBUTE_NOT_FOUND)
        return bytes([READ_BY_TYPE_RESPONSE, dlen]) + bytes(buf)

    def _read(self, r: bytes) -> bytes:
        if len(r) != 3:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        handle = _u16(r, 1)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, AttError.INVALID_HANDLE)
        cap = self.tx_mtu - 1
        if a.value is not None:
            return bytes([READ_RESPONSE]) + bytes(a.value[:cap])
        rsp = ResponseWriter(cap)
        e = self._handle_att(a, r, rsp)
        if e != AttError.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes([READ_RESPONSE]) + rsp.value

    def _read_blob(self, r: bytes) -> bytes:
        if len(r) != 5:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        handle, offset = _u16(r, 1), _u16(r, 3)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, AttError.INVALID_HANDLE)
        cap = self.tx_mtu - 1
        if a.value is not None:
            if offset > len(a.value):
                return error_response(r[0], handle, AttError.INVALID_OFFSET)
            return bytes([READ_BLOB_RESPONSE]) + bytes(a.value[offset : offset + cap])
        rsp = ResponseWriter(cap)
        e = self._handle_att(a, r, rsp)
        if e != AttError.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes([READ_BLOB_RESPONSE]) + rsp.value

    def _read_by_group_type(self, r: bytes) -> bytes:
        if len(r) not in (7, 21):
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        bad = self._bad_range(r)
        if bad is not None:
            return bad
        start, end = _u16(r, 1), _u16(r, 3)
        cap = self.tx_mtu - 2
        buf = bytearray()
        dlen = 0
        for a in self.db.subrange(start, end):
            v = a.value
            if v is None:
                rsp = ResponseWriter(max(cap - len(buf) - 4, 0))
                e = self._handle_att(a, r, rsp)
                if e != AttError.SUCCESS:
                    return error_response(r[0], start, e)
                v = rsp.value
            if dlen == 0:
                dlen = min(4 + len(v), 255, cap)
            elif 4 + len(v) != dlen:
                break
            if len(buf) + dlen > cap:
                break
            buf += _le16(a.handle) + _le16(a.end_handle) + bytes(v[: dlen - 4])
        if dlen == 0:
            return error_response(r[0], start, AttError.ATTRIBUTE_NOT_FOUND)
        return bytes([READ_BY_GROUP_TYPE_RESPONSE, dlen]) + bytes(buf)

    def _write(self, r: bytes) -> bytes:
        if len(r) < 3:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        handle = _u16(r, 1)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, AttError.INVALID_HANDLE)
        e = self._handle_att(a, r, ResponseWriter())
        if e != AttError.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes([WRITE_RESPONSE])

    def _prepare_write(self, r: bytes) -> bytes:
        if len(r) < 5:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        handle = _u16(r, 1)
        a = self.db.at(handle)
        if a is None:
            return error_response(r[0], handle, AttError.INVALID_HANDLE)
        e = self._handle_att(a, r, ResponseWriter())
        if e != AttError.SUCCESS:
            return error_response(r[0], handle, e)
        return bytes([PREPARE_WRITE_RESPONSE]) + r[1:]

    def _execute_write(self, r: bytes) -> bytes:
        if len(r) < 2:
            return error_response(r[0], 0x0000, AttError.INVALID_PDU)
        flags = r[1]
        if flags == 0:
            self._prepare_attr = None
        elif flags == 1 and self._prepare_attr is not None:
            e = self._handle_att(self._prepare_attr, r, ResponseWriter())
            if e != AttError.SUCCESS:
                return error_response(r[0], 0, e)
        return bytes([EXECUTE_WRITE_RESPONSE])

    def _write_command(self, r: bytes) -> None:
        if len(r) <= 3:
            return None
        a = self.db.at(_u16(r, 1))
        if a is None:
            return None
        self._handle_att(a, r, ResponseWriter(0))
        return None