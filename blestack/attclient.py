"""An Attribute Protocol client talking to one peer over a connection.

The connection handed to the client must provide ``read()`` (returning the
next ATT PDU, or empty bytes once closed), ``write(b)``, and the ``rx_mtu``
and ``tx_mtu`` attributes, which the client updates as MTUs are exchanged.
Notifications and indications are delivered to a handler object with a
``handle_notification(pdu)`` method.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Optional, Union

from blestack.attpdu import (
    DEFAULT_MTU,
    ERROR_RESPONSE,
    EXCHANGE_MTU_REQUEST,
    EXCHANGE_MTU_RESPONSE,
    EXECUTE_WRITE_REQUEST,
    EXECUTE_WRITE_RESPONSE,
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
    READ_MULTIPLE_REQUEST,
    READ_MULTIPLE_RESPONSE,
    READ_REQUEST,
    READ_RESPONSE,
    SIGNED_WRITE_COMMAND,
    WRITE_COMMAND,
    WRITE_REQUEST,
    WRITE_RESPONSE,
    AttError,
    ATTException,
    InvalidArgumentError,
    InvalidResponseError,
    SequentialProtocolTimeout,
    error_response,
    response_opcode,
)

log = logging.getLogger(__name__)

_WORK_QUEUE_SIZE = 16
_STOP = None


def _le16(v: int) -> bytes:
    return (v & 0xFFFF).to_bytes(2, "little")


def _u16(b: bytes, at: int) -> int:
    return int.from_bytes(b[at : at + 2], "little")


def _check(rsp: bytes, expected: int) -> None:
    """Raise for an error response or a response of the wrong kind."""
    if not rsp:
        raise InvalidResponseError()
    if rsp[0] == ERROR_RESPONSE:
        if len(rsp) == 5:
            raise ATTException(rsp[4])
        raise InvalidResponseError()
    if rsp[0] != expected:
        raise InvalidResponseError()


class Client:
    """Sends ATT requests to the peer and receives its responses and notifications."""

    def __init__(self, l2c: Any, handler: Any = None, *, request_timeout: float = 30.0) -> None:
        self.l2c = l2c
        self.handler = handler
        self.request_timeout = request_timeout
        self._tx_mtu = l2c.tx_mtu
        # Only one transaction (or MTU answer) uses the link at a time.
        self._tx_lock = threading.Lock()
        self._responses: queue.Queue[Union[bytes, BaseException]] = queue.Queue()

    # Requests.

    def exchange_mtu(self, client_rx_mtu: int) -> int:
        """Tell the server our receive MTU and return the server's."""
        if client_rx_mtu < DEFAULT_MTU or client_rx_mtu > MAX_MTU:
            raise InvalidArgumentError()
        with self._tx_lock:
            self.l2c.rx_mtu = client_rx_mtu
            rsp = self._send_req(bytes([EXCHANGE_MTU_REQUEST]) + _le16(client_rx_mtu))
            _check(rsp, EXCHANGE_MTU_RESPONSE)
            if len(rsp) != 3:
                raise InvalidResponseError()
            tx_mtu = _u16(rsp, 1)
            if tx_mtu != self._tx_mtu:
                self.l2c.tx_mtu = tx_mtu
                self._tx_mtu = tx_mtu
            return tx_mtu

    def find_information(self, starth: int, endh: int) -> tuple[int, bytes]:
        """Return the format and information data of attributes in [starth, endh]."""
        if starth == 0 or starth > endh:
            raise InvalidArgumentError()
        with self._tx_lock:
            rsp = self._send_req(
                bytes([FIND_INFORMATION_REQUEST]) + _le16(starth) + _le16(endh)
            )
        _check(rsp, FIND_INFORMATION_RESPONSE)
        if len(rsp) < 6:
            raise InvalidResponseError()
        fmt = rsp[1]
        if fmt == 0x01 and (len(rsp) - 2) % 4 != 0:
            raise InvalidResponseError()
        if fmt == 0x02 and (len(rsp) - 2) % 18 != 0:
            raise InvalidResponseError()
        return fmt, rsp[2:]

    def _read_by(self, op: int, rsp_op: int, starth: int, endh: int, uuid: bytes) -> tuple[int, bytes]:
        uuid = bytes(uuid)
        if starth > endh or len(uuid) not in (2, 16):
            raise InvalidArgumentError()
        with self._tx_lock:
            rsp = self._send_req(bytes([op]) + _le16(starth) + _le16(endh) + uuid)
        _check(rsp, rsp_op)
        if len(rsp) < 4 or rsp[1] == 0 or len(rsp[2:]) % rsp[1] != 0:
            raise InvalidResponseError()
        return rsp[1], rsp[2:]

    def read_by_type(self, starth: int, endh: int, uuid: bytes) -> tuple[int, bytes]:
        """Return the entry length and data list of attributes of type uuid."""
        return self._read_by(READ_BY_TYPE_REQUEST, READ_BY_TYPE_RESPONSE, starth, endh, uuid)

    def read(self, handle: int) -> bytes:
        """Read the value of the attribute at handle."""
        with self._tx_lock:
            rsp = self._send_req(bytes([READ_REQUEST]) + _le16(handle))
        _check(rsp, READ_RESPONSE)
        return rsp[1:]

    def read_blob(self, handle: int, offset: int) -> bytes:
        """Read part of the value of the attribute at handle, from offset."""
        with self._tx_lock:
            rsp = self._send_req(bytes([READ_BLOB_REQUEST]) + _le16(handle) + _le16(offset))
        _check(rsp, READ_BLOB_RESPONSE)
        return rsp[1:]

    def read_multiple(self, handles: list[int]) -> bytes:
        """Read the values of two or more attributes at once."""
        handles = list(handles)
        if len(handles) < 2 or len(handles) * 2 > self.l2c.tx_mtu - 1:
            raise InvalidArgumentError()
        with self._tx_lock:
            rsp = self._send_req(
                bytes([READ_MULTIPLE_REQUEST]) + b"".join(_le16(h) for h in handles)
            )
        _check(rsp, READ_MULTIPLE_RESPONSE)
        return rsp[1:]

    def read_by_group_type(self, starth: int, endh: int, uuid: bytes) -> tuple[int, bytes]:
        """Return the entry length and data list of grouping attributes of type uuid."""
        return self._read_by(
            READ_BY_GROUP_TYPE_REQUEST, READ_BY_GROUP_TYPE_RESPONSE, starth, endh, uuid
        )

    def write(self, handle: int, value: bytes) -> None:
        """Write value to the attribute at handle and wait for the acknowledgement."""
        value = bytes(value)
        if len(value) > self.l2c.tx_mtu - 3:
            raise InvalidArgumentError()
        with self._tx_lock:
            rsp = self._send_req(bytes([WRITE_REQUEST]) + _le16(handle) + value)
        _check(rsp, WRITE_RESPONSE)

    def write_command(self, handle: int, value: bytes) -> None:
        """Write value to the attribute at handle without a response."""
        value = bytes(value)
        if len(value) > self.l2c.tx_mtu - 3:
            raise InvalidArgumentError()
        with self._tx_lock:
            self._send_cmd(bytes([WRITE_COMMAND]) + _le16(handle) + value)

    def signed_write(self, handle: int, value: bytes, signature: bytes) -> None:
        """Write value with a 12-byte authentication signature, without a response."""
        value, signature = bytes(value), bytes(signature)
        if len(value) > self.l2c.tx_mtu - 15 or len(signature) != 12:
            raise InvalidArgumentError()
        with self._tx_lock:
            self._send_cmd(bytes([SIGNED_WRITE_COMMAND]) + _le16(handle) + value + signature)

    def prepare_write(self, handle: int, offset: int, value: bytes) -> tuple[int, int, bytes]:
        """Queue part of a value on the server; return the echoed handle, offset and value."""
        value = bytes(value)
        if len(value) > self.l2c.tx_mtu - 5:
            raise InvalidArgumentError()
        with self._tx_lock:
            rsp = self._send_req(
                bytes([PREPARE_WRITE_REQUEST]) + _le16(handle) + _le16(offset) + value
            )
        _check(rsp, PREPARE_WRITE_RESPONSE)
        if len(rsp) < 5:
            raise InvalidResponseError()
        return _u16(rsp, 1), _u16(rsp, 3), rsp[5:]

    def execute_write(self, flags: int) -> None:
        """Write (flags 1) or cancel (flags 0) all prepared values."""
        with self._tx_lock:
            rsp = self._send_req(bytes([EXECUTE_WRITE_REQUEST, flags & 0xFF]))
        _check(rsp, EXECUTE_WRITE_RESPONSE)

    # Transport.

    def _send_cmd(self, b: bytes) -> None:
        self.l2c.write(b)

    def _send_req(self, b: bytes) -> bytes:
        log.debug("client req %s", b.hex(" ").upper())
        try:
            self.l2c.write(b)
        except OSError as err:
            raise ConnectionError("send ATT request failed") from err
        expected = response_opcode(b[0])
        while True:
            try:
                item = self._responses.get(timeout=self.request_timeout)
            except queue.Empty:
                raise SequentialProtocolTimeout("ATT request timeout") from None
            if isinstance(item, BaseException):
                raise ConnectionError("ATT request failed") from item
            rsp = item
            if rsp[0] == ERROR_RESPONSE or rsp[0] == expected:
                return rsp
            # The peer sent a request of its own while we wait; refuse it.
            err_rsp = error_response(rsp[0], 0x0000, AttError.REQUEST_NOT_SUPPORTED)
            try:
                self.l2c.write(err_rsp)
            except OSError as err:
                raise ConnectionError("unexpected ATT response received") from err

    # Receiving.

    def loop(self) -> None:
        """Receive PDUs until the connection fails, dispatching each one."""
        work: queue.Queue[Optional[tuple[Any, bytes]]] = queue.Queue(maxsize=_WORK_QUEUE_SIZE)

        def worker() -> None:
            for item in iter(work.get, _STOP):
                fn, data = item
                try:
                    fn(data)
                except Exception:
                    log.exception("handling incoming PDU failed")

        threading.Thread(target=worker, daemon=True).start()
        try:
            while True:
                try:
                    b = bytes(self.l2c.read())
                except (OSError, EOFError) as err:
                    self._responses.put(err)
                    return
                if not b:
                    self._responses.put(ConnectionError("connection closed"))
                    return
                log.debug("client rsp %s", b.hex(" ").upper())

                if b[0] == EXCHANGE_MTU_REQUEST:
                    try:
                        work.put_nowait((self._handle_request, b))
                    except queue.Full:
                        log.error("can't enqueue incoming request")
                    continue

                if b[0] not in (HANDLE_VALUE_NOTIFICATION, HANDLE_VALUE_INDICATION):
                    self._responses.put(b)
                    continue

                if self.handler is not None:
                    try:
                        work.put_nowait((self.handler.handle_notification, b))
                    except queue.Full:
                        log.error("can't enqueue incoming notification")

                # An indication is always acknowledged, even an invalid one.
                if b[0] == HANDLE_VALUE_INDICATION:
                    try:
                        self.l2c.write(bytes([HANDLE_VALUE_CONFIRMATION]))
                    except OSError:
                        pass
        finally:
            work.put(_STOP)

    def _handle_request(self, b: bytes) -> None:
        if b[0] == EXCHANGE_MTU_REQUEST:
            rsp = self._handle_exchange_mtu_request(b)
            try:
                self._send_cmd(rsp)
            except OSError as err:
                log.error("error sending MTU response: %s", err)
        else:
            try:
                self._send_cmd(error_response(b[0], 0x0000, AttError.REQUEST_NOT_SUPPORTED))
            except OSError:
                pass
            log.warning("received unhandled request [%s]", b.hex().upper())

    def _handle_exchange_mtu_request(self, r: bytes) -> bytes:
        with self._tx_lock:
            if len(r) != 3 or _u16(r, 1) < DEFAULT_MTU:
                return error_response(r[0], 0x0000, AttError.INVALID_PDU)
            tx_mtu = _u16(r, 1)
            rx_mtu = self.l2c.rx_mtu
            log.debug("server requested an MTU change to TX:%d RX:%d", tx_mtu, rx_mtu)
            self.l2c.tx_mtu = tx_mtu
            self._tx_mtu = tx_mtu
            return bytes([EXCHANGE_MTU_RESPONSE]) + _le16(rx_mtu)