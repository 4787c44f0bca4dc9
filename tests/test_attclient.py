import queue
import threading
import time

import pytest

from blestack.attclient import Client
from blestack.attpdu import (
    AttError,
    ATTException,
    InvalidArgumentError,
    InvalidResponseError,
    SequentialProtocolTimeout,
    error_response,
)


class FakeConn:
    def __init__(self, responder=None, tx_mtu=23, rx_mtu=23):
        self.incoming = queue.Queue()
        self.written = []
        self.responder = responder
        self.tx_mtu = tx_mtu
        self.rx_mtu = rx_mtu

    def read(self):
        try:
            return self.incoming.get(timeout=10)
        except queue.Empty:
            return b""

    def write(self, b):
        b = bytes(b)
        self.written.append(b)
        if self.responder is not None:
            for r in self.responder(b) or ():
                self.incoming.put(r)
        return len(b)

    def close(self):
        self.incoming.put(b"")


class Recorder:
    def __init__(self):
        self.got = queue.Queue()

    def handle_notification(self, req):
        self.got.put(req)


def start(responder=None, handler=None, **kw):
    conn = FakeConn(responder, **{k: v for k, v in kw.items() if k in ("tx_mtu", "rx_mtu")})
    client = Client(conn, handler, **{k: v for k, v in kw.items() if k == "request_timeout"})
    threading.Thread(target=client.loop, daemon=True).start()
    return conn, client


def reply(*rsps):
    return lambda b: list(rsps)


def wait_for(cond, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


def test_exchange_mtu():
    conn, client = start(reply(bytes([0x03]) + (100).to_bytes(2, "little")))
    assert client.exchange_mtu(200) == 100
    assert conn.written[0] == bytes([0x02]) + (200).to_bytes(2, "little")
    assert conn.tx_mtu == 100
    assert conn.rx_mtu == 200
    conn.close()


@pytest.mark.parametrize("mtu", [22, 516])
def test_exchange_mtu_invalid_argument(mtu):
    conn, client = start()
    with pytest.raises(InvalidArgumentError):
        client.exchange_mtu(mtu)
    assert conn.written == []
    conn.close()


def test_error_response_raises_att_exception():
    conn, client = start(reply(error_response(0x0A, 0x0003, AttError.READ_NOT_PERMITTED)))
    with pytest.raises(ATTException) as exc:
        client.read(3)
    assert exc.value.code == AttError.READ_NOT_PERMITTED
    conn.close()


def test_malformed_error_response_is_invalid():
    conn, client = start(reply(bytes([0x01, 0x0A, 0x03, 0x00])))
    with pytest.raises(InvalidResponseError):
        client.read(3)
    conn.close()


def test_find_information():
    data = bytes([0x01, 0x00, 0x00, 0x28])
    conn, client = start(reply(bytes([0x05, 0x01]) + data))
    assert client.find_information(1, 0xFFFF) == (1, data)
    assert conn.written[0] == bytes([0x04, 0x01, 0x00, 0xFF, 0xFF])
    conn.close()


def test_find_information_bad_lengths():
    conn, client = start(reply(bytes([0x05, 0x01, 0x01, 0x00, 0x00, 0x28, 0xAA])))
    with pytest.raises(InvalidResponseError):
        client.find_information(1, 5)
    conn.close()


@pytest.mark.parametrize("start_h,end_h", [(0, 5), (6, 5)])
def test_find_information_invalid_range(start_h, end_h):
    conn, client = start()
    with pytest.raises(InvalidArgumentError):
        client.find_information(start_h, end_h)
    conn.close()


def test_read_by_type():
    entry = bytes([0x02, 0x00, 0x0A, 0x03, 0x00, 0x00, 0x2A])
    conn, client = start(reply(bytes([0x09, 0x07]) + entry))
    length, data = client.read_by_type(1, 0xFFFF, bytes([0x03, 0x28]))
    assert (length, data) == (7, entry)
    assert conn.written[0] == bytes([0x08, 0x01, 0x00, 0xFF, 0xFF, 0x03, 0x28])
    conn.close()


def test_read_by_type_invalid_uuid():
    conn, client = start()
    with pytest.raises(InvalidArgumentError):
        client.read_by_type(1, 2, b"\x01\x02\x03")
    conn.close()


def test_read_by_group_type_list_not_multiple_of_length():
    conn, client = start(reply(bytes([0x11, 0x06, 1, 0, 5, 0, 0, 0x18, 0xAA])))
    with pytest.raises(InvalidResponseError):
        client.read_by_group_type(1, 0xFFFF, bytes([0x00, 0x28]))
    conn.close()


def test_read_and_read_blob():
    conn, client = start(lambda b: [bytes([b[0] + 1]) + b"value"])
    assert client.read(5) == b"value"
    assert client.read_blob(5, 22) == b"value"
    assert conn.written == [bytes([0x0A, 0x05, 0x00]), bytes([0x0C, 0x05, 0x00, 22, 0x00])]
    conn.close()


def test_read_multiple():
    conn, client = start(reply(bytes([0x0F]) + b"ab"))
    assert client.read_multiple([1, 2]) == b"ab"
    assert conn.written[0] == bytes([0x0E, 0x01, 0x00, 0x02, 0x00])
    with pytest.raises(InvalidArgumentError):
        client.read_multiple([1])
    conn.close()


def test_write():
    conn, client = start(reply(bytes([0x13])))
    assert client.write(7, b"\x01\x02") is None
    assert conn.written[0] == bytes([0x12, 0x07, 0x00, 0x01, 0x02])
    with pytest.raises(InvalidArgumentError):
        client.write(7, bytes(21))
    assert len(conn.written) == 1
    conn.close()


def test_write_command_and_signed_write():
    conn, client = start()
    client.write_command(7, b"hi")
    signature = bytes(range(12))
    client.signed_write(7, b"x", signature)
    assert conn.written == [
        bytes([0x52, 0x07, 0x00]) + b"hi",
        bytes([0xD2, 0x07, 0x00]) + b"x" + signature,
    ]
    with pytest.raises(InvalidArgumentError):
        client.signed_write(7, bytes(9), signature)
    conn.close()


def test_prepare_and_execute_write():
    conn, client = start(lambda b: [bytes([b[0] + 1]) + b[1:]])
    assert client.prepare_write(4, 2, b"abc") == (4, 2, b"abc")
    client.execute_write(1)
    assert conn.written[1] == bytes([0x18, 0x01])
    conn.close()


def test_unsolicited_pdu_is_refused_while_waiting():
    def responder(b):
        if b[0] == 0x0A:
            return [bytes([0x13])]
        if b[0] == 0x01:
            return [bytes([0x0B]) + b"ok"]
        return []

    conn, client = start(responder)
    assert client.read(1) == b"ok"
    assert conn.written[1] == error_response(0x13, 0x0000, AttError.REQUEST_NOT_SUPPORTED)
    conn.close()


def test_request_timeout():
    conn, client = start(request_timeout=0.1)
    with pytest.raises(SequentialProtocolTimeout):
        client.read(1)
    conn.close()


def test_connection_closed_during_request():
    conn, client = start(reply(b""))
    with pytest.raises(ConnectionError):
        client.read(1)


def test_notification_delivered_without_confirmation():
    handler = Recorder()
    conn, client = start(handler=handler)
    pdu = bytes([0x1B, 0x05, 0x00, 0x01, 0x02])
    conn.incoming.put(pdu)
    assert handler.got.get(timeout=2) == pdu
    assert conn.written == []
    conn.close()


def test_indication_is_confirmed():
    handler = Recorder()
    conn, client = start(handler=handler)
    pdu = bytes([0x1D, 0x05, 0x00, 0x09])
    conn.incoming.put(pdu)
    assert handler.got.get(timeout=2) == pdu
    assert wait_for(lambda: bytes([0x1E]) in conn.written)
    conn.close()


def test_peer_mtu_request_is_answered():
    conn, client = start(rx_mtu=100)
    conn.incoming.put(bytes([0x02]) + (50).to_bytes(2, "little"))
    expected = bytes([0x03]) + (100).to_bytes(2, "little")
    assert wait_for(lambda: expected in conn.written)
    assert conn.tx_mtu == 50
    conn.close()


def test_peer_mtu_request_too_small_is_rejected():
    conn, client = start()
    conn.incoming.put(bytes([0x02, 0x10, 0x00]))
    expected = error_response(0x02, 0x0000, AttError.INVALID_PDU)
    assert wait_for(lambda: expected in conn.written)
    assert conn.tx_mtu == 23
    conn.close()