import pytest

from blestack.adv import (
    FLAG_GENERAL_DISCOVERABLE,
    FLAG_LE_ONLY,
    MAX_EIR_PACKET_LENGTH,
    TYPE_ALL_UUID16,
    TYPE_COMPLETE_NAME,
    TYPE_FLAGS,
    TYPE_SERVICE_SOL16,
    TYPE_TX_POWER,
    InvalidArgumentError,
    NotFitError,
    ServiceData,
    all_uuid,
    complete_name,
    flags,
    ibeacon,
    ibeacon_data,
    manufacturer_data,
    new_packet,
    new_raw_packet,
    raw,
    service_data16,
    short_name,
    some_uuid,
)
from blestack.uuid import parse, reverse, uuid16


def test_flags_wire_bytes():
    p = new_packet(flags(FLAG_GENERAL_DISCOVERABLE | FLAG_LE_ONLY))
    assert bytes(p) == bytes([0x02, TYPE_FLAGS, 0x06])


def test_complete_name_round_trip():
    p = new_packet(complete_name("abc"))
    assert p.local_name() == "abc"
    assert p.field(TYPE_COMPLETE_NAME) == b"abc"
    assert len(p) == 2 + len("abc")


def test_short_name_preferred():
    p = new_packet(complete_name("long"), short_name("sh"))
    assert p.local_name() == "sh"


def test_local_name_absent():
    p = new_packet(flags(FLAG_LE_ONLY))
    assert p.local_name() == ""


def test_fields_after_flags_are_found():
    p = new_packet(flags(FLAG_LE_ONLY), complete_name("dev"))
    assert p.local_name() == "dev"


def test_manufacturer_data_round_trip():
    p = new_packet(manufacturer_data(0x1234, b"\xaa\xbb"))
    md = p.manufacturer_data()
    assert md[:2] == (0x1234).to_bytes(2, "little")
    assert md[2:] == b"\xaa\xbb"


def test_manufacturer_data_absent():
    assert new_packet(complete_name("x")).manufacturer_data() is None


def test_all_uuid_16():
    u = uuid16(0x180D)
    p = new_packet(all_uuid(u))
    assert p.uuids() == [u]
    assert p.field(TYPE_ALL_UUID16) == bytes(u)


def test_some_uuid_128():
    u = parse("34DA3AD1-7110-41A1-B1EF-4430F509CDE7")
    p = new_packet(some_uuid(u))
    assert p.uuids() == [u]


def test_uuids_from_repeated_fields_in_order():
    a, b = uuid16(0x180D), uuid16(0x180F)
    p = new_packet(all_uuid(a), all_uuid(b))
    assert p.uuids() == [a, b]


def test_too_long_field_raises_and_leaves_packet_intact():
    p = new_packet(flags(FLAG_LE_ONLY))
    before = bytes(p)
    with pytest.raises(NotFitError):
        p.append(complete_name("x" * 30))
    assert bytes(p) == before


def test_packet_exactly_max_length_fits():
    p = new_packet(complete_name("x" * (MAX_EIR_PACKET_LENGTH - 2)))
    assert len(p) == MAX_EIR_PACKET_LENGTH


def test_raw_too_long_raises():
    with pytest.raises(NotFitError):
        new_packet(raw(b"\x00" * (MAX_EIR_PACKET_LENGTH + 1)))


def test_raw_appends_bytes():
    src = new_packet(complete_name("abc"))
    p = new_packet(raw(bytes(src)))
    assert bytes(p) == bytes(src)


def test_new_raw_packet_concatenates():
    assert bytes(new_raw_packet(b"ab", b"cd")) == b"abcd"


def test_ibeacon_requires_128_bit_uuid():
    with pytest.raises(InvalidArgumentError):
        new_packet(ibeacon(uuid16(0x1800), 1, 2, -59))


def test_ibeacon_layout():
    u = parse("34DA3AD1-7110-41A1-B1EF-4430F509CDE7")
    p = new_packet(ibeacon(u, 100, 200, -59))
    md = p.manufacturer_data()
    assert md[:2] == (0x004C).to_bytes(2, "little")
    assert md[2:4] == bytes([0x02, 0x15])
    assert md[4:20] == reverse(u)
    assert int.from_bytes(md[20:22], "big") == 100
    assert int.from_bytes(md[22:24], "big") == 200
    assert int.from_bytes(md[24:25], "big", signed=True) == -59


def test_ibeacon_data_uses_apple_id():
    p = new_packet(ibeacon_data(b"\x01\x02"))
    assert p.manufacturer_data() == (0x004C).to_bytes(2, "little") + b"\x01\x02"


def test_service_data16_round_trip():
    p = new_packet(service_data16(0xFEAA, b"\x01\x02"))
    assert p.service_data() == [ServiceData(uuid16(0xFEAA), b"\x01\x02")]
    assert p.uuids() == [uuid16(0xFEAA)]


def test_service_sol16():
    a, b = uuid16(0x1800), uuid16(0x1801)
    data = bytes(a) + bytes(b)
    p = new_raw_packet(bytes([len(data) + 1, TYPE_SERVICE_SOL16]), data)
    assert p.service_sol() == [a, b]


def test_malformed_field_returns_none():
    p = new_raw_packet(bytes([5, TYPE_COMPLETE_NAME]), b"a")
    assert p.field(TYPE_COMPLETE_NAME) is None
    assert p.local_name() == ""


def test_tx_power_single_byte_field_not_reported():
    p = new_raw_packet(bytes([2, TYPE_TX_POWER, 0x05]))
    assert p.tx_power() is None


def test_tx_power_reads_signed_third_byte():
    p = new_raw_packet(bytes([4, TYPE_TX_POWER, 0x00, 0x00, 0xC5]))
    assert p.tx_power() == -59


def test_flags_reads_third_byte():
    p = new_raw_packet(bytes([4, TYPE_FLAGS, 0x00, 0x00, FLAG_LE_ONLY]))
    assert p.flags() == FLAG_LE_ONLY