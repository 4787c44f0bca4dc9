import pytest

from blestack.profile import (
    Characteristic,
    Descriptor,
    Profile,
    Property,
    Service,
)
from blestack.uuid import uuid16


def _profile():
    svc = Service(uuid16(0x180F))
    char = svc.new_characteristic(uuid16(0x2A19))
    desc = char.new_descriptor(uuid16(0x2901))
    return Profile([Service(uuid16(0x1800)), svc]), svc, char, desc


def test_handlers_set_spec_flag_values():
    char = Characteristic(uuid16(0x2A00))
    char.handle_read(lambda req, rsp: None)
    assert char.property == 0x02
    char.handle_notify(print)
    assert char.property == 0x12
    char.handle_indicate(print)
    assert char.property == 0x32
    assert char.property == Property.READ | Property.NOTIFY | Property.INDICATE


def test_find_each_kind():
    prof, svc, char, desc = _profile()
    assert prof.find(Service(uuid16(0x180F))) is svc
    assert prof.find(Characteristic(uuid16(0x2A19))) is char
    assert prof.find(Descriptor(uuid16(0x2901))) is desc


def test_find_missing_and_unknown_type():
    prof, _, _, _ = _profile()
    assert prof.find_service(Service(uuid16(0x1234))) is None
    assert prof.find_characteristic(Characteristic(uuid16(0x1234))) is None
    assert prof.find_descriptor(Descriptor(uuid16(0x1234))) is None
    assert prof.find("not an attribute") is None


def test_duplicate_characteristic_raises():
    svc = Service(uuid16(0x180F))
    svc.new_characteristic(uuid16(0x2A19))
    with pytest.raises(ValueError):
        svc.new_characteristic(uuid16(0x2A19))
    assert len(svc.characteristics) == 1


def test_duplicate_descriptor_raises():
    char = Characteristic(uuid16(0x2A19))
    char.new_descriptor(uuid16(0x2901))
    with pytest.raises(ValueError):
        char.add_descriptor(Descriptor(uuid16(0x2901)))
    assert len(char.descriptors) == 1


def test_set_value_copies_and_sets_read():
    char = Characteristic(uuid16(0x2A00))
    data = bytearray(b"abc")
    char.set_value(data)
    data[0] = 0
    assert char.value == b"abc"
    assert char.property & Property.READ


def test_set_value_after_read_handler_raises():
    char = Characteristic(uuid16(0x2A00))
    char.handle_read(lambda req, rsp: None)
    with pytest.raises(RuntimeError):
        char.set_value(b"x")


def test_read_handler_after_static_value_raises():
    desc = Descriptor(uuid16(0x2901))
    desc.set_value(b"")
    with pytest.raises(RuntimeError):
        desc.handle_read(lambda req, rsp: None)


def test_handle_write_sets_both_write_flags():
    char = Characteristic(uuid16(0x2A00))
    handler = lambda req, rsp: None  # noqa: E731
    char.handle_write(handler)
    assert char.write_handler is handler
    assert char.property == Property.WRITE | Property.WRITE_NR

    desc = Descriptor(uuid16(0x2901))
    desc.handle_write(handler)
    assert desc.property == Property.WRITE | Property.WRITE_NR


def test_notify_and_indicate_flags():
    char = Characteristic(uuid16(0x2A05))
    char.handle_notify(print)
    char.handle_indicate(repr)
    assert char.property == Property.NOTIFY | Property.INDICATE
    assert char.notify_handler is print
    assert char.indicate_handler is repr