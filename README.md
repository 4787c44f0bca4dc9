# blestack

This package holds the protocol layers of a Bluetooth Low Energy host. It is pure
Python and has no dependencies. Each layer works on bytes and plain Python
objects, and you give it the connection it talks over.

## What is in it

- `blestack.uuid` covers 16-bit and 128-bit UUIDs. A `UUID` is a `bytes`
  subclass stored little-endian, and `str()` gives the usual hex form. It also
  has `uuid16`, `parse`, `contains` and `reverse`, plus `name`, which returns
  the names of well-known assigned numbers.
- `blestack.profile` is the GATT hierarchy: `Profile` (with `find`,
  `find_service`, `find_characteristic` and `find_descriptor`), `Service`,
  `Characteristic` and `Descriptor`, along with the `Property` flags.
  Characteristics take a static value (`set_value`) or handlers
  (`handle_read`, `handle_write`, `handle_notify`, `handle_indicate`).
- `blestack.adv` builds and parses advertising and scan-response packets.
  - `Packet` has these readers: `field`, `local_name`, `uuids`, `service_sol`,
    `service_data` and `manufacturer_data`.
  - `new_packet` builds a packet from field builders: `flags`, `short_name`,
    `complete_name`, `manufacturer_data`, `all_uuid`, `some_uuid`,
    `service_data16`, `ibeacon`, `ibeacon_data` and `raw`.
  - `new_raw_packet` joins raw bytes into a packet.
  - A field that would take a packet past 31 bytes raises `NotFitError`.
- `blestack.hcierror` holds the HCI errors. `CommandError` carries a controller
  status code, and its message is looked up in `Status`. It also has
  `HCIError` and the busy and invalid-address errors.
- `blestack.attpdu` holds the Attribute Protocol pieces:
  - the opcodes and the MTU limits;
  - the `AttError` codes;
  - the exceptions `ATTException`, `InvalidArgumentError`,
    `InvalidResponseError` and `SequentialProtocolTimeout`;
  - `response_opcode` and `error_response`.
- `blestack.attdb` provides `AttributeDB`, which lays services out as an
  attribute table starting at a base handle. It also has `Attribute`,
  `Request`, `ResponseWriter` and `new_cccd`. `new_cccd` builds the
  client characteristic configuration descriptor that is added to
  characteristics with a notify or indicate handler.
- `blestack.attserver` provides `Server`, which answers ATT requests from an
  `AttributeDB`. `handle_request` answers one PDU. `loop` serves a connection
  until it closes. `notify` and `indicate` push values to the peer.
- `blestack.attclient` provides `Client`, which sends ATT requests and waits
  for the answers:
  - `exchange_mtu` and `find_information`;
  - `read_by_type`, `read`, `read_blob`, `read_multiple` and
    `read_by_group_type`;
  - `write`, `write_command`, `signed_write`, `prepare_write` and
    `execute_write`.

  Its `loop` receives responses, notifications and indications.
- `blestack.gatt` has two classes:
  - `GattClient` discovers a remote profile (`discover_profile`,
    `discover_services`, `discover_characteristics`,
    `discover_descriptors`). It reads and writes characteristics and
    descriptors, and manages subscriptions.
  - `GattServer` keeps the service list, with the default GAP and GATT
    services from `default_services`, and rebuilds its `db` whenever the
    list changes.
- `blestack.evt` gives read-only views of HCI event parameters:
  `CommandComplete`, `NumberOfCompletedPackets` and `LEAdvertisingReport`.
  It also has `Advertisement`, which combines one advertising report with
  its scan response.
- `blestack.bufpool` provides `Pool` and `PoolClient`, a fixed set of packet
  buffers. Each buffer is taken with `get` and handed back oldest-first with
  `put` or `put_all`.

## What it does not do

The package does not open a Bluetooth adapter or talk to a radio. It has no
HCI socket, no L2CAP layer, and no device object. It does not scan,
advertise or connect by itself, and it has no command-line tool. The ATT
server and client need a connection object that you supply:

- `read()` returns the next ATT PDU, or empty bytes once the link is closed.
- `write(b)` sends a PDU.
- `rx_mtu` and `tx_mtu` hold the MTUs as attributes.

## Installation

```
pip install .
```

## Examples

UUIDs:

```python
from blestack.uuid import parse, uuid16, name

battery = uuid16(0x180F)
print(battery)                  # 180f
print(name(battery))            # Battery Service
custom = parse("34DA3AD1-7110-41A1-B1EF-4430F509CDE7")
```

Build an advertising packet and read it back:

```python
from blestack import adv
from blestack.uuid import uuid16

pkt = adv.new_packet(
    adv.flags(adv.FLAG_GENERAL_DISCOVERABLE | adv.FLAG_LE_ONLY),
    adv.all_uuid(uuid16(0x180D)),
    adv.complete_name("sensor"),
)
data = bytes(pkt)
print(adv.new_raw_packet(data).local_name())   # sensor
print(adv.new_raw_packet(data).uuids())        # [UUID('180d')]
```

Describe a GATT service:

```python
from blestack.profile import Service
from blestack.uuid import uuid16

svc = Service(uuid16(0x180F))
level = svc.new_characteristic(uuid16(0x2A19))
level.set_value(b"\x64")
```

Answer an ATT Read Request from a GATT server's database. Handle 3 holds the
device name:

```python
from blestack.attserver import Server
from blestack.gatt import GattServer

class Link:
    rx_mtu = 23
    tx_mtu = 23

server = Server(GattServer("sensor").db, Link())
print(server.handle_request(bytes([0x0A, 0x03, 0x00])))   # b'\x0bsensor'
```

## Running the tests

```
pip install .[test]
pytest
```