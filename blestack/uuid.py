"""Bluetooth Low Energy UUIDs and a table of well-known assigned numbers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple


class UUID(bytes):
    """A BLE UUID: 2 or 16 bytes, stored little-endian as on the wire."""

    __slots__ = ()

    def __str__(self) -> str:
        return bytes(reversed(self)).hex()

    def __repr__(self) -> str:
        return f"UUID('{self}')"


def uuid16(i: int) -> UUID:
    """Convert a 16-bit number such as 0x1800 to a UUID."""
    return UUID(i.to_bytes(2, "little"))


def parse(s: str) -> UUID:
    """Parse a standard-format UUID string such as "1800" or a dashed 128-bit form."""
    b = bytes.fromhex(s.replace("-", ""))
    if len(b) not in (2, 16):
        raise ValueError(f"UUIDs must have length 2 or 16, got {len(b)}")
    return UUID(reverse(b))


def contains(s: Iterable[bytes] | None, u: bytes) -> bool:
    """Report whether u is in s; a missing list (None) matches everything."""
    if s is None:
        return True
    return any(bytes(a) == bytes(u) for a in s)


def reverse(u: Iterable[int]) -> bytes:
    """Return a reversed copy of u."""
    return bytes(reversed(bytes(u)))


class KnownUUID(NamedTuple):
    name: str
    type: str


def name(u: bytes) -> str:
    """Return the name of a known service, characteristic or descriptor, or ""."""
    known = KNOWN_UUIDS.get(str(UUID(u)))
    return known.name if known else ""


KNOWN_UUIDS: dict[str, KnownUUID] = {
    "1800": KnownUUID("Generic Access", "org.bluetooth.service.generic_access"),
    "1801": KnownUUID("Generic Attribute", "org.bluetooth.service.generic_attribute"),
    "1802": KnownUUID("Immediate Alert", "org.bluetooth.service.immediate_alert"),
    "1803": KnownUUID("Link Loss", "org.bluetooth.service.link_loss"),
    "1804": KnownUUID("Tx Power", "org.bluetooth.service.tx_power"),
    "1805": KnownUUID("Current Time Service", "org.bluetooth.service.current_time"),
    "1806": KnownUUID("Reference Time Update Service", "org.bluetooth.service.reference_time_update"),
    "1807": KnownUUID("Next DST Change Service", "org.bluetooth.service.next_dst_change"),
    "1808": KnownUUID("Glucose", "org.bluetooth.service.glucose"),
    "1809": KnownUUID("Health Thermometer", "org.bluetooth.service.health_thermometer"),
    "180a": KnownUUID("Device Information", "org.bluetooth.service.device_information"),
    "180d": KnownUUID("Heart Rate", "org.bluetooth.service.heart_rate"),
    "180e": KnownUUID("Phone Alert Status Service", "org.bluetooth.service.phone_alert_service"),
    "180f": KnownUUID("Battery Service", "org.bluetooth.service.battery_service"),
    "1810": KnownUUID("Blood Pressure", "org.bluetooth.service.blood_pressuer"),
    "1811": KnownUUID("Alert Notification Service", "org.bluetooth.service.alert_notification"),
    "1812": KnownUUID("Human Interface Device", "org.bluetooth.service.human_interface_device"),
    "1813": KnownUUID("Scan Parameters", "org.bluetooth.service.scan_parameters"),
    "1814": KnownUUID("Running Speed and Cadence", "org.bluetooth.service.running_speed_and_cadence"),
    "1815": KnownUUID("Cycling Speed and Cadence", "org.bluetooth.service.cycling_speed_and_cadence"),
    # Attribute types
    "2800": KnownUUID("Primary Service", "org.bluetooth.attribute.gatt.primary_service_declaration"),
    "2801": KnownUUID("Secondary Service", "org.bluetooth.attribute.gatt.secondary_service_declaration"),
    "2802": KnownUUID("Include", "org.bluetooth.attribute.gatt.include_declaration"),
    "2803": KnownUUID("Characteristic", "org.bluetooth.attribute.gatt.characteristic_declaration"),
    # Descriptors
    "2900": KnownUUID("Characteristic Extended Properties", "org.bluetooth.descriptor.gatt.characteristic_extended_properties"),
    "2901": KnownUUID("Characteristic User Description", "org.bluetooth.descriptor.gatt.characteristic_user_description"),
    "2902": KnownUUID("Client Characteristic Configuration", "org.bluetooth.descriptor.gatt.client_characteristic_configuration"),
    "2903": KnownUUID("Server Characteristic Configuration", "org.bluetooth.descriptor.gatt.server_characteristic_configuration"),
    "2904": KnownUUID("Characteristic Presentation Format", "org.bluetooth.descriptor.gatt.characteristic_presentation_format"),
    "2905": KnownUUID("Characteristic Aggregate Format", "org.bluetooth.descriptor.gatt.characteristic_aggregate_format"),
    "2906": KnownUUID("Valid Range", "org.bluetooth.descriptor.valid_range"),
    "2907": KnownUUID("External Report Reference", "org.bluetooth.descriptor.external_report_reference"),
    "2908": KnownUUID("Report Reference", "org.bluetooth.descriptor.report_reference"),
    # Characteristics
    "2a00": KnownUUID("Device Name", "org.bluetooth.characteristic.ble.device_name"),
    "2a01": KnownUUID("Appearance", "org.bluetooth.characteristic.ble.appearance"),
    "2a02": KnownUUID("Peripheral Privacy Flag", "org.bluetooth.characteristic.ble.peripheral_privacy_flag"),
    "2a03": KnownUUID("Reconnection Address", "org.bluetooth.characteristic.ble.reconnection_address"),
    "2a04": KnownUUID("Peripheral Preferred Connection Parameters", "org.bluetooth.characteristic.ble.peripheral_preferred_connection_parameters"),
    "2a05": KnownUUID("Service Changed", "org.bluetooth.characteristic.gatt.service_changed"),
    "2a06": KnownUUID("Alert Level", "org.bluetooth.characteristic.alert_level"),
    "2a07": KnownUUID("Tx Power Level", "org.bluetooth.characteristic.tx_power_level"),
    "2a08": KnownUUID("Date Time", "org.bluetooth.characteristic.date_time"),
    "2a09": KnownUUID("Day of Week", "org.bluetooth.characteristic.day_of_week"),
    "2a0a": KnownUUID("Day Date Time", "org.bluetooth.characteristic.day_date_time"),
    "2a0c": KnownUUID("Exact Time 256", "org.bluetooth.characteristic.exact_time_256"),
    "2a0d": KnownUUID("DST Offset", "org.bluetooth.characteristic.dst_offset"),
    "2a0e": KnownUUID("Time Zone", "org.bluetooth.characteristic.time_zone"),
    "2a0f": KnownUUID("Local Time Information", "org.bluetooth.characteristic.local_time_information"),
    "2a11": KnownUUID("Time with DST", "org.bluetooth.characteristic.time_with_dst"),
    "2a12": KnownUUID("Time Accuracy", "org.bluetooth.characteristic.time_accuracy"),
    "2a13": KnownUUID("Time Source", "org.bluetooth.characteristic.time_source"),
    "2a14": KnownUUID("Reference Time Information", "org.bluetooth.characteristic.reference_time_information"),
    "2a16": KnownUUID("Time Update Control Point", "org.bluetooth.characteristic.time_update_control_point"),
    "2a17": KnownUUID("Time Update State", "org.bluetooth.characteristic.time_update_state"),
    "2a18": KnownUUID("Glucose Measurement", "org.bluetooth.characteristic.glucose_measurement"),
    "2a19": KnownUUID("Battery Level", "org.bluetooth.characteristic.battery_level"),
    "2a1c": KnownUUID("Temperature Measurement", "org.bluetooth.characteristic.temperature_measurement"),
    "2a1d": KnownUUID("Temperature Type", "org.bluetooth.characteristic.temperature_type"),
    "2a1e": KnownUUID("Intermediate Temperature", "org.bluetooth.characteristic.intermediate_temperature"),
    "2a21": KnownUUID("Measurement Interval", "org.bluetooth.characteristic.measurement_interval"),
    "2a22": KnownUUID("Boot Keyboard Input Report", "org.bluetooth.characteristic.boot_keyboard_input_report"),
    "2a23": KnownUUID("System ID", "org.bluetooth.characteristic.system_id"),
    "2a24": KnownUUID("Model Number String", "org.bluetooth.characteristic.model_number_string"),
    "2a25": KnownUUID("Serial Number String", "org.bluetooth.characteristic.serial_number_string"),
    "2a26": KnownUUID("Firmware Revision String", "org.bluetooth.characteristic.firmware_revision_string"),
    "2a27": KnownUUID("Hardware Revision String", "org.bluetooth.characteristic.hardware_revision_string"),
    "2a28": KnownUUID("Software Revision String", "org.bluetooth.characteristic.software_revision_string"),
    "2a29": KnownUUID("Manufacturer Name String", "org.bluetooth.characteristic.manufacturer_name_string"),
    "2a2a": KnownUUID("IEEE 11073-20601 Regulatory Certification Data List", "org.bluetooth.characteristic.ieee_11073-20601_regulatory_certification_data_list"),
    "2a2b": KnownUUID("Current Time", "org.bluetooth.characteristic.current_time"),
    "2a31": KnownUUID("Scan Refresh", "org.bluetooth.characteristic.scan_refresh"),
    "2a32": KnownUUID("Boot Keyboard Output Report", "org.bluetooth.characteristic.boot_keyboard_output_report"),
    "2a33": KnownUUID("Boot Mouse Input Report", "org.bluetooth.characteristic.boot_mouse_input_report"),
    "2a34": KnownUUID("Glucose Measurement Context", "org.bluetooth.characteristic.glucose_measurement_context"),
    "2a35": KnownUUID("Blood Pressure Measurement", "org.bluetooth.characteristic.blood_pressure_measurement"),
    "2a36": KnownUUID("Intermediate Cuff Pressure", "org.bluetooth.characteristic.intermediate_blood_pressure"),
    "2a37": KnownUUID("Heart Rate Measurement", "org.bluetooth.characteristic.heart_rate_measurement"),
    "2a38": KnownUUID("Body Sensor Location", "org.bluetooth.characteristic.body_sensor_location"),
    "2a39": KnownUUID("Heart Rate Control Point", "org.bluetooth.characteristic.heart_rate_control_point"),
    "2a3f": KnownUUID("Alert Status", "org.bluetooth.characteristic.alert_status"),
    "2a40": KnownUUID("Ringer Control Point", "org.bluetooth.characteristic.ringer_control_point"),
    "2a41": KnownUUID("Ringer Setting", "org.bluetooth.characteristic.ringer_setting"),
    "2a42": KnownUUID("Alert Category ID Bit Mask", "org.bluetooth.characteristic.alert_category_id_bit_mask"),
    "2a43": KnownUUID("Alert Category ID", "org.bluetooth.characteristic.alert_category_id"),
    "2a44": KnownUUID("Alert Notification Control Point", "org.bluetooth.characteristic.alert_notification_control_point"),
    "2a45": KnownUUID("Unread Alert Status", "org.bluetooth.characteristic.unread_alert_status"),
    "2a46": KnownUUID("New Alert", "org.bluetooth.characteristic.new_alert"),
    "2a47": KnownUUID("Supported New Alert Category", "org.bluetooth.characteristic.supported_new_alert_category"),
    "2a48": KnownUUID("Supported Unread Alert Category", "org.bluetooth.characteristic.supported_unread_alert_category"),
    "2a49": KnownUUID("Blood Pressure Feature", "org.bluetooth.characteristic.blood_pressure_feature"),
    "2a4a": KnownUUID("HID Information", "org.bluetooth.characteristic.hid_information"),
    "2a4b": KnownUUID("Report Map", "org.bluetooth.characteristic.report_map"),
    "2a4c": KnownUUID("HID Control Point", "org.bluetooth.characteristic.hid_control_point"),
    "2a4d": KnownUUID("Report", "org.bluetooth.characteristic.report"),
    "2a4e": KnownUUID("Protocol Mode", "org.bluetooth.characteristic.protocol_mode"),
    "2a4f": KnownUUID("Scan Interval Window", "org.bluetooth.characteristic.scan_interval_window"),
    "2a50": KnownUUID("PnP ID", "org.bluetooth.characteristic.pnp_id"),
    "2a51": KnownUUID("Glucose Feature", "org.bluetooth.characteristic.glucose_feature"),
    "2a52": KnownUUID("Record Access Control Point", "org.bluetooth.characteristic.record_access_control_point"),
    "2a53": KnownUUID("RSC Measurement", "org.bluetooth.characteristic.rsc_measurement"),
    "2a54": KnownUUID("RSC Feature", "org.bluetooth.characteristic.rsc_feature"),
    "2a55": KnownUUID("SC Control Point", "org.bluetooth.characteristic.sc_control_point"),
    "2a5b": KnownUUID("CSC Measurement", "org.bluetooth.characteristic.csc_measurement"),
    "2a5c": KnownUUID("CSC Feature", "org.bluetooth.characteristic.csc_feature"),
    "2a5d": KnownUUID("Sensor Location", "org.bluetooth.characteristic.sensor_location"),
}

# Assigned numbers used by the attribute database and GATT layers.
GAP_UUID = uuid16(0x1800)
GATT_UUID = uuid16(0x1801)
PRIMARY_SERVICE_UUID = uuid16(0x2800)
SECONDARY_SERVICE_UUID = uuid16(0x2801)
INCLUDE_UUID = uuid16(0x2802)
CHARACTERISTIC_UUID = uuid16(0x2803)
CLIENT_CHARACTERISTIC_CONFIG_UUID = uuid16(0x2902)
DEVICE_NAME_UUID = uuid16(0x2A00)
APPEARANCE_UUID = uuid16(0x2A01)
PERIPHERAL_PRIVACY_UUID = uuid16(0x2A02)
RECONNECTION_ADDR_UUID = uuid16(0x2A03)
PREFERRED_PARAMS_UUID = uuid16(0x2A04)
SERVICE_CHANGED_UUID = uuid16(0x2A05)