"""Bluetooth Low Energy host protocol layers: UUIDs, GATT profiles, advertising packets, HCI events and ATT."""

__version__ = "0.1.0"

__all__ = [
    "adv",
    "attclient",
    "attdb",
    "attpdu",
    "attserver",
    "bufpool",
    "evt",
    "gatt",
    "hcierror",
    "profile",
    "uuid",
]