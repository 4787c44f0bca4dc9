"""Errors reported by the host controller interface."""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """HCI command status codes and their descriptions."""

    message: str

    def __new__(cls, value: int, message: str) -> "Status":
        member = int.__new__(cls, value)
        member._value_ = value
        member.message = message
        return member

    SUCCESS = 0x00, "Success"
    UNKNOWN_COMMAND = 0x01, "Unknown HCI Command"
    UNKNOWN_CONNECTION_ID = 0x02, "Unknown Connection Identifier"
    HARDWARE_FAILURE = 0x03, "Hardware Failure"
    PAGE_TIMEOUT = 0x04, "Page Timeou"
    AUTHENTICATION_FAILURE = 0x05, "Authentication Failure"
    PIN_OR_KEY_MISSING = 0x06, "PIN or Key Missing"
    MEMORY_CAPACITY_EXCEEDED = 0x07, "Memory Capacity Exceeded"
    CONNECTION_TIMEOUT = 0x08, "Connection Timeout"
    CONNECTION_LIMIT_EXCEEDED = 0x09, "Connection Limit Exceeded"
    SYNC_CONNECTION_LIMIT_EXCEEDED = (
        0x0A,
        "Synchronous Connection Limit To A Device Exceeded",
    )
    ACL_CONNECTION_EXISTS = 0x0B, "ACL Connection Already Exists"
    COMMAND_DISALLOWED = 0x0C, "Command Disallowed"
    REJECTED_LIMITED_RESOURCES = 0x0D, "Connection Rejected due to Limited Resources"
    REJECTED_SECURITY = 0x0E, "Connection Rejected Due To Security Reasons"
    REJECTED_BD_ADDR = 0x0F, "Connection Rejected due to Unacceptable BD_ADDR"
    ACCEPT_TIMEOUT_EXCEEDED = 0x10, "Connection Accept Timeout Exceeded"
    UNSUPPORTED_PARAMETER = 0x11, "Unsupported Feature or Parameter Value"
    INVALID_PARAMETERS = 0x12, "Invalid HCI Command Parameters"
    REMOTE_USER_TERMINATED = 0x13, "Remote User Terminated Connection"
    REMOTE_LOW_RESOURCES = (
        0x14,
        "Remote Device Terminated Connection due to Low Resources",
    )
    REMOTE_POWER_OFF = 0x15, "Remote Device Terminated Connection due to Power Off"
    LOCAL_HOST_TERMINATED = 0x16, "Connection Terminated By Local Host"
    REPEATED_ATTEMPTS = 0x17, "Repeated Attempts"
    PAIRING_NOT_ALLOWED = 0x18, "Pairing Not Allowed"
    UNKNOWN_LMP_PDU = 0x19, "Unknown LMP PDU"
    UNSUPPORTED_REMOTE_FEATURE = (
        0x1A,
        "Unsupported Remote Feature / Unsupported LMP Feature",
    )
    SCO_OFFSET_REJECTED = 0x1B, "SCO Offset Rejected"
    SCO_INTERVAL_REJECTED = 0x1C, "SCO Interval Rejected"
    SCO_AIR_MODE_REJECTED = 0x1D, "SCO Air Mode Rejected"
    INVALID_LL_PARAMETERS = 0x1E, "Invalid LMP Parameters / Invalid LL Parameters"
    UNSPECIFIED = 0x1F, "Unspecified Error"
    UNSUPPORTED_LL_PARAMETER = (
        0x20,
        "Unsupported LMP Parameter Value / Unsupported LL Parameter Value",
    )
    ROLE_CHANGE_NOT_ALLOWED = 0x21, "Role Change Not Allowed"
    LL_RESPONSE_TIMEOUT = 0x22, "LMP Response Timeout / LL Response Timeout"
    LMP_TRANSACTION_COLLISION = 0x23, "LMP Error Transaction Collision"
    LMP_PDU_NOT_ALLOWED = 0x24, "LMP PDU Not Allowed"
    ENCRYPTION_MODE_NOT_ACCEPTABLE = 0x25, "Encryption Mode Not Acceptable"
    LINK_KEY_CANNOT_CHANGE = 0x26, "Link Key cannot be Changed"
    QOS_NOT_SUPPORTED = 0x27, "Requested QoS Not Supported"
    INSTANT_PASSED = 0x28, "Instant Passed"
    UNIT_KEY_NOT_SUPPORTED = 0x29, "Pairing With Unit Key Not Supported"
    DIFFERENT_TRANSACTION_COLLISION = 0x2A, "Different Transaction Collision"
    RESERVED_2B = 0x2B, "Reserved"
    QOS_UNACCEPTABLE_PARAMETER = 0x2C, "QoS Unacceptable Parameter"
    QOS_REJECTED = 0x2D, "QoS Rejected"
    CHANNEL_CLASSIFICATION_NOT_SUPPORTED = 0x2E, "Channel Classification Not Supported"
    INSUFFICIENT_SECURITY = 0x2F, "Insufficient Security"
    PARAMETER_OUT_OF_RANGE = 0x30, "Parameter Out Of Mandatory Range"
    RESERVED_31 = 0x31, "Reserved"
    ROLE_SWITCH_PENDING = 0x32, "Role Switch Pending"
    RESERVED_33 = 0x33, "Reserved"
    RESERVED_SLOT_VIOLATION = 0x34, "Reserved Slot Violation"
    ROLE_SWITCH_FAILED = 0x35, "Role Switch Failed"
    EIR_TOO_LARGE = 0x36, "Extended Inquiry Response Too Large"
    SIMPLE_PAIRING_NOT_SUPPORTED = 0x37, "Secure Simple Pairing Not Supported By Host"
    HOST_BUSY_PAIRING = 0x38, "Host Busy - Pairing"
    NO_SUITABLE_CHANNEL = (
        0x39,
        "Connection Rejected due to No Suitable Channel Found",
    )
    CONTROLLER_BUSY = 0x3A, "Controller Busy"
    UNACCEPTABLE_CONNECTION_PARAMETERS = 0x3B, "Unacceptable Connection Parameters"
    DIRECTED_ADVERTISING_TIMEOUT = 0x3C, "Directed Advertising Timeout"
    MIC_FAILURE = 0x3D, "Connection Terminated due to MIC Failure"
    CONNECTION_NOT_ESTABLISHED = 0x3E, "Connection Failed to be Established"
    MAC_CONNECTION_FAILED = 0x3F, "MAC Connection Failed"
    COARSE_CLOCK_REJECTED = (
        0x40,
        "Coarse Clock Adjustment Rejected but Will Try to Adjust Using Clock Dragging",
    )


class HCIError(Exception):
    """Base class of errors raised by the HCI layer."""

    default_message = "hci error"

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or (self.default_message,)))


class BusyScanningError(HCIError):
    default_message = "busy scanning"


class BusyAdvertisingError(HCIError):
    default_message = "busy advertising"


class BusyDialingError(HCIError):
    default_message = "busy dialing"


class BusyListeningError(HCIError):
    default_message = "busy listening"


class InvalidAddressError(HCIError):
    default_message = "invalid address"


class CommandError(HCIError):
    """An error status returned by the controller for an HCI command."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = int(code)

    def __str__(self) -> str:
        # Codes that are not understood count as "Unspecified Error".
        try:
            return Status(self.code).message
        except ValueError:
            return Status.UNSPECIFIED.message

    def __repr__(self) -> str:
        return f"CommandError(0x{self.code:02X})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CommandError):
            return self.code == other.code
        return NotImplemented

    def __hash__(self) -> int:
        return hash((CommandError, self.code))