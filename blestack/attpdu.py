"""Attribute Protocol opcodes, error codes, exceptions and PDU helpers."""

from __future__ import annotations

import enum
from typing import Optional, Union

# ATT_MTU limits: the default, and 512 bytes of value plus a 3-byte header.
DEFAULT_MTU = 23
MAX_MTU = 512 + 3

# Attribute Protocol opcodes.
ERROR_RESPONSE = 0x01
EXCHANGE_MTU_REQUEST = 0x02
EXCHANGE_MTU_RESPONSE = 0x03
FIND_INFORMATION_REQUEST = 0x04
FIND_INFORMATION_RESPONSE = 0x05
FIND_BY_TYPE_VALUE_REQUEST = 0x06
FIND_BY_TYPE_VALUE_RESPONSE = 0x07
READ_BY_TYPE_REQUEST = 0x08
READ_BY_TYPE_RESPONSE = 0x09
READ_REQUEST = 0x0A
READ_RESPONSE = 0x0B
READ_BLOB_REQUEST = 0x0C
READ_BLOB_RESPONSE = 0x0D
READ_MULTIPLE_REQUEST = 0x0E
READ_MULTIPLE_RESPONSE = 0x0F
READ_BY_GROUP_TYPE_REQUEST = 0x10
READ_BY_GROUP_TYPE_RESPONSE = 0x11
WRITE_REQUEST = 0x12
WRITE_RESPONSE = 0x13
PREPARE_WRITE_REQUEST = 0x16
PREPARE_WRITE_RESPONSE = 0x17
EXECUTE_WRITE_REQUEST = 0x18
EXECUTE_WRITE_RESPONSE = 0x19
HANDLE_VALUE_NOTIFICATION = 0x1B
HANDLE_VALUE_INDICATION = 0x1D
HANDLE_VALUE_CONFIRMATION = 0x1E
WRITE_COMMAND = 0x52
SIGNED_WRITE_COMMAND = 0xD2


class AttError(enum.IntEnum):
    """Error codes carried in an ATT Error Response."""

    SUCCESS = 0x00
    INVALID_HANDLE = 0x01
    READ_NOT_PERMITTED = 0x02
    WRITE_NOT_PERMITTED = 0x03
    INVALID_PDU = 0x04
    INSUFFICIENT_AUTHENTICATION = 0x05
    REQUEST_NOT_SUPPORTED = 0x06
    INVALID_OFFSET = 0x07
    INSUFFICIENT_AUTHORIZATION = 0x08
    PREPARE_QUEUE_FULL = 0x09
    ATTRIBUTE_NOT_FOUND = 0x0A
    ATTRIBUTE_NOT_LONG = 0x0B
    INSUFFICIENT_ENCRYPTION_KEY_SIZE = 0x0C
    INVALID_ATTRIBUTE_VALUE_LENGTH = 0x0D
    UNLIKELY = 0x0E
    INSUFFICIENT_ENCRYPTION = 0x0F
    UNSUPPORTED_GROUP_TYPE = 0x10
    INSUFFICIENT_RESOURCES = 0x11

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")


def _as_att_error(code: int) -> Union[AttError, int]:
    try:
        return AttError(code)
    except ValueError:
        return int(code)


class ATTException(Exception):
    """An ATT error code reported by, or to be reported to, the peer."""

    def __init__(self, code: int) -> None:
        self.code = _as_att_error(code)
        super().__init__(int(self.code))

    def __str__(self) -> str:
        if isinstance(self.code, AttError):
            return str(self.code)
        return f"ATT error 0x{self.code:02X}"

    def __repr__(self) -> str:
        return f"ATTException(0x{int(self.code):02X})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ATTException):
            return int(self.code) == int(other.code)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((ATTException, int(self.code)))


class InvalidArgumentError(ValueError):
    """One or more of the arguments are invalid."""

    def __init__(self, message: str = "invalid argument") -> None:
        super().__init__(message)


class InvalidResponseError(Exception):
    """One or more of the response fields are invalid."""

    def __init__(self, message: str = "invalid response") -> None:
        super().__init__(message)


class SequentialProtocolTimeout(TimeoutError):
    """A request was not acknowledged within 30 seconds."""

    def __init__(self, message: str = "req timeout") -> None:
        super().__init__(message)


_RESPONSE_OF_REQUEST: dict[int, int] = {
    EXCHANGE_MTU_REQUEST: EXCHANGE_MTU_RESPONSE,
    FIND_INFORMATION_REQUEST: FIND_INFORMATION_RESPONSE,
    FIND_BY_TYPE_VALUE_REQUEST: FIND_BY_TYPE_VALUE_RESPONSE,
    READ_BY_TYPE_REQUEST: READ_BY_TYPE_RESPONSE,
    READ_REQUEST: READ_RESPONSE,
    READ_BLOB_REQUEST: READ_BLOB_RESPONSE,
    READ_MULTIPLE_REQUEST: READ_MULTIPLE_RESPONSE,
    READ_BY_GROUP_TYPE_REQUEST: READ_BY_GROUP_TYPE_RESPONSE,
    WRITE_REQUEST: WRITE_RESPONSE,
    PREPARE_WRITE_REQUEST: PREPARE_WRITE_RESPONSE,
    EXECUTE_WRITE_REQUEST: EXECUTE_WRITE_RESPONSE,
    HANDLE_VALUE_INDICATION: HANDLE_VALUE_CONFIRMATION,
}


def response_opcode(request_opcode: int) -> Optional[int]:
    """Return the opcode that answers request_opcode, or None if it has no answer."""
    return _RESPONSE_OF_REQUEST.get(request_opcode)


def error_response(op: int, handle: int, code: int) -> bytes:
    """Build an Error Response PDU for request op on attribute handle."""
    return (
        bytes([ERROR_RESPONSE, op & 0xFF])
        + (handle & 0xFFFF).to_bytes(2, "little")
        + bytes([int(code) & 0xFF])
    )